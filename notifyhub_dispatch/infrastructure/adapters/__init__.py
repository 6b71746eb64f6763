from .channel_gateway_factory import ChannelGatewayFactory
from .sqlalchemy_repository import SqlAlchemyDispatchRepository

__all__ = [
    "ChannelGatewayFactory",
    "SqlAlchemyDispatchRepository",
]
