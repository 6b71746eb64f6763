from .line import LineBroadcastGateway
from .telegram import TelegramGateway

__all__ = [
    "LineBroadcastGateway",
    "TelegramGateway",
]
