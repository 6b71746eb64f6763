from .channel_gateway import ChannelGateway, ChunkOutcome, DeliveryOutcome
from .dispatch_repository import DispatchRepository
from .lock_manager import LockManager, LockRecord

__all__ = [
    "ChannelGateway",
    "ChunkOutcome",
    "DeliveryOutcome",
    "DispatchRepository",
    "LockManager",
    "LockRecord",
]
