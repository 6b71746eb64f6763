from .channel import Channel, ChannelSubscriber, SubscriberStatus
from .message import (
    DEFAULT_SCHEDULE_GRACE,
    Message,
    MessageResult,
    MessageStatus,
    compute_final_status,
)

__all__ = [
    "DEFAULT_SCHEDULE_GRACE",
    "Channel",
    "ChannelSubscriber",
    "Message",
    "MessageResult",
    "MessageStatus",
    "SubscriberStatus",
    "compute_final_status",
]
