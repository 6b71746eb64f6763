from .channel_config import (
    BroadcastConfig,
    ChannelConfig,
    SingleRecipientConfig,
    parse_channel_config,
)
from .channel_type import ChannelType, FormatMode
from .delivery_options import DeliveryMode, DeliveryOptions

__all__ = [
    "BroadcastConfig",
    "ChannelConfig",
    "ChannelType",
    "DeliveryMode",
    "DeliveryOptions",
    "FormatMode",
    "SingleRecipientConfig",
    "parse_channel_config",
]
