from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from ..value_objects import ChannelConfig, ChannelType


class SubscriberStatus(str, Enum):
    ACTIVE = "active"
    BLOCKED = "blocked"


@dataclass
class Channel:
    """An outbound integration owned by a user."""

    id: str
    user_id: str
    type: ChannelType
    name: str
    enabled: bool
    config: ChannelConfig
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def default_recipient(self) -> str | None:
        """Legacy single target configured before subscribers were tracked."""
        return self.config.default_recipient


@dataclass(frozen=True)
class ChannelSubscriber:
    """A recipient that has interacted with a channel's bot."""

    channel_id: str
    provider_id: str
    display_name: str | None = None
    status: SubscriberStatus = SubscriberStatus.ACTIVE

    @property
    def is_active(self) -> bool:
        return self.status == SubscriberStatus.ACTIVE
