from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import Enum
from uuid import uuid4

from ..value_objects import DeliveryOptions

DEFAULT_SCHEDULE_GRACE = timedelta(seconds=60)


class MessageStatus(str, Enum):
    PENDING = "pending"
    SCHEDULED = "scheduled"
    SENDING = "sending"
    SENT = "sent"
    PARTIAL = "partial"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (MessageStatus.SENT, MessageStatus.PARTIAL, MessageStatus.FAILED)


@dataclass(frozen=True)
class MessageResult:
    """Outcome of one channel attempt for one message. Never updated once stored."""

    message_id: str
    channel_id: str
    success: bool
    error: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


def compute_final_status(results: Iterable[MessageResult]) -> MessageStatus:
    """Aggregate per-channel results into the message's final status."""
    results = list(results)
    if not results:
        return MessageStatus.FAILED

    success_count = sum(1 for r in results if r.success)
    if success_count == len(results):
        return MessageStatus.SENT
    if success_count > 0:
        return MessageStatus.PARTIAL
    return MessageStatus.FAILED


@dataclass
class Message:
    """Message aggregate root."""

    id: str
    title: str
    body: str
    channel_ids: list[str]
    user_id: str
    status: MessageStatus = MessageStatus.PENDING
    channel_options: dict[str, DeliveryOptions] = field(default_factory=dict)
    scheduled_for: datetime | None = None
    sent_at: datetime | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def create(
        cls,
        title: str,
        body: str,
        channel_ids: list[str],
        user_id: str,
        channel_options: dict[str, DeliveryOptions] | None = None,
        scheduled_for: datetime | None = None,
        grace: timedelta = DEFAULT_SCHEDULE_GRACE,
        now: datetime | None = None,
    ) -> "Message":
        """
        Factory method to create a new message.

        A message is ``scheduled`` only when ``scheduled_for`` lies strictly
        more than ``grace`` in the future. Anything sooner is dispatched
        immediately and starts in ``sending``.
        """
        if not title or not title.strip():
            raise ValueError("Message title cannot be empty")
        if not body or not body.strip():
            raise ValueError("Message body cannot be empty")
        if not channel_ids:
            raise ValueError("Message must target at least one channel")

        now = now or datetime.now(UTC)
        if scheduled_for is not None and scheduled_for - now > grace:
            status = MessageStatus.SCHEDULED
        else:
            status = MessageStatus.SENDING

        return cls(
            id=str(uuid4()),
            title=title,
            body=body,
            channel_ids=[str(c) for c in channel_ids],
            user_id=user_id,
            status=status,
            channel_options={str(k): v for k, v in (channel_options or {}).items()},
            scheduled_for=scheduled_for,
            created_at=now,
        )

    def target_channel_ids(self) -> list[str]:
        """Distinct channel ids, first occurrence wins."""
        return list(dict.fromkeys(str(c) for c in self.channel_ids))

    def options_for(self, channel_id: str) -> DeliveryOptions:
        return self.channel_options.get(str(channel_id), DeliveryOptions())
