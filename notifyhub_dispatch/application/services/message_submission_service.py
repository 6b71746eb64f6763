"""
Application service for the send-now / send-later request path.

It creates the message record and decides between scheduling it and
dispatching it right away through the same engine the daemon uses.
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import structlog

from ...domain.entities import DEFAULT_SCHEDULE_GRACE, Message, MessageStatus
from ...domain.ports import DispatchRepository
from ...domain.value_objects import DeliveryOptions
from .dispatch_engine import DispatchEngine, MessageOutcome

logger = structlog.get_logger()


@dataclass
class SubmissionResult:
    message: Message
    outcome: MessageOutcome | None = None  # None when left for the daemon


class MessageSubmissionService:
    """Creates messages and dispatches the ones not worth scheduling."""

    def __init__(
        self,
        repository: DispatchRepository,
        engine: DispatchEngine,
        grace: timedelta = DEFAULT_SCHEDULE_GRACE,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        self._repository = repository
        self._engine = engine
        self._grace = grace
        self._clock = clock

    async def submit(
        self,
        title: str,
        body: str,
        channel_ids: list[str],
        user_id: str,
        channel_options: Mapping[str, DeliveryOptions | dict[str, Any]] | None = None,
        scheduled_for: datetime | None = None,
    ) -> SubmissionResult:
        """
        Create a message and send it now unless it is due later.

        Args:
            title: Message title
            body: Message body
            channel_ids: Target channels
            user_id: Owning user
            channel_options: Per-channel delivery options
            scheduled_for: Requested delivery time

        Returns:
            SubmissionResult; ``outcome`` is set when the message was sent now
        """
        options = {
            str(cid): opt if isinstance(opt, DeliveryOptions) else DeliveryOptions.from_dict(opt)
            for cid, opt in (channel_options or {}).items()
        }
        message = Message.create(
            title=title,
            body=body,
            channel_ids=channel_ids,
            user_id=user_id,
            channel_options=options,
            scheduled_for=scheduled_for,
            grace=self._grace,
            now=self._clock(),
        )
        await self._repository.insert_message(message)

        if message.status == MessageStatus.SCHEDULED:
            logger.info(
                "Message scheduled",
                message_id=message.id,
                scheduled_for=message.scheduled_for.isoformat(),
            )
            return SubmissionResult(message=message)

        outcome = await self._engine.dispatch_message(message)
        return SubmissionResult(message=message, outcome=outcome)
