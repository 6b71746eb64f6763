"""
Dispatch engine.

One pass loads every due scheduled message and, for each, claims it by moving
it to ``sending``, fans it out to its channels, appends one result per
distinct channel id and only then writes the final status.
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol
from uuid import uuid4

import structlog

from ...domain.entities import (
    Channel,
    Message,
    MessageResult,
    MessageStatus,
    compute_final_status,
)
from ...domain.exceptions import ChannelConfigError, PersistenceError
from ...domain.ports import ChannelGateway, DispatchRepository
from ...infrastructure.logging import Stopwatch, current_pass_id
from .recipient_resolver import RecipientResolver

logger = structlog.get_logger()

CHANNEL_UNAVAILABLE = "channel not found or disabled"
NO_RECIPIENTS = "no recipients"
UNSUPPORTED_CHANNEL = "unsupported channel type"


def _utcnow() -> datetime:
    return datetime.now(UTC)


def describe_error(error: BaseException) -> str:
    return str(error) or type(error).__name__


@dataclass
class MessageOutcome:
    """What happened to one message during a pass."""

    message_id: str
    status: MessageStatus
    results: list[MessageResult] = field(default_factory=list)
    error: str | None = None
    skipped: bool = False


@dataclass
class PassSummary:
    """Result of one dispatch pass."""

    pass_id: str
    started_at: datetime
    finished_at: datetime | None = None
    outcomes: list[MessageOutcome] = field(default_factory=list)
    interrupted: bool = False

    @property
    def messages_processed(self) -> int:
        return sum(1 for o in self.outcomes if not o.skipped)

    def count(self, status: MessageStatus) -> int:
        return sum(1 for o in self.outcomes if not o.skipped and o.status == status)


class GatewayFactory(Protocol):
    """Anything that builds a gateway for a channel."""

    def create(self, channel: Channel) -> ChannelGateway: ...


class DispatchEngine:
    """
    Drives due messages through channel fan-out and status aggregation.

    Channel-level problems (disabled channel, no recipients, provider error,
    timeout) become failed results and never abort the message. Persistence
    failures while handling a message leave it in ``sending`` for operators
    and the pass moves on to the next message.
    """

    def __init__(
        self,
        repository: DispatchRepository,
        resolver: RecipientResolver,
        gateway_factory: GatewayFactory,
        concurrent_channels: bool = True,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._repository = repository
        self._resolver = resolver
        self._gateway_factory = gateway_factory
        self._concurrent_channels = concurrent_channels
        self._clock = clock

    async def run_pass(self, should_stop: Callable[[], bool] | None = None) -> PassSummary:
        """
        Process every due scheduled message once.

        Args:
            should_stop: Checked before each message; when it returns True the
                remaining messages are left ``scheduled`` for the next pass

        Returns:
            PassSummary with one outcome per message looked at

        Raises:
            PersistenceError: If due messages cannot be loaded
        """
        summary = PassSummary(pass_id=current_pass_id() or uuid4().hex[:12], started_at=self._clock())

        stopwatch = Stopwatch()
        logger.info("Dispatch pass started")
        messages = await self._repository.find_due_scheduled_messages(summary.started_at)

        if not messages:
            logger.info("No due messages found")
        else:
            logger.info("Found due messages", count=len(messages))

        for index, message in enumerate(messages):
            if should_stop is not None and should_stop():
                summary.interrupted = True
                logger.info(
                    "Stop requested, leaving remaining messages scheduled",
                    remaining=len(messages) - index,
                )
                break
            summary.outcomes.append(await self._process_due_message(message))

        summary.finished_at = self._clock()
        logger.info(
            "Dispatch pass completed",
            processed=summary.messages_processed,
            sent=summary.count(MessageStatus.SENT),
            partial=summary.count(MessageStatus.PARTIAL),
            failed=summary.count(MessageStatus.FAILED),
            errors=sum(1 for o in summary.outcomes if o.error),
            interrupted=summary.interrupted,
            duration_ms=stopwatch.elapsed_ms,
        )
        return summary

    async def _process_due_message(self, message: Message) -> MessageOutcome:
        """Claim a scheduled message, then dispatch it."""
        try:
            claimed = await self._repository.update_message_status(
                message.id,
                MessageStatus.SENDING,
                expected_status=MessageStatus.SCHEDULED,
            )
        except Exception as e:
            logger.error("Failed to claim message", message_id=message.id, error=describe_error(e))
            return MessageOutcome(
                message_id=message.id,
                status=MessageStatus.SCHEDULED,
                error=describe_error(e),
            )

        if not claimed:
            logger.warning("Message already claimed elsewhere, skipping", message_id=message.id)
            return MessageOutcome(message_id=message.id, status=message.status, skipped=True)

        message.status = MessageStatus.SENDING
        return await self.dispatch_message(message)

    async def dispatch_message(self, message: Message) -> MessageOutcome:
        """
        Fan a message already in ``sending`` out to all its channels.

        Args:
            message: Message to deliver

        Returns:
            MessageOutcome with the final status and one result per channel id
        """
        channel_ids = message.target_channel_ids()
        results: list[MessageResult] = []

        with structlog.contextvars.bound_contextvars(message_id=message.id):
            logger.info("Processing message", title=message.title, channel_ids=channel_ids)

            try:
                results = await self._attempt_channels(message, channel_ids)

                for result in results:
                    await self._repository.append_message_result(
                        message_id=result.message_id,
                        channel_id=result.channel_id,
                        success=result.success,
                        error=result.error,
                    )

                final_status = compute_final_status(results)
                sent_at = self._clock()
                await self._repository.update_message_status(message.id, final_status, sent_at=sent_at)

            except Exception as e:
                logger.exception(
                    "Message processing failed, leaving it in sending",
                    error=describe_error(e),
                )
                return MessageOutcome(
                    message_id=message.id,
                    status=MessageStatus.SENDING,
                    results=results,
                    error=describe_error(e),
                )

            message.status = final_status
            message.sent_at = sent_at
            logger.info(
                "Message dispatched",
                status=final_status.value,
                succeeded=sum(1 for r in results if r.success),
                failed=sum(1 for r in results if not r.success),
            )
            return MessageOutcome(message_id=message.id, status=final_status, results=results)

    async def _attempt_channels(self, message: Message, channel_ids: list[str]) -> list[MessageResult]:
        if not self._concurrent_channels:
            return [await self._attempt_channel(message, cid) for cid in channel_ids]

        gathered = await asyncio.gather(
            *(self._attempt_channel(message, cid) for cid in channel_ids),
            return_exceptions=True,
        )
        for item in gathered:
            if isinstance(item, BaseException):
                raise item
        return list(gathered)

    async def _attempt_channel(self, message: Message, channel_id: str) -> MessageResult:
        """
        Attempt one channel and summarise it as a single result.

        Only PersistenceError escapes; everything else is a failed result.
        """
        try:
            result = await self._send_via_channel(message, channel_id)
        except PersistenceError:
            raise
        except Exception as e:
            result = self._failed(message, channel_id, describe_error(e))

        log = logger.info if result.success else logger.warning
        log(
            "Channel outcome",
            channel_id=channel_id,
            success=result.success,
            error=result.error,
        )
        return result

    async def _send_via_channel(self, message: Message, channel_id: str) -> MessageResult:
        try:
            channel = await self._repository.find_channel(channel_id, user_id=message.user_id)
        except ChannelConfigError as e:
            return self._failed(message, channel_id, describe_error(e))

        if channel is None or not channel.enabled:
            return self._failed(message, channel_id, CHANNEL_UNAVAILABLE)

        recipients = await self._resolver.resolve(channel_id, message.options_for(channel_id))

        if not recipients and channel.default_recipient:
            logger.info("Falling back to legacy default recipient", channel_id=channel_id)
            recipients = [channel.default_recipient]

        if not recipients:
            return self._failed(message, channel_id, NO_RECIPIENTS)

        try:
            gateway = self._gateway_factory.create(channel)
        except ValueError:
            return self._failed(message, channel_id, UNSUPPORTED_CHANNEL)

        outcome = await gateway.send(message.title, message.body, recipients)
        logger.debug(
            "Gateway returned",
            channel_id=channel_id,
            channel=channel.name,
            attempted=outcome.attempted,
            delivered=outcome.delivered,
        )
        return MessageResult(
            message_id=message.id,
            channel_id=channel_id,
            success=outcome.success,
            error=outcome.error,
            created_at=self._clock(),
        )

    def _failed(self, message: Message, channel_id: str, error: str) -> MessageResult:
        return MessageResult(
            message_id=message.id,
            channel_id=channel_id,
            success=False,
            error=error,
            created_at=self._clock(),
        )
