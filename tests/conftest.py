from dataclasses import replace
from datetime import UTC, datetime, timedelta

import pytest

from notifyhub_dispatch.application.services import DispatchEngine, RecipientResolver
from notifyhub_dispatch.config import Settings
from notifyhub_dispatch.context import DaemonContext
from notifyhub_dispatch.domain.entities import (
    Channel,
    ChannelSubscriber,
    Message,
    MessageResult,
    MessageStatus,
    SubscriberStatus,
)
from notifyhub_dispatch.domain.exceptions import ChannelConfigError, PersistenceError
from notifyhub_dispatch.domain.ports import ChannelGateway, DeliveryOutcome, DispatchRepository
from notifyhub_dispatch.domain.value_objects import (
    BroadcastConfig,
    ChannelType,
    DeliveryOptions,
    SingleRecipientConfig,
)
from notifyhub_dispatch.infrastructure.liveness import FileLockManager

NOW = datetime(2026, 1, 15, 9, 0, tzinfo=UTC)


class InMemoryDispatchRepository(DispatchRepository):
    """Dict-backed store that records every call for assertions."""

    def __init__(self) -> None:
        self.messages: dict[str, Message] = {}
        self.channels: dict[str, Channel] = {}
        self.subscribers: dict[str, list[ChannelSubscriber]] = {}
        self.results: list[MessageResult] = []
        self.events: list[tuple[str, str, str]] = []
        self.calls: list[str] = []
        self.scheduler_enabled = True
        self.unreachable = False
        self.broken_channels: set[str] = set()
        self.failing_result_writes: set[str] = set()
        self.claim_conflicts: set[str] = set()

    def _check(self, name: str) -> None:
        self.calls.append(name)
        if self.unreachable:
            raise PersistenceError("connection refused")

    async def ping(self) -> None:
        self._check("ping")

    async def find_due_scheduled_messages(self, now):
        self._check("find_due_scheduled_messages")
        return [
            replace(m)
            for m in self.messages.values()
            if m.status == MessageStatus.SCHEDULED and m.scheduled_for and m.scheduled_for <= now
        ]

    async def update_message_status(self, message_id, status, sent_at=None, expected_status=None):
        self._check("update_message_status")
        message = self.messages.get(message_id)
        if message is None or message_id in self.claim_conflicts:
            return False
        if expected_status is not None and message.status != expected_status:
            return False
        message.status = status
        if sent_at is not None:
            message.sent_at = sent_at
        self.events.append(("status", message_id, status.value))
        return True

    async def append_message_result(self, message_id, channel_id, success, error=None):
        self._check("append_message_result")
        if message_id in self.failing_result_writes:
            raise PersistenceError("write failed")
        self.results.append(MessageResult(message_id, channel_id, success, error))
        self.events.append(("result", message_id, channel_id))

    async def find_channel(self, channel_id, user_id=None):
        self._check("find_channel")
        if channel_id in self.broken_channels:
            raise ChannelConfigError("Telegram channel is missing a bot token")
        channel = self.channels.get(channel_id)
        if channel is None or (user_id is not None and channel.user_id != user_id):
            return None
        return channel

    async def find_active_subscribers(self, channel_id):
        self._check("find_active_subscribers")
        return [s for s in self.subscribers.get(channel_id, []) if s.is_active]

    async def get_scheduler_enabled(self):
        self._check("get_scheduler_enabled")
        return self.scheduler_enabled

    async def insert_message(self, message):
        self._check("insert_message")
        self.messages[message.id] = replace(message)

    async def count_messages(self, status, due_before=None):
        self._check("count_messages")
        return sum(
            1
            for m in self.messages.values()
            if m.status == status
            and (due_before is None or (m.scheduled_for or m.created_at) <= due_before)
        )

    # Test helpers

    def add_channel(self, channel: Channel) -> Channel:
        self.channels[channel.id] = channel
        return channel

    def add_subscribers(self, channel_id: str, *provider_ids: str, status=SubscriberStatus.ACTIVE) -> None:
        self.subscribers.setdefault(channel_id, []).extend(
            ChannelSubscriber(channel_id=channel_id, provider_id=p, status=status) for p in provider_ids
        )

    def add_message(self, message: Message) -> Message:
        self.messages[message.id] = message
        return message

    def results_for(self, message_id: str) -> list[MessageResult]:
        return [r for r in self.results if r.message_id == message_id]


class FakeGateway(ChannelGateway):
    def __init__(self, outcome: DeliveryOutcome | None = None, error: Exception | None = None) -> None:
        self.outcome = outcome or DeliveryOutcome(success=True)
        self.error = error
        self.sends: list[tuple[str, str, list[str]]] = []

    @property
    def channel_type(self) -> ChannelType:
        return ChannelType.LINE

    async def send(self, title, body, recipients):
        self.sends.append((title, body, list(recipients)))
        if self.error is not None:
            raise self.error
        return self.outcome


class FakeGatewayFactory:
    def __init__(self) -> None:
        self.gateways: dict[str, FakeGateway] = {}
        self.default = FakeGateway()
        self.unsupported: set[str] = set()

    def create(self, channel: Channel) -> ChannelGateway:
        if channel.id in self.unsupported:
            raise ValueError(f"Unsupported channel type: {channel.type}")
        return self.gateways.get(channel.id, self.default)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def repository() -> InMemoryDispatchRepository:
    return InMemoryDispatchRepository()


@pytest.fixture
def gateway_factory() -> FakeGatewayFactory:
    return FakeGatewayFactory()


@pytest.fixture
def make_gateway():
    return FakeGateway


@pytest.fixture
def engine(repository, gateway_factory, now) -> DispatchEngine:
    return DispatchEngine(
        repository=repository,
        resolver=RecipientResolver(repository),
        gateway_factory=gateway_factory,
        clock=lambda: now,
    )


@pytest.fixture
def make_channel(repository):
    def _make(
        channel_id: str,
        enabled: bool = True,
        channel_type: ChannelType = ChannelType.LINE,
        default_recipient: str | None = None,
        owner: str = "user-1",
    ) -> Channel:
        if channel_type == ChannelType.LINE:
            config = BroadcastConfig(access_token="line-token", default_recipient=default_recipient)
        else:
            config = SingleRecipientConfig(bot_token="bot-token", default_recipient=default_recipient)
        return repository.add_channel(
            Channel(
                id=channel_id,
                user_id=owner,
                type=channel_type,
                name=f"{channel_type.value}-{channel_id}",
                enabled=enabled,
                config=config,
            )
        )

    return _make


@pytest.fixture
def make_message(repository, now):
    counter = iter(range(1, 1000))

    def _make(
        channel_ids: list[str],
        channel_options: dict[str, DeliveryOptions] | None = None,
        scheduled_for: datetime | None = None,
        status: MessageStatus = MessageStatus.SCHEDULED,
    ) -> Message:
        return repository.add_message(
            Message(
                id=f"msg-{next(counter)}",
                title="Maintenance",
                body="Service restarts at 22:00",
                channel_ids=channel_ids,
                user_id="user-1",
                status=status,
                channel_options=channel_options or {},
                scheduled_for=scheduled_for or now - timedelta(minutes=1),
                created_at=now - timedelta(hours=1),
            )
        )

    return _make


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        heartbeat_file=str(tmp_path / "run" / "scheduler_heartbeat"),
        pid_file=str(tmp_path / "run" / "scheduler.pid"),
        heartbeat_interval_seconds=3600,
        dispatch_interval_seconds=3600,
    )


@pytest.fixture
def lock_manager(settings) -> FileLockManager:
    return FileLockManager(
        pid_file=settings.pid_file,
        heartbeat_file=settings.heartbeat_file,
        stale_seconds=settings.lock_stale_seconds,
    )


@pytest.fixture
def daemon_context(settings, repository, lock_manager, engine) -> DaemonContext:
    return DaemonContext(
        settings=settings,
        repository=repository,
        lock_manager=lock_manager,
        engine=engine,
    )
