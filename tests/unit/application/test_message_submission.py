from datetime import timedelta

import pytest

from notifyhub_dispatch.application.services import MessageSubmissionService
from notifyhub_dispatch.domain.entities import MessageStatus
from notifyhub_dispatch.domain.value_objects import DeliveryMode


class TestMessageSubmissionService:
    @pytest.fixture
    def service(self, repository, engine, now):
        return MessageSubmissionService(
            repository=repository,
            engine=engine,
            clock=lambda: now,
        )

    @pytest.mark.asyncio
    async def test_far_future_message_is_scheduled(self, service, repository, gateway_factory, make_channel, now):
        make_channel("c1", default_recipient="t1")

        result = await service.submit(
            title="Later",
            body="Body",
            channel_ids=["c1"],
            user_id="user-1",
            scheduled_for=now + timedelta(minutes=10),
        )

        assert result.outcome is None
        assert repository.messages[result.message.id].status == MessageStatus.SCHEDULED
        assert gateway_factory.default.sends == []

    @pytest.mark.asyncio
    async def test_near_future_message_is_sent_now(self, service, repository, make_channel, now):
        make_channel("c1", default_recipient="t1")

        result = await service.submit(
            title="Soon",
            body="Body",
            channel_ids=["c1"],
            user_id="user-1",
            scheduled_for=now + timedelta(seconds=30),
        )

        assert result.outcome is not None
        assert result.outcome.status == MessageStatus.SENT
        assert repository.messages[result.message.id].status == MessageStatus.SENT
        assert len(repository.results_for(result.message.id)) == 1

    @pytest.mark.asyncio
    async def test_unscheduled_message_is_sent_now(self, service, repository, make_channel):
        make_channel("c1", default_recipient="t1")
        make_channel("c2", enabled=False)

        result = await service.submit(title="Now", body="Body", channel_ids=["c1", "c2"], user_id="user-1")

        assert result.outcome.status == MessageStatus.PARTIAL
        assert repository.calls[0] == "insert_message"

    @pytest.mark.asyncio
    async def test_dict_options_are_converted(self, service, repository, gateway_factory, make_channel):
        make_channel("c1")

        result = await service.submit(
            title="Now",
            body="Body",
            channel_ids=["c1"],
            user_id="user-1",
            channel_options={"c1": {"type": "selected", "users": ["U7"]}},
        )

        assert result.message.options_for("c1").mode == DeliveryMode.SELECTED
        assert gateway_factory.default.sends[0][2] == ["U7"]

    @pytest.mark.asyncio
    async def test_invalid_message_is_not_stored(self, service, repository):
        with pytest.raises(ValueError):
            await service.submit(title="", body="Body", channel_ids=["c1"], user_id="user-1")

        assert repository.messages == {}
