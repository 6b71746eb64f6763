import pytest

from notifyhub_dispatch.application.services import RecipientResolver
from notifyhub_dispatch.domain.entities import SubscriberStatus
from notifyhub_dispatch.domain.value_objects import DeliveryMode, DeliveryOptions


class TestRecipientResolver:
    @pytest.fixture
    def resolver(self, repository):
        return RecipientResolver(repository)

    @pytest.mark.asyncio
    async def test_all_mode_targets_active_subscribers(self, resolver, repository):
        repository.add_subscribers("c1", "U1", "U2", "U1")
        repository.add_subscribers("c1", "U9", status=SubscriberStatus.BLOCKED)

        assert await resolver.resolve("c1") == ["U1", "U2"]

    @pytest.mark.asyncio
    async def test_selected_list_is_used_verbatim(self, resolver, repository):
        repository.add_subscribers("c1", "U1")
        options = DeliveryOptions(mode=DeliveryMode.SELECTED, recipient_ids=("X", "Y"))

        assert await resolver.resolve("c1", options) == ["X", "Y"]
        assert "find_active_subscribers" not in repository.calls

    @pytest.mark.asyncio
    async def test_empty_selection_falls_back_to_subscribers(self, resolver, repository):
        repository.add_subscribers("c1", "U1")
        options = DeliveryOptions(mode=DeliveryMode.SELECTED)

        assert await resolver.resolve("c1", options) == ["U1"]

    @pytest.mark.asyncio
    async def test_no_subscribers(self, resolver):
        assert await resolver.resolve("c1") == []
