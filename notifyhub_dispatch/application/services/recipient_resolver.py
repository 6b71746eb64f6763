import structlog

from ...domain.ports import DispatchRepository
from ...domain.value_objects import DeliveryMode, DeliveryOptions

logger = structlog.get_logger()


class RecipientResolver:
    """Determines the concrete recipients of one channel for one message."""

    def __init__(self, repository: DispatchRepository) -> None:
        self._repository = repository

    async def resolve(self, channel_id: str, options: DeliveryOptions | None = None) -> list[str]:
        """
        Resolve recipient ids for a channel.

        An explicit ``selected`` list is returned verbatim; the gateway is
        left to reject unknown ids. Otherwise every active subscriber of the
        channel is targeted.

        Args:
            channel_id: Channel identifier
            options: Per-message delivery options for this channel

        Returns:
            Provider recipient ids, possibly empty
        """
        options = options or DeliveryOptions()

        if options.mode == DeliveryMode.SELECTED and options.recipient_ids:
            return list(options.recipient_ids)

        subscribers = await self._repository.find_active_subscribers(channel_id)
        recipients = list(dict.fromkeys(s.provider_id for s in subscribers if s.is_active))
        logger.debug("Resolved subscribers", channel_id=channel_id, count=len(recipients))
        return recipients
