"""
Factory for creating channel gateway instances.

Each channel carries its own credentials, so gateways are built per channel
from the channel's typed config variant.
"""

from ...domain.entities import Channel
from ...domain.ports import ChannelGateway
from ...domain.value_objects import BroadcastConfig, SingleRecipientConfig
from ...channels import LineBroadcastGateway, TelegramGateway


class ChannelGatewayFactory:
    """
    Factory for creating channel gateway instances.

    Encapsulates provider endpoints, timeouts and batch limits so the
    dispatch engine only deals with the ChannelGateway port.
    """

    def __init__(
        self,
        request_timeout: float = 15.0,
        broadcast_max_recipients: int = LineBroadcastGateway.MAX_RECIPIENTS_PER_CALL,
        line_base_url: str = LineBroadcastGateway.BASE_URL,
        telegram_base_url: str = TelegramGateway.BASE_URL,
    ) -> None:
        self._request_timeout = request_timeout
        self._broadcast_max_recipients = broadcast_max_recipients
        self._line_base_url = line_base_url
        self._telegram_base_url = telegram_base_url

    def create(self, channel: Channel) -> ChannelGateway:
        """
        Create a gateway for the channel's config variant.

        Args:
            channel: Channel to send through

        Returns:
            ChannelGateway implementation for the channel

        Raises:
            ValueError: If the config variant is not supported
        """
        match channel.config:
            case BroadcastConfig(access_token=token, format_mode=mode):
                return LineBroadcastGateway(
                    access_token=token,
                    format_mode=mode,
                    max_recipients=self._broadcast_max_recipients,
                    timeout=self._request_timeout,
                    base_url=self._line_base_url,
                )
            case SingleRecipientConfig(bot_token=token, format_mode=mode):
                return TelegramGateway(
                    bot_token=token,
                    format_mode=mode,
                    timeout=self._request_timeout,
                    base_url=self._telegram_base_url,
                )
            case _:
                raise ValueError(f"Unsupported channel type: {channel.type}")
