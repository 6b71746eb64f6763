import httpx
import structlog

from ..domain.ports import ChannelGateway, DeliveryOutcome
from ..domain.value_objects import ChannelType, FormatMode
from ..infrastructure.logging import redact_secret
from .formatting import compose_telegram_text, describe_http_error

logger = structlog.get_logger()


class TelegramGateway(ChannelGateway):
    """Telegram Bot API gateway, one sendMessage call per chat."""

    BASE_URL = "https://api.telegram.org"

    def __init__(
        self,
        bot_token: str,
        format_mode: FormatMode = FormatMode.HTML,
        timeout: float = 15.0,
        base_url: str = BASE_URL,
    ) -> None:
        self._bot_token = bot_token
        self._format_mode = format_mode
        self._timeout = timeout
        self._base_url = base_url.rstrip("/")

    @property
    def channel_type(self) -> ChannelType:
        return ChannelType.TELEGRAM

    async def send(
        self,
        title: str,
        body: str,
        recipients: list[str],
    ) -> DeliveryOutcome:
        """Send to each chat in turn.

        The channel attempt succeeds if at least one chat received the
        message. Failure reasons are joined into a single error text.
        """
        if not recipients:
            return DeliveryOutcome.failed("no recipients")

        url = f"{self._base_url}/bot{self._bot_token}/sendMessage"
        text, parse_mode = compose_telegram_text(title, body, self._format_mode)

        delivered = 0
        errors: list[str] = []

        async with httpx.AsyncClient(timeout=self._timeout) as client:
            for chat_id in recipients:
                error = await self._send_one(client, url, chat_id, text, parse_mode)
                if error is None:
                    delivered += 1
                else:
                    logger.warning("Telegram delivery failed", chat_id=chat_id, error=error)
                    errors.append(error)

        logger.info(
            "Telegram messages sent",
            delivered=delivered,
            attempted=len(recipients),
        )
        return DeliveryOutcome(
            success=delivered > 0,
            error=", ".join(errors) if errors else None,
            attempted=len(recipients),
            delivered=delivered,
        )

    async def _send_one(
        self,
        client: httpx.AsyncClient,
        url: str,
        chat_id: str,
        text: str,
        parse_mode: str | None,
    ) -> str | None:
        """Send to one chat; return an error text or None."""
        payload = {"chat_id": chat_id, "text": text}
        if parse_mode:
            payload["parse_mode"] = parse_mode

        try:
            response = await client.post(url, json=payload)
        except httpx.HTTPError as e:
            # Transport errors can echo the request URL, which embeds the token
            return redact_secret(describe_http_error(e, self._timeout), self._bot_token)

        try:
            data = response.json()
        except ValueError:
            return f"Telegram API error: {response.status_code}"

        if data.get("ok"):
            return None
        return data.get("description") or f"Telegram API error: {response.status_code}"
