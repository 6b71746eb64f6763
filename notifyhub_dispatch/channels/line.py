import httpx
import structlog

from ..domain.ports import ChannelGateway, ChunkOutcome, DeliveryOutcome
from ..domain.value_objects import ChannelType, FormatMode
from .formatting import compose_plain_text, describe_http_error

logger = structlog.get_logger()


class LineBroadcastGateway(ChannelGateway):
    """LINE Messaging API gateway using multicast batches."""

    BASE_URL = "https://api.line.me"
    MAX_RECIPIENTS_PER_CALL = 500

    def __init__(
        self,
        access_token: str,
        format_mode: FormatMode = FormatMode.TEXT,
        max_recipients: int = MAX_RECIPIENTS_PER_CALL,
        timeout: float = 15.0,
        base_url: str = BASE_URL,
    ) -> None:
        if max_recipients < 1:
            raise ValueError("max_recipients must be positive")
        self._access_token = access_token
        self._format_mode = format_mode
        self._max_recipients = max_recipients
        self._timeout = timeout
        self._base_url = base_url.rstrip("/")

    @property
    def channel_type(self) -> ChannelType:
        return ChannelType.LINE

    def build_message(self, title: str, body: str) -> dict:
        """Render title and body into a LINE message object."""
        if self._format_mode == FormatMode.FLEX:
            return {
                "type": "flex",
                "altText": title,
                "contents": {
                    "type": "bubble",
                    "body": {
                        "type": "box",
                        "layout": "vertical",
                        "contents": [
                            {"type": "text", "text": title, "weight": "bold", "size": "lg", "wrap": True},
                            {"type": "text", "text": body, "wrap": True, "margin": "md"},
                        ],
                    },
                },
            }
        return {"type": "text", "text": compose_plain_text(title, body)}

    async def send(
        self,
        title: str,
        body: str,
        recipients: list[str],
    ) -> DeliveryOutcome:
        """Multicast to all recipients, one call per chunk.

        Chunks are sent in order and sending stops at the first failing
        chunk. The attempt only succeeds if every chunk succeeded; the
        per-chunk outcomes record how far delivery got.
        """
        if not recipients:
            return DeliveryOutcome.failed("no recipients")

        url = f"{self._base_url}/v2/bot/message/multicast"
        headers = {
            "Authorization": f"Bearer {self._access_token}",
            "Content-Type": "application/json",
        }
        messages = [self.build_message(title, body)]
        chunks = [
            recipients[i : i + self._max_recipients]
            for i in range(0, len(recipients), self._max_recipients)
        ]

        outcomes: list[ChunkOutcome] = []
        delivered = 0

        async with httpx.AsyncClient(timeout=self._timeout) as client:
            for index, chunk in enumerate(chunks, start=1):
                error = await self._multicast(client, url, headers, chunk, messages)

                if error is not None:
                    outcomes.append(ChunkOutcome(index=index, size=len(chunk), success=False, error=error))
                    logger.error(
                        "LINE multicast failed",
                        chunk=index,
                        chunks=len(chunks),
                        delivered=delivered,
                        error=error,
                    )
                    if len(chunks) > 1:
                        error = (
                            f"chunk {index}/{len(chunks)} failed after "
                            f"{delivered} recipients reached: {error}"
                        )
                    return DeliveryOutcome(
                        success=False,
                        error=error,
                        attempted=len(recipients),
                        delivered=delivered,
                        chunks=outcomes,
                    )

                outcomes.append(ChunkOutcome(index=index, size=len(chunk), success=True))
                delivered += len(chunk)

        logger.info("LINE multicast sent", recipients=delivered, chunks=len(chunks))
        return DeliveryOutcome(
            success=True,
            attempted=len(recipients),
            delivered=delivered,
            chunks=outcomes,
        )

    async def _multicast(
        self,
        client: httpx.AsyncClient,
        url: str,
        headers: dict[str, str],
        chunk: list[str],
        messages: list[dict],
    ) -> str | None:
        """Send one multicast call; return an error text or None."""
        try:
            response = await client.post(
                url,
                headers=headers,
                json={"to": chunk, "messages": messages},
            )
            response.raise_for_status()
            return None

        except httpx.HTTPStatusError as e:
            return f"LINE API error: {e.response.status_code}"

        except httpx.HTTPError as e:
            return describe_http_error(e, self._timeout)
