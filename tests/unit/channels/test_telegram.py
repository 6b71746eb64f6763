import pytest
from unittest.mock import AsyncMock, patch, MagicMock
import httpx

from notifyhub_dispatch.channels import TelegramGateway
from notifyhub_dispatch.channels.formatting import compose_telegram_text, describe_http_error
from notifyhub_dispatch.domain.value_objects import FormatMode


def _response(payload, status_code=200):
    response = MagicMock(status_code=status_code)
    response.json.return_value = payload
    return response


class TestTelegramGateway:
    @pytest.fixture
    def gateway(self):
        return TelegramGateway(bot_token="123:abc")

    @pytest.mark.asyncio
    async def test_send_to_each_chat(self, gateway):
        with patch("httpx.AsyncClient") as mock_client:
            post = AsyncMock(return_value=_response({"ok": True}))
            mock_client.return_value.__aenter__.return_value.post = post

            result = await gateway.send("Deploy", "v2 is live", ["100", "200"])

        assert result.success is True
        assert result.error is None
        assert result.delivered == 2
        assert [c.kwargs["json"]["chat_id"] for c in post.call_args_list] == ["100", "200"]
        assert post.call_args.args[0] == "https://api.telegram.org/bot123:abc/sendMessage"

    @pytest.mark.asyncio
    async def test_one_delivery_is_enough_and_errors_are_joined(self, gateway):
        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__.return_value.post = AsyncMock(
                side_effect=[
                    _response({"ok": True}),
                    _response({"ok": False, "description": "Bad Request: chat not found"}, 400),
                    httpx.ReadTimeout("timed out"),
                ]
            )

            result = await gateway.send("Deploy", "v2 is live", ["1", "2", "3"])

        assert result.success is True
        assert result.delivered == 1
        assert result.error == "Bad Request: chat not found, timeout after 15s: timed out"

    @pytest.mark.asyncio
    async def test_all_chats_failing(self, gateway):
        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__.return_value.post = AsyncMock(
                return_value=_response({"ok": False}, 403)
            )

            result = await gateway.send("Deploy", "v2 is live", ["1"])

        assert result.success is False
        assert result.error == "Telegram API error: 403"

    @pytest.mark.asyncio
    async def test_html_mode_escapes_title_and_keeps_body_markup(self, gateway):
        with patch("httpx.AsyncClient") as mock_client:
            post = AsyncMock(return_value=_response({"ok": True}))
            mock_client.return_value.__aenter__.return_value.post = post

            await gateway.send("a < b", "<i>soon</i>", ["1"])

        payload = post.call_args.kwargs["json"]
        assert payload["parse_mode"] == "HTML"
        assert payload["text"] == "📢 <b>a &lt; b</b>\n\n<i>soon</i>"

    @pytest.mark.asyncio
    async def test_plain_mode_omits_parse_mode(self):
        gateway = TelegramGateway(bot_token="t", format_mode=FormatMode.PLAIN)

        with patch("httpx.AsyncClient") as mock_client:
            post = AsyncMock(return_value=_response({"ok": True}))
            mock_client.return_value.__aenter__.return_value.post = post

            await gateway.send("Title", "Body", ["1"])

        assert "parse_mode" not in post.call_args.kwargs["json"]

    @pytest.mark.asyncio
    async def test_token_is_masked_in_transport_errors(self):
        gateway = TelegramGateway(bot_token="123456789:SECRET")

        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__.return_value.post = AsyncMock(
                side_effect=httpx.ConnectError(
                    "failed to reach https://api.telegram.org/bot123456789:SECRET/sendMessage"
                )
            )

            result = await gateway.send("Title", "Body", ["1"])

        assert "SECRET" not in result.error
        assert "12345678..." in result.error

    @pytest.mark.asyncio
    async def test_no_recipients(self, gateway):
        result = await gateway.send("Title", "Body", [])

        assert result.success is False
        assert result.error == "no recipients"


class TestFormatting:
    def test_markdown_text(self):
        text, parse_mode = compose_telegram_text("Title", "Body", FormatMode.MARKDOWN)
        assert text == "📢 *Title*\n\nBody"
        assert parse_mode == "Markdown"

    def test_timeout_description(self):
        assert describe_http_error(httpx.ConnectTimeout(""), 7.5) == "timeout after 7.5s"

    def test_transport_error_description(self):
        assert describe_http_error(httpx.ConnectError("refused"), 15) == "refused"

    def test_markdown_title_is_escaped_and_body_is_kept(self):
        text, _ = compose_telegram_text("release_v2 *now*", "_see notes_", FormatMode.MARKDOWN)
        assert text == "📢 *release\\_v2 \\*now\\**\n\n_see notes_"
