import html

import httpx

from ..domain.value_objects import FormatMode

TITLE_PREFIX = "📢"


def compose_plain_text(title: str, body: str) -> str:
    return f"{TITLE_PREFIX} {title}\n\n{body}"


def _escape_markdown(text: str) -> str:
    for char in ("_", "*", "`", "["):
        text = text.replace(char, "\\" + char)
    return text


def compose_telegram_text(title: str, body: str, mode: FormatMode) -> tuple[str, str | None]:
    """
    Render a message for the Telegram bot API.

    The body is authored in the channel's parse mode and is sent as is, so
    its markup renders. The title is plain text wrapped in bold, so it is
    escaped for the parse mode.

    Returns:
        (text, parse_mode); parse_mode is None for plain text
    """
    match mode:
        case FormatMode.HTML:
            return f"{TITLE_PREFIX} <b>{html.escape(title)}</b>\n\n{body}", "HTML"
        case FormatMode.MARKDOWN:
            return f"{TITLE_PREFIX} *{_escape_markdown(title)}*\n\n{body}", "Markdown"
        case _:
            return compose_plain_text(title, body), None


def describe_http_error(error: httpx.HTTPError, timeout: float) -> str:
    """Turn a transport error into a result reason."""
    detail = str(error)
    if isinstance(error, httpx.TimeoutException):
        return f"timeout after {timeout:g}s" + (f": {detail}" if detail else "")
    return detail or type(error).__name__
