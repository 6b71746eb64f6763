from enum import Enum


class ChannelType(str, Enum):
    """Supported outbound channel integrations."""
    LINE = "line"  # broadcast / multicast messaging API
    TELEGRAM = "telegram"  # single-recipient bot API


class FormatMode(str, Enum):
    """How title and body are rendered into the provider payload."""
    TEXT = "text"
    FLEX = "flex"
    HTML = "HTML"
    MARKDOWN = "Markdown"
    PLAIN = "plain"
