"""
Typed channel configuration.

Channel rows carry an untyped JSON config. It is resolved once, at load time,
into one variant per channel type so the rest of the daemon never does
string-keyed lookups.
"""

from dataclasses import dataclass
from typing import Any

from ..exceptions import ChannelConfigError
from .channel_type import ChannelType, FormatMode


@dataclass(frozen=True)
class BroadcastConfig:
    """Config for a multicast-capable messaging API (LINE)."""

    access_token: str
    default_recipient: str | None = None
    format_mode: FormatMode = FormatMode.TEXT


@dataclass(frozen=True)
class SingleRecipientConfig:
    """Config for a one-recipient-per-call bot API (Telegram)."""

    bot_token: str
    default_recipient: str | None = None
    format_mode: FormatMode = FormatMode.HTML


ChannelConfig = BroadcastConfig | SingleRecipientConfig

_BROADCAST_MODES = (FormatMode.TEXT, FormatMode.FLEX)
_SINGLE_RECIPIENT_MODES = (FormatMode.HTML, FormatMode.MARKDOWN, FormatMode.PLAIN)


def _first(raw: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = raw.get(key)
        if value not in (None, ""):
            return value
    return None


def _format_mode(value: Any, allowed: tuple[FormatMode, ...], default: FormatMode) -> FormatMode:
    if value is None:
        return default
    for mode in allowed:
        if str(value).lower() == mode.value.lower():
            return mode
    raise ChannelConfigError(f"Unsupported format mode: {value}")


def parse_channel_config(channel_type: ChannelType | str, raw: dict[str, Any] | None) -> ChannelConfig:
    """
    Resolve a raw config map into its typed variant.

    Args:
        channel_type: Channel type tag
        raw: Config map as stored by the admin surface

    Returns:
        BroadcastConfig or SingleRecipientConfig

    Raises:
        ChannelConfigError: If the type is unknown or a required field is missing
    """
    raw = raw or {}
    try:
        channel_type = ChannelType(channel_type)
    except ValueError as e:
        raise ChannelConfigError(f"Unsupported channel type: {channel_type}") from e

    default_recipient = _first(raw, "default_recipient", "targetId", "chatId")
    if default_recipient is not None:
        default_recipient = str(default_recipient)

    match channel_type:
        case ChannelType.LINE:
            token = _first(raw, "access_token", "channelAccessToken")
            if not token:
                raise ChannelConfigError("LINE channel is missing an access token")
            return BroadcastConfig(
                access_token=token,
                default_recipient=default_recipient,
                format_mode=_format_mode(
                    _first(raw, "format_mode", "formatMode"), _BROADCAST_MODES, FormatMode.TEXT
                ),
            )
        case ChannelType.TELEGRAM:
            token = _first(raw, "bot_token", "botToken")
            if not token:
                raise ChannelConfigError("Telegram channel is missing a bot token")
            return SingleRecipientConfig(
                bot_token=token,
                default_recipient=default_recipient,
                format_mode=_format_mode(
                    _first(raw, "format_mode", "parseMode"), _SINGLE_RECIPIENT_MODES, FormatMode.HTML
                ),
            )
