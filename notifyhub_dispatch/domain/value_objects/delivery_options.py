from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class DeliveryMode(str, Enum):
    ALL = "all"
    SELECTED = "selected"


@dataclass(frozen=True)
class DeliveryOptions:
    """Per-channel delivery options stored on a message."""
    mode: DeliveryMode = DeliveryMode.ALL
    recipient_ids: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_dict(cls, raw: Any) -> "DeliveryOptions":
        """Build options from the stored JSON shape.

        Accepts both ``{"mode", "recipient_ids"}`` and the admin surface's
        ``{"type", "users"}`` keys, or a bare mode string. Unknown modes and
        shapes fall back to ``all``; a single recipient string is one id.
        """
        if isinstance(raw, str):
            raw = {"mode": raw}
        if not raw or not isinstance(raw, dict):
            return cls()
        mode_value = raw.get("mode", raw.get("type", DeliveryMode.ALL.value))
        try:
            mode = DeliveryMode(mode_value)
        except ValueError:
            mode = DeliveryMode.ALL
        recipients = raw.get("recipient_ids", raw.get("users")) or []
        if isinstance(recipients, (str, int)):
            recipients = [recipients]
        elif not isinstance(recipients, (list, tuple)):
            recipients = []
        return cls(mode=mode, recipient_ids=tuple(str(r) for r in recipients if r not in (None, "")))

    def to_dict(self) -> dict[str, Any]:
        return {"mode": self.mode.value, "recipient_ids": list(self.recipient_ids)}
