"""
Outbound port for channel delivery.

Gateways report provider failures as a DeliveryOutcome instead of raising,
so the engine can record them as channel results.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from ..value_objects import ChannelType


@dataclass(frozen=True)
class ChunkOutcome:
    """Result of one multicast call covering a slice of recipients."""

    index: int
    size: int
    success: bool
    error: str | None = None


@dataclass
class DeliveryOutcome:
    """Result of one channel attempt across all its recipients."""

    success: bool
    error: str | None = None
    attempted: int = 0
    delivered: int = 0
    chunks: list[ChunkOutcome] = field(default_factory=list)

    @classmethod
    def failed(cls, error: str, attempted: int = 0) -> "DeliveryOutcome":
        return cls(success=False, error=error, attempted=attempted)


class ChannelGateway(ABC):
    """
    Outbound port for sending a message through one configured channel.

    This is the interface that infrastructure adapters must implement.
    """

    @property
    @abstractmethod
    def channel_type(self) -> ChannelType:
        """Return the channel type this gateway handles."""
        ...

    @abstractmethod
    async def send(
        self,
        title: str,
        body: str,
        recipients: list[str],
    ) -> DeliveryOutcome:
        """
        Send a message to the given recipients.

        Args:
            title: Message title
            body: Message body
            recipients: Provider-assigned recipient ids

        Returns:
            DeliveryOutcome summarising the attempt
        """
        ...
