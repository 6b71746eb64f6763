"""
Outbound port for single-instance liveness.

The lock record is a published status surface: operators and dashboards read
it to decide whether the daemon is alive.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class LockRecord:
    """Current holder of the daemon lock and its last heartbeat."""

    holder_pid: int | None
    last_heartbeat: datetime | None
    holder_alive: bool = False


class LockManager(ABC):
    """Port for claiming exclusive ownership of the dispatch loop."""

    @abstractmethod
    def try_acquire(self) -> bool:
        """
        Claim the lock.

        Returns:
            False if another live, non-stale holder owns it
        """
        ...

    @abstractmethod
    def heartbeat(self) -> bool:
        """
        Record that the holder is alive.

        Returns:
            False if the heartbeat could not be written (never raises)
        """
        ...

    @abstractmethod
    def release(self) -> None:
        """Give up the lock if held by this process."""
        ...

    @abstractmethod
    def is_stale(self, timeout_seconds: float) -> bool:
        """True if no heartbeat was recorded within ``timeout_seconds``."""
        ...

    @abstractmethod
    def read_record(self) -> LockRecord:
        """Read the published lock state."""
        ...
