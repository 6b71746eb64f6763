from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from .application.services import DispatchEngine
from .config import Settings
from .domain.ports import DispatchRepository, LockManager


@dataclass
class DaemonContext:
    """Everything the daemon needs, built once at process start."""

    settings: Settings
    repository: DispatchRepository
    lock_manager: LockManager
    engine: DispatchEngine
    dispose: Callable[[], Awaitable[None]] | None = None

    async def close(self) -> None:
        if self.dispose is not None:
            await self.dispose()
