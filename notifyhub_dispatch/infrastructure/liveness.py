"""File-based single-instance lock and heartbeat.

Two plain-text files form the published liveness surface:
- the PID file holds the pid of the process owning the dispatch loop
- the heartbeat file holds the unix timestamp of the last heartbeat

A crashed holder leaves its PID file behind. The next ``try_acquire`` checks
the process and the heartbeat age and reclaims the lock if either shows the
holder is gone.
"""

import os
import time
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path

import structlog

from ..domain.ports import LockManager, LockRecord

logger = structlog.get_logger()


def process_exists(pid: int) -> bool:
    """Probe a pid with signal 0."""
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists but owned by another user
        return True
    return True


class FileLockManager(LockManager):
    """
    LockManager backed by a PID file and a heartbeat file.

    The PID file is created with O_EXCL so two processes starting at the
    same time cannot both acquire it.
    """

    def __init__(
        self,
        pid_file: str | Path,
        heartbeat_file: str | Path,
        stale_seconds: float = 150,
        pid: int | None = None,
        is_alive: Callable[[int], bool] = process_exists,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize lock manager.

        Args:
            pid_file: Path of the lock record
            heartbeat_file: Path of the heartbeat record
            stale_seconds: Heartbeat age after which a holder is considered dead
            pid: Identity of this holder (defaults to the current process)
            is_alive: Process-existence check
            clock: Source of unix time
        """
        self._pid_file = Path(pid_file)
        self._heartbeat_file = Path(heartbeat_file)
        self._stale_seconds = stale_seconds
        self._pid = pid if pid is not None else os.getpid()
        self._is_alive = is_alive
        self._clock = clock

    @property
    def pid(self) -> int:
        return self._pid

    def try_acquire(self) -> bool:
        self._pid_file.parent.mkdir(parents=True, exist_ok=True)

        holder = self._read_pid()
        if holder == self._pid:
            self.heartbeat()
            return True

        if holder is not None and self._is_alive(holder) and not self.is_stale(self._stale_seconds):
            logger.info("Lock held by another process", holder_pid=holder)
            return False

        if self._pid_file.exists():
            logger.warning("Reclaiming stale lock", holder_pid=holder)
            self._pid_file.unlink(missing_ok=True)

        try:
            fd = os.open(self._pid_file, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            # Lost the race to another starter
            logger.info("Lock claimed concurrently by another process")
            return False

        with os.fdopen(fd, "w") as f:
            f.write(str(self._pid))

        logger.info("Lock acquired", pid=self._pid, pid_file=str(self._pid_file))
        self.heartbeat()
        return True

    def heartbeat(self) -> bool:
        try:
            self._heartbeat_file.parent.mkdir(parents=True, exist_ok=True)
            tmp = self._heartbeat_file.with_name(f"{self._heartbeat_file.name}.{self._pid}.tmp")
            tmp.write_text(str(int(self._clock())))
            os.replace(tmp, self._heartbeat_file)
        except OSError as e:
            logger.warning("Heartbeat write failed, will retry next tick", error=str(e))
            return False
        return True

    def release(self) -> None:
        if self._read_pid() != self._pid:
            return
        try:
            self._pid_file.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Failed to remove lock file", error=str(e))
            return
        logger.info("Lock released", pid=self._pid)

    def is_stale(self, timeout_seconds: float) -> bool:
        last = self._read_heartbeat()
        if last is None:
            return True
        return self._clock() - last > timeout_seconds

    def read_record(self) -> LockRecord:
        holder = self._read_pid()
        last = self._read_heartbeat()
        return LockRecord(
            holder_pid=holder,
            last_heartbeat=datetime.fromtimestamp(last, UTC) if last is not None else None,
            holder_alive=holder is not None and self._is_alive(holder),
        )

    def _read_pid(self) -> int | None:
        try:
            return int(self._pid_file.read_text().strip())
        except (OSError, ValueError):
            return None

    def _read_heartbeat(self) -> float | None:
        try:
            return float(self._heartbeat_file.read_text().strip())
        except (OSError, ValueError):
            return None
