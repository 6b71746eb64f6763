"""
Scheduling loop and single-shot trigger.

Both entry points run the same cycle: heartbeat, check the live
``scheduler.enabled`` flag, then one dispatch pass.
"""

import asyncio
import signal
from uuid import uuid4

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from .application.services import PassSummary
from .context import DaemonContext
from .domain.exceptions import PersistenceError
from .infrastructure.logging import dispatch_pass

logger = structlog.get_logger()

EXIT_OK = 0
EXIT_STARTUP_FAILURE = 1


class SchedulerDaemon:
    """Runs dispatch passes either continuously or once."""

    def __init__(self, context: DaemonContext) -> None:
        self._ctx = context
        self._cycle_lock = asyncio.Lock()
        self._stop_requested = False
        self._stop_event: asyncio.Event | None = None

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    async def run_cycle(self) -> PassSummary | None:
        """
        Heartbeat, then run one pass if the scheduler is enabled.

        Returns:
            PassSummary, or None when the cycle was skipped

        Raises:
            PersistenceError: If the flag or due messages cannot be read
        """
        async with self._cycle_lock:
            with dispatch_pass(uuid4().hex[:12]):
                self._ctx.lock_manager.heartbeat()

                if not await self._ctx.repository.get_scheduler_enabled():
                    logger.info("Scheduler disabled, skipping cycle")
                    return None

                return await self._ctx.engine.run_pass(should_stop=lambda: self._stop_requested)

    async def run_once(self) -> int:
        """
        Single-shot mode for external periodic triggers.

        Returns:
            Process exit code; non-zero only if the store is unreachable
        """
        logger.info("Single-shot run started")
        try:
            await self._ctx.repository.ping()
        except PersistenceError as e:
            logger.error("Cannot reach persistence, aborting", error=str(e))
            return EXIT_STARTUP_FAILURE

        try:
            await self.run_cycle()
        except PersistenceError as e:
            logger.error("Dispatch cycle failed", error=str(e))
            return EXIT_STARTUP_FAILURE
        except Exception as e:
            # Message and channel problems never fail the trigger
            logger.exception("Unexpected error in dispatch cycle", error=str(e))

        logger.info("Single-shot run complete")
        return EXIT_OK

    async def run_forever(self, install_signal_handlers: bool = True) -> int:
        """
        Continuous mode: hold the lock and dispatch on a fixed interval.

        Returns:
            Process exit code (0 also when another instance holds the lock)
        """
        settings = self._ctx.settings
        lock = self._ctx.lock_manager

        if not lock.try_acquire():
            logger.info(
                "Scheduler already running, exiting",
                holder_pid=lock.read_record().holder_pid,
            )
            return EXIT_OK

        self._stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        signals = (signal.SIGTERM, signal.SIGINT) if install_signal_handlers else ()
        for sig in signals:
            loop.add_signal_handler(sig, self.request_stop)

        scheduler = AsyncIOScheduler()
        scheduler.add_job(
            self._heartbeat_job,
            "interval",
            seconds=settings.heartbeat_interval_seconds,
            id="heartbeat",
            max_instances=1,
            coalesce=True,
        )
        scheduler.add_job(
            self._dispatch_job,
            "interval",
            seconds=settings.dispatch_interval_seconds,
            id="dispatch_due_messages",
            max_instances=1,  # Prevent overlapping passes
            coalesce=True,
        )

        try:
            scheduler.start()
            logger.info(
                "Scheduler started",
                dispatch_interval=settings.dispatch_interval_seconds,
                heartbeat_interval=settings.heartbeat_interval_seconds,
            )

            # Run initial pass immediately
            await self._dispatch_job()

            await self._stop_event.wait()
        finally:
            if scheduler.running:
                scheduler.shutdown(wait=False)
            # Let an in-flight pass finish its current message
            async with self._cycle_lock:
                pass
            for sig in signals:
                loop.remove_signal_handler(sig)
            lock.release()
            logger.info("Scheduler shutdown complete")

        return EXIT_OK

    def request_stop(self) -> None:
        """Stop starting new work; the loop exits after the in-flight message."""
        if self._stop_requested:
            return
        logger.info("Stop requested, finishing in-flight work")
        self._stop_requested = True
        if self._stop_event is not None:
            self._stop_event.set()

    async def _heartbeat_job(self) -> None:
        self._ctx.lock_manager.heartbeat()

    async def _dispatch_job(self) -> None:
        """Job that runs on schedule to dispatch due messages."""
        if self._stop_requested:
            return
        try:
            await self.run_cycle()
        except PersistenceError as e:
            logger.warning("Dispatch cycle failed, will retry next interval", error=str(e))
        except Exception as e:
            logger.exception("Unexpected error in dispatch cycle, will retry next interval", error=str(e))
