"""Operator-facing health report for the dispatch daemon."""

from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from .context import DaemonContext
from .domain.entities import MessageStatus
from .domain.exceptions import PersistenceError


@dataclass
class StatusCheck:
    name: str
    status: str  # ok, warning, error
    message: str


@dataclass
class SchedulerStatus:
    state: str  # running, stopped
    holder_pid: int | None
    holder_alive: bool
    last_heartbeat: datetime | None
    heartbeat_age_seconds: float | None
    scheduler_enabled: bool | None = None
    scheduled_count: int | None = None
    due_count: int | None = None
    stuck_sending_count: int | None = None
    checks: list[StatusCheck] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["last_heartbeat"] = self.last_heartbeat.isoformat() if self.last_heartbeat else None
        return data


async def collect_status(context: DaemonContext, now: datetime | None = None) -> SchedulerStatus:
    """
    Build a status report from the lock record and the message store.

    Persistence failures are reported as a failed check, not raised.
    """
    now = now or datetime.now(UTC)
    settings = context.settings
    record = context.lock_manager.read_record()

    age = (now - record.last_heartbeat).total_seconds() if record.last_heartbeat else None
    fresh = age is not None and age <= settings.lock_stale_seconds

    report = SchedulerStatus(
        state="running" if fresh else "stopped",
        holder_pid=record.holder_pid,
        holder_alive=record.holder_alive,
        last_heartbeat=record.last_heartbeat,
        heartbeat_age_seconds=round(age, 1) if age is not None else None,
    )

    if age is None:
        report.checks.append(StatusCheck("Scheduler Heartbeat", "error", "Heartbeat file not found"))
    elif fresh:
        report.checks.append(StatusCheck("Scheduler Heartbeat", "ok", f"Last heartbeat {age:.0f}s ago"))
    else:
        report.checks.append(
            StatusCheck(
                "Scheduler Heartbeat",
                "error",
                f"No heartbeat for {age:.0f}s (expected < {settings.lock_stale_seconds}s)",
            )
        )

    if record.holder_pid is None:
        report.checks.append(StatusCheck("Daemon Process", "warning", "PID file not found"))
    elif record.holder_alive:
        report.checks.append(StatusCheck("Daemon Process", "ok", f"Running (PID: {record.holder_pid})"))
    else:
        report.checks.append(
            StatusCheck(
                "Daemon Process",
                "warning",
                f"PID file exists but process not found (PID: {record.holder_pid})",
            )
        )

    repo = context.repository
    try:
        report.scheduler_enabled = await repo.get_scheduler_enabled()
        report.scheduled_count = await repo.count_messages(MessageStatus.SCHEDULED)
        report.due_count = await repo.count_messages(MessageStatus.SCHEDULED, due_before=now)
        report.stuck_sending_count = await repo.count_messages(
            MessageStatus.SENDING,
            due_before=now - timedelta(seconds=settings.stuck_sending_seconds),
        )
    except PersistenceError as e:
        report.checks.append(StatusCheck("Database Connection", "error", f"Connection failed: {e}"))
        return report

    report.checks.append(StatusCheck("Database Connection", "ok", "Connected"))

    if not report.scheduler_enabled:
        report.checks.append(StatusCheck("Scheduler Enabled", "warning", "Disabled in system settings"))

    if report.due_count:
        report.checks.append(
            StatusCheck(
                "Scheduled Messages",
                "warning",
                f"{report.due_count} messages ready to send (total: {report.scheduled_count})",
            )
        )
    else:
        report.checks.append(
            StatusCheck("Scheduled Messages", "ok", f"{report.scheduled_count} scheduled messages pending")
        )

    if report.stuck_sending_count:
        report.checks.append(
            StatusCheck(
                "Stuck Messages",
                "warning",
                f"{report.stuck_sending_count} messages in sending for over {settings.stuck_sending_seconds}s",
            )
        )

    return report
