"""Command line entry point for the dispatch daemon."""

import asyncio
import json
import sys
from datetime import UTC, datetime

import click

from . import __version__, main
from .config import settings
from .daemon import EXIT_OK, EXIT_STARTUP_FAILURE, SchedulerDaemon
from .domain.exceptions import PersistenceError
from .infrastructure.liveness import FileLockManager
from .infrastructure.logging import configure_logging
from .status import collect_status

REPORT_COMMANDS = ("status", "send")


@click.group()
@click.version_option(version=__version__, prog_name="notifyhub-dispatch")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """NotifyHub scheduled dispatch daemon.

    \b
    Commands:
      run        Continuous mode; holds the single-instance lock
      once       Single pass for cron / systemd timers
      heartbeat  Refresh the heartbeat file only
      status     Report liveness and pending messages
      send       Create a message and send it now or later
    """
    # Keep stdout clean for commands that print a report
    stream = sys.stderr if ctx.invoked_subcommand in REPORT_COMMANDS else sys.stdout
    configure_logging(settings.service_name, settings.log_level, stream=stream)


async def _run(mode: str) -> int:
    context = main.build_context()
    daemon = SchedulerDaemon(context)
    try:
        if mode == "once":
            return await daemon.run_once()
        return await daemon.run_forever()
    finally:
        await context.close()


@cli.command(name="run")
@click.pass_context
def run_daemon(ctx: click.Context) -> None:
    """Run continuously, dispatching due messages every interval."""
    ctx.exit(asyncio.run(_run("forever")))


@cli.command(name="once")
@click.pass_context
def run_once(ctx: click.Context) -> None:
    """Run one dispatch pass and exit.

    Exits non-zero only when the message store cannot be reached.
    """
    ctx.exit(asyncio.run(_run("once")))


@cli.command(name="heartbeat")
@click.pass_context
def heartbeat(ctx: click.Context) -> None:
    """Write the heartbeat timestamp without dispatching."""
    lock = FileLockManager(
        pid_file=settings.pid_file,
        heartbeat_file=settings.heartbeat_file,
        stale_seconds=settings.lock_stale_seconds,
    )
    ctx.exit(EXIT_OK if lock.heartbeat() else EXIT_STARTUP_FAILURE)


async def _status() -> dict:
    context = main.build_context()
    try:
        report = await collect_status(context)
    finally:
        await context.close()
    return report.to_dict()


@cli.command(name="status")
@click.option("--json", "as_json", is_flag=True, help="Print the report as JSON")
def status(as_json: bool) -> None:
    """Show scheduler liveness and message backlog."""
    report = asyncio.run(_status())

    if as_json:
        click.echo(json.dumps(report, indent=2))
        return

    click.echo(f"State:          {report['state']}")
    click.echo(f"Holder PID:     {report['holder_pid'] or '-'}")
    click.echo(f"Last heartbeat: {report['last_heartbeat'] or '-'}")
    click.echo()
    colors = {"ok": "green", "warning": "yellow", "error": "red"}
    for check in report["checks"]:
        click.secho(
            f"[{check['status']:^7}] {check['name']}: {check['message']}",
            fg=colors.get(check["status"]),
        )


async def _send(
    title: str,
    body: str,
    channel_ids: list[str],
    user_id: str,
    at: datetime | None,
    channel_options: dict[str, dict] | None = None,
) -> dict:
    context = main.build_context()
    try:
        service = main.build_submission_service(context)
        result = await service.submit(
            title=title,
            body=body,
            channel_ids=channel_ids,
            user_id=user_id,
            channel_options=channel_options,
            scheduled_for=at,
        )
    finally:
        await context.close()

    output = {"message_id": result.message.id, "status": result.message.status.value}
    if result.outcome is not None:
        output["results"] = [
            {"channel_id": r.channel_id, "success": r.success, "error": r.error}
            for r in result.outcome.results
        ]
    return output


def _parse_selections(
    ctx: click.Context, param: click.Parameter, values: tuple[str, ...]
) -> dict[str, dict]:
    """Group CHANNEL:RECIPIENT pairs into selected-delivery options per channel."""
    selections: dict[str, list[str]] = {}
    for value in values:
        channel_id, sep, recipient_id = value.partition(":")
        if not sep or not channel_id or not recipient_id:
            raise click.BadParameter(f"expected CHANNEL:RECIPIENT, got {value!r}", ctx=ctx, param=param)
        selections.setdefault(channel_id, []).append(recipient_id)
    return {
        channel_id: {"mode": "selected", "recipient_ids": recipients}
        for channel_id, recipients in selections.items()
    }


@cli.command(name="send")
@click.argument("title")
@click.argument("body")
@click.option("--channel", "-c", "channel_ids", multiple=True, required=True, help="Target channel id")
@click.option("--user-id", required=True, help="Owning user id; channels must belong to this user")
@click.option(
    "--select",
    "selections",
    multiple=True,
    metavar="CHANNEL:RECIPIENT",
    callback=_parse_selections,
    help="Deliver only to this recipient on CHANNEL (repeatable)",
)
@click.option(
    "--at",
    type=click.DateTime(formats=["%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M:%S", "%Y-%m-%dT%H:%M"]),
    default=None,
    help="Schedule for this UTC time instead of sending now",
)
@click.pass_context
def send(
    ctx: click.Context,
    title: str,
    body: str,
    channel_ids: tuple[str, ...],
    user_id: str,
    selections: dict[str, dict],
    at: datetime | None,
) -> None:
    """Create a message; send now unless --at is more than a minute away."""
    scheduled_for = at.replace(tzinfo=UTC) if at is not None else None
    try:
        output = asyncio.run(_send(title, body, list(channel_ids), user_id, scheduled_for, selections or None))
    except PersistenceError as e:
        click.secho(f"Cannot reach message store: {e}", fg="red", err=True)
        ctx.exit(EXIT_STARTUP_FAILURE)
    except ValueError as e:
        raise click.BadParameter(str(e)) from e

    click.echo(json.dumps(output, indent=2))
