"""
Logging configuration for the dispatch daemon.

Every event is one JSON line carrying the service name, the daemon's process
id and, while a dispatch pass runs, that pass's id. Provider credentials never
reach the log stream: use ``redact_secret`` on any text that may echo them.
"""

import logging
import os
import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import TextIO

import structlog

_current_pass: ContextVar[str] = ContextVar("dispatch_pass", default="")


def configure_logging(service_name: str, level: str = "INFO", stream: TextIO = sys.stdout) -> None:
    """
    Configure structured logging for the daemon.

    Args:
        service_name: Name of the service for log context
        level: Root log level name
        stream: Where log lines are written
    """
    logging.basicConfig(
        format="%(message)s",
        stream=stream,
        level=getattr(logging, level.upper(), logging.INFO),
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            _daemon_fields(service_name),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
    )


def _daemon_fields(service_name: str):
    """Stamp service, process id and the running pass onto every event."""
    process_id = os.getpid()

    def processor(logger, method_name, event_dict):
        event_dict["service"] = service_name
        event_dict.setdefault("process_id", process_id)
        current = _current_pass.get()
        if current:
            event_dict["pass_id"] = current
        return event_dict

    return processor


@contextmanager
def dispatch_pass(pass_id: str) -> Iterator[str]:
    """Tag every log line emitted inside the block with ``pass_id``."""
    token = _current_pass.set(pass_id)
    try:
        yield pass_id
    finally:
        _current_pass.reset(token)


def current_pass_id() -> str:
    """Id of the pass running in this context, or an empty string."""
    return _current_pass.get()


class Stopwatch:
    """Monotonic elapsed time, readable while still running."""

    def __init__(self) -> None:
        self._started = time.monotonic()

    @property
    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self._started) * 1000)


def redact_secret(text: str, secret: str | None, keep: int = 8) -> str:
    """Replace every occurrence of ``secret`` in ``text`` with a short prefix."""
    if not text or not secret:
        return text
    masked = secret[:keep] + "..." if len(secret) > keep else "***"
    return text.replace(secret, masked)
