"""
structlog setup for trustflow.

Every record carries an ISO timestamp, the level, the emitting module under
"logger" and the event name under "event_type". Scheduler jobs bind "job" as
contextvars, so anything logged while a tick runs is tagged with it.

LOG_FORMAT=json (default) renders one JSON object per line; anything else uses
the console renderer. LOG_LEVEL filters (default INFO).

No trustflow imports here: this module is imported first by everything else.
"""

from __future__ import annotations

import logging
import os
import sys
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator

import structlog


def _level_from_env() -> int:
    return getattr(logging, os.getenv("LOG_LEVEL", "INFO").strip().upper(), logging.INFO)


def _stamp(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    event_dict.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
    return event_dict


def _event_type(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """structlog's positional 'event' becomes 'event_type'."""
    if "event" in event_dict and "event_type" not in event_dict:
        event_dict["event_type"] = event_dict.pop("event")
    return event_dict


def configure_logging(level: int | None = None, fmt: str | None = None) -> None:
    """(Re)configure structlog. Called once on import with env values."""
    fmt = (fmt or os.getenv("LOG_FORMAT", "json")).strip().lower()
    renderer: Any
    if fmt == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            _stamp,
            _event_type,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level if level is not None else _level_from_env()),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


if not structlog.is_configured():
    configure_logging()


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Module logger. Log snake_case events with keyword context:

        logger = get_logger(__name__)
        logger.info("simulation_started", interval_ms=1200)
    """
    return structlog.get_logger(name).bind(logger=name)


def bind_agent(logger: structlog.BoundLogger, agent_id: str) -> structlog.BoundLogger:
    return logger.bind(agent_id=agent_id)


@contextmanager
def job_context(job: str) -> Iterator[None]:
    """Tag every record logged inside the block with job=<name>."""
    with structlog.contextvars.bound_contextvars(job=job):
        yield
