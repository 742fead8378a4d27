"""Structured logging configuration using structlog."""

from __future__ import annotations

import logging
import sys
from contextlib import AbstractContextManager

import structlog


def setup_logging(level: str = "info", json_output: bool = True) -> None:
    """Configure structlog to write to stderr.

    JSON lines by default; ``json_output=False`` switches to the console
    renderer for interactive callers. stdout is left to the caller's own
    rendering of results.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="ts"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(component: str) -> structlog.stdlib.BoundLogger:
    """Get a logger bound with a component name."""
    return structlog.get_logger(component=component)  # type: ignore[return-value]


def scan_context(scan_id: str, cluster: str = "") -> AbstractContextManager[object]:
    """Bind ``scan_id`` (and ``cluster`` when known) to every log line in the block."""
    if cluster:
        return structlog.contextvars.bound_contextvars(scan_id=scan_id, cluster=cluster)
    return structlog.contextvars.bound_contextvars(scan_id=scan_id)
