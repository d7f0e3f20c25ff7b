"""Structured logging setup with OpenTelemetry trace correlation.

Logs emitted inside an active span carry ``trace_id`` and ``span_id`` so a
fan-out's per-target log lines can be joined with its trace.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import MutableMapping
from typing import Any

import structlog
from opentelemetry import trace
from opentelemetry.trace import INVALID_SPAN_ID, INVALID_TRACE_ID

EventDict = MutableMapping[str, Any]


def add_trace_context(
    logger: Any,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: EventDict,
) -> EventDict:
    """Add trace context to a structlog event dictionary.

    Args:
        logger: The logger instance (unused, required by structlog processor API).
        method_name: The log method name (unused).
        event_dict: The event dictionary to enrich with trace context.

    Returns:
        The event dictionary with trace_id and span_id added if a span is active.
    """
    span = trace.get_current_span()
    ctx = span.get_span_context()

    if ctx.trace_id != INVALID_TRACE_ID and ctx.span_id != INVALID_SPAN_ID:
        event_dict["trace_id"] = format(ctx.trace_id, "032x")
        event_dict["span_id"] = format(ctx.span_id, "016x")

    return event_dict


def configure_logging(
    log_level: str = "INFO",
    json_output: bool = True,
) -> None:
    """Configure structlog with trace context injection.

    Args:
        log_level: Minimum level to emit (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_output: Render JSON lines if True, console format otherwise.

    Raises:
        ValueError: If log_level is not a known level name.

    Examples:
        >>> configure_logging(log_level="DEBUG", json_output=False)
        >>> structlog.get_logger().info("configured")
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level}")

    renderer: Any
    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            add_trace_context,
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


__all__ = [
    "add_trace_context",
    "configure_logging",
]
