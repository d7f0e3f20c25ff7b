"""Tracing and structured logging for freightline.

Example:
    >>> from freightline.telemetry import configure_logging, create_span
    >>> configure_logging(log_level="INFO", json_output=True)
    >>> with create_span("freightline.fanout"):
    ...     pass
"""

from __future__ import annotations

from freightline.telemetry.initialization import ensure_telemetry_initialized
from freightline.telemetry.logging import add_trace_context, configure_logging
from freightline.telemetry.sanitization import sanitize_error_message
from freightline.telemetry.tracing import (
    create_span,
    get_tracer,
    reset_tracer,
    set_tracer,
    traced,
)

__all__ = [
    "add_trace_context",
    "configure_logging",
    "create_span",
    "ensure_telemetry_initialized",
    "get_tracer",
    "reset_tracer",
    "sanitize_error_message",
    "set_tracer",
    "traced",
]
