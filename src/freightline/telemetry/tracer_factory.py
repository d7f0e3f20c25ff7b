"""Thread-safe tracer factory for freightline.

Handles lazy tracer creation with double-checked locking, falls back to a
NoOpTracer when the OpenTelemetry global state cannot produce one, and lets
tests swap or clear tracers by name.
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from opentelemetry import trace

if TYPE_CHECKING:
    from opentelemetry.trace import Tracer

_tracers: dict[str, Tracer] = {}
_tracer_init_failed: bool = False
_lock = threading.Lock()


def get_tracer(name: str = "freightline") -> Tracer:
    """Get or create a tracer instance for ``name``.

    Args:
        name: Instrumenting module name. Each name gets its own tracer.

    Returns:
        Cached Tracer, or a NoOpTracer if initialization failed before.

    Example:
        >>> tracer = get_tracer("freightline.promotion")
        >>> with tracer.start_as_current_span("fan_out"):
        ...     pass
    """
    global _tracer_init_failed

    if name in _tracers:
        return _tracers[name]

    if _tracer_init_failed:
        return trace.NoOpTracer()

    with _lock:
        if name in _tracers:
            return _tracers[name]

        if _tracer_init_failed:
            return trace.NoOpTracer()

        try:
            tracer = trace.get_tracer(name)
            _tracers[name] = tracer
            return tracer
        except RecursionError:
            # OTel global state corrupted (common in test environments)
            _tracer_init_failed = True
            return trace.NoOpTracer()
        except Exception:
            _tracer_init_failed = True
            return trace.NoOpTracer()


def set_tracer(name: str, tracer: Tracer | None) -> None:
    """Set or clear the tracer cached under ``name`` (for testing).

    Args:
        name: The tracer name to set.
        tracer: The tracer instance to use, or None to clear.
    """
    with _lock:
        if tracer is None:
            _tracers.pop(name, None)
        else:
            _tracers[name] = tracer


def reset_tracer() -> None:
    """Clear all cached tracers and the initialization failure flag."""
    global _tracer_init_failed
    with _lock:
        _tracers.clear()
        _tracer_init_failed = False


__all__ = ["get_tracer", "set_tracer", "reset_tracer"]
