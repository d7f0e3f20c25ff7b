"""OpenTelemetry tracing utilities for freightline.

Provides the ``@traced`` decorator and the ``create_span()`` context manager
used to instrument availability queries, fan-outs and verification signals.
Both record failures on the span with a sanitized message and re-raise.

Examples:
    >>> from freightline.telemetry.tracing import create_span
    >>> with create_span("freightline.fanout", attributes={"stage": "test"}):
    ...     pass
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, ParamSpec, TypeVar, overload

from opentelemetry.trace import Status, StatusCode, Tracer

from freightline.telemetry.sanitization import sanitize_error_message
from freightline.telemetry.tracer_factory import get_tracer as _factory_get_tracer
from freightline.telemetry.tracer_factory import (
    reset_tracer,  # Re-exported for test isolation
)
from freightline.telemetry.tracer_factory import set_tracer as _factory_set_tracer

__all__ = ["traced", "create_span", "get_tracer", "set_tracer", "reset_tracer"]

if TYPE_CHECKING:
    from collections.abc import Generator

    from opentelemetry.trace import Span

logger = logging.getLogger(__name__)

P = ParamSpec("P")
R = TypeVar("R")

_TRACER_NAME = "freightline.telemetry"


def get_tracer() -> Tracer:
    """Get the tracer used for freightline spans.

    Returns:
        Tracer instance (NoOpTracer if OTel initialization failed).
    """
    return _factory_get_tracer(_TRACER_NAME)


def set_tracer(tracer: Tracer | None) -> None:
    """Set the module-level tracer (for testing).

    Args:
        tracer: Tracer instance to use, or None to reset.
    """
    _factory_set_tracer(_TRACER_NAME, tracer)


def _record_error(span: Span, exc: Exception) -> None:
    sanitized = sanitize_error_message(str(exc))
    span.set_status(Status(StatusCode.ERROR, sanitized))
    span.set_attribute("exception.type", type(exc).__name__)
    span.set_attribute("exception.message", sanitized)


@overload
def traced(func: Callable[P, R]) -> Callable[P, R]: ...


@overload
def traced(
    *,
    name: str | None = None,
    attributes: dict[str, str] | None = None,
    attributes_fn: Callable[..., dict[str, Any]] | None = None,
) -> Callable[[Callable[P, R]], Callable[P, R]]: ...


def traced(
    func: Callable[P, R] | None = None,
    *,
    name: str | None = None,
    attributes: dict[str, str] | None = None,
    attributes_fn: Callable[..., dict[str, Any]] | None = None,
) -> Callable[P, R] | Callable[[Callable[P, R]], Callable[P, R]]:
    """Decorator to trace function execution with an OpenTelemetry span.

    Can be used with or without arguments:
        @traced
        def my_function(): ...

        @traced(name="freightline.verification.abort")
        def abort(...): ...

    Args:
        func: The function to decorate (when used without parentheses).
        name: Optional custom span name. Defaults to function name.
        attributes: Optional static span attributes.
        attributes_fn: Optional callable receiving the decorated function's
            ``*args, **kwargs`` and returning dynamic attributes. Failures are
            logged at WARNING and never propagate.

    Returns:
        Decorated function that creates a span on each invocation.
    """

    def decorator(fn: Callable[P, R]) -> Callable[P, R]:
        span_name = name if name is not None else fn.__name__

        @functools.wraps(fn)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            tracer = get_tracer()
            with tracer.start_as_current_span(
                span_name,
                record_exception=False,
                set_status_on_exception=False,
            ) as span:
                if attributes:
                    for key, value in attributes.items():
                        span.set_attribute(key, value)
                if attributes_fn is not None:
                    try:
                        for key, value in attributes_fn(*args, **kwargs).items():
                            span.set_attribute(key, value)
                    except Exception:
                        logger.warning(
                            "attributes_fn failed for span %s",
                            span_name,
                            exc_info=True,
                        )
                try:
                    return fn(*args, **kwargs)
                except Exception as e:
                    _record_error(span, e)
                    raise

        return wrapper

    if func is not None:
        return decorator(func)
    return decorator


@contextmanager
def create_span(
    name: str,
    attributes: dict[str, Any] | None = None,
) -> Generator[Span, None, None]:
    """Create a span as a context manager.

    Args:
        name: The name for the span.
        attributes: Optional dictionary of attributes to set on the span.

    Yields:
        The created span for additional attribute setting.

    Examples:
        >>> with create_span("freightline.fanout") as span:
        ...     span.set_attribute("freightline.targets", 3)
    """
    tracer = get_tracer()
    with tracer.start_as_current_span(
        name,
        record_exception=False,
        set_status_on_exception=False,
    ) as span:
        if attributes:
            for key, value in attributes.items():
                span.set_attribute(key, value)
        try:
            yield span
        except Exception as e:
            _record_error(span, e)
            raise
