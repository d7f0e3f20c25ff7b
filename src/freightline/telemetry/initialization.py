"""Environment-driven OpenTelemetry bootstrap for the freightline CLI.

``ensure_telemetry_initialized()`` installs an OTLP-exporting TracerProvider
when ``OTEL_EXPORTER_OTLP_ENDPOINT`` is set and leaves the default NoOp
provider in place otherwise. It is idempotent.
"""

from __future__ import annotations

import os
from urllib.parse import urlparse

import structlog
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from freightline.telemetry.tracer_factory import reset_tracer

_DEFAULT_SERVICE_NAME = "freightline"

_initialized: bool = False


def ensure_telemetry_initialized() -> bool:
    """Initialize OTel tracing from environment variables if not already done.

    Environment Variables:
        OTEL_EXPORTER_OTLP_ENDPOINT: OTLP collector endpoint, e.g.
            ``http://localhost:4317``. Absent or blank means no-op.
        OTEL_SERVICE_NAME: ``service.name`` resource attribute. Defaults to
            ``freightline``.

    Returns:
        True if a provider is installed (now or by an earlier call).
    """
    global _initialized

    if _initialized:
        return True

    endpoint = os.environ.get("OTEL_EXPORTER_OTLP_ENDPOINT", "").strip()
    if not endpoint:
        return False

    parsed = urlparse(endpoint)
    if parsed.scheme not in ("http", "https"):
        structlog.get_logger(__name__).warning(
            "otel_endpoint_invalid_scheme",
            endpoint=endpoint,
            scheme=parsed.scheme,
        )
        return False

    service_name = os.environ.get("OTEL_SERVICE_NAME", "").strip() or _DEFAULT_SERVICE_NAME

    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))
    trace.set_tracer_provider(provider)

    # Cached tracers were minted against the previous provider.
    reset_tracer()

    _initialized = True
    return True


__all__ = ["ensure_telemetry_initialized"]
