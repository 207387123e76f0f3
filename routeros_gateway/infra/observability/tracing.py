"""OpenTelemetry distributed tracing for observability.

Provides spans around RouterOS device calls with correlation ID
propagation. Until `setup_tracing()` is called, spans go to the
OpenTelemetry no-op provider.
"""

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

from routeros_gateway import __version__
from routeros_gateway.infra.observability.logging import get_correlation_id
from routeros_gateway.infra.observability.metrics import record_device_request

logger = logging.getLogger(__name__)

# Global tracer provider
_tracer_provider: TracerProvider | None = None


def setup_tracing(
    service_name: str = "routeros-gateway",
    console_export: bool = False,
) -> None:
    """Configure OpenTelemetry tracing.

    Args:
        service_name: Service name for traces
        console_export: Whether to export traces to console (for debugging)
    """
    global _tracer_provider

    resource = Resource.create(
        {
            "service.name": service_name,
            "service.version": __version__,
        }
    )

    _tracer_provider = TracerProvider(resource=resource)

    if console_export:
        _tracer_provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(_tracer_provider)

    logger.info(
        "Tracing configured",
        extra={"service_name": service_name, "console_export": console_export},
    )


def get_tracer() -> trace.Tracer:
    """Get the gateway tracer.

    Returns:
        OpenTelemetry tracer (no-op until tracing is configured)
    """
    if _tracer_provider is not None:
        return _tracer_provider.get_tracer(__name__)
    return trace.get_tracer(__name__)


def set_span_error(span: trace.Span, error: Exception) -> None:
    """Mark span as error and record exception.

    Args:
        span: Span to mark as error
        error: Exception that occurred
    """
    span.set_status(trace.Status(trace.StatusCode.ERROR, str(error)))
    span.record_exception(error)


@contextmanager
def trace_device_call(
    api_type: str,
    operation: str,
    resource_path: str,
    attributes: dict[str, Any] | None = None,
) -> Iterator[trace.Span]:
    """Span and metrics around one call to a device.

    Records `record_device_request` with the call duration and outcome, and
    re-raises whatever the wrapped call raised.

    Args:
        api_type: Protocol variant (legacy/rest)
        operation: Session operation name
        resource_path: Device resource path
        attributes: Extra span attributes
    """
    attrs: dict[str, Any] = {
        "routeros.api_type": api_type,
        "routeros.operation": operation,
        "routeros.resource_path": resource_path,
        "correlation_id": get_correlation_id(),
    }
    attrs.update(attributes or {})

    started = time.perf_counter()
    with get_tracer().start_as_current_span(
        f"routeros.{api_type}.{operation}",
        attributes=attrs,
        kind=trace.SpanKind.CLIENT,
        record_exception=False,
        set_status_on_exception=False,
    ) as span:
        try:
            yield span
        except Exception as e:
            set_span_error(span, e)
            record_device_request(api_type, operation, time.perf_counter() - started, False)
            raise
        record_device_request(api_type, operation, time.perf_counter() - started, True)


__all__ = [
    "get_tracer",
    "set_span_error",
    "setup_tracing",
    "trace_device_call",
]
