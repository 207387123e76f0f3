"""Observability for the gateway: structured logs, Prometheus metrics and
OpenTelemetry spans around device calls."""

from routeros_gateway.infra.observability.logging import (
    JSONFormatter,
    RequestContextFilter,
    bind_router_id,
    correlation_id_var,
    get_correlation_id,
    redact_secrets,
    set_correlation_id,
    setup_logging,
)
from routeros_gateway.infra.observability.metrics import (
    get_metrics_text,
    get_registry,
    record_artifact_upsert,
    record_device_request,
    record_gateway_request,
)
from routeros_gateway.infra.observability.tracing import (
    get_tracer,
    set_span_error,
    setup_tracing,
    trace_device_call,
)

__all__ = [
    # Logging
    "JSONFormatter",
    "RequestContextFilter",
    "bind_router_id",
    "correlation_id_var",
    "get_correlation_id",
    "redact_secrets",
    "set_correlation_id",
    "setup_logging",
    # Metrics
    "get_metrics_text",
    "get_registry",
    "record_artifact_upsert",
    "record_device_request",
    "record_gateway_request",
    # Tracing
    "get_tracer",
    "set_span_error",
    "setup_tracing",
    "trace_device_call",
]
