"""Prometheus metrics for observability.

Provides metrics collection for device calls (per protocol), automation
artifact upserts and inbound gateway requests.
"""

import logging

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

logger = logging.getLogger(__name__)

# Global registry for metrics
_registry = CollectorRegistry()


# Device call metrics
device_requests_total = Counter(
    "routeros_gateway_device_requests_total",
    "Total number of calls made to RouterOS devices",
    ["api_type", "operation", "status"],
    registry=_registry,
)

device_request_duration_seconds = Histogram(
    "routeros_gateway_device_request_duration_seconds",
    "Duration of RouterOS device calls in seconds",
    ["api_type", "operation"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 15.0),
    registry=_registry,
)

# Automation artifact metrics
artifact_upserts_total = Counter(
    "routeros_gateway_artifact_upserts_total",
    "Total number of automation artifact upserts",
    ["artifact", "action"],
    registry=_registry,
)

# Inbound gateway metrics
gateway_requests_total = Counter(
    "routeros_gateway_requests_total",
    "Total number of gateway operations handled",
    ["operation", "status"],
    registry=_registry,
)


def get_registry() -> CollectorRegistry:
    """Get the metrics registry.

    Returns:
        Prometheus collector registry
    """
    return _registry


def get_metrics_text() -> str:
    """Get metrics in Prometheus text format.

    Returns:
        Metrics in Prometheus exposition format
    """
    return generate_latest(_registry).decode("utf-8")


def record_device_request(
    api_type: str,
    operation: str,
    duration: float,
    success: bool,
) -> None:
    """Record metrics for one device call.

    Args:
        api_type: Protocol variant (legacy/rest)
        operation: Session operation (find/add/update/remove/request/...)
        duration: Call duration in seconds
        success: Whether the call succeeded
    """
    status = "success" if success else "error"
    device_requests_total.labels(api_type=api_type, operation=operation, status=status).inc()
    device_request_duration_seconds.labels(api_type=api_type, operation=operation).observe(
        duration
    )


def record_artifact_upsert(artifact: str, action: str) -> None:
    """Record an automation artifact upsert.

    Args:
        artifact: Artifact kind (scheduler/address_list/queue/route)
        action: What happened (created/updated/replaced/skipped)
    """
    artifact_upserts_total.labels(artifact=artifact, action=action).inc()


def record_gateway_request(operation: str, success: bool) -> None:
    """Record an inbound gateway operation.

    Args:
        operation: Gateway operation name
        success: Whether the operation succeeded
    """
    status = "success" if success else "error"
    gateway_requests_total.labels(operation=operation, status=status).inc()


__all__ = [
    "get_registry",
    "get_metrics_text",
    "record_artifact_upsert",
    "record_device_request",
    "record_gateway_request",
]
