"""Structured logging for the gateway.

Every log line carries the request context (correlation ID, and the router
ID once a request has been routed to a device), held in context variables
so concurrent requests never mix. Device credentials must not reach a log
sink: records are scrubbed of `password=`-style fragments and
Authorization values before formatting.
"""

import contextvars
import json
import logging
import re
import sys
import uuid
from datetime import UTC, datetime
from typing import Any

correlation_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "correlation_id",
    default=None,
)

router_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "router_id",
    default=None,
)

NO_CORRELATION_ID = "no-correlation-id"

# Structured fields copied from `extra=` into the JSON entry
CONTEXT_FIELDS = (
    "router_id",
    "api_type",
    "resource_path",
    "method",
    "artifact",
    "address",
    "status_code",
)

# librouteros and RouterOS echo attribute words such as "=password=..."
_SECRET_PATTERN = re.compile(
    r"(?P<key>\b(?:password|secret|passwd)\b\s*[=:]\s*)(?P<value>\"[^\"]*\"|[^\s,;&]+)",
    re.IGNORECASE,
)
_AUTHORIZATION_PATTERN = re.compile(r"(?P<key>\b(?:Basic|Bearer)\s+)[A-Za-z0-9._~+/=-]+")

REDACTED = "***"

# Loggers owned by libraries, kept quiet unless something is wrong
_NOISY_LOGGERS = ("httpx", "httpcore", "librouteros", "uvicorn.access")


def get_correlation_id() -> str:
    """Return the current correlation ID, creating one if the context has none."""
    correlation_id = correlation_id_var.get()
    if not correlation_id:
        correlation_id = str(uuid.uuid4())
        correlation_id_var.set(correlation_id)
    return correlation_id


def set_correlation_id(correlation_id: str) -> None:
    correlation_id_var.set(correlation_id)


def bind_router_id(router_id: str | None) -> None:
    """Attach a router ID to every log line of the current request."""
    router_id_var.set(router_id)


def redact_secrets(text: str) -> str:
    """Mask credential values in free text.

    Example:
        >>> redact_secrets("login failed for =name=api =password=hunter2")
        'login failed for =name=api =password=***'
    """
    text = _SECRET_PATTERN.sub(lambda m: f"{m.group('key')}{REDACTED}", text)
    return _AUTHORIZATION_PATTERN.sub(lambda m: f"{m.group('key')}{REDACTED}", text)


class RequestContextFilter(logging.Filter):
    """Inject the request context into log records and scrub credentials.

    Explicit `extra={"router_id": ...}` wins over the bound router ID.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id_var.get() or NO_CORRELATION_ID  # type: ignore[attr-defined]
        if getattr(record, "router_id", None) is None:
            record.router_id = router_id_var.get()  # type: ignore[attr-defined]

        message = record.getMessage()
        scrubbed = redact_secrets(message)
        if scrubbed != message:
            record.msg = scrubbed
            record.args = None
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line with the request context fields."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", NO_CORRELATION_ID),
        }

        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                entry[field] = value

        if record.exc_info:
            entry["exception"] = redact_secrets(self.formatException(record.exc_info))
        if record.stack_info:
            entry["stack_info"] = record.stack_info

        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable single-line format for local runs."""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s %(levelname)-8s %(name)s [%(correlation_id)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        router_id = getattr(record, "router_id", None)
        if router_id is not None:
            line = f"{line} router={router_id}"
        return line


def _handler(handler: logging.Handler, level: str, formatter: logging.Formatter) -> logging.Handler:
    handler.setLevel(level)
    handler.addFilter(RequestContextFilter())
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: str | None = None,
) -> None:
    """Configure the root logger for the gateway process.

    uvicorn's own loggers are routed through the root handlers so server
    and request logs share one format.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: JSON lines on stderr, otherwise the text format
        log_file: Optional file that always receives JSON lines
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_formatter = JSONFormatter() if json_format else TextFormatter()
    root_logger.addHandler(_handler(logging.StreamHandler(sys.stderr), level, console_formatter))
    if log_file:
        root_logger.addHandler(_handler(logging.FileHandler(log_file), level, JSONFormatter()))

    for name in ("uvicorn", "uvicorn.error"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers.clear()
        uvicorn_logger.propagate = True

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(
        f"Logging configured (level={level}, json={json_format}, file={log_file})"
    )


__all__ = [
    "CONTEXT_FIELDS",
    "JSONFormatter",
    "RequestContextFilter",
    "TextFormatter",
    "bind_router_id",
    "correlation_id_var",
    "get_correlation_id",
    "redact_secrets",
    "router_id_var",
    "set_correlation_id",
    "setup_logging",
]
