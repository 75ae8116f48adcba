"""
Structured logging with JSON output for production observability.

Features:
- JSON output for log aggregation (ELK, Loki, CloudWatch)
- Request context propagation (request_id, trace_id)
- Operation timing for storage calls (OperationContext)
- PII redaction (customer emails and phone numbers never reach the logs)

Architecture:
- structlog for structured logging
- Context variables for request-scoped data
- Processors for formatting and enrichment
- Multiple output formats (JSON for prod, console for dev)
"""

import logging
import sys
import time
import uuid
from contextvars import ContextVar

import structlog
from structlog.types import EventDict, Processor

from crm.observability.metrics import track_storage_operation

# Context variables for request-scoped data
# These propagate across async boundaries automatically
request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
trace_id_var: ContextVar[str | None] = ContextVar("trace_id", default=None)


# ============================================================================
# CUSTOM PROCESSORS
# ============================================================================


def add_request_context(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """
    Add request context to log events.

    Injects:
    - request_id: Unique ID for each HTTP request
    - trace_id: Distributed tracing ID (for multi-service correlation)
    """
    request_id = request_id_var.get()
    if request_id:
        event_dict["request_id"] = request_id

    trace_id = trace_id_var.get()
    if trace_id:
        event_dict["trace_id"] = trace_id

    return event_dict


def add_timestamp(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Add ISO 8601 timestamp with microsecond precision.

    Format: 2025-01-15T10:30:45.123456Z
    """
    event_dict["timestamp"] = (
        time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime())
        + f".{int((time.time() % 1) * 1000000):06d}Z"
    )
    return event_dict


def add_service_metadata(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """
    Add service metadata for log aggregation.

    Injects service name, version and environment so logs can be filtered
    per deployment, e.g. {service="crm-api", environment="production"}.
    """
    # Import here to avoid circular dependency
    try:
        from crm.config import get_settings

        settings = get_settings()
        event_dict["service"] = settings.logging.service_name
        event_dict["version"] = settings.logging.service_version
        event_dict["environment"] = settings.service.environment
    except Exception:
        # Fallback if config not available
        event_dict["service"] = "crm-api"
        event_dict["version"] = "1.0.0"
        event_dict["environment"] = "development"
    return event_dict


def redact_sensitive_fields(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """
    Redact sensitive fields to prevent PII/credential leakage.

    Redacted fields:
    - password, authorization, secret, token: Replaced with ***REDACTED***
    - email: Replaced with domain-only (user@example.com -> ***@example.com)
    - phone: Last 4 digits only
    """
    sensitive_fields = {
        "password",
        "authorization",
        "secret",
        "token",
        "postgres_url",
        "mysql_password",
    }

    for key in list(event_dict.keys()):
        value = event_dict[key]
        lowered = key.lower()

        if lowered in sensitive_fields and isinstance(value, str):
            event_dict[key] = "***REDACTED***"

        elif lowered == "email" and isinstance(value, str):
            if "@" in value:
                domain = value.split("@")[-1]
                event_dict[key] = f"***@{domain}"
            else:
                event_dict[key] = "***REDACTED***"

        elif lowered == "phone" and isinstance(value, str):
            event_dict[key] = f"***{value[-4:]}" if len(value) > 4 else "***"

    return event_dict


def add_exception_info(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """
    Add structured exception information.

    Extracts exception_type and exception_message so errors can be grouped
    by type in the log aggregator.
    """
    exc_info = event_dict.get("exc_info")
    if exc_info and isinstance(exc_info, tuple) and len(exc_info) == 3:
        exc_type, exc_value, _ = exc_info
        event_dict["exception_type"] = exc_type.__name__ if exc_type else "Unknown"
        event_dict["exception_message"] = str(exc_value) if exc_value else ""
    return event_dict


# ============================================================================
# LOGGER CONFIGURATION
# ============================================================================


def configure_logging(
    log_level: str = "INFO",
    json_output: bool = True,
    colorized: bool = False,
) -> None:
    """
    Configure structured logging.

    Args:
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: Use JSON output (True for production, False for development)
        colorized: Colorize console output (only for development)

    Output formats:

    JSON (production):
        {
          "timestamp": "2025-01-15T10:30:45.123456Z",
          "level": "info",
          "event": "Customer created",
          "service": "crm-api",
          "request_id": "req_abc123",
          "customer_id": 42,
          "latency_ms": 3.2
        }

    Console (development):
        2025-01-15 10:30:45 [info] Customer created  request_id=req_abc123 customer_id=42
    """
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_request_context,
        add_service_metadata,
        redact_sensitive_fields,
        add_timestamp,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.StackInfoRenderer(),
        add_exception_info,
    ]

    if json_output:
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=colorized),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Usage:
        logger = get_logger(__name__)
        logger.info("Customer created", customer_id=42)
    """
    return structlog.get_logger(name)


# ============================================================================
# CONTEXT MANAGERS
# ============================================================================


class RequestContext:
    """
    Context manager for request-scoped logging.

    Generates request_id/trace_id when the caller did not supply them and
    resets both on exit so values never leak across requests.
    """

    def __init__(
        self,
        trace_id: str | None = None,
        request_id: str | None = None,
    ):
        self.request_id = request_id or f"req_{uuid.uuid4().hex[:16]}"
        self.trace_id = trace_id or f"trace_{uuid.uuid4().hex[:16]}"

        self._request_id_token = None
        self._trace_id_token = None

    def __enter__(self):
        self._request_id_token = request_id_var.set(self.request_id)
        self._trace_id_token = trace_id_var.set(self.trace_id)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._request_id_token is not None:
            request_id_var.reset(self._request_id_token)
        if self._trace_id_token is not None:
            trace_id_var.reset(self._trace_id_token)


class OperationContext:
    """
    Context manager for operation-level logging with timing.

    When a storage backend name is given the duration is also recorded in
    the storage operation metrics.

    Usage:
        with OperationContext("create_customer", backend="sqlite"):
            await store.run_insert(...)
        # Logs: "create_customer completed" with latency_ms
    """

    def __init__(self, operation: str, backend: str | None = None, **kwargs):
        self.operation = operation
        self.backend = backend
        self.context = kwargs
        self.logger = get_logger(f"operation.{operation}")
        self.start_time = None

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration = time.perf_counter() - self.start_time

        if self.backend is not None:
            track_storage_operation(
                backend=self.backend,
                operation=self.operation,
                success=exc_type is None,
                duration_seconds=duration,
            )

        if exc_type is None:
            self.logger.debug(
                f"{self.operation} completed",
                latency_ms=round(duration * 1000, 2),
                backend=self.backend,
                **self.context,
            )
        else:
            self.logger.warning(
                f"{self.operation} failed",
                latency_ms=round(duration * 1000, 2),
                backend=self.backend,
                exception_type=exc_type.__name__,
                **self.context,
            )
