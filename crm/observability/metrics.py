"""
Prometheus metrics for production observability.

Metrics tracked:
- Request latency (histogram) per endpoint
- Request count (counter) with status codes
- Active requests (gauge)
- Storage operation latency (histogram) per backend/operation
- Error rates (counter) by error type
- Rate limit rejections (counter)

Integration:
- Exposed via /metrics endpoint (Prometheus scraping)
- 15-second scrape interval recommended
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

# ============================================================================
# REQUEST METRICS
# ============================================================================

http_request_duration_seconds = Histogram(
    "crm_http_request_duration_seconds",
    "HTTP request latency in seconds",
    labelnames=["method", "endpoint", "status_code"],
    buckets=(
        0.001,  # 1ms
        0.005,  # 5ms
        0.010,  # 10ms
        0.025,  # 25ms
        0.050,  # 50ms
        0.100,  # 100ms
        0.250,  # 250ms
        0.500,  # 500ms
        1.000,  # 1s
        2.500,  # 2.5s
        5.000,  # 5s
    ),
)

http_requests_total = Counter(
    "crm_http_requests_total",
    "Total HTTP requests",
    labelnames=["method", "endpoint", "status_code"],
)

http_requests_active = Gauge(
    "crm_http_requests_active",
    "Number of in-flight HTTP requests",
    labelnames=["method", "endpoint"],
)

# ============================================================================
# STORAGE METRICS
# ============================================================================

storage_operation_duration_seconds = Histogram(
    "crm_storage_operation_duration_seconds",
    "Storage operation latency",
    labelnames=["backend", "operation", "success"],
    buckets=(
        0.0005,
        0.001,
        0.005,
        0.010,
        0.025,
        0.050,
        0.100,
        0.250,
        0.500,
        1.000,
    ),
)

storage_operations_total = Counter(
    "crm_storage_operations_total",
    "Total storage operations",
    labelnames=["backend", "operation", "success"],
)

# ============================================================================
# ERROR METRICS
# ============================================================================

errors_total = Counter(
    "crm_errors_total",
    "Total errors by type",
    labelnames=["error_type", "endpoint"],
)

rate_limit_exceeded_total = Counter(
    "crm_rate_limit_exceeded_total",
    "Requests rejected by the per-IP rate limiter",
    labelnames=["endpoint"],
)


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================


def track_request(
    method: str,
    endpoint: str,
    status_code: int,
    duration_seconds: float,
) -> None:
    """
    Track HTTP request metrics.

    Args:
        method: HTTP method (GET, POST, etc.)
        endpoint: Normalized API endpoint path
        status_code: HTTP status code
        duration_seconds: Request duration in seconds
    """
    http_request_duration_seconds.labels(
        method=method,
        endpoint=endpoint,
        status_code=status_code,
    ).observe(duration_seconds)

    http_requests_total.labels(
        method=method,
        endpoint=endpoint,
        status_code=status_code,
    ).inc()


def track_storage_operation(
    backend: str,
    operation: str,
    success: bool,
    duration_seconds: float,
) -> None:
    """
    Track a single storage call.

    Args:
        backend: Store variant (sqlite, postgres, mysql, memory)
        operation: Store method name (create_customer, list_addresses, ...)
        success: Whether the call returned without raising
        duration_seconds: Call duration
    """
    success_label = "true" if success else "false"
    storage_operation_duration_seconds.labels(
        backend=backend,
        operation=operation,
        success=success_label,
    ).observe(duration_seconds)

    storage_operations_total.labels(
        backend=backend,
        operation=operation,
        success=success_label,
    ).inc()


def track_error(error_type: str, endpoint: str) -> None:
    """
    Track error occurrence.

    Args:
        error_type: Error category (validation, not_found, storage, internal, ...)
        endpoint: API endpoint where error occurred
    """
    errors_total.labels(
        error_type=error_type,
        endpoint=endpoint,
    ).inc()


def track_rate_limit_exceeded(endpoint: str) -> None:
    """Track a request rejected with 429."""
    rate_limit_exceeded_total.labels(endpoint=endpoint).inc()


def generate_metrics() -> tuple[bytes, str]:
    """
    Generate Prometheus metrics in exposition format (bytes).

    Returns:
        tuple: (metrics_bytes, content_type)
    """
    metrics_data = generate_latest(REGISTRY)
    return metrics_data, CONTENT_TYPE_LATEST
