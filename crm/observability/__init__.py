"""
Observability infrastructure for production monitoring.

Components:
- metrics.py: Prometheus metrics (counters, histograms, gauges)
- logging.py: Structured JSON logging with request context
- logging_middleware.py: Request logging and slow request detection
- middleware.py: Prometheus request tracking
- request_limits.py: Request body size limits
"""

from crm.observability.metrics import (
    track_error,
    track_rate_limit_exceeded,
    track_request,
    track_storage_operation,
)

__all__ = [
    "track_request",
    "track_storage_operation",
    "track_error",
    "track_rate_limit_exceeded",
]
