"""
Observability middleware for automatic metric tracking.

Components:
- PrometheusMiddleware: Tracks all HTTP requests (latency, count, active)
- classify_error: Maps exceptions onto the error_type label of crm_errors_total
"""

import logging
import re
import time
from collections.abc import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from crm.observability.metrics import (
    http_requests_active,
    track_error,
    track_request,
)

logger = logging.getLogger(__name__)

_CUSTOMER_ID_SEGMENT = re.compile(r"/customers/\d+")
_ADDRESS_ID_SEGMENT = re.compile(r"/addresses/\d+")


def normalize_endpoint(path: str) -> str:
    """
    Normalize endpoint path for metric cardinality.

    Examples:
        /api/customers/42/addresses -> /api/customers/{customer_id}/addresses
        /api/addresses/7 -> /api/addresses/{address_id}
        /api/customers -> /api/customers (unchanged)
    """
    path = _CUSTOMER_ID_SEGMENT.sub("/customers/{customer_id}", path)
    path = _ADDRESS_ID_SEGMENT.sub("/addresses/{address_id}", path)
    return path


def classify_error(exc: Exception) -> str:
    """
    Classify error into category.

    Args:
        exc: Exception instance

    Returns:
        str: Error category
    """
    exc_name = type(exc).__name__

    if "ValidationError" in exc_name or exc_name == "BadRequestError":
        return "validation"

    if exc_name == "NotFoundError":
        return "not_found"

    if "StorageError" in exc_name or "UniqueConstraint" in exc_name:
        return "storage"

    if "RateLimitExceeded" in exc_name:
        return "rate_limit"

    if "HTTPException" in exc_name:
        return "http"

    return "internal"


class PrometheusMiddleware(BaseHTTPMiddleware):
    """
    Middleware for automatic Prometheus metric tracking.

    Tracks:
    - Request latency (histogram)
    - Request count (counter)
    - Active requests (gauge)
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        endpoint = normalize_endpoint(request.url.path)
        method = request.method

        http_requests_active.labels(method=method, endpoint=endpoint).inc()
        start_time = time.perf_counter()
        status_code = 500

        try:
            response = await call_next(request)
            status_code = response.status_code
        except Exception as exc:
            logger.error(f"Request failed: {exc}", exc_info=True)
            track_error(error_type=classify_error(exc), endpoint=endpoint)
            raise
        finally:
            duration_seconds = time.perf_counter() - start_time
            http_requests_active.labels(method=method, endpoint=endpoint).dec()
            track_request(
                method=method,
                endpoint=endpoint,
                status_code=status_code,
                duration_seconds=duration_seconds,
            )

        return response
