"""
Request size limiting middleware.

Rejects oversized JSON bodies before they are read into memory.
"""

import logging
from collections.abc import Callable

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """
    Middleware to enforce request body size limits.

    Configuration:
        max_body_size: Maximum request body size in bytes (default: 10MB)
    """

    def __init__(self, app, max_body_size: int = 10 * 1024 * 1024):
        super().__init__(app)
        self.max_body_size = max_body_size

        logger.info(
            f"Request size limit middleware enabled (max: {max_body_size / 1024 / 1024:.1f}MB)"
        )

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        content_length = request.headers.get("content-length")

        if content_length:
            try:
                content_length_int = int(content_length)
            except ValueError:
                return JSONResponse(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    content={"error": "Invalid Content-Length header"},
                )

            if content_length_int > self.max_body_size:
                size_mb = content_length_int / 1024 / 1024
                limit_mb = self.max_body_size / 1024 / 1024

                logger.warning(
                    f"Request body too large: {size_mb:.2f}MB (limit: {limit_mb:.1f}MB)",
                    extra={
                        "path": request.url.path,
                        "method": request.method,
                        "content_length": content_length_int,
                        "max_allowed": self.max_body_size,
                    },
                )

                return JSONResponse(
                    status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                    content={
                        "error": f"Request body too large. Maximum allowed: {limit_mb:.1f}MB",
                    },
                )

        return await call_next(request)
