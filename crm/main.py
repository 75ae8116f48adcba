"""
FastAPI application for the CRM service.

Provides REST API for:
- Customers (CRUD, search by name/email, filter by address city, pagination)
- Customer addresses (nested create/list, update/delete by id)
- Health and Prometheus metrics

Errors are always rendered as {"error": message}.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.exceptions import HTTPException as StarletteHTTPException

from crm.config import Settings, get_settings
from crm.errors import CRMError
from crm.observability.logging import configure_logging, get_logger
from crm.observability.logging_middleware import (
    SlowRequestLogger,
    StructuredLoggingMiddleware,
)
from crm.observability.metrics import (
    generate_metrics,
    track_error,
    track_rate_limit_exceeded,
)
from crm.observability.middleware import (
    PrometheusMiddleware,
    classify_error,
    normalize_endpoint,
)
from crm.observability.request_limits import RequestSizeLimitMiddleware
from crm.routers import addresses_router, customers_router, health_router
from crm.routers.health import health_check
from crm.storage import CustomerStore, create_store

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Initializes the store (schema creation is idempotent) on startup and
    closes it on shutdown when the application created it.
    """
    store: CustomerStore = app.state.store

    logger.info("=== CRM Service Starting ===", backend=store.backend)

    try:
        await store.initialize()
        logger.info("✓ Storage initialized", backend=store.backend)
        logger.info("=== Service Ready ===")

        yield  # Application runs here

    except Exception as e:
        logger.error(f"Startup failed: {e}", exc_info=True)
        raise

    finally:
        logger.info("=== Shutting down ===")

        if app.state.owns_store:
            await store.close()
            logger.info("✓ Storage connections closed")

        logger.info("=== Shutdown complete ===")


def _validation_details(exc: RequestValidationError) -> list[dict[str, str]]:
    details = []
    for error in exc.errors():
        loc = error.get("loc") or ("body",)
        location = [str(part) for part in loc if part not in ("body", "query", "path")]
        field = ".".join(location) or str(loc[0])
        details.append({"field": field, "message": error.get("msg", "Invalid value")})
    return details


def register_exception_handlers(app: FastAPI) -> None:
    """Render every failure as {"error": message}."""

    @app.exception_handler(CRMError)
    async def crm_error_handler(request: Request, exc: CRMError):
        track_error(error_type=classify_error(exc), endpoint=normalize_endpoint(request.url.path))
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def request_validation_error_handler(request: Request, exc: RequestValidationError):
        details = _validation_details(exc)
        logger.warning(f"Validation error on {request.url.path}", details=details)
        track_error(error_type="validation", endpoint=normalize_endpoint(request.url.path))
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Validation failed", "details": details},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
            message = "Method not allowed"
        else:
            message = str(exc.detail)
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": message},
            headers=getattr(exc, "headers", None),
        )

    def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> Response:
        # slowapi's middleware calls this synchronously
        logger.warning(
            "Rate limit exceeded",
            path=request.url.path,
            client_host=request.client.host if request.client else None,
        )
        track_rate_limit_exceeded(endpoint=normalize_endpoint(request.url.path))
        return _rate_limit_exceeded_handler(request, exc)

    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(
            "Unhandled error",
            path=request.url.path,
            method=request.method,
            exception_type=type(exc).__name__,
            exc_info=exc,
        )
        track_error(error_type=classify_error(exc), endpoint=normalize_endpoint(request.url.path))
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error"},
        )


def create_app(settings: Settings | None = None, store: CustomerStore | None = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Configuration (defaults to environment-derived settings)
        store: Pre-built store; when omitted one is created from
            settings.database and closed at shutdown

    Returns:
        FastAPI: Configured application
    """
    settings = settings or get_settings()

    configure_logging(
        log_level=settings.logging.level,
        json_output=settings.logging.json_output,
        colorized=settings.logging.colorized,
    )
    settings.validate_configuration()

    app = FastAPI(
        title="CRM API",
        description="Customer and address management",
        version=settings.logging.service_version,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store if store is not None else create_store(settings.database)
    app.state.owns_store = store is None

    # One shared per-IP window across /api/, held by this app's limiter only
    limiter = Limiter(
        key_func=get_remote_address,
        application_limits=[settings.rate_limit_string],
        enabled=settings.rate_limit.enabled,
    )
    app.state.limiter = limiter

    register_exception_handlers(app)

    # Middleware, listed innermost first (Starlette wraps in reverse order):
    # 1. SlowAPIMiddleware - Enforces the per-IP window
    # 2. RequestSizeLimitMiddleware - Rejects oversized bodies
    # 3. PrometheusMiddleware - Tracks metrics
    # 4. SlowRequestLogger - Logs slow requests
    # 5. GZipMiddleware - Compresses large responses
    # 6. CORSMiddleware - Browser client access
    # 7. StructuredLoggingMiddleware (outermost) - Sets request context and ids
    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(
        RequestSizeLimitMiddleware,
        max_body_size=settings.service.max_request_body_size,
    )
    app.add_middleware(PrometheusMiddleware)
    app.add_middleware(
        SlowRequestLogger,
        warning_threshold_ms=settings.logging.slow_request_warning_ms,
        error_threshold_ms=settings.logging.slow_request_error_ms,
    )
    app.add_middleware(GZipMiddleware, minimum_size=settings.service.gzip_minimum_size)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors.origins_list,
        allow_credentials=settings.cors.allow_credentials,
        allow_methods=settings.cors.methods_list,
        allow_headers=settings.cors.headers_list,
        max_age=settings.cors.max_age,
    )
    app.add_middleware(StructuredLoggingMiddleware)

    app.include_router(health_router)
    app.include_router(customers_router)
    app.include_router(addresses_router)

    @app.get("/metrics", tags=["System"], include_in_schema=False)
    async def metrics():
        """Prometheus metrics in exposition format."""
        metrics_data, content_type = generate_metrics()
        return Response(content=metrics_data, media_type=content_type)

    # Only /api/ routes count against the window, and the health check never does.
    # Docs routes belong to the app itself; router entries may carry no endpoint.
    for route in app.routes:
        endpoint = getattr(route, "endpoint", None)
        if endpoint is not None and not getattr(route, "path", "").startswith("/api/"):
            limiter.exempt(endpoint)
    limiter.exempt(metrics)
    limiter.exempt(health_check)

    logger.info(
        "CRM application configured",
        backend=app.state.store.backend,
        environment=settings.service.environment,
        rate_limit=settings.rate_limit_string if settings.rate_limit.enabled else "disabled",
        cors_origins=settings.cors.origins_list,
    )

    return app


app = create_app()


def run() -> None:
    """Serve the application with uvicorn using SERVICE_* settings."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "crm.main:app",
        host=settings.service.host,
        port=settings.service.port,
        reload=settings.service.reload,
    )


if __name__ == "__main__":
    run()
