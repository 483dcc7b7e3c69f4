"""FastAPI application entry point.

Arena API - esports tournament backend (wallet ledger, registrations,
room publication, prize settlement, announcements).
"""

import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from starlette.middleware.base import BaseHTTPMiddleware

from app.api import (
    admin_wallet,
    announcements,
    auth,
    registrations,
    rooms,
    tournaments,
    users,
    wallet,
    winners,
)
from app.config import get_settings
from app.logging_config import bind_context, clear_context, configure_logging, get_logger
from app.middleware.prometheus import setup_prometheus
from app.middleware.sentry import init_sentry
from app.schemas.responses import HealthCheckResponse
from app.utils import redis_client as redis_module
from app.utils.db import close_db, create_all, engine, init_db
from app.utils.errors import ServiceError
from app.utils.json_utils import ORJSONResponse
from app.utils.redis_client import close_redis, init_redis

settings = get_settings()

configure_logging(
    log_level=settings.log_level,
    json_logs=settings.app_env == "production",
    app_env=settings.app_env,
)
logger = get_logger(__name__)

sentry_enabled = init_sentry(
    dsn=settings.sentry_dsn,
    environment=settings.app_env,
    release=settings.app_version,
    traces_sample_rate=settings.sentry_traces_sample_rate
    if settings.app_env == "production"
    else 0.0,
)
if sentry_enabled:
    logger.info("Sentry error tracking initialized")
elif settings.app_env == "production":
    logger.warning("Sentry DSN not configured - error tracking disabled")


# =============================================================================
# Lifespan Events
# =============================================================================


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Application lifespan handler for startup and shutdown events.

    Periodic work (room publish sweep, scheduled announcements) runs in
    Celery beat, not in the API process.
    """
    logger.info("Starting application...")
    try:
        await init_db()
        if settings.app_env == "development":
            await create_all()
        logger.info("Database connection established")

        await init_redis()
        logger.info("Redis connection established")
    except Exception as e:
        logger.error(f"Startup failed: {e}")
        raise

    yield

    logger.info("Shutting down application...")
    try:
        await close_db()
        await close_redis()
        logger.info("Application shutdown complete")
    except Exception as e:
        logger.error(f"Shutdown error: {e}")


# =============================================================================
# FastAPI Application
# =============================================================================


app = FastAPI(
    title="Arena API",
    version=settings.app_version,
    description="Esports tournament backend API",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
    default_response_class=ORJSONResponse,
)

prometheus_instrumentator = setup_prometheus(app, app_version=settings.app_version)


# =============================================================================
# Middleware
# =============================================================================


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Attach X-Request-ID to every request, response and log line."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        started = datetime.now(timezone.utc)

        clear_context()
        bind_context(trace_id=request_id)
        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id

            duration = (datetime.now(timezone.utc) - started).total_seconds()
            logger.info(
                "request_completed",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration=round(duration, 3),
            )
            return response
        finally:
            clear_context()


app.add_middleware(RequestIDMiddleware)

cors_origins = [origin.strip() for origin in settings.cors_origins.split(",")]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
    expose_headers=["X-Request-ID"],
)


# =============================================================================
# Error Handlers
# =============================================================================


def get_request_id(request: Request) -> str:
    """Get request ID from request state or headers."""
    if hasattr(request.state, "request_id"):
        return request.state.request_id
    return request.headers.get("X-Request-ID", str(uuid.uuid4()))


def create_error_response(
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
    trace_id: str | None = None,
    kind: str | None = None,
) -> dict[str, Any]:
    """Create standardized error response."""
    error: dict[str, Any] = {
        "code": code,
        "message": message,
        "details": details or {},
        "traceId": trace_id,
    }
    if kind:
        error["kind"] = kind
    return {"error": error}


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> ORJSONResponse:
    """Map domain errors to HTTP by their error kind."""
    trace_id = get_request_id(request)
    log = logger.error if exc.status_code >= 500 else logger.warning
    log("service_error", code=exc.code.value, kind=exc.kind.value, message=exc.message)

    return ORJSONResponse(
        status_code=exc.status_code,
        content=create_error_response(
            code=exc.code.value,
            message=exc.message,
            details=exc.details,
            trace_id=trace_id,
            kind=exc.kind.value,
        ),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> ORJSONResponse:
    """Request body/query validation failures are INVALID_INPUT (400)."""
    errors = [
        {"loc": list(e.get("loc", ())), "msg": e.get("msg", ""), "type": e.get("type", "")}
        for e in exc.errors()
    ]
    return ORJSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=create_error_response(
            code="INVALID_INPUT",
            message="Request validation failed",
            details={"errors": errors},
            trace_id=get_request_id(request),
            kind="INVALID_INPUT",
        ),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(
    request: Request, exc: HTTPException
) -> ORJSONResponse:
    return ORJSONResponse(
        status_code=exc.status_code,
        content=create_error_response(
            code="HTTP_ERROR",
            message=str(exc.detail),
            trace_id=get_request_id(request),
        ),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> ORJSONResponse:
    """Handle unexpected exceptions."""
    trace_id = get_request_id(request)
    logger.error(
        "unexpected_error",
        error_type=type(exc).__name__,
        error_message=str(exc),
        trace_id=trace_id,
        exc_info=True,
    )

    # Don't expose internal error details in production
    message = "Internal server error"
    if settings.app_debug:
        message = f"{type(exc).__name__}: {exc}"

    return ORJSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=create_error_response(
            code="INTERNAL_ERROR",
            message=message,
            trace_id=trace_id,
            kind="INTERNAL",
        ),
    )


# =============================================================================
# Health Check Endpoints
# =============================================================================


@app.get(
    "/health",
    tags=["Health"],
    summary="Health check endpoint",
    response_model=HealthCheckResponse,
)
async def health_check() -> HealthCheckResponse:
    """Check database and Redis connectivity."""
    services = {"database": "unknown", "redis": "unknown"}
    overall_healthy = True

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        services["database"] = "healthy"
    except Exception as e:
        services["database"] = f"unhealthy: {e}"
        overall_healthy = False
        logger.error(f"Database health check failed: {e}")

    try:
        current_redis = redis_module.redis_client
        if current_redis:
            await current_redis.ping()
            services["redis"] = "healthy"
        else:
            services["redis"] = "not initialized"
            overall_healthy = False
    except Exception as e:
        services["redis"] = f"unhealthy: {e}"
        overall_healthy = False
        logger.error(f"Redis health check failed: {e}")

    return HealthCheckResponse(
        status="healthy" if overall_healthy else "degraded",
        version=settings.app_version,
        timestamp=datetime.now(timezone.utc),
        services=services,
    )


@app.get("/health/live", tags=["Health"], summary="Liveness probe")
async def liveness_probe() -> dict[str, str]:
    return {"status": "alive"}


# =============================================================================
# API Routers
# =============================================================================


API_V1_PREFIX = "/api/v1"

app.include_router(auth.router, prefix=API_V1_PREFIX)
app.include_router(users.router, prefix=API_V1_PREFIX)
app.include_router(wallet.router, prefix=API_V1_PREFIX)
app.include_router(admin_wallet.router, prefix=API_V1_PREFIX)
app.include_router(tournaments.router, prefix=API_V1_PREFIX)
app.include_router(registrations.router, prefix=API_V1_PREFIX)
app.include_router(rooms.router, prefix=API_V1_PREFIX)
app.include_router(winners.router, prefix=API_V1_PREFIX)
app.include_router(announcements.router, prefix=API_V1_PREFIX)


@app.get("/", tags=["Root"], summary="API root endpoint")
async def root() -> dict[str, str]:
    return {
        "name": "Arena API",
        "version": settings.app_version,
        "docs": "/docs",
        "health": "/health",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.app_debug,
        log_level=settings.log_level.lower(),
    )
