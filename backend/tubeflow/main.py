"""FastAPI application entry point.

Deployment Requirements:
- Binds to PORT from environment variable
- Health endpoint at /health for platform health checks
- Graceful shutdown: scheduler stopped before connections are closed
- All logs to stdout/stderr

Error Logging Requirements:
- Log all incoming requests with method, path, request_id
- Log request body at DEBUG level (sanitize sensitive fields)
- Log response status and timing for every request
- Return structured error responses:
  {"success": false, "message": str, "error": code, "request_id": str}
- Log 4xx errors at WARNING, 5xx at ERROR
"""

import json
import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from tubeflow.api.v1 import router as api_v1_router
from tubeflow.core.config import get_settings
from tubeflow.core.database import db_manager
from tubeflow.core.logging import get_logger, setup_logging
from tubeflow.core.scheduler import scheduler_manager
from tubeflow.integrations.gemini import close_gemini, get_gemini, init_gemini
from tubeflow.integrations.s3 import close_s3, get_s3, init_s3
from tubeflow.services.asset_generation import AssetGenerator
from tubeflow.services.errors import ServiceError
from tubeflow.services.generation_poller import POLLER_JOB_ID, init_generation_poller
from tubeflow.services.storage import AssetStorage

# Set up logging before anything else
setup_logging()
logger = get_logger(__name__)

# Sensitive fields to redact from request body logs
SENSITIVE_FIELDS = {
    "password",
    "token",
    "secret",
    "api_key",
    "authorization",
}

_HTTP_ERROR_CODES = {
    status.HTTP_404_NOT_FOUND: "NOT_FOUND",
    status.HTTP_405_METHOD_NOT_ALLOWED: "METHOD_NOT_ALLOWED",
}


def sanitize_body(body: Any) -> Any:
    """Redact sensitive fields from request body for logging."""
    if not isinstance(body, dict):
        return body
    sanitized: dict[str, Any] = {}
    for key, value in body.items():
        if key.lower() in SENSITIVE_FIELDS:
            sanitized[key] = "****"
        elif isinstance(value, dict):
            sanitized[key] = sanitize_body(value)
        else:
            sanitized[key] = value
    return sanitized


def error_response(
    request: Request, status_code: int, code: str, message: str
) -> JSONResponse:
    """Failure envelope shared by every exception handler."""
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "message": message,
            "error": code,
            "request_id": getattr(request.state, "request_id", "unknown"),
        },
    )


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware to log all incoming requests with timing and request_id."""

    async def dispatch(self, request: Request, call_next: Any) -> Any:
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        start_time = time.monotonic()
        method = request.method
        path = request.url.path

        logger.info(
            "Request started",
            extra={
                "request_id": request_id,
                "method": method,
                "path": path,
                "query_params": str(request.query_params)
                if request.query_params
                else None,
            },
        )

        # Uploads are multipart; only JSON bodies are worth logging
        if (
            method not in ("GET", "HEAD", "OPTIONS")
            and request.headers.get("content-type", "").startswith("application/json")
            and logger.isEnabledFor(logging.DEBUG)
        ):
            body = await request.body()
            if body:
                try:
                    logger.debug(
                        "Request body",
                        extra={
                            "request_id": request_id,
                            "body": sanitize_body(json.loads(body)),
                        },
                    )
                except json.JSONDecodeError:
                    logger.debug(
                        "Request body (invalid JSON)",
                        extra={"request_id": request_id, "body_length": len(body)},
                    )

        response = await call_next(request)

        duration_ms = (time.monotonic() - start_time) * 1000
        status_code = response.status_code
        response.headers["X-Request-ID"] = request_id

        log_extra = {
            "request_id": request_id,
            "method": method,
            "path": path,
            "status_code": status_code,
            "duration_ms": round(duration_ms, 2),
        }

        if status_code >= 500:
            logger.error("Request failed", extra=log_extra)
        elif status_code >= 400:
            logger.warning("Request error", extra=log_extra)
        else:
            logger.info("Request completed", extra=log_extra)

        return response


async def build_asset_generator() -> AssetGenerator:
    """Asset façade for work outside a request (poller passes)."""
    return AssetGenerator(await get_gemini(), AssetStorage(await get_s3()))


@asynccontextmanager
async def lifespan(app: FastAPI) -> Any:
    """Application lifespan manager for startup/shutdown.

    Database or storage misconfiguration aborts startup. A missing Gemini key
    or bucket only disables the operations that need them.
    """
    settings = get_settings()
    logger.info(
        "Starting application",
        extra={
            "app_name": settings.app_name,
            "version": settings.app_version,
            "environment": settings.environment,
        },
    )

    try:
        db_manager.init_db()
        logger.info("Database initialized")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise

    # Raises S3ConfigError on inconsistent settings
    await init_s3()
    await init_gemini()

    poller = init_generation_poller(db_manager.session_factory, build_asset_generator)

    if scheduler_manager.init_scheduler():
        scheduler_manager.add_interval_job(
            poller.run_tick,
            id=POLLER_JOB_ID,
            seconds=settings.poller_interval_seconds,
            name="Narration script generation",
        )
        if scheduler_manager.start():
            logger.info(
                "Scheduler started",
                extra={"poller_interval_seconds": settings.poller_interval_seconds},
            )
        else:
            logger.warning("Failed to start scheduler")
    else:
        logger.info("Scheduler not initialized (disabled)")

    yield

    logger.info("Shutting down application")

    scheduler_manager.stop(wait=False)
    logger.info("Scheduler stopped")

    await close_gemini()
    await close_s3()
    await db_manager.close()
    logger.info("Application shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    # Request logging middleware (added first, runs last)
    app.add_middleware(RequestLoggingMiddleware)

    # CORS middleware - use FRONTEND_URL when set, allow all origins otherwise
    cors_origins: list[str] = ["*"]
    if settings.frontend_url:
        cors_origins = [settings.frontend_url]
        logger.info(
            "CORS configured for frontend",
            extra={"allowed_origins": cors_origins},
        )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ServiceError)
    async def service_exception_handler(
        request: Request, exc: ServiceError
    ) -> JSONResponse:
        """Render the service error taxonomy."""
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            "Service error",
            extra={
                "request_id": getattr(request.state, "request_id", "unknown"),
                "error_code": exc.code,
                "error_type": type(exc).__name__,
                "error_message": exc.message,
                "path": request.url.path,
            },
        )
        return error_response(request, exc.status_code, exc.code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Handle validation errors with structured response."""
        errors = exc.errors()
        error_msg = "; ".join(
            f"{'.'.join(str(loc) for loc in e['loc'])}: {e['msg']}" for e in errors
        )
        logger.warning(
            "Validation error",
            extra={
                "request_id": getattr(request.state, "request_id", "unknown"),
                "errors": error_msg,
            },
        )
        return error_response(
            request, status.HTTP_400_BAD_REQUEST, "VALIDATION_ERROR", error_msg
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return error_response(
            request,
            exc.status_code,
            _HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR"),
            str(exc.detail),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected errors with structured response."""
        logger.error(
            "Unhandled exception",
            extra={
                "request_id": getattr(request.state, "request_id", "unknown"),
                "error_type": type(exc).__name__,
                "error_message": str(exc),
            },
            exc_info=True,
        )
        return error_response(
            request,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "INTERNAL_ERROR",
            "An internal error occurred. Please try again later.",
        )

    @app.get("/health", tags=["Health"])
    async def health_check() -> dict[str, str]:
        """Returns {"status": "ok"} if the service is running."""
        return {"status": "ok"}

    @app.get("/health/db", tags=["Health"])
    async def database_health() -> dict[str, str | bool]:
        """Check database connectivity."""
        is_healthy = await db_manager.check_connection()
        return {
            "status": "ok" if is_healthy else "error",
            "database": is_healthy,
        }

    @app.get("/health/scheduler", tags=["Health"])
    async def scheduler_health() -> dict[str, Any]:
        """Check scheduler status."""
        return scheduler_manager.check_health()

    @app.get("/health/integrations", tags=["Health"])
    async def integrations_health() -> dict[str, Any]:
        """Configuration and circuit state of Gemini and object storage."""
        gemini = await get_gemini()
        s3 = await get_s3()
        return {
            "gemini": {
                "available": gemini.available,
                "model": gemini.text_model,
                "circuit_breaker": gemini.circuit_breaker.state.value,
            },
            "s3": {
                "available": s3.available,
                "bucket": s3.bucket,
                "circuit_breaker": s3.circuit_breaker.state.value,
            },
        }

    app.include_router(api_v1_router)

    return app


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "tubeflow.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
