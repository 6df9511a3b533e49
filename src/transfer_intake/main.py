"""
Transfer Intake API - Main Application Entry Point

This module initializes and configures the FastAPI application including:
- Logging with per-request trace ids
- Database and Redis connections
- Rate limiter, background task runner and notification dispatcher
- Background job scheduler
- Structured error responses
- CORS middleware
- API routing
- Health check endpoints
"""

import logging
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.exceptions import HTTPException as StarletteHTTPException

from transfer_intake.api import api_router
from transfer_intake.core.background import BackgroundTaskRunner
from transfer_intake.core.config import settings
from transfer_intake.core.database import async_session_maker, close_db, init_db
from transfer_intake.core.logging import (
    configure_logging,
    generate_trace_id,
    get_trace_id,
    reset_trace_id,
    set_trace_id,
)
from transfer_intake.core.rate_limit import build_rate_limiter
from transfer_intake.core.redis import close_redis, get_redis, init_redis, is_redis_available
from transfer_intake.core.scheduler import (
    clear_registry,
    list_registered_jobs,
    pause_job,
    resume_job,
    start_scheduler,
    stop_scheduler,
    trigger_job_manually,
)
from transfer_intake.modules.rate_limits.jobs import register_rate_limit_jobs
from transfer_intake.modules.submissions.notifications import NotificationDispatcher

configure_logging()

logger = logging.getLogger(__name__)

TRACE_ID_HEADER = "X-Trace-Id"

# Fallback error codes for HTTPExceptions raised without a structured detail
_STATUS_CODES = {
    status.HTTP_400_BAD_REQUEST: "BAD_REQUEST",
    status.HTTP_401_UNAUTHORIZED: "UNAUTHORIZED",
    status.HTTP_403_FORBIDDEN: "FORBIDDEN",
    status.HTTP_404_NOT_FOUND: "NOT_FOUND",
    status.HTTP_405_METHOD_NOT_ALLOWED: "METHOD_NOT_ALLOWED",
    status.HTTP_422_UNPROCESSABLE_ENTITY: "VALIDATION_ERROR",
    status.HTTP_429_TOO_MANY_REQUESTS: "RATE_LIMIT_EXCEEDED",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events including:
    - Redis connection
    - Database connection
    - Rate limiter and notification dispatcher
    - Background job scheduler
    """
    # Startup
    logger.info(f"Starting Transfer Intake API in {settings.python_env} mode...")

    runner = BackgroundTaskRunner()

    # Initialize Redis
    try:
        await init_redis()
        logger.info("[OK] Redis connected")
    except Exception as e:
        logger.error(f"[FAIL] Redis connection failed: {e}")
        if settings.is_production and settings.rate_limit_backend == "redis":
            raise

    # Initialize Database
    try:
        await init_db()
        logger.info("[OK] Database connected")
    except Exception as e:
        logger.error(f"[FAIL] Database connection failed: {e}")
        if settings.is_production:
            raise

    rate_limiter = build_rate_limiter(runner, await get_redis())
    app.state.background_runner = runner
    app.state.rate_limiter = rate_limiter
    app.state.notification_dispatcher = NotificationDispatcher(runner)

    # Initialize Background Job Scheduler
    try:
        # Register jobs before starting the scheduler
        register_rate_limit_jobs(rate_limiter)

        await start_scheduler()
        logger.info("[OK] Background scheduler started")
    except Exception as e:
        logger.error(f"[FAIL] Background scheduler failed to start: {e}")
        if settings.is_production:
            raise

    yield  # Application runs here

    # Shutdown
    logger.info("Shutting down Transfer Intake API...")

    # Stop the scheduler first (wait for running jobs)
    await stop_scheduler()
    clear_registry()
    logger.info("[OK] Background scheduler stopped")

    # Let pending write-throughs and emails finish
    await runner.shutdown()
    rate_limiter.close()

    await close_redis()
    await close_db()
    logger.info("[OK] Cleanup complete")


app = FastAPI(
    title="Transfer Intake API",
    description="Progressive transfer-admissions intake forms and staff review API",
    version="0.1.0",
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
    lifespan=lifespan,
)


# ============================================
# Tracing & Error Responses
# ============================================


def _error_response(
    status_code: int,
    body: dict,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={**body, "traceId": get_trace_id()},
        headers=headers,
    )


@app.middleware("http")
async def trace_id_middleware(request: Request, call_next):
    """Bind a fresh trace id to the request and echo it in X-Trace-Id."""
    trace_id = generate_trace_id()
    token = set_trace_id(trace_id)
    try:
        try:
            response = await call_next(request)
        except Exception as e:
            logger.exception(f"Unhandled error on {request.method} {request.url.path}: {e}")
            response = _error_response(
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                {"code": "INTERNAL_ERROR", "message": "An unexpected error occurred."},
            )
        response.headers[TRACE_ID_HEADER] = trace_id
        return response
    finally:
        reset_trace_id(token)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Flatten HTTPException details into {code, message, traceId, ...}."""
    if isinstance(exc.detail, dict) and "code" in exc.detail:
        body = dict(exc.detail)
    else:
        body = {
            "code": _STATUS_CODES.get(exc.status_code, "ERROR"),
            "message": str(exc.detail),
        }
    return _error_response(exc.status_code, body, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report malformed request fields as VALIDATION_ERROR with a field list."""
    errors = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        errors.append(
            {
                "field": ".".join(location) or "body",
                "message": error.get("msg", "Invalid value"),
            }
        )

    return _error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        {
            "code": "VALIDATION_ERROR",
            "message": "Invalid request data",
            "errors": errors,
        },
    )


app.include_router(api_router, prefix="/api/v1")

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[TRACE_ID_HEADER, "Retry-After"],
)


@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """Root endpoint - API welcome message."""
    return {
        "message": "Welcome to Transfer Intake API",
        "status": "running",
        "environment": settings.python_env,
    }


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint for container orchestration."""
    return {"status": "healthy"}


@app.get("/ready", tags=["Health"])
async def readiness_check() -> JSONResponse:
    """Readiness check: the database must answer."""
    try:
        async with async_session_maker() as session:
            await session.execute(text("SELECT 1"))
    except Exception as e:
        logger.warning(f"Readiness check failed: {e}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not ready"},
        )
    return JSONResponse(content={"status": "ready"})


# ============================================
# Debug Endpoints (development only)
# ============================================
# These endpoints allow checking connections and manually triggering
# background jobs. In production, jobs run automatically on schedule.

debug_router = APIRouter(prefix="/debug", tags=["Debug"])


@debug_router.get("/db")
async def debug_db():
    """Test database connection."""
    try:
        async with async_session_maker() as session:
            result = await session.execute(text("SELECT 1"))
            return {"database": "connected", "result": result.scalar()}
    except Exception as e:
        return {"database": "error", "message": str(e)}


@debug_router.get("/redis")
async def debug_redis():
    """Test Redis connection."""
    if not is_redis_available():
        return {"redis": "not initialized"}

    client = await get_redis()
    try:
        await client.ping()
        return {"redis": "connected"}
    except Exception as e:
        return {"redis": "error", "message": str(e)}


@debug_router.get("/rate-limits")
async def debug_rate_limits(request: Request):
    """Show rate limiter settings and cache occupancy."""
    limiter = request.app.state.rate_limiter
    return {
        "store": type(limiter.store).__name__,
        "max_requests": limiter.max_requests,
        "window_ms": int(limiter.window.total_seconds() * 1000),
        "cached_keys": len(limiter.cache),
        "pending_background_tasks": request.app.state.background_runner.pending,
    }


@debug_router.get("/jobs")
async def list_jobs():
    """
    List all registered background jobs and their status.

    Returns:
        List of job information including next run time and pause status.
    """
    return {"jobs": list_registered_jobs()}


@debug_router.post("/jobs/{job_id}/trigger")
async def trigger_job(job_id: str):
    """
    Manually trigger a background job for testing.

    Args:
        job_id: The ID of the job to trigger. Available jobs:
            - rate_limits_sweep_cache
            - rate_limits_purge_stale_counters

    Returns:
        Job execution result including status and any errors.

    Raises:
        HTTPException 400: If job_id is not found.
    """
    try:
        return await trigger_job_manually(job_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


@debug_router.post("/jobs/{job_id}/pause")
async def pause_job_endpoint(job_id: str):
    """Pause a scheduled background job."""
    return {"job_id": job_id, "paused": pause_job(job_id)}


@debug_router.post("/jobs/{job_id}/resume")
async def resume_job_endpoint(job_id: str):
    """Resume a paused background job."""
    return {"job_id": job_id, "resumed": resume_job(job_id)}


if settings.is_development:
    app.include_router(debug_router)
