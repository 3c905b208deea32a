"""
FastAPI File Share API application.

Main application entry point that configures:
- CORS middleware
- API routers
- Database lifecycle
- Logging system
- Exception handlers
- Prometheus metrics
- Graceful shutdown
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fileshare.config import get_settings
from fileshare.database import close_db, init_db
from fileshare.exceptions import ShareError
from fileshare.middlewares.logging_middleware import LoggingMiddleware
from fileshare.middlewares.rate_limit_middleware import setup_rate_limit_exception_handler
from fileshare.middlewares.request_tracking_middleware import (
    RequestTrackingMiddleware,
    wait_for_requests,
)
from fileshare.routers import files_router, health_router, share_links_router, share_router
from fileshare.utils.config_validator import validate_configuration
from fileshare.utils.logger import get_request_id, log_error, log_info, log_warning, setup_logging
from fileshare.utils.prometheus_metrics import exceptions_total, ready, setup_prometheus

settings = get_settings()
logger = logging.getLogger("fileshare")

setup_logging()

SHUTDOWN_WAIT_SECONDS = 30.0


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Startup: validate configuration (production only), create tables,
    then report ready.

    Shutdown: report not ready so the load balancer stops routing,
    wait for in-flight requests, release the database pool.
    """
    try:
        await validate_configuration()
    except ValueError as e:
        log_error("Startup failed: configuration validation errors", error_message=str(e), event="lifecycle")
        raise RuntimeError(str(e)) from e

    await init_db()
    ready.set(1)
    log_info(
        "Application startup completed",
        event="lifecycle",
        version=settings.app_version,
        environment=settings.environment.value,
    )

    yield

    ready.set(0)
    log_info("Application shutdown initiated", event="lifecycle")

    await wait_for_requests(timeout=SHUTDOWN_WAIT_SECONDS)
    await close_db()

    log_info("Graceful shutdown completed", event="lifecycle")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
## File Share API

Upload files and share them through unguessable links.

### Features
- **Files**: Upload, list and delete files kept in S3 compatible object storage
- **Share Links**: Optional password, optional expiry, revocation, access counts
- **Public Access**: Password gate and short-lived presigned download URLs

### Authentication
Owner endpoints require a Bearer JWT whose `sub` claim is the owner id.
Share endpoints are public.
    """,
    openapi_tags=[
        {"name": "Files", "description": "File upload and management"},
        {"name": "Share Links", "description": "Share link management for file owners"},
        {"name": "Shared Files", "description": "Public access to shared files"},
        {"name": "Health", "description": "Health checks"},
    ],
    lifespan=lifespan,
)

setup_prometheus(app)

setup_rate_limit_exception_handler(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(LoggingMiddleware)
app.add_middleware(RequestTrackingMiddleware)


@app.exception_handler(ShareError)
async def share_error_handler(request: Request, exc: ShareError):
    """Render domain errors with their status and machine-readable code."""
    if exc.status_code >= 500:
        log_error(
            exc.message,
            error_type=type(exc).__name__,
            error_code=exc.code,
            http_method=request.method,
            event="exception",
        )
    else:
        log_warning(
            exc.message,
            error_type=type(exc).__name__,
            error_code=exc.code,
            http_method=request.method,
            event="share",
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Unhandled exception handler: ERROR log and a 500 carrying the request
    id so users can quote it.
    """
    exceptions_total.inc()
    rid = get_request_id()

    log_error(
        "Unhandled exception occurred",
        error_type=type(exc).__name__,
        error_code="INTERNAL_SERVER_ERROR",
        http_method=request.method,
        http_path=request.url.path,
        request_id=rid,
        event="exception",
        exc_info=True,
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": "Internal server error",
            "request_id": rid,
        },
    )


app.include_router(health_router)
app.include_router(files_router)
app.include_router(share_links_router)
app.include_router(share_router)


@app.get(
    "/",
    tags=["Root"],
    summary="API information",
)
async def root():
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
    }
