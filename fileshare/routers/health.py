"""
Health check router.
"""
import asyncio
import logging
import time
from typing import Any, Dict

from fastapi import APIRouter, HTTPException, status
from sqlalchemy import text

from fileshare.config import get_settings
from fileshare.database import engine
from fileshare.utils.prometheus_metrics import REGISTRY, Gauge, ready

logger = logging.getLogger("fileshare.health")
router = APIRouter(prefix="/health", tags=["Health"])

settings = get_settings()

health_check_status = Gauge(
    "fileshare_health_check_status",
    "Health check status (1=healthy, 0=unhealthy)",
    ["check_type"],
    registry=REGISTRY,
)

DB_CHECK_TIMEOUT = 1.0


def _is_ready() -> bool:
    return ready._value.get() != 0


async def _check_db() -> None:
    async with engine.begin() as conn:
        await conn.execute(text("SELECT 1"))


@router.get(
    "",
    summary="Health check (fast)",
)
async def health_check() -> Dict[str, Any]:
    """
    Fast health check for load balancers.

    Verifies the instance is accepting traffic and the database answers
    within one second.
    """
    start_time = time.perf_counter()

    if not _is_ready():
        health_check_status.labels(check_type="fast").set(0)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Application is shutting down",
        )

    try:
        await asyncio.wait_for(_check_db(), timeout=DB_CHECK_TIMEOUT)
    except asyncio.TimeoutError:
        logger.warning("DB health check timeout", extra={"event": "health"})
        health_check_status.labels(check_type="fast").set(0)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database connection timeout",
        )
    except Exception as e:
        logger.warning(
            "DB health check failed",
            extra={"event": "health", "error": str(e)[:200]},
        )
        health_check_status.labels(check_type="fast").set(0)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database connection failed",
        )

    health_check_status.labels(check_type="fast").set(1)
    return {
        "status": "healthy",
        "duration_ms": round((time.perf_counter() - start_time) * 1000, 2),
        "instance": settings.instance_ip or "unknown",
    }


@router.get(
    "/liveness",
    summary="Liveness probe",
)
async def liveness_probe() -> Dict[str, str]:
    """The process is up and not shutting down."""
    if not _is_ready():
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Application is shutting down",
        )
    return {"status": "alive"}


@router.get(
    "/readiness",
    summary="Readiness probe",
)
async def readiness_probe() -> Dict[str, str]:
    """The instance can serve requests (database reachable)."""
    if not _is_ready():
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Application is not ready",
        )

    try:
        await asyncio.wait_for(_check_db(), timeout=DB_CHECK_TIMEOUT)
    except Exception as e:
        logger.warning(
            "Readiness check failed: DB",
            extra={"event": "health", "error_type": type(e).__name__},
        )
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database not ready",
        )

    return {"status": "ready"}
