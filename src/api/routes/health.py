"""
Health check endpoints.

Provides endpoints for monitoring application health and status.
"""

from typing import Any, Dict

from fastapi import APIRouter
from fastapi.concurrency import run_in_threadpool

from config.database import check_pool, get_pool_optional
from config.indexes import get_index_registry
from config.settings import get_settings


router = APIRouter(tags=["Health"])

SERVICE_NAME = "searchbox-api"


@router.get("/health")
async def health_check() -> Dict[str, Any]:
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
    }


@router.get("/health/detailed")
async def detailed_health_check() -> Dict[str, Any]:
    """
    Detailed health check with dependency status.

    Checks:
    - Index configuration loaded
    - Database reachable through the pool
    """
    settings = get_settings()

    database_status = "unknown"
    database_error = None
    pool = get_pool_optional()
    if pool is None:
        database_status = "not_configured"
    else:
        try:
            await run_in_threadpool(check_pool, pool)
            database_status = "connected"
        except Exception as e:
            database_status = "error"
            database_error = type(e).__name__

    return {
        "status": "healthy" if database_status == "connected" else "degraded",
        "service": SERVICE_NAME,
        "environment": settings.environment,
        "checks": {
            "config": {
                "status": "ok",
                "indexes": get_index_registry().index_names,
            },
            "database": {
                "status": database_status,
                "error": database_error,
            },
        },
    }


@router.get("/ready")
async def readiness_check() -> Dict[str, str]:
    """Kubernetes-style readiness probe."""
    if get_pool_optional() is None:
        return {"status": "not_ready", "reason": "database_not_configured"}
    return {"status": "ready"}


@router.get("/live")
async def liveness_check() -> Dict[str, str]:
    """Kubernetes-style liveness probe."""
    return {"status": "alive"}
