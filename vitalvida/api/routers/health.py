"""
Health Check Endpoints
Endpoints for health checks and status monitoring.
"""

import logging
from datetime import datetime
from typing import Any, Dict

from fastapi import APIRouter, Depends, status
from sqlalchemy import text
from sqlalchemy.orm import Session

from ...caching import RedisCache
from ...config.settings import Settings, get_settings
from ..dependencies import get_db, get_redis_cache

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
async def health_check() -> Dict[str, str]:
    """
    Basic health check.

    Returns:
        Simple health status
    """
    return {"status": "healthy", "timestamp": datetime.utcnow().isoformat()}


@router.get("/status", status_code=status.HTTP_200_OK)
def status_check(
    settings: Settings = Depends(get_settings),
    db: Session = Depends(get_db),
    cache: RedisCache = Depends(get_redis_cache),
) -> Dict[str, Any]:
    """
    Detailed status check of the database and Redis.

    Returns:
        Overall status ("healthy" or "degraded") and per-component details
    """
    status_info = {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "version": settings.version,
        "environment": settings.environment,
        "components": {},
    }

    # Check database
    try:
        db.execute(text("SELECT 1"))
        status_info["components"]["database"] = {
            "status": "healthy",
            "url": settings.database_url.split("@")[-1],  # Hide credentials
        }
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        status_info["components"]["database"] = {"status": "unhealthy", "error": str(e)}
        status_info["status"] = "degraded"

    # Check Redis
    redis_healthy = cache.ping()
    status_info["components"]["redis"] = {"status": "healthy" if redis_healthy else "unhealthy"}
    if not redis_healthy:
        status_info["status"] = "degraded"

    return status_info


@router.get("/live", status_code=status.HTTP_200_OK)
async def liveness_check() -> Dict[str, str]:
    """
    Kubernetes liveness probe.

    Returns:
        Liveness status
    """
    return {"status": "alive", "timestamp": datetime.utcnow().isoformat()}
