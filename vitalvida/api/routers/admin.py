"""
Admin Endpoints
GET /admin/sync/health - Sync health report (cached for a few minutes)
GET /admin/sync/stats - Integration counts and coverage
POST /admin/sync/full - Queue a full VitalVida -> Role sync
GET /admin/task-status/{task_id} - Check Celery task status
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ...caching import RedisCache
from ...services.integration import IntegrationService
from ...services.sync_monitor import SyncMonitor
from ..dependencies import get_db, get_redis_cache

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/admin", tags=["admin"])


# Request/Response Models
class FullSyncResponse(BaseModel):
    task_id: str = Field(..., description="Celery task ID")
    status: str = Field(default="queued", description="Task status")
    message: str = Field(..., description="Success message")


class TaskStatusResponse(BaseModel):
    task_id: str = Field(..., description="Celery task ID")
    status: str = Field(..., description="Task status (PENDING, STARTED, RETRY, SUCCESS, FAILURE)")
    result: Optional[Any] = Field(None, description="Task result if completed")
    error: Optional[str] = Field(None, description="Error message if failed")


# Endpoints
@router.get("/sync/health")
def sync_health(
    refresh: bool = Query(False, description="Rebuild the report instead of using the cached one"),
    db: Session = Depends(get_db),
    cache: RedisCache = Depends(get_redis_cache),
) -> Dict[str, Any]:
    monitor = SyncMonitor(db, cache=cache)
    if not refresh:
        cached = monitor.latest()
        if cached:
            return cached
    return monitor.health_report()


@router.get("/sync/stats")
def sync_stats(db: Session = Depends(get_db)) -> Dict[str, Any]:
    return IntegrationService(db).get_integration_stats()


@router.post("/sync/full", response_model=FullSyncResponse, status_code=status.HTTP_202_ACCEPTED)
def trigger_full_sync() -> FullSyncResponse:
    """
    Queue a full sync.

    Runs the inventory sync and then the compliance sync on the maintenance
    queue. Returns immediately with task ID.
    """
    try:
        from ...tasks.maintenance import full_sync

        result = full_sync.delay()
        logger.info(f"Full sync triggered: task_id={result.id}")

        return FullSyncResponse(task_id=result.id, status="queued", message="Full sync queued")

    except Exception as e:
        logger.error(f"Failed to trigger full sync: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to trigger full sync: {str(e)}",
        )


@router.get(
    "/task-status/{task_id}", response_model=TaskStatusResponse, status_code=status.HTTP_200_OK
)
def get_task_status(task_id: str) -> TaskStatusResponse:
    """
    Check the status of a Celery task.

    Returns task state and result (if completed).
    """
    try:
        from celery.result import AsyncResult

        from ...tasks.celery_app import app as celery_app

        task_result = AsyncResult(task_id, app=celery_app)
        status_str = task_result.status

        response = TaskStatusResponse(task_id=task_id, status=status_str)
        if status_str == "SUCCESS":
            response.result = task_result.result
        elif status_str == "FAILURE":
            response.error = str(task_result.info)

        return response

    except Exception as e:
        logger.error(f"Failed to get task status: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to get task status: {str(e)}",
        )
