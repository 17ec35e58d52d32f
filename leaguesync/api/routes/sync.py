"""Weekly auto-sync endpoints."""

from typing import Any

import structlog
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from leaguesync.api.dependencies import get_scheduler
from leaguesync.api.errors import to_http_error
from leaguesync.services.errors import SyncAlreadyRunningError
from leaguesync.services.sync import WeeklySyncScheduler

router = APIRouter(prefix="/api/sync", tags=["sync"])
logger = structlog.get_logger(__name__)


class ScheduleResponse(BaseModel):
    enabled: bool
    day_of_week: int
    hour: int
    minute: int
    timezone: str
    description: str
    next_run_time: str | None = None


class ScheduleUpdate(BaseModel):
    """Partial schedule update. day_of_week counts from Sunday = 0."""

    enabled: bool | None = None
    day_of_week: int | None = Field(None, ge=0, le=6)
    hour: int | None = Field(None, ge=0, le=23)
    minute: int | None = Field(None, ge=0, le=59)
    timezone: str | None = None


class TriggerResponse(BaseModel):
    run_id: str
    status: str


def _schedule_response(scheduler: WeeklySyncScheduler) -> ScheduleResponse:
    status = scheduler.get_status()
    return ScheduleResponse(
        **scheduler.schedule.to_dict(),
        description=scheduler.schedule.describe(),
        next_run_time=status.next_run_time.isoformat() if status.next_run_time else None,
    )


@router.get("/status")
async def get_status(scheduler: WeeklySyncScheduler = Depends(get_scheduler)) -> dict[str, Any]:
    """Live scheduler status."""
    return scheduler.get_status().to_dict()


@router.get("/history")
async def get_history(
    limit: int = Query(20, ge=1, le=100),
    scheduler: WeeklySyncScheduler = Depends(get_scheduler),
) -> list[dict[str, Any]]:
    """Most recent runs, newest first."""
    return [entry.to_dict() for entry in scheduler.get_history()[:limit]]


@router.get("/schedule", response_model=ScheduleResponse)
async def get_schedule(scheduler: WeeklySyncScheduler = Depends(get_scheduler)):
    return _schedule_response(scheduler)


@router.put("/schedule", response_model=ScheduleResponse)
async def update_schedule(
    body: ScheduleUpdate,
    scheduler: WeeklySyncScheduler = Depends(get_scheduler),
):
    """Change the recurrence. Disabling cancels the pending run."""
    try:
        await scheduler.update_schedule(**body.model_dump(exclude_none=True))
    except ValueError as e:
        raise to_http_error(e) from e
    return _schedule_response(scheduler)


@router.post("/trigger", response_model=TriggerResponse, status_code=202)
async def trigger_sync(scheduler: WeeklySyncScheduler = Depends(get_scheduler)):
    """Start a manual sync. 409 while another run is in flight."""
    try:
        run_id = scheduler.trigger_manual_sync()
    except SyncAlreadyRunningError as e:
        logger.warning("manual_sync_rejected", reason=str(e))
        raise to_http_error(e) from e
    logger.info("manual_sync_triggered", run_id=run_id)
    return TriggerResponse(run_id=run_id, status="running")
