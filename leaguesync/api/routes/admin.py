"""Admin API endpoints.

Matchup override edits and manual task triggers.
These endpoints should be protected in production (not implemented here).
"""

from datetime import datetime

import structlog
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from leaguesync.api.dependencies import get_store
from leaguesync.api.errors import to_http_error
from leaguesync.services.errors import LeagueSyncError
from leaguesync.services.league import MatchupOverrideService, MatchupRecord
from leaguesync.services.store.sql import SqlAlchemyStore

router = APIRouter(prefix="/api/admin", tags=["admin"])
logger = structlog.get_logger(__name__)


class TaskTriggerResponse(BaseModel):
    """Response from task trigger."""
    task_name: str
    task_id: str
    status: str
    message: str


class MatchupResponse(BaseModel):
    """Stored matchup after an edit."""
    id: int
    season_id: int
    conference_id: int
    week: int
    team_1_id: int
    team_2_id: int
    team_1_score: float
    team_2_score: float
    winning_team_id: int | None
    is_manual_override: bool
    scores_frozen: bool
    status: str
    notes: str | None
    completed_at: datetime | None


class ReassignTeamsRequest(BaseModel):
    team_1_id: int
    team_2_id: int
    notes: str | None = None


class RecordScoresRequest(BaseModel):
    team_1_score: float = Field(ge=0)
    team_2_score: float = Field(ge=0)
    freeze: bool = True


class OverrideRequest(BaseModel):
    enabled: bool


class CompleteMatchupRequest(BaseModel):
    team_1_score: float = Field(ge=0)
    team_2_score: float = Field(ge=0)
    manual_override: bool = True


# Map of friendly names to actual Celery task names
TASK_MAP = {
    "recompute-standings": "leaguesync.tasks.standings.recompute_standings_task",
    "mark-conference-champions": "leaguesync.tasks.standings.mark_conference_champions_task",
}


def _response(record: MatchupRecord) -> MatchupResponse:
    return MatchupResponse.model_validate(record, from_attributes=True)


@router.patch("/matchups/{matchup_id}/teams", response_model=MatchupResponse)
async def reassign_teams(
    matchup_id: int,
    body: ReassignTeamsRequest,
    store: SqlAlchemyStore = Depends(get_store),
):
    """Reassign the two teams of a matchup. Sets the override flag."""
    try:
        record = await MatchupOverrideService(store).reassign_teams(
            matchup_id, body.team_1_id, body.team_2_id, body.notes
        )
    except (LeagueSyncError, ValueError) as e:
        raise to_http_error(e) from e
    return _response(record)


@router.patch("/matchups/{matchup_id}/scores", response_model=MatchupResponse)
async def record_scores(
    matchup_id: int,
    body: RecordScoresRequest,
    store: SqlAlchemyStore = Depends(get_store),
):
    """Enter scores manually, optionally freezing them against provider refresh."""
    try:
        record = await MatchupOverrideService(store).record_scores(
            matchup_id, body.team_1_score, body.team_2_score, freeze=body.freeze
        )
    except LeagueSyncError as e:
        raise to_http_error(e) from e
    return _response(record)


@router.patch("/matchups/{matchup_id}/override", response_model=MatchupResponse)
async def set_override(
    matchup_id: int,
    body: OverrideRequest,
    store: SqlAlchemyStore = Depends(get_store),
):
    """Toggle the manual override flag."""
    try:
        record = await MatchupOverrideService(store).set_override(matchup_id, body.enabled)
    except LeagueSyncError as e:
        raise to_http_error(e) from e
    return _response(record)


@router.post("/matchups/{matchup_id}/complete", response_model=MatchupResponse)
async def complete_matchup(
    matchup_id: int,
    body: CompleteMatchupRequest,
    store: SqlAlchemyStore = Depends(get_store),
):
    """Record final scores, decide the winner and refresh the conference standings."""
    try:
        record = await MatchupOverrideService(store).complete_matchup(
            matchup_id,
            body.team_1_score,
            body.team_2_score,
            manual_override=body.manual_override,
        )
    except LeagueSyncError as e:
        raise to_http_error(e) from e
    return _response(record)


@router.post("/trigger-task/{task_name}", response_model=TaskTriggerResponse)
async def trigger_task(task_name: str) -> TaskTriggerResponse:
    """
    Manually trigger a background task.

    Available tasks:
    - recompute-standings: Regenerate team records for the current season
    - mark-conference-champions: Flag conference champions for the current season
    """
    if task_name not in TASK_MAP:
        raise HTTPException(
            status_code=404,
            detail=f"Unknown task: {task_name}. Available: {list(TASK_MAP.keys())}"
        )

    celery_task_name = TASK_MAP[task_name]

    try:
        # Import celery app and send task
        from leaguesync.tasks import celery_app

        result = celery_app.send_task(celery_task_name)

        logger.info(
            "task_triggered_manually",
            task_name=task_name,
            celery_task=celery_task_name,
            task_id=result.id,
        )

        return TaskTriggerResponse(
            task_name=task_name,
            task_id=result.id,
            status="submitted",
            message=f"Task {task_name} submitted successfully. Check Celery logs for progress."
        )

    except Exception as e:
        logger.error(
            "task_trigger_failed",
            task_name=task_name,
            error=str(e),
        )
        raise HTTPException(
            status_code=500,
            detail=f"Failed to trigger task: {str(e)}"
        )


@router.get("/tasks", response_model=dict[str, str])
async def list_tasks() -> dict[str, str]:
    """List all available tasks that can be triggered manually."""
    return TASK_MAP
