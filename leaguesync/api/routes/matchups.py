"""Hybrid matchup endpoints."""

from dataclasses import asdict

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from leaguesync.api.dependencies import get_sleeper_client, get_store
from leaguesync.api.errors import to_http_error
from leaguesync.services.errors import LeagueSyncError
from leaguesync.services.league import MatchupResolver
from leaguesync.services.sleeper_client import SleeperClient
from leaguesync.services.store.sql import SqlAlchemyStore

router = APIRouter(prefix="/api/matchups", tags=["matchups"])


class HybridTeamResponse(BaseModel):
    team_id: int
    roster_id: str | None
    conference_id: int
    points: float
    projected_points: float | None = None
    starters: list[str] = []
    starters_points: list[float] = []
    players_points: dict[str, float] = {}


class HybridMatchupResponse(BaseModel):
    """One resolved pairing."""

    matchup_id: int | None
    conference_id: int
    week: int
    team_1: HybridTeamResponse
    team_2: HybridTeamResponse
    data_source: str
    status: str
    manual_override: bool
    record_status: str | None = None
    winning_team_id: int | None = None
    provider_matchup_id: int | None = None
    is_interconference: bool = False
    is_playoff: bool = False
    notes: str | None = None
    warnings: list[str] = []


@router.get("/{season_id}/week/{week}", response_model=list[HybridMatchupResponse])
async def get_week_matchups(
    season_id: int,
    week: int,
    conference_id: int | None = Query(None, description="Limit to one conference"),
    store: SqlAlchemyStore = Depends(get_store),
    sleeper: SleeperClient = Depends(get_sleeper_client),
):
    """
    Resolve every matchup of a season week.

    Stored records win for overridden matchups; otherwise live provider
    scores are used. Conferences with no stored records fall back to the
    provider's own pairings.
    """
    resolver = MatchupResolver(sleeper)
    try:
        matchups = await resolver.resolve_week(store, season_id, week, conference_id)
    except LeagueSyncError as e:
        raise to_http_error(e) from e
    return [HybridMatchupResponse.model_validate(asdict(m)) for m in matchups]
