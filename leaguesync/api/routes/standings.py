"""Standings endpoints."""

from dataclasses import asdict

import structlog
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from leaguesync.api.dependencies import get_store
from leaguesync.api.errors import to_http_error
from leaguesync.services.errors import LeagueSyncError
from leaguesync.services.league import StandingsCalculator
from leaguesync.services.store.sql import SqlAlchemyStore

router = APIRouter(prefix="/api/standings", tags=["standings"])
logger = structlog.get_logger(__name__)


class StandingsRowResponse(BaseModel):
    """Team standing with names."""

    team_id: int
    team_name: str
    owner_name: str | None = None
    conference_id: int
    conference_name: str
    wins: int
    losses: int
    ties: int
    points_for: float
    points_against: float
    win_percentage: float
    conference_rank: int | None = None
    overall_rank: int | None = None
    playoff_eligible: bool
    is_conference_champion: bool


class RecomputeResponse(BaseModel):
    season_id: int
    conference_id: int | None
    records_updated: int


class ChampionsResponse(BaseModel):
    season_id: int
    champions: list[int]


@router.get("/{season_id}", response_model=list[StandingsRowResponse])
async def get_standings(
    season_id: int,
    conference_id: int | None = Query(None, description="Limit to one conference"),
    store: SqlAlchemyStore = Depends(get_store),
):
    """Stored standings, by conference rank or overall rank."""
    try:
        rows = await StandingsCalculator(store).get_standings(season_id, conference_id)
    except LeagueSyncError as e:
        raise to_http_error(e) from e
    return [StandingsRowResponse.model_validate(asdict(row)) for row in rows]


@router.post("/{season_id}/recompute", response_model=RecomputeResponse)
async def recompute_standings(
    season_id: int,
    conference_id: int | None = Query(None, description="Limit to one conference"),
    store: SqlAlchemyStore = Depends(get_store),
):
    """Regenerate team records from complete matchups."""
    try:
        standings = await StandingsCalculator(store).recompute(season_id, conference_id)
    except LeagueSyncError as e:
        raise to_http_error(e) from e
    logger.info(
        "standings_recompute_requested",
        season_id=season_id,
        conference_id=conference_id,
    )
    return RecomputeResponse(
        season_id=season_id,
        conference_id=conference_id,
        records_updated=len(standings),
    )


@router.post("/{season_id}/champions", response_model=ChampionsResponse)
async def mark_champions(
    season_id: int,
    store: SqlAlchemyStore = Depends(get_store),
):
    """Flag each conference's rank-1 team as champion."""
    try:
        champions = await StandingsCalculator(store).mark_conference_champions(season_id)
    except LeagueSyncError as e:
        raise to_http_error(e) from e
    return ChampionsResponse(season_id=season_id, champions=champions)
