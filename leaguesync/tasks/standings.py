"""Standings tasks.

Both tasks default to the current season so they can be fired from the admin
trigger endpoint without arguments.
"""

import asyncio

import structlog

from leaguesync.models.base import get_task_session
from leaguesync.services.errors import ConfigurationError
from leaguesync.services.league import StandingsCalculator
from leaguesync.services.store.base import SEASONS, RecordStore, eq
from leaguesync.services.store.sql import SqlAlchemyStore
from leaguesync.tasks import celery_app

logger = structlog.get_logger(__name__)


async def _resolve_season_id(store: RecordStore, season_id: int | None) -> int:
    if season_id is not None:
        return season_id
    row = await store.first(SEASONS, [eq("is_current", True)])
    if row is None:
        raise ConfigurationError("No current season found")
    return row["id"]


@celery_app.task(bind=True, soft_time_limit=240, time_limit=300)
def recompute_standings_task(self, season_id: int | None = None, conference_id: int | None = None):
    """
    Regenerate team records for a season (or one conference of it).

    Triggered manually from the admin API.
    """
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(_recompute_async(season_id, conference_id))
    finally:
        loop.close()


async def _recompute_async(season_id: int | None, conference_id: int | None) -> dict:
    async with get_task_session() as session:
        store = SqlAlchemyStore(session)
        season_id = await _resolve_season_id(store, season_id)
        standings = await StandingsCalculator(store).recompute(season_id, conference_id)

    logger.info(
        "recompute_standings_task_completed",
        season_id=season_id,
        conference_id=conference_id,
        teams=len(standings),
    )
    return {
        "season_id": season_id,
        "conference_id": conference_id,
        "records_updated": len(standings),
    }


@celery_app.task(bind=True, soft_time_limit=120, time_limit=150)
def mark_conference_champions_task(self, season_id: int | None = None):
    """Flag each conference's rank-1 team as champion."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(_mark_champions_async(season_id))
    finally:
        loop.close()


async def _mark_champions_async(season_id: int | None) -> dict:
    async with get_task_session() as session:
        store = SqlAlchemyStore(session)
        season_id = await _resolve_season_id(store, season_id)
        champions = await StandingsCalculator(store).mark_conference_champions(season_id)

    logger.info(
        "mark_champions_task_completed",
        season_id=season_id,
        champions=champions,
    )
    return {"season_id": season_id, "champions": champions}
