"""Admin override workflow.

Writes override edits straight into the matchups table. The resolver reads
the same rows, so the next resolution pass honours them without any extra
bookkeeping.
"""

from datetime import datetime, timezone

import structlog

from leaguesync.services.errors import RecordNotFoundError
from leaguesync.services.league.outcome import determine_winner
from leaguesync.services.league.records import COMPLETE, MatchupRecord
from leaguesync.services.league.standings import StandingsCalculator
from leaguesync.services.store.base import MATCHUPS, RecordStore, Row

logger = structlog.get_logger(__name__)


class MatchupOverrideService:
    """Team reassignment, manual scores, override toggling and completion."""

    def __init__(self, store: RecordStore, calculator: StandingsCalculator | None = None):
        self.store = store
        self.calculator = calculator or StandingsCalculator(store)

    async def _load(self, matchup_id: int) -> MatchupRecord:
        row = await self.store.get(MATCHUPS, matchup_id)
        if row is None:
            raise RecordNotFoundError(f"Matchup {matchup_id} not found")
        return MatchupRecord.from_row(row)

    async def _save(self, record: MatchupRecord, values: Row) -> MatchupRecord:
        """
        Write the edit and, for complete matchups, the conference standings
        in one transaction. Either both land or neither does.
        """
        try:
            async with self.store.atomic():
                row = await self.store.update(MATCHUPS, record.id, values)
                updated = MatchupRecord.from_row(row)
                if updated.is_complete:
                    update = await self.calculator.prepare(
                        updated.season_id, updated.conference_id
                    )
                    await self.calculator.apply(update)
        except Exception as e:
            logger.error("matchup_edit_failed", matchup_id=record.id, error=str(e))
            raise
        return updated

    async def reassign_teams(
        self,
        matchup_id: int,
        team_1_id: int,
        team_2_id: int,
        notes: str | None = None,
    ) -> MatchupRecord:
        if team_1_id == team_2_id:
            raise ValueError("A team cannot play itself")
        record = await self._load(matchup_id)
        values: Row = {
            "team_1_id": team_1_id,
            "team_2_id": team_2_id,
            "is_manual_override": True,
        }
        if notes is not None:
            values["notes"] = notes
        if record.is_complete:
            values["winning_team_id"] = determine_winner(
                team_1_id, team_2_id, record.team_1_score, record.team_2_score
            )
        logger.info(
            "matchup_teams_reassigned",
            matchup_id=matchup_id,
            team_1_id=team_1_id,
            team_2_id=team_2_id,
        )
        return await self._save(record, values)

    async def record_scores(
        self,
        matchup_id: int,
        team_1_score: float,
        team_2_score: float,
        freeze: bool = True,
    ) -> MatchupRecord:
        """
        Enter scores manually.

        With freeze set, later sync passes keep these scores instead of
        refreshing them from the provider.
        """
        record = await self._load(matchup_id)
        values: Row = {
            "team_1_score": float(team_1_score),
            "team_2_score": float(team_2_score),
            "is_manual_override": True,
            "scores_frozen": freeze,
        }
        if record.is_complete:
            values["winning_team_id"] = determine_winner(
                record.team_1_id, record.team_2_id, team_1_score, team_2_score
            )
        logger.info(
            "matchup_scores_recorded",
            matchup_id=matchup_id,
            team_1_score=team_1_score,
            team_2_score=team_2_score,
            frozen=freeze,
        )
        return await self._save(record, values)

    async def set_override(self, matchup_id: int, enabled: bool) -> MatchupRecord:
        record = await self._load(matchup_id)
        values: Row = {"is_manual_override": enabled}
        if not enabled:
            values["scores_frozen"] = False
        logger.info("matchup_override_toggled", matchup_id=matchup_id, enabled=enabled)
        async with self.store.atomic():
            row = await self.store.update(MATCHUPS, record.id, values)
        return MatchupRecord.from_row(row)

    async def complete_matchup(
        self,
        matchup_id: int,
        team_1_score: float,
        team_2_score: float,
        manual_override: bool = True,
    ) -> MatchupRecord:
        """Record final scores, decide the winner and refresh standings."""
        record = await self._load(matchup_id)
        winner = determine_winner(
            record.team_1_id, record.team_2_id, team_1_score, team_2_score
        )
        values: Row = {
            "team_1_score": float(team_1_score),
            "team_2_score": float(team_2_score),
            "winning_team_id": winner,
            "status": COMPLETE,
            "is_manual_override": record.is_manual_override or manual_override,
            "completed_at": datetime.now(timezone.utc),
        }
        logger.info(
            "matchup_completed",
            matchup_id=matchup_id,
            winning_team_id=winner,
            manual=manual_override,
        )
        return await self._save(record, values)
