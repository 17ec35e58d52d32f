"""Unit tests for the admin override workflow."""

import pytest

from leaguesync.services.errors import RecordNotFoundError, StoreError
from leaguesync.services.league.overrides import MatchupOverrideService
from leaguesync.services.league.standings import StandingsCalculator
from leaguesync.services.store.base import MATCHUPS, TEAM_RECORDS


def make_service(store, rules):
    return MatchupOverrideService(store, StandingsCalculator(store, rules))


class TestRecordScores:

    @pytest.mark.asyncio
    async def test_scores_marked_as_override_and_frozen(self, league_store, rules):
        record = await make_service(league_store, rules).record_scores(1, 88.5, 91)

        assert (record.team_1_score, record.team_2_score) == (88.5, 91.0)
        assert record.is_manual_override is True
        assert record.scores_frozen is True
        # Pending matchups get no winner and leave standings alone
        assert record.winning_team_id is None
        assert league_store.rows(TEAM_RECORDS) == []

    @pytest.mark.asyncio
    async def test_unfrozen_scores(self, league_store, rules):
        record = await make_service(league_store, rules).record_scores(1, 88.5, 91, freeze=False)

        assert record.is_manual_override is True
        assert record.scores_frozen is False

    @pytest.mark.asyncio
    async def test_correcting_complete_matchup_flips_winner_and_standings(self, league_store, rules):
        service = make_service(league_store, rules)
        await service.complete_matchup(1, 101.5, 97.2)

        record = await service.record_scores(1, 90.0, 99.0)

        assert record.winning_team_id == 2
        records = {row["team_id"]: row for row in league_store.rows(TEAM_RECORDS)}
        assert records[2]["wins"] == 1
        assert records[1]["losses"] == 1

    @pytest.mark.asyncio
    async def test_missing_matchup(self, league_store, rules):
        with pytest.raises(RecordNotFoundError):
            await make_service(league_store, rules).record_scores(404, 1.0, 2.0)


class TestReassignTeams:

    @pytest.mark.asyncio
    async def test_reassign_sets_override_and_notes(self, league_store, rules):
        record = await make_service(league_store, rules).reassign_teams(1, 2, 1, notes="Swapped home side")

        assert (record.team_1_id, record.team_2_id) == (2, 1)
        assert record.is_manual_override is True
        assert record.notes == "Swapped home side"

    @pytest.mark.asyncio
    async def test_team_cannot_play_itself(self, league_store, rules):
        with pytest.raises(ValueError):
            await make_service(league_store, rules).reassign_teams(1, 2, 2)

        assert league_store.row(MATCHUPS, 1)["team_2_id"] == 2

    @pytest.mark.asyncio
    async def test_reassigning_complete_matchup_recomputes_winner(self, league_store, rules):
        service = make_service(league_store, rules)
        await service.complete_matchup(1, 101.5, 97.2)

        record = await service.reassign_teams(1, 1, 3)

        # Team 3 inherits the losing score; team 2 no longer played
        assert record.winning_team_id == 1
        records = {row["team_id"]: row for row in league_store.rows(TEAM_RECORDS)}
        assert records[1]["wins"] == 1
        assert records[2]["losses"] == 0
        assert records[2]["win_percentage"] == 0.0


class TestSetOverride:

    @pytest.mark.asyncio
    async def test_clearing_override_unfreezes_scores(self, league_store, rules):
        service = make_service(league_store, rules)
        await service.record_scores(1, 50.0, 60.0)

        record = await service.set_override(1, False)

        assert record.is_manual_override is False
        assert record.scores_frozen is False
        # Stored scores are kept until the next sync replaces them
        assert record.team_1_score == 50.0

    @pytest.mark.asyncio
    async def test_enabling_override_keeps_freeze_state(self, league_store, rules):
        record = await make_service(league_store, rules).set_override(1, True)

        assert record.is_manual_override is True
        assert record.scores_frozen is False


class TestCompleteMatchup:

    @pytest.mark.asyncio
    async def test_completion_decides_winner_and_updates_standings(self, league_store, rules):
        record = await make_service(league_store, rules).complete_matchup(1, 101.5, 97.2)

        assert record.status == "complete"
        assert record.winning_team_id == 1
        assert record.completed_at is not None
        assert record.is_manual_override is True
        records = {row["team_id"]: row for row in league_store.rows(TEAM_RECORDS)}
        assert records[1]["wins"] == 1
        assert records[1]["points_for"] == 101.5
        assert records[2]["points_for"] == 97.2

    @pytest.mark.asyncio
    async def test_equal_scores_complete_as_tie(self, league_store, rules):
        record = await make_service(league_store, rules).complete_matchup(1, 95, 95, manual_override=False)

        assert record.winning_team_id is None
        assert record.is_manual_override is False
        ties = {row["team_id"]: row["ties"] for row in league_store.rows(TEAM_RECORDS)}
        assert ties[1] == ties[2] == 1

    @pytest.mark.asyncio
    async def test_standings_failure_rolls_back_completion(self, league_store, rules):
        league_store.fail_on.add("insert:team_records")

        with pytest.raises(StoreError):
            await make_service(league_store, rules).complete_matchup(1, 110.0, 90.0)

        matchup = league_store.row(MATCHUPS, 1)
        assert matchup["status"] == "pending"
        assert matchup["winning_team_id"] is None
        assert matchup["team_1_score"] == 0.0
        assert league_store.rows(TEAM_RECORDS) == []
        assert league_store.rollbacks == 1
