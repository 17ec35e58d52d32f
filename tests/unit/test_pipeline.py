"""Unit tests for the weekly finalization pipeline.

CRITICAL TESTS:
- Pending matchups of the current week are finalized with provider scores
- A failing conference does not stop the others (partial outcome)
- Frozen override scores survive finalization
- Overall ranks after a concurrent run match a fresh recompute
"""

import pytest

from leaguesync.services.errors import ConfigurationError
from leaguesync.services.league.standings import StandingsCalculator
from leaguesync.services.store.base import CONFERENCES, MATCHUPS, SEASONS, TEAM_RECORDS
from leaguesync.services.sync.pipeline import SyncPipeline, classify_outcome
from tests.fakes import InMemoryStore, YieldingStore, matchup_row, seed_league, store_factory_for


def make_pipeline(store, provider, rules):
    return SyncPipeline(store_factory_for(store), provider, rules, max_concurrency=2)


class TestClassifyOutcome:

    def test_no_errors_is_success(self):
        assert classify_outcome([], 0) == "success"

    def test_errors_with_progress_is_partial(self):
        assert classify_outcome(["boom"], 3) == "partial"

    def test_errors_without_progress_is_failed(self):
        assert classify_outcome(["boom"], 0) == "failed"


class TestRun:

    @pytest.mark.asyncio
    async def test_finalizes_current_week(self, league_store, provider, rules):
        result = await make_pipeline(league_store, provider, rules).run()

        matchup = league_store.row(MATCHUPS, 1)
        assert matchup["status"] == "complete"
        assert (matchup["team_1_score"], matchup["team_2_score"]) == (101.5, 97.2)
        assert matchup["winning_team_id"] == 1
        assert matchup["completed_at"] is not None
        assert league_store.row(MATCHUPS, 2)["winning_team_id"] == 4

        assert result.outcome == "success"
        assert result.week == 3
        assert result.matchups_processed == 2
        assert result.records_updated == 4

        records = {row["team_id"]: row for row in league_store.rows(TEAM_RECORDS)}
        assert records[1]["wins"] == 1
        assert records[1]["points_for"] == 101.5
        assert records[2]["points_for"] == 97.2

    @pytest.mark.asyncio
    async def test_other_weeks_and_complete_matchups_untouched(self, league_store, provider, rules):
        league_store.seed(
            MATCHUPS,
            matchup_row(3, 1, 1, 2, week=4),
            matchup_row(4, 1, 2, 1, week=3, status="complete", team_1_score=1.0, team_2_score=2.0, winning_team_id=1),
        )

        result = await make_pipeline(league_store, provider, rules).run()

        assert league_store.row(MATCHUPS, 3)["status"] == "pending"
        assert league_store.row(MATCHUPS, 4)["team_1_score"] == 1.0
        assert result.matchups_processed == 2

    @pytest.mark.asyncio
    async def test_failing_league_gives_partial_outcome(self, league_store, provider, rules):
        provider.failing_leagues.add("L2")

        result = await make_pipeline(league_store, provider, rules).run()

        assert result.outcome == "partial"
        assert league_store.row(MATCHUPS, 1)["status"] == "complete"
        assert league_store.row(MATCHUPS, 2)["status"] == "pending"
        assert len(result.errors) == 1
        assert "Mavericks" in result.errors[0]
        # Standings still recomputed for the failing conference
        assert {row["conference_id"] for row in league_store.rows(TEAM_RECORDS)} == {1, 2}

    @pytest.mark.asyncio
    async def test_every_league_failing_is_failed(self, league_store, provider, rules):
        provider.failing_leagues.update({"L1", "L2"})

        result = await make_pipeline(league_store, provider, rules).run()

        assert result.outcome == "failed"
        assert result.matchups_processed == 0
        assert len(result.errors) == 2

    @pytest.mark.asyncio
    async def test_conference_store_failure_is_recorded(self, league_store, provider, rules):
        league_store.fail_on.add("query:team_conference_rosters")

        result = await make_pipeline(league_store, provider, rules).run()

        assert result.outcome == "failed"
        assert len(result.errors) == 2

    @pytest.mark.asyncio
    async def test_frozen_override_scores_kept(self, league_store, provider, rules):
        league_store.tables[MATCHUPS][0].update(
            team_1_score=50.0, team_2_score=60.0, is_manual_override=True, scores_frozen=True
        )

        await make_pipeline(league_store, provider, rules).run()

        matchup = league_store.row(MATCHUPS, 1)
        assert (matchup["team_1_score"], matchup["team_2_score"]) == (50.0, 60.0)
        assert matchup["winning_team_id"] == 2
        assert matchup["status"] == "complete"

    @pytest.mark.asyncio
    async def test_unfrozen_override_scores_refreshed(self, league_store, provider, rules):
        league_store.tables[MATCHUPS][0].update(
            team_1_score=50.0, team_2_score=60.0, is_manual_override=True
        )

        await make_pipeline(league_store, provider, rules).run()

        matchup = league_store.row(MATCHUPS, 1)
        assert (matchup["team_1_score"], matchup["team_2_score"]) == (101.5, 97.2)
        assert matchup["is_manual_override"] is True

    @pytest.mark.asyncio
    async def test_inactive_conference_skipped(self, league_store, provider, rules):
        league_store.tables[CONFERENCES][1]["is_active"] = False

        result = await make_pipeline(league_store, provider, rules).run()

        assert [c.conference_id for c in result.conferences] == [1]
        assert league_store.row(MATCHUPS, 2)["status"] == "pending"

    @pytest.mark.asyncio
    async def test_progress_reported(self, league_store, provider, rules):
        steps = []

        await make_pipeline(league_store, provider, rules).run(
            progress=lambda step, processed, total: steps.append((step, processed, total))
        )

        assert steps[0][0] == "Processing 2 conferences for week 3"
        assert steps[-1][1] == 2
        assert any(step.startswith("Recomputing standings") for step, _, _ in steps)

    @pytest.mark.asyncio
    async def test_no_current_season(self, provider, rules):
        store = InMemoryStore().seed(
            SEASONS,
            {"id": 1, "season_name": "2023", "season_year": 2023, "is_current": False, "current_week": 17},
        )

        with pytest.raises(ConfigurationError, match="No current season"):
            await make_pipeline(store, provider, rules).run()

    @pytest.mark.asyncio
    async def test_no_active_conferences(self, league_store, provider, rules):
        for conference in league_store.tables[CONFERENCES]:
            conference["is_active"] = False

        with pytest.raises(ConfigurationError):
            await make_pipeline(league_store, provider, rules).run()


class TestOverallRanking:
    """Overall ranks pool every conference once all of them are written."""

    @staticmethod
    def overall_ranks(store):
        return {row["team_id"]: row["overall_rank"] for row in store.rows(TEAM_RECORDS)}

    @pytest.mark.asyncio
    async def test_concurrent_conferences_match_fresh_recompute(self, provider, rules):
        store = seed_league(YieldingStore())

        result = await make_pipeline(store, provider, rules).run()

        assert result.outcome == "success"
        after_sync = self.overall_ranks(store)
        # 1-0 teams by points for, then 0-1 teams by points for
        assert after_sync == {4: 1, 1: 2, 2: 3, 3: 4}

        await StandingsCalculator(store, rules).recompute(1)
        assert self.overall_ranks(store) == after_sync

    @pytest.mark.asyncio
    async def test_ranks_cover_inactive_conference_rows(self, league_store, provider, rules):
        league_store.tables[CONFERENCES][1]["is_active"] = False
        league_store.seed(
            TEAM_RECORDS,
            {"season_id": 1, "conference_id": 2, "team_id": 3, "wins": 2, "win_percentage": 1.0, "points_for": 250.0, "overall_rank": 1},
            {"season_id": 1, "conference_id": 2, "team_id": 4, "wins": 0, "losses": 2, "win_percentage": 0.0, "points_for": 150.0, "overall_rank": 2},
        )

        await make_pipeline(league_store, provider, rules).run()

        assert self.overall_ranks(league_store) == {3: 1, 1: 2, 4: 3, 2: 4}

    @pytest.mark.asyncio
    async def test_ranking_failure_is_recorded(self, league_store, provider, rules):
        league_store.fail_on.add("update:team_records")

        result = await make_pipeline(league_store, provider, rules).run()

        assert result.outcome == "partial"
        assert result.matchups_processed == 2
        assert result.errors == ["Overall ranking: update on team_records failed"]
        assert league_store.row(MATCHUPS, 1)["status"] == "complete"
