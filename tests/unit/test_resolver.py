"""Unit tests for the matchup resolver.

CRITICAL TESTS:
- Overridden matchups always report their stored scores, even when the
  provider fails
- Non-overridden matchups take provider scores; missing rosters score zero
- Conferences without records fall back to provider pairings
"""

import pytest

from leaguesync.services.errors import ConfigurationError, MappingError, ProviderError
from leaguesync.services.league.records import ConferenceInfo, MatchupRecord, SeasonInfo
from leaguesync.services.league.resolver import MatchupResolver, ResolutionContext
from leaguesync.services.league.roster_map import build_roster_map
from leaguesync.services.store.base import SEASONS
from tests.fakes import FakeProvider, matchup_row, roster_entry

LEGENDS = ConferenceInfo(id=1, conference_name="Legends", league_id="L1", season_id=1)
MAVERICKS = ConferenceInfo(id=2, conference_name="Mavericks", league_id="L2", season_id=1)


def make_context(current_week=3, current_year=2024, season_year=2024):
    return ResolutionContext(
        current_week=current_week,
        current_year=current_year,
        season_year=season_year,
        conferences={1: LEGENDS, 2: MAVERICKS},
    )


class TestResolve:
    """Single matchup resolution and precedence."""

    @pytest.mark.asyncio
    async def test_provider_scores_used_without_override(self, league_store, provider, rules):
        roster_map = await build_roster_map(league_store)
        record = MatchupRecord.from_row(matchup_row(1, 1, 1, 2))

        matchup = await MatchupResolver(provider, rules).resolve(
            record, LEGENDS, roster_map, make_context()
        )

        assert matchup.team_1.points == 101.5
        assert matchup.team_2.points == 97.2
        assert matchup.team_1.roster_id == "10"
        assert matchup.team_1.starters == ["p1", "p2"]
        assert matchup.data_source == "hybrid"
        assert matchup.status == "live"
        assert matchup.warnings == []

    @pytest.mark.asyncio
    async def test_override_uses_stored_scores(self, league_store, provider, rules):
        roster_map = await build_roster_map(league_store)
        record = MatchupRecord.from_row(
            matchup_row(1, 1, 1, 2, team_1_score=50.0, team_2_score=60.0, is_manual_override=True)
        )

        matchup = await MatchupResolver(provider, rules).resolve(
            record, LEGENDS, roster_map, make_context()
        )

        assert (matchup.team_1.points, matchup.team_2.points) == (50.0, 60.0)
        # Provider detail is still attached for display
        assert matchup.team_1.starters == ["p1", "p2"]
        assert matchup.data_source == "hybrid"
        assert matchup.manual_override is True
        assert "Manual override applied" in matchup.warnings

    @pytest.mark.asyncio
    async def test_override_survives_provider_failure(self, league_store, provider, rules):
        provider.failing_leagues.add("L1")
        roster_map = await build_roster_map(league_store)
        record = MatchupRecord.from_row(
            matchup_row(1, 1, 1, 2, team_1_score=50.0, team_2_score=60.0, is_manual_override=True)
        )

        matchup = await MatchupResolver(provider, rules).resolve(
            record, LEGENDS, roster_map, make_context()
        )

        assert (matchup.team_1.points, matchup.team_2.points) == (50.0, 60.0)
        assert matchup.team_1.starters == []
        assert matchup.team_1.players_points == {}
        assert matchup.data_source == "database"

    @pytest.mark.asyncio
    async def test_provider_failure_without_override_raises(self, league_store, provider, rules):
        provider.failing_leagues.add("L1")
        roster_map = await build_roster_map(league_store)
        record = MatchupRecord.from_row(matchup_row(1, 1, 1, 2))

        with pytest.raises(ProviderError):
            await MatchupResolver(provider, rules).resolve(
                record, LEGENDS, roster_map, make_context()
            )

    @pytest.mark.asyncio
    async def test_roster_missing_from_snapshot_scores_zero(self, league_store, rules):
        provider = FakeProvider({("L1", 3): [roster_entry("10", 77.7)]})
        roster_map = await build_roster_map(league_store)
        record = MatchupRecord.from_row(matchup_row(1, 1, 1, 2))

        matchup = await MatchupResolver(provider, rules).resolve(
            record, LEGENDS, roster_map, make_context()
        )

        assert matchup.team_1.points == 77.7
        assert matchup.team_2.points == 0.0

    @pytest.mark.asyncio
    async def test_unmapped_team_raises_mapping_error(self, league_store, provider, rules):
        roster_map = await build_roster_map(league_store)
        record = MatchupRecord.from_row(matchup_row(9, 1, 1, 42))

        with pytest.raises(MappingError):
            await MatchupResolver(provider, rules).resolve(
                record, LEGENDS, roster_map, make_context()
            )

    @pytest.mark.asyncio
    async def test_bypass_override_refreshes_unfrozen_scores(self, league_store, provider, rules):
        roster_map = await build_roster_map(league_store)
        record = MatchupRecord.from_row(
            matchup_row(1, 1, 1, 2, team_1_score=50.0, team_2_score=60.0, is_manual_override=True)
        )

        matchup = await MatchupResolver(provider, rules).resolve(
            record, LEGENDS, roster_map, make_context(), bypass_override=True
        )

        assert (matchup.team_1.points, matchup.team_2.points) == (101.5, 97.2)

    @pytest.mark.asyncio
    async def test_bypass_override_keeps_frozen_scores(self, league_store, provider, rules):
        roster_map = await build_roster_map(league_store)
        record = MatchupRecord.from_row(
            matchup_row(
                1, 1, 1, 2,
                team_1_score=50.0,
                team_2_score=60.0,
                is_manual_override=True,
                scores_frozen=True,
            )
        )

        matchup = await MatchupResolver(provider, rules).resolve(
            record, LEGENDS, roster_map, make_context(), bypass_override=True
        )

        assert (matchup.team_1.points, matchup.team_2.points) == (50.0, 60.0)

    @pytest.mark.asyncio
    async def test_interconference_pair_reads_each_league(self, league_store, provider, rules):
        roster_map = await build_roster_map(league_store)
        # Team 1 (L1 roster 10) vs team 4 (L2 roster 11), filed under conference 1
        record = MatchupRecord.from_row(matchup_row(5, 1, 1, 4))

        matchup = await MatchupResolver(provider, rules).resolve(
            record, LEGENDS, roster_map, make_context()
        )

        assert matchup.is_interconference is True
        assert matchup.team_1.points == 101.5
        assert matchup.team_2.points == 120.25
        # Week 3 is an interconference week
        assert matchup.warnings == []

    @pytest.mark.asyncio
    async def test_interconference_pair_outside_interconference_week_warns(self, league_store, rules):
        provider = FakeProvider(week=4)
        roster_map = await build_roster_map(league_store)
        record = MatchupRecord.from_row(matchup_row(5, 1, 1, 4, week=4))

        matchup = await MatchupResolver(provider, rules).resolve(
            record, LEGENDS, roster_map, make_context(current_week=4)
        )

        assert len(matchup.warnings) == 1
        assert "not an interconference week" in matchup.warnings[0]

    @pytest.mark.asyncio
    async def test_snapshots_are_cached_per_league_week(self, league_store, provider, rules):
        roster_map = await build_roster_map(league_store)
        resolver = MatchupResolver(provider, rules)
        context = make_context()

        for _ in range(3):
            await resolver.resolve(
                MatchupRecord.from_row(matchup_row(1, 1, 1, 2)), LEGENDS, roster_map, context
            )

        assert provider.calls == [("L1", 3)]

    @pytest.mark.asyncio
    async def test_past_week_is_completed(self, league_store, provider, rules):
        roster_map = await build_roster_map(league_store)
        record = MatchupRecord.from_row(matchup_row(1, 1, 1, 2))

        matchup = await MatchupResolver(provider, rules).resolve(
            record, LEGENDS, roster_map, make_context(current_week=6)
        )

        assert matchup.status == "completed"


class TestResolveWeek:
    """Whole-week resolution against the store."""

    @pytest.mark.asyncio
    async def test_resolves_every_conference(self, league_store, provider, rules):
        matchups = await MatchupResolver(provider, rules).resolve_week(league_store, 1, 3)

        assert [m.matchup_id for m in matchups] == [1, 2]
        assert matchups[1].team_1.points == 88.0
        assert matchups[1].team_2.points == 120.25

    @pytest.mark.asyncio
    async def test_single_conference_filter(self, league_store, provider, rules):
        matchups = await MatchupResolver(provider, rules).resolve_week(
            league_store, 1, 3, conference_id=2
        )

        assert [m.conference_id for m in matchups] == [2]

    @pytest.mark.asyncio
    async def test_failing_matchup_is_skipped(self, league_store, provider, rules):
        provider.failing_leagues.add("L2")

        matchups = await MatchupResolver(provider, rules).resolve_week(league_store, 1, 3)

        assert [m.matchup_id for m in matchups] == [1]

    @pytest.mark.asyncio
    async def test_falls_back_to_provider_pairings(self, league_store, rules):
        provider = FakeProvider(
            {
                ("L1", 4): [
                    roster_entry("10", 110.0, matchup_id=2),
                    roster_entry("11", 90.0, matchup_id=2),
                    # Odd group: skipped
                    roster_entry("99", 50.0, matchup_id=3),
                ],
            },
            week=4,
        )

        matchups = await MatchupResolver(provider, rules).resolve_week(
            league_store, 1, 4, conference_id=1
        )

        assert len(matchups) == 1
        matchup = matchups[0]
        assert matchup.data_source == "provider"
        assert matchup.manual_override is False
        assert matchup.matchup_id is None
        assert matchup.provider_matchup_id == 2
        assert (matchup.team_1.team_id, matchup.team_2.team_id) == (1, 2)
        assert (matchup.team_1.points, matchup.team_2.points) == (110.0, 90.0)
        assert matchup.status == "live"

    @pytest.mark.asyncio
    async def test_unmapped_provider_pairings_are_skipped(self, league_store, rules):
        provider = FakeProvider(
            {
                ("L1", 4): [
                    roster_entry("10", 110.0, matchup_id=2),
                    roster_entry("55", 90.0, matchup_id=2),
                ],
            },
            week=4,
        )

        matchups = await MatchupResolver(provider, rules).resolve_week(
            league_store, 1, 4, conference_id=1
        )

        assert matchups == []

    @pytest.mark.asyncio
    async def test_current_week_falls_back_to_season_row(self, league_store, provider, rules):
        provider.state_fails = True

        matchups = await MatchupResolver(provider, rules).resolve_week(league_store, 1, 3)

        # Season row says week 3 and both matchups have points
        assert {m.status for m in matchups} == {"live"}

    @pytest.mark.asyncio
    async def test_context_for_historical_season(self, league_store, rules):
        league_store.seed(
            SEASONS,
            {"id": 2, "season_name": "2022", "season_year": 2022, "is_current": False, "current_week": 17},
        )
        season = SeasonInfo.from_row(await league_store.get(SEASONS, 2))

        context = await MatchupResolver(FakeProvider(week=1, season=2024), rules).build_context(
            league_store, season, [LEGENDS]
        )

        assert (context.current_year, context.season_year) == (2024, 2022)

    @pytest.mark.asyncio
    async def test_unknown_season_raises(self, league_store, provider, rules):
        with pytest.raises(ConfigurationError):
            await MatchupResolver(provider, rules).resolve_week(league_store, 99, 3)

