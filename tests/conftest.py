"""Pytest configuration and fixtures for LeagueSync tests."""

import pytest

from leaguesync.config.league import LeagueRules, SyncDefaults
from tests.fakes import FakeProvider, InMemoryStore, roster_entry, seed_league


@pytest.fixture
def rules():
    return LeagueRules(playoff_team_count=4, interconference_week_interval=3, regular_season_weeks=12)


@pytest.fixture
def sync_defaults():
    return SyncDefaults(
        enabled=False,
        history_limit=3,
        reschedule_delay_seconds=0.01,
        retry_backoff_seconds=0.01,
        max_concurrency=2,
    )


@pytest.fixture
def league_store():
    """Two-conference 2024 season; see seed_league."""
    return seed_league(InMemoryStore())


@pytest.fixture
def provider():
    """Week 3 scores for both leagues."""
    return FakeProvider(
        snapshots={
            ("L1", 3): [
                roster_entry("10", 101.5, matchup_id=1, starters=["p1", "p2"]),
                roster_entry("11", 97.2, matchup_id=1, starters=["p3"]),
            ],
            ("L2", 3): [
                roster_entry("10", 88.0, matchup_id=1),
                roster_entry("11", 120.25, matchup_id=1),
            ],
        }
    )
