"""Record store module for LeagueSync."""

from leaguesync.services.store.base import (
    CONFERENCES,
    MATCHUPS,
    SEASONS,
    TEAM_CONFERENCE_ROSTERS,
    TEAM_RECORDS,
    TEAMS,
    Filter,
    OrderBy,
    Page,
    RecordStore,
    eq,
)

__all__ = [
    "RecordStore",
    "Filter",
    "OrderBy",
    "Page",
    "eq",
    "SEASONS",
    "CONFERENCES",
    "TEAMS",
    "TEAM_CONFERENCE_ROSTERS",
    "MATCHUPS",
    "TEAM_RECORDS",
]
