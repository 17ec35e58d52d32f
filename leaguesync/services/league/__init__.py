"""Matchup reconciliation and standings."""

from leaguesync.services.league.outcome import derive_status, determine_winner, win_percentage
from leaguesync.services.league.overrides import MatchupOverrideService
from leaguesync.services.league.records import (
    COMPLETE,
    IN_PROGRESS,
    PENDING,
    ConferenceInfo,
    MatchupRecord,
    SeasonInfo,
    TeamStanding,
)
from leaguesync.services.league.resolver import (
    HybridMatchup,
    HybridTeam,
    MatchupResolver,
    ResolutionContext,
    SnapshotResult,
)
from leaguesync.services.league.roster_map import RosterLink, RosterMap, build_roster_map
from leaguesync.services.league.standings import StandingsCalculator, StandingsRow, StandingsUpdate

__all__ = [
    "COMPLETE",
    "IN_PROGRESS",
    "PENDING",
    "ConferenceInfo",
    "HybridMatchup",
    "HybridTeam",
    "MatchupOverrideService",
    "MatchupRecord",
    "MatchupResolver",
    "ResolutionContext",
    "RosterLink",
    "RosterMap",
    "SeasonInfo",
    "SnapshotResult",
    "StandingsCalculator",
    "StandingsUpdate",
    "StandingsRow",
    "TeamStanding",
    "build_roster_map",
    "derive_status",
    "determine_winner",
    "win_percentage",
]
