"""Sleeper API client module."""

from leaguesync.services.sleeper_client.api import (
    LeagueState,
    LeagueUser,
    Roster,
    RosterMatchup,
    SleeperAPIError,
    SleeperClient,
    SleeperErrorType,
)
from leaguesync.services.sleeper_client.rate_limiter import SleeperRateLimiter

__all__ = [
    "SleeperClient",
    "SleeperAPIError",
    "SleeperErrorType",
    "SleeperRateLimiter",
    "RosterMatchup",
    "Roster",
    "LeagueUser",
    "LeagueState",
]
