"""Database models for LeagueSync."""

from leaguesync.models.base import Base, async_session_factory, engine, get_db
from leaguesync.models.domain import (
    Conference,
    Matchup,
    Season,
    Team,
    TeamConferenceRoster,
    TeamRecord,
)

__all__ = [
    # Base
    "Base",
    "engine",
    "async_session_factory",
    "get_db",
    # Domain models
    "Season",
    "Conference",
    "Team",
    "TeamConferenceRoster",
    "Matchup",
    "TeamRecord",
]
