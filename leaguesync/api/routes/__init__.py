"""API route modules."""

from leaguesync.api.routes import admin, health, matchups, standings, sync

__all__ = ["admin", "health", "matchups", "standings", "sync"]
