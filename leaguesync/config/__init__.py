"""Configuration for LeagueSync."""

from leaguesync.config.league import LeagueConfig, LeagueRules, SyncDefaults, get_league_config
from leaguesync.config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
    "LeagueConfig",
    "LeagueRules",
    "SyncDefaults",
    "get_league_config",
]
