"""League rules and sync defaults.

Values come from defaults.yaml. Everything here has a default so that
services can be built without a config file (tests, scripts).
"""

from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any

from leaguesync.config.settings import get_settings


@dataclass
class LeagueRules:
    """Standings and validation rules for the league."""
    playoff_team_count: int = 4
    interconference_week_interval: int = 3
    regular_season_weeks: int = 12

    def is_interconference_week(self, week: int) -> bool:
        """Weeks where teams are expected to face another conference."""
        if self.interconference_week_interval <= 0:
            return False
        return week % self.interconference_week_interval == 0

    def is_playoff_week(self, week: int) -> bool:
        return week > self.regular_season_weeks


@dataclass
class SyncDefaults:
    """Defaults for the weekly auto-sync scheduler."""
    enabled: bool = False
    day_of_week: int = 2  # Tuesday (0 = Sunday)
    hour: int = 9
    minute: int = 0
    timezone: str = "America/New_York"
    history_limit: int = 100
    reschedule_delay_seconds: float = 5.0
    retry_backoff_seconds: float = 60.0
    max_concurrency: int = 3


@dataclass
class LeagueConfig:
    """Complete league configuration."""
    rules: LeagueRules = field(default_factory=LeagueRules)
    sync: SyncDefaults = field(default_factory=SyncDefaults)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LeagueConfig":
        """Build from the parsed defaults.yaml, ignoring unknown keys."""
        league = data.get("league", {}) or {}
        sync = data.get("sync", {}) or {}
        return cls(
            rules=LeagueRules(
                **{k: v for k, v in league.items() if k in LeagueRules.__dataclass_fields__}
            ),
            sync=SyncDefaults(
                **{k: v for k, v in sync.items() if k in SyncDefaults.__dataclass_fields__}
            ),
        )


@lru_cache
def get_league_config() -> LeagueConfig:
    """Get the league configuration loaded from defaults.yaml."""
    return LeagueConfig.from_dict(get_settings().load_defaults_config())
