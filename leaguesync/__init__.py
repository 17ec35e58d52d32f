"""LeagueSync: matchup reconciliation and standings synchronization."""

__version__ = "0.1.0"
