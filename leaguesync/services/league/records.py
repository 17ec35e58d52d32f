"""Typed views over store rows.

The store speaks plain dicts; the engine works on these dataclasses so that
optional provider/store fields are handled once, at the boundary.
"""

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any

from leaguesync.services.store.base import Row

# Matchup status values
PENDING = "pending"
IN_PROGRESS = "in_progress"
COMPLETE = "complete"
MATCHUP_STATUSES = (PENDING, IN_PROGRESS, COMPLETE)


@dataclass(frozen=True)
class SeasonInfo:
    id: int
    season_year: int
    current_week: int
    season_name: str = ""

    @classmethod
    def from_row(cls, row: Row) -> "SeasonInfo":
        return cls(
            id=row["id"],
            season_year=int(row["season_year"]),
            current_week=int(row.get("current_week") or 1),
            season_name=row.get("season_name") or "",
        )


@dataclass(frozen=True)
class ConferenceInfo:
    id: int
    conference_name: str
    league_id: str
    season_id: int
    is_active: bool = True

    @classmethod
    def from_row(cls, row: Row) -> "ConferenceInfo":
        return cls(
            id=row["id"],
            conference_name=row.get("conference_name") or f"Conference {row['id']}",
            league_id=str(row["league_id"]),
            season_id=row["season_id"],
            is_active=bool(row.get("is_active", True)),
        )


@dataclass
class MatchupRecord:
    """Internally authoritative matchup row."""

    id: int
    season_id: int
    conference_id: int
    week: int
    team_1_id: int
    team_2_id: int
    team_1_score: float = 0.0
    team_2_score: float = 0.0
    winning_team_id: int | None = None
    is_manual_override: bool = False
    scores_frozen: bool = False
    is_playoff: bool = False
    status: str = PENDING
    provider_matchup_id: int | None = None
    notes: str | None = None
    completed_at: datetime | None = None

    @classmethod
    def from_row(cls, row: Row) -> "MatchupRecord":
        return cls(
            id=row["id"],
            season_id=row["season_id"],
            conference_id=row["conference_id"],
            week=int(row["week"]),
            team_1_id=row["team_1_id"],
            team_2_id=row["team_2_id"],
            team_1_score=float(row.get("team_1_score") or 0.0),
            team_2_score=float(row.get("team_2_score") or 0.0),
            winning_team_id=row.get("winning_team_id"),
            is_manual_override=bool(row.get("is_manual_override")),
            scores_frozen=bool(row.get("scores_frozen")),
            is_playoff=bool(row.get("is_playoff")),
            status=row.get("status") or PENDING,
            provider_matchup_id=row.get("provider_matchup_id"),
            notes=row.get("notes"),
            completed_at=row.get("completed_at"),
        )

    @property
    def is_complete(self) -> bool:
        return self.status == COMPLETE

    def involves(self, team_id: int) -> bool:
        return team_id in (self.team_1_id, self.team_2_id)


@dataclass
class TeamStanding:
    """One regenerated team_records row."""

    season_id: int
    conference_id: int
    team_id: int
    wins: int = 0
    losses: int = 0
    ties: int = 0
    points_for: float = 0.0
    points_against: float = 0.0
    win_percentage: float = 0.0
    conference_rank: int | None = None
    overall_rank: int | None = None
    playoff_eligible: bool = False
    is_conference_champion: bool = False
    last_updated: datetime | None = None

    @classmethod
    def from_row(cls, row: Row) -> "TeamStanding":
        fields = cls.__dataclass_fields__
        return cls(**{k: v for k, v in row.items() if k in fields})

    @property
    def games_played(self) -> int:
        return self.wins + self.losses + self.ties

    def to_row(self) -> dict[str, Any]:
        return asdict(self)
