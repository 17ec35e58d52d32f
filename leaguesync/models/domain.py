"""Domain models for LeagueSync.

This module defines the database models for the multi-conference league.
Team records are DERIVED data - they are regenerated wholesale from complete
matchups and must never be patched by hand.
"""

from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from leaguesync.models.base import Base, TimestampMixin


class Season(Base, TimestampMixin):
    """
    A league season.

    Exactly one season is flagged current; the weekly sync only ever
    finalizes matchups for the current season's current week.
    """

    __tablename__ = "seasons"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    season_name: Mapped[str] = mapped_column(String(100), nullable=False)
    season_year: Mapped[int] = mapped_column(Integer, unique=True, nullable=False)
    is_current: Mapped[bool] = mapped_column(Boolean, default=False)
    current_week: Mapped[int] = mapped_column(Integer, default=1)

    conferences: Mapped[list["Conference"]] = relationship(
        "Conference", back_populates="season"
    )

    def __repr__(self) -> str:
        return f"<Season {self.season_year} (current={self.is_current})>"


class Conference(Base, TimestampMixin):
    """
    Sub-league grouping of teams.

    Each conference is backed by exactly one provider league. Conferences are
    immutable once games begin.
    """

    __tablename__ = "conferences"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    conference_name: Mapped[str] = mapped_column(String(200), nullable=False)
    league_id: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    season_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("seasons.id"), nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    season: Mapped["Season"] = relationship("Season", back_populates="conferences")

    def __repr__(self) -> str:
        return f"<Conference {self.conference_name} ({self.league_id})>"


class Team(Base, TimestampMixin):
    """Fantasy team. Linked to provider rosters only through the junction."""

    __tablename__ = "teams"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    team_name: Mapped[str] = mapped_column(String(200), nullable=False)
    owner_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    owner_id: Mapped[str | None] = mapped_column(
        String(50), nullable=True, doc="Provider user id of the owner"
    )

    def __repr__(self) -> str:
        return f"<Team {self.team_name}>"


class TeamConferenceRoster(Base, TimestampMixin):
    """
    Junction between teams, conferences and provider rosters.

    A team has at most one ACTIVE link per conference. The roster mapper
    treats duplicates as a data error instead of picking one.
    """

    __tablename__ = "team_conference_rosters"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    team_id: Mapped[int] = mapped_column(Integer, ForeignKey("teams.id"), nullable=False)
    conference_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("conferences.id"), nullable=False
    )
    roster_id: Mapped[str] = mapped_column(
        String(50), nullable=False, doc="Opaque provider roster id"
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    __table_args__ = (
        Index(
            "idx_team_conference_rosters_active",
            "conference_id",
            "team_id",
            postgresql_where=(is_active == True),
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<TeamConferenceRoster team={self.team_id} "
            f"conference={self.conference_id} roster={self.roster_id}>"
        )


class Matchup(Base, TimestampMixin):
    """
    One week's pairing between two teams.

    Internally authoritative and mutable. Created ahead of time by schedule
    generation or edited by an administrator. Once is_manual_override is set
    the recorded team assignment wins over provider data; scores_frozen
    additionally pins the recorded scores.
    """

    __tablename__ = "matchups"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    season_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("seasons.id"), nullable=False
    )
    conference_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("conferences.id"), nullable=False
    )
    week: Mapped[int] = mapped_column(Integer, nullable=False)
    team_1_id: Mapped[int] = mapped_column(Integer, ForeignKey("teams.id"), nullable=False)
    team_2_id: Mapped[int] = mapped_column(Integer, ForeignKey("teams.id"), nullable=False)
    team_1_score: Mapped[float] = mapped_column(Float, default=0.0)
    team_2_score: Mapped[float] = mapped_column(Float, default=0.0)
    winning_team_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("teams.id"),
        nullable=True,
        doc="NULL means tie or not yet decided",
    )
    is_manual_override: Mapped[bool] = mapped_column(Boolean, default=False)
    scores_frozen: Mapped[bool] = mapped_column(Boolean, default=False)
    is_playoff: Mapped[bool] = mapped_column(Boolean, default=False)
    status: Mapped[str] = mapped_column(
        String(20), default="pending", doc="'pending', 'in_progress', 'complete'"
    )
    provider_matchup_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        Index("idx_matchups_season_week", "season_id", "week"),
        Index("idx_matchups_status", "status", "conference_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<Matchup week={self.week} {self.team_1_id} vs {self.team_2_id} "
            f"status={self.status}>"
        )


class TeamRecord(Base):
    """
    Derived won-loss-tied aggregate and ranking for a team.

    Keyed by its natural key so that regenerating a scope yields identical
    rows. last_updated is the latest completion time of the matchups that
    were folded in, not the wall clock.
    """

    __tablename__ = "team_records"

    season_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("seasons.id"), primary_key=True
    )
    conference_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("conferences.id"), primary_key=True
    )
    team_id: Mapped[int] = mapped_column(Integer, ForeignKey("teams.id"), primary_key=True)
    wins: Mapped[int] = mapped_column(Integer, default=0)
    losses: Mapped[int] = mapped_column(Integer, default=0)
    ties: Mapped[int] = mapped_column(Integer, default=0)
    points_for: Mapped[float] = mapped_column(Float, default=0.0)
    points_against: Mapped[float] = mapped_column(Float, default=0.0)
    win_percentage: Mapped[float] = mapped_column(Float, default=0.0)
    conference_rank: Mapped[int | None] = mapped_column(Integer, nullable=True)
    overall_rank: Mapped[int | None] = mapped_column(Integer, nullable=True)
    playoff_eligible: Mapped[bool] = mapped_column(Boolean, default=False)
    is_conference_champion: Mapped[bool] = mapped_column(Boolean, default=False)
    last_updated: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        UniqueConstraint("season_id", "conference_id", "team_id"),
        Index("idx_team_records_overall", "season_id", "overall_rank"),
    )

    def __repr__(self) -> str:
        return (
            f"<TeamRecord team={self.team_id} {self.wins}-{self.losses}-{self.ties}>"
        )
