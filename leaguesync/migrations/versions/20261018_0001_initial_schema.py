"""Initial schema for LeagueSync.

Revision ID: 0001
Revises:
Create Date: 2026-10-18

Creates the league tables:
- seasons, conferences, teams
- team_conference_rosters (team <-> conference <-> provider roster junction)
- matchups (internally authoritative, admin-editable)
- team_records (derived, regenerated wholesale by the standings calculator)
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "seasons",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("season_name", sa.String(length=100), nullable=False),
        sa.Column("season_year", sa.Integer(), nullable=False),
        sa.Column("is_current", sa.Boolean(), nullable=True, default=False),
        sa.Column("current_week", sa.Integer(), nullable=True, default=1),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("season_year"),
    )

    op.create_table(
        "conferences",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("conference_name", sa.String(length=200), nullable=False),
        sa.Column("league_id", sa.String(length=50), nullable=False),
        sa.Column("season_id", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=True, default=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["season_id"], ["seasons.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("league_id"),
    )

    op.create_table(
        "teams",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("team_name", sa.String(length=200), nullable=False),
        sa.Column("owner_name", sa.String(length=200), nullable=True),
        sa.Column("owner_id", sa.String(length=50), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "team_conference_rosters",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("team_id", sa.Integer(), nullable=False),
        sa.Column("conference_id", sa.Integer(), nullable=False),
        sa.Column("roster_id", sa.String(length=50), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=True, default=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["team_id"], ["teams.id"]),
        sa.ForeignKeyConstraint(["conference_id"], ["conferences.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_team_conference_rosters_active",
        "team_conference_rosters",
        ["conference_id", "team_id"],
        postgresql_where=sa.text("is_active = true"),
    )

    op.create_table(
        "matchups",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("season_id", sa.Integer(), nullable=False),
        sa.Column("conference_id", sa.Integer(), nullable=False),
        sa.Column("week", sa.Integer(), nullable=False),
        sa.Column("team_1_id", sa.Integer(), nullable=False),
        sa.Column("team_2_id", sa.Integer(), nullable=False),
        sa.Column("team_1_score", sa.Float(), nullable=True, default=0.0),
        sa.Column("team_2_score", sa.Float(), nullable=True, default=0.0),
        sa.Column("winning_team_id", sa.Integer(), nullable=True),
        sa.Column("is_manual_override", sa.Boolean(), nullable=True, default=False),
        sa.Column("scores_frozen", sa.Boolean(), nullable=True, default=False),
        sa.Column("is_playoff", sa.Boolean(), nullable=True, default=False),
        sa.Column("status", sa.String(length=20), nullable=True, default="pending"),
        sa.Column("provider_matchup_id", sa.Integer(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["season_id"], ["seasons.id"]),
        sa.ForeignKeyConstraint(["conference_id"], ["conferences.id"]),
        sa.ForeignKeyConstraint(["team_1_id"], ["teams.id"]),
        sa.ForeignKeyConstraint(["team_2_id"], ["teams.id"]),
        sa.ForeignKeyConstraint(["winning_team_id"], ["teams.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_matchups_season_week", "matchups", ["season_id", "week"])
    op.create_index("idx_matchups_status", "matchups", ["status", "conference_id"])

    op.create_table(
        "team_records",
        sa.Column("season_id", sa.Integer(), nullable=False),
        sa.Column("conference_id", sa.Integer(), nullable=False),
        sa.Column("team_id", sa.Integer(), nullable=False),
        sa.Column("wins", sa.Integer(), nullable=True, default=0),
        sa.Column("losses", sa.Integer(), nullable=True, default=0),
        sa.Column("ties", sa.Integer(), nullable=True, default=0),
        sa.Column("points_for", sa.Float(), nullable=True, default=0.0),
        sa.Column("points_against", sa.Float(), nullable=True, default=0.0),
        sa.Column("win_percentage", sa.Float(), nullable=True, default=0.0),
        sa.Column("conference_rank", sa.Integer(), nullable=True),
        sa.Column("overall_rank", sa.Integer(), nullable=True),
        sa.Column("playoff_eligible", sa.Boolean(), nullable=True, default=False),
        sa.Column("is_conference_champion", sa.Boolean(), nullable=True, default=False),
        sa.Column("last_updated", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["season_id"], ["seasons.id"]),
        sa.ForeignKeyConstraint(["conference_id"], ["conferences.id"]),
        sa.ForeignKeyConstraint(["team_id"], ["teams.id"]),
        sa.PrimaryKeyConstraint("season_id", "conference_id", "team_id"),
    )
    op.create_index(
        "idx_team_records_overall", "team_records", ["season_id", "overall_rank"]
    )


def downgrade() -> None:
    op.drop_index("idx_team_records_overall", table_name="team_records")
    op.drop_table("team_records")
    op.drop_index("idx_matchups_status", table_name="matchups")
    op.drop_index("idx_matchups_season_week", table_name="matchups")
    op.drop_table("matchups")
    op.drop_index(
        "idx_team_conference_rosters_active", table_name="team_conference_rosters"
    )
    op.drop_table("team_conference_rosters")
    op.drop_table("teams")
    op.drop_table("conferences")
    op.drop_table("seasons")
