"""Matchup outcome rules.

Winner selection, matchup phase and win percentage. determine_winner is
shared by the sync pipeline and the admin completion workflow.
"""

from typing import Literal

MatchupPhase = Literal["upcoming", "live", "completed"]


def determine_winner(
    team_1_id: int,
    team_2_id: int,
    team_1_score: float,
    team_2_score: float,
) -> int | None:
    """
    Strict score comparison.

    Returns:
        The winning team id, or None for a tie.
    """
    if team_1_score > team_2_score:
        return team_1_id
    if team_2_score > team_1_score:
        return team_2_id
    return None


def derive_status(
    week: int,
    current_week: int,
    season_year: int,
    current_year: int,
    has_points: bool,
) -> MatchupPhase:
    """
    Display status of a matchup.

    Historical seasons are always final. Otherwise the requested week is
    compared with the current week; the current week is live once either
    team has scored.
    """
    if season_year < current_year:
        return "completed"
    if week > current_week:
        return "upcoming"
    if week < current_week:
        return "completed"
    return "live" if has_points else "upcoming"


def win_percentage(wins: int, losses: int, ties: int) -> float:
    """Wins over games played; 0.0 when no games were played."""
    games = wins + losses + ties
    if games == 0:
        return 0.0
    return wins / games
