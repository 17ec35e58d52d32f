"""Standings calculation.

team_records rows are a pure function of the season's complete matchups.
Every recompute deletes the rows for its scope and regenerates them inside
one store transaction; rows are never patched incrementally.

Ranking: win percentage desc, then points for desc, then team id asc.
"""

from dataclasses import dataclass, field

import structlog

from leaguesync.config.league import LeagueRules, get_league_config
from leaguesync.services.errors import ConfigurationError
from leaguesync.services.league.outcome import win_percentage
from leaguesync.services.league.records import (
    COMPLETE,
    ConferenceInfo,
    MatchupRecord,
    TeamStanding,
)
from leaguesync.services.league.roster_map import RosterMap, build_roster_map
from leaguesync.services.store.base import (
    CONFERENCES,
    MATCHUPS,
    SEASONS,
    TEAM_RECORDS,
    TEAMS,
    Filter,
    OrderBy,
    RecordStore,
    eq,
)

logger = structlog.get_logger(__name__)


def standings_sort_key(standing: TeamStanding) -> tuple[float, float, int]:
    return (-standing.win_percentage, -standing.points_for, standing.team_id)


@dataclass
class StandingsUpdate:
    """Rows to write for one recompute scope."""

    season_id: int
    scope: list[int]
    regenerated: list[TeamStanding] = field(default_factory=list)
    others: list[TeamStanding] = field(default_factory=list)
    matchups: int = 0


@dataclass
class StandingsRow:
    """A team record joined with team and conference names."""

    team_id: int
    team_name: str
    owner_name: str | None
    conference_id: int
    conference_name: str
    wins: int
    losses: int
    ties: int
    points_for: float
    points_against: float
    win_percentage: float
    conference_rank: int | None
    overall_rank: int | None
    playoff_eligible: bool
    is_conference_champion: bool


class StandingsCalculator:
    """Folds complete matchups into ranked team records."""

    def __init__(self, store: RecordStore, rules: LeagueRules | None = None):
        self.store = store
        self.rules = rules or get_league_config().rules

    async def _season_conferences(self, season_id: int) -> list[ConferenceInfo]:
        if await self.store.get(SEASONS, season_id) is None:
            raise ConfigurationError(f"Season {season_id} not found")
        rows = await self.store.query_all(
            CONFERENCES, [eq("season_id", season_id)], order_by=OrderBy("id")
        )
        return [ConferenceInfo.from_row(row) for row in rows]

    def fold(
        self,
        season_id: int,
        scope: list[int],
        matchups: list[MatchupRecord],
        roster_map: RosterMap,
    ) -> dict[tuple[int, int], TeamStanding]:
        """
        Build one accumulator per (team, conference) in scope and fold every
        complete matchup into both sides.

        A side counts toward its link in the matchup's conference, or its
        home conference when it played outside it.
        """
        accumulators: dict[tuple[int, int], TeamStanding] = {}
        for conference_id in scope:
            for team_id in roster_map.team_ids(conference_id):
                accumulators[(team_id, conference_id)] = TeamStanding(
                    season_id=season_id,
                    conference_id=conference_id,
                    team_id=team_id,
                )

        for matchup in sorted(matchups, key=lambda m: m.id):
            if not matchup.is_complete:
                continue
            sides = (
                (matchup.team_1_id, matchup.team_1_score, matchup.team_2_score),
                (matchup.team_2_id, matchup.team_2_score, matchup.team_1_score),
            )
            for team_id, scored, conceded in sides:
                link = roster_map.resolve_team(team_id, matchup.conference_id)
                conference_id = link.conference_id if link else matchup.conference_id
                standing = accumulators.get((team_id, conference_id))
                if standing is None:
                    continue
                standing.points_for += scored
                standing.points_against += conceded
                if matchup.winning_team_id is None:
                    standing.ties += 1
                elif matchup.winning_team_id == team_id:
                    standing.wins += 1
                else:
                    standing.losses += 1
                if matchup.completed_at is not None and (
                    standing.last_updated is None or matchup.completed_at > standing.last_updated
                ):
                    standing.last_updated = matchup.completed_at

        for standing in accumulators.values():
            standing.points_for = round(standing.points_for, 2)
            standing.points_against = round(standing.points_against, 2)
            standing.win_percentage = win_percentage(
                standing.wins, standing.losses, standing.ties
            )
        return accumulators

    def rank_conference(self, standings: list[TeamStanding]) -> list[TeamStanding]:
        ranked = sorted(standings, key=standings_sort_key)
        for position, standing in enumerate(ranked, start=1):
            standing.conference_rank = position
            standing.playoff_eligible = position <= self.rules.playoff_team_count
        return ranked

    @staticmethod
    def rank_overall(standings: list[TeamStanding]) -> list[TeamStanding]:
        ranked = sorted(standings, key=standings_sort_key)
        for position, standing in enumerate(ranked, start=1):
            standing.overall_rank = position
        return ranked

    async def prepare(
        self,
        season_id: int,
        conference_id: int | None = None,
        roster_map: RosterMap | None = None,
        update_overall: bool = True,
    ) -> StandingsUpdate:
        """
        Load complete matchups and build the regenerated rows for a scope.

        With update_overall set, other conferences' stored rows are read back
        and the whole pool is ranked overall. Without it, regenerated rows
        carry no overall rank until refresh_overall_ranks() runs.

        Raises:
            ConfigurationError: Unknown season or conference
            StoreError: A load failed
        """
        conferences = await self._season_conferences(season_id)
        season_conference_ids = [c.id for c in conferences]
        if conference_id is not None:
            if conference_id not in season_conference_ids:
                raise ConfigurationError(
                    f"Conference {conference_id} is not part of season {season_id}"
                )
            scope = [conference_id]
        else:
            scope = season_conference_ids

        if roster_map is None:
            roster_map = await build_roster_map(self.store, season_conference_ids)

        rows = await self.store.query_all(
            MATCHUPS,
            [eq("season_id", season_id), eq("status", COMPLETE)],
            order_by=OrderBy("id"),
        )
        matchups = [MatchupRecord.from_row(row) for row in rows]
        accumulators = self.fold(season_id, scope, matchups, roster_map)

        regenerated: list[TeamStanding] = []
        for scope_id in scope:
            regenerated.extend(
                self.rank_conference(
                    [s for (_, c), s in accumulators.items() if c == scope_id]
                )
            )

        others: list[TeamStanding] = []
        out_of_scope = [c for c in season_conference_ids if c not in scope]
        if update_overall:
            if out_of_scope:
                other_rows = await self.store.query_all(
                    TEAM_RECORDS,
                    [eq("season_id", season_id), Filter("conference_id", "in", out_of_scope)],
                )
                others = [TeamStanding.from_row(row) for row in other_rows]
            self.rank_overall(regenerated + others)

        return StandingsUpdate(
            season_id=season_id,
            scope=scope,
            regenerated=regenerated,
            others=others,
            matchups=len(matchups),
        )

    async def apply(self, update: StandingsUpdate) -> None:
        """Write a prepared update. Callers own the transaction."""
        for scope_id in update.scope:
            await self.store.delete(
                TEAM_RECORDS,
                [eq("season_id", update.season_id), eq("conference_id", scope_id)],
            )
        for standing in update.regenerated:
            await self.store.insert(TEAM_RECORDS, standing.to_row())
        await self._write_overall_ranks(update.season_id, update.others)

    async def _write_overall_ranks(self, season_id: int, standings: list[TeamStanding]) -> None:
        for standing in standings:
            await self.store.update_where(
                TEAM_RECORDS,
                [
                    eq("season_id", season_id),
                    eq("conference_id", standing.conference_id),
                    eq("team_id", standing.team_id),
                ],
                {"overall_rank": standing.overall_rank},
            )

    async def recompute(
        self,
        season_id: int,
        conference_id: int | None = None,
        roster_map: RosterMap | None = None,
        update_overall: bool = True,
    ) -> list[TeamStanding]:
        """
        Regenerate team records for a season, or one conference of it.

        Other conferences of the season keep their rows; only their
        overall_rank is refreshed against the new pool.

        Raises:
            ConfigurationError: Unknown season or conference
            StoreError: Any load or write failed (nothing is written)
        """
        update = await self.prepare(season_id, conference_id, roster_map, update_overall)
        try:
            async with self.store.atomic():
                await self.apply(update)
        except Exception as e:
            logger.error(
                "standings_recompute_failed",
                season_id=season_id,
                conference_id=conference_id,
                error=str(e),
            )
            raise

        logger.info(
            "standings_recomputed",
            season_id=season_id,
            conference_id=conference_id,
            teams=len(update.regenerated),
            matchups=update.matchups,
        )
        return update.regenerated

    async def refresh_overall_ranks(self, season_id: int) -> int:
        """
        Rank every stored record of the season overall in one pass.

        Returns:
            Number of records ranked
        """
        rows = await self.store.query_all(TEAM_RECORDS, [eq("season_id", season_id)])
        standings = self.rank_overall([TeamStanding.from_row(row) for row in rows])
        async with self.store.atomic():
            await self._write_overall_ranks(season_id, standings)
        logger.info("overall_ranks_refreshed", season_id=season_id, teams=len(standings))
        return len(standings)

    async def mark_conference_champions(self, season_id: int) -> list[int]:
        """
        Flag each conference's rank-1 team as champion and clear the flag on
        every other team of the season.

        Returns:
            Champion team ids
        """
        rows = await self.store.query_all(TEAM_RECORDS, [eq("season_id", season_id)])
        champions = []
        async with self.store.atomic():
            for row in rows:
                is_champion = row.get("conference_rank") == 1
                if is_champion:
                    champions.append(row["team_id"])
                if bool(row.get("is_conference_champion")) == is_champion:
                    continue
                await self.store.update_where(
                    TEAM_RECORDS,
                    [
                        eq("season_id", season_id),
                        eq("conference_id", row["conference_id"]),
                        eq("team_id", row["team_id"]),
                    ],
                    {"is_conference_champion": is_champion},
                )
        logger.info("conference_champions_marked", season_id=season_id, champions=champions)
        return sorted(champions)

    async def get_standings(
        self,
        season_id: int,
        conference_id: int | None = None,
    ) -> list[StandingsRow]:
        """Stored records with names, in conference or overall rank order."""
        filters = [eq("season_id", season_id)]
        if conference_id is not None:
            filters.append(eq("conference_id", conference_id))
        records = [
            TeamStanding.from_row(row)
            for row in await self.store.query_all(TEAM_RECORDS, filters)
        ]
        if not records:
            return []

        team_rows = await self.store.query_all(
            TEAMS, [Filter("id", "in", sorted({r.team_id for r in records}))]
        )
        teams = {row["id"]: row for row in team_rows}
        conferences = {c.id: c for c in await self._season_conferences(season_id)}

        if conference_id is not None:
            records.sort(key=lambda r: (r.conference_rank or 10**6, r.team_id))
        else:
            records.sort(key=lambda r: (r.overall_rank or 10**6, r.conference_id, r.team_id))

        rows = []
        for record in records:
            team = teams.get(record.team_id, {})
            conference = conferences.get(record.conference_id)
            rows.append(
                StandingsRow(
                    team_id=record.team_id,
                    team_name=team.get("team_name") or f"Team {record.team_id}",
                    owner_name=team.get("owner_name"),
                    conference_id=record.conference_id,
                    conference_name=(
                        conference.conference_name
                        if conference
                        else f"Conference {record.conference_id}"
                    ),
                    wins=record.wins,
                    losses=record.losses,
                    ties=record.ties,
                    points_for=record.points_for,
                    points_against=record.points_against,
                    win_percentage=record.win_percentage,
                    conference_rank=record.conference_rank,
                    overall_rank=record.overall_rank,
                    playoff_eligible=record.playoff_eligible,
                    is_conference_champion=record.is_conference_champion,
                )
            )
        return rows
