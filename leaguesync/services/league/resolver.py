"""Matchup resolution.

Merges admin-recorded matchups with the provider's live scoring snapshot
into one HybridMatchup per pairing.

Precedence:
- Manual override: points are the record's stored scores. Provider detail
  (starters, per-player points) is still fetched for display and degrades
  to empty detail when the provider fails.
- No override: points and detail come from the provider snapshot. A roster
  missing from the snapshot scores zero. A failed snapshot is a
  ProviderError for that matchup.
- No records at all for a conference week: pairings come from the
  provider's own matchup grouping.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Literal, Protocol

import structlog

from leaguesync.config.league import LeagueRules, get_league_config
from leaguesync.services.errors import (
    ConfigurationError,
    MappingError,
    ProviderError,
)
from leaguesync.services.league.outcome import MatchupPhase, derive_status
from leaguesync.services.league.records import ConferenceInfo, MatchupRecord, SeasonInfo
from leaguesync.services.league.roster_map import RosterLink, RosterMap, build_roster_map
from leaguesync.services.sleeper_client.api import LeagueState, RosterMatchup
from leaguesync.services.store.base import (
    CONFERENCES,
    MATCHUPS,
    SEASONS,
    OrderBy,
    RecordStore,
    eq,
)

logger = structlog.get_logger(__name__)

DataSource = Literal["database", "provider", "hybrid"]


class ScoringProvider(Protocol):
    """The slice of the provider client the resolver needs."""

    async def fetch_matchups(self, league_id: str, week: int) -> list[RosterMatchup]: ...

    async def fetch_league_state(self) -> LeagueState: ...


@dataclass
class SnapshotResult:
    """A provider week snapshot for one league, or the error that replaced it."""

    league_id: str
    week: int
    entries: dict[str, RosterMatchup] = field(default_factory=dict)
    error: ProviderError | None = None

    @classmethod
    def from_entries(cls, league_id: str, week: int, entries: list[RosterMatchup]) -> "SnapshotResult":
        return cls(league_id=league_id, week=week, entries={e.roster_id: e for e in entries})

    @property
    def ok(self) -> bool:
        return self.error is None

    def get(self, roster_id: str) -> RosterMatchup | None:
        return self.entries.get(str(roster_id))

    def groups(self) -> dict[int, list[RosterMatchup]]:
        """Entries grouped by provider matchup id. Byes (no id) are dropped."""
        grouped: dict[int, list[RosterMatchup]] = defaultdict(list)
        for entry in self.entries.values():
            if entry.matchup_id is not None:
                grouped[entry.matchup_id].append(entry)
        return dict(grouped)


@dataclass
class ResolutionContext:
    """Where "now" is for status derivation, plus conference lookups."""

    current_week: int
    current_year: int
    season_year: int
    conferences: dict[int, ConferenceInfo] = field(default_factory=dict)

    def league_for(self, conference_id: int) -> str:
        conference = self.conferences.get(conference_id)
        if conference is None:
            raise MappingError(f"Conference {conference_id} is not part of this season")
        return conference.league_id


@dataclass
class HybridTeam:
    """One side of a resolved matchup."""

    team_id: int
    roster_id: str | None
    conference_id: int
    points: float = 0.0
    projected_points: float | None = None
    starters: list[str] = field(default_factory=list)
    starters_points: list[float] = field(default_factory=list)
    players_points: dict[str, float] = field(default_factory=dict)

    def apply_detail(self, entry: RosterMatchup | None) -> None:
        if entry is None:
            return
        self.projected_points = entry.projected_points
        self.starters = list(entry.starters)
        self.starters_points = list(entry.starters_points)
        self.players_points = dict(entry.players_points)


@dataclass
class HybridMatchup:
    """Authoritative view of one week's pairing."""

    matchup_id: int | None
    conference_id: int
    week: int
    team_1: HybridTeam
    team_2: HybridTeam
    data_source: DataSource
    status: MatchupPhase
    manual_override: bool = False
    record_status: str | None = None
    winning_team_id: int | None = None
    provider_matchup_id: int | None = None
    is_interconference: bool = False
    is_playoff: bool = False
    notes: str | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def has_points(self) -> bool:
        return self.team_1.points != 0 or self.team_2.points != 0


class MatchupResolver:
    """
    Resolves matchup records against provider snapshots.

    Snapshots are cached per (league_id, week) for the lifetime of the
    resolver, so build one resolver per pass.
    """

    def __init__(self, provider: ScoringProvider, rules: LeagueRules | None = None):
        self.provider = provider
        self.rules = rules or get_league_config().rules
        self._snapshots: dict[tuple[str, int], SnapshotResult] = {}

    async def snapshot(self, league_id: str, week: int) -> SnapshotResult:
        key = (league_id, week)
        if key in self._snapshots:
            return self._snapshots[key]
        try:
            entries = await self.provider.fetch_matchups(league_id, week)
            result = SnapshotResult.from_entries(league_id, week, entries)
        except ProviderError as e:
            logger.warning(
                "provider_snapshot_failed",
                league_id=league_id,
                week=week,
                error=str(e),
            )
            result = SnapshotResult(league_id=league_id, week=week, error=e)
        self._snapshots[key] = result
        return result

    async def build_context(
        self,
        store: RecordStore,
        season: SeasonInfo,
        conferences: list[ConferenceInfo],
    ) -> ResolutionContext:
        """
        Current week and year from the provider, falling back to the current
        season row when the provider is unavailable.
        """
        current_row = await store.first(SEASONS, [eq("is_current", True)])
        current = SeasonInfo.from_row(current_row) if current_row else season
        try:
            state = await self.provider.fetch_league_state()
            current_week = state.week
            current_year = state.season or current.season_year
        except ProviderError as e:
            logger.warning("league_state_unavailable", error=str(e))
            current_week = current.current_week
            current_year = current.season_year
        return ResolutionContext(
            current_week=current_week,
            current_year=current_year,
            season_year=season.season_year,
            conferences={c.id: c for c in conferences},
        )

    def _link(self, team_id: int, record: MatchupRecord, roster_map: RosterMap) -> RosterLink:
        link = roster_map.resolve_team(team_id, record.conference_id)
        if link is None:
            raise MappingError(
                f"No active roster link for team {team_id} "
                f"(matchup {record.id}, conference {record.conference_id})"
            )
        return link

    async def resolve(
        self,
        record: MatchupRecord,
        conference: ConferenceInfo,
        roster_map: RosterMap,
        context: ResolutionContext,
        bypass_override: bool = False,
    ) -> HybridMatchup:
        """
        Resolve one matchup record.

        Args:
            record: The stored matchup
            conference: Conference the record belongs to
            roster_map: Prebuilt roster map covering both teams
            context: Current week/year and season conferences
            bypass_override: Take scores from the provider even for overridden
                records (finalization). Frozen scores are still kept.

        Raises:
            MappingError: Either team has no usable roster link
            ProviderError: Provider scores were needed and are unavailable
        """
        link_1 = self._link(record.team_1_id, record, roster_map)
        link_2 = self._link(record.team_2_id, record, roster_map)
        context.conferences.setdefault(conference.id, conference)

        team_1 = HybridTeam(record.team_1_id, link_1.external_roster_id, link_1.conference_id)
        team_2 = HybridTeam(record.team_2_id, link_2.external_roster_id, link_2.conference_id)

        snap_1 = await self.snapshot(context.league_for(link_1.conference_id), record.week)
        snap_2 = await self.snapshot(context.league_for(link_2.conference_id), record.week)

        use_stored = record.scores_frozen if bypass_override else record.is_manual_override
        if use_stored:
            team_1.points = record.team_1_score
            team_2.points = record.team_2_score
            data_source: DataSource = "hybrid" if snap_1.ok and snap_2.ok else "database"
        else:
            for snap in (snap_1, snap_2):
                if not snap.ok:
                    raise ProviderError(
                        f"No provider scores for league {snap.league_id} week {record.week}: "
                        f"{snap.error}"
                    ) from snap.error
            entry_1 = snap_1.get(link_1.external_roster_id)
            entry_2 = snap_2.get(link_2.external_roster_id)
            team_1.points = entry_1.points if entry_1 else 0.0
            team_2.points = entry_2.points if entry_2 else 0.0
            data_source = "hybrid"

        team_1.apply_detail(snap_1.get(link_1.external_roster_id))
        team_2.apply_detail(snap_2.get(link_2.external_roster_id))

        matchup = HybridMatchup(
            matchup_id=record.id,
            conference_id=record.conference_id,
            week=record.week,
            team_1=team_1,
            team_2=team_2,
            data_source=data_source,
            status="upcoming",
            manual_override=record.is_manual_override,
            record_status=record.status,
            winning_team_id=record.winning_team_id,
            provider_matchup_id=record.provider_matchup_id,
            is_interconference=link_1.conference_id != link_2.conference_id,
            is_playoff=record.is_playoff,
            notes=record.notes,
        )
        matchup.status = derive_status(
            record.week,
            context.current_week,
            context.season_year,
            context.current_year,
            matchup.has_points,
        )
        matchup.warnings = self._warnings(matchup)
        return matchup

    def _warnings(self, matchup: HybridMatchup) -> list[str]:
        warnings = []
        if (
            matchup.is_interconference
            and not matchup.is_playoff
            and not self.rules.is_interconference_week(matchup.week)
        ):
            warnings.append(
                f"Interconference matchup in week {matchup.week}, which is not an "
                "interconference week"
            )
        if matchup.manual_override:
            warnings.append("Manual override applied")
        return warnings

    async def resolve_from_provider(
        self,
        conference: ConferenceInfo,
        week: int,
        roster_map: RosterMap,
        context: ResolutionContext,
    ) -> list[HybridMatchup]:
        """
        Pair rosters by the provider's own matchup ids.

        Used only for conference weeks with no stored records. Groups that are
        not exactly two rosters, or contain unmapped rosters, are skipped.
        """
        snap = await self.snapshot(conference.league_id, week)
        if not snap.ok:
            raise ProviderError(
                f"No provider matchups for league {conference.league_id} week {week}"
            ) from snap.error

        matchups = []
        for provider_matchup_id, entries in sorted(snap.groups().items()):
            if len(entries) != 2:
                logger.warning(
                    "provider_group_skipped",
                    conference_id=conference.id,
                    provider_matchup_id=provider_matchup_id,
                    rosters=len(entries),
                )
                continue
            entries = sorted(entries, key=lambda e: e.roster_id)
            links = [roster_map.resolve_roster(e.roster_id, conference.id) for e in entries]
            if None in links:
                logger.warning(
                    "provider_group_unmapped",
                    conference_id=conference.id,
                    provider_matchup_id=provider_matchup_id,
                    roster_ids=[e.roster_id for e in entries],
                )
                continue

            sides = []
            for entry, link in zip(entries, links):
                side = HybridTeam(link.team_id, link.external_roster_id, link.conference_id)
                side.points = entry.points
                side.apply_detail(entry)
                sides.append(side)

            matchup = HybridMatchup(
                matchup_id=None,
                conference_id=conference.id,
                week=week,
                team_1=sides[0],
                team_2=sides[1],
                data_source="provider",
                status="upcoming",
                provider_matchup_id=provider_matchup_id,
                is_playoff=self.rules.is_playoff_week(week),
            )
            matchup.status = derive_status(
                week,
                context.current_week,
                context.season_year,
                context.current_year,
                matchup.has_points,
            )
            matchups.append(matchup)
        return matchups

    async def resolve_week(
        self,
        store: RecordStore,
        season_id: int,
        week: int,
        conference_id: int | None = None,
    ) -> list[HybridMatchup]:
        """
        Resolve every matchup of a season week.

        Matchups that fail to map or score are logged and skipped.

        Raises:
            ConfigurationError: Unknown season or conference
            MappingError: The season's roster links are inconsistent
        """
        season_row = await store.get(SEASONS, season_id)
        if season_row is None:
            raise ConfigurationError(f"Season {season_id} not found")
        season = SeasonInfo.from_row(season_row)

        conference_rows = await store.query_all(
            CONFERENCES, [eq("season_id", season_id)], order_by=OrderBy("id")
        )
        conferences = [ConferenceInfo.from_row(row) for row in conference_rows]
        if conference_id is not None:
            targets = [c for c in conferences if c.id == conference_id]
            if not targets:
                raise ConfigurationError(
                    f"Conference {conference_id} is not part of season {season_id}"
                )
        else:
            targets = [c for c in conferences if c.is_active]

        roster_map = await build_roster_map(store, [c.id for c in conferences])
        context = await self.build_context(store, season, conferences)

        resolved: list[HybridMatchup] = []
        for conference in targets:
            rows = await store.query_all(
                MATCHUPS,
                [
                    eq("season_id", season_id),
                    eq("conference_id", conference.id),
                    eq("week", week),
                ],
                order_by=OrderBy("id"),
            )
            if not rows:
                try:
                    resolved.extend(
                        await self.resolve_from_provider(conference, week, roster_map, context)
                    )
                except ProviderError as e:
                    logger.warning(
                        "provider_fallback_failed",
                        conference_id=conference.id,
                        week=week,
                        error=str(e),
                    )
                continue

            for row in rows:
                record = MatchupRecord.from_row(row)
                try:
                    resolved.append(await self.resolve(record, conference, roster_map, context))
                except (MappingError, ProviderError) as e:
                    logger.warning(
                        "matchup_resolution_skipped",
                        matchup_id=record.id,
                        conference_id=conference.id,
                        week=week,
                        error=str(e),
                    )

        logger.info(
            "week_resolved",
            season_id=season_id,
            week=week,
            conferences=len(targets),
            matchups=len(resolved),
        )
        return resolved
