"""Weekly finalization pipeline.

For the current season week, every active conference:
1. builds the roster map,
2. finalizes its pending matchups with provider scores,
3. recomputes its conference standings.

Conferences run concurrently, each on its own store. Overall ranks are
refreshed once for the whole season after every conference has finished.
A failing matchup or conference is recorded and the rest carry on; only a
missing season or an empty conference list fails the whole run.
"""

import asyncio
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass, field
from datetime import datetime, timezone

import structlog

from leaguesync.config.league import LeagueRules, get_league_config
from leaguesync.services.errors import ConfigurationError, MappingError, ProviderError
from leaguesync.services.league.outcome import determine_winner
from leaguesync.services.league.records import (
    COMPLETE,
    PENDING,
    ConferenceInfo,
    MatchupRecord,
    SeasonInfo,
)
from leaguesync.services.league.resolver import (
    MatchupResolver,
    ResolutionContext,
    ScoringProvider,
)
from leaguesync.services.league.roster_map import RosterMap, build_roster_map
from leaguesync.services.league.standings import StandingsCalculator
from leaguesync.services.store.base import (
    CONFERENCES,
    MATCHUPS,
    SEASONS,
    OrderBy,
    RecordStore,
    eq,
)
from leaguesync.services.sync.state import FAILED, PARTIAL, SUCCESS

logger = structlog.get_logger(__name__)

StoreFactory = Callable[[], AbstractAsyncContextManager[RecordStore]]

# Called with (current_step, processed_matchups, total_matchups)
ProgressCallback = Callable[[str, int, int], None]


def classify_outcome(errors: list[str], matchups_processed: int) -> str:
    if not errors:
        return SUCCESS
    if matchups_processed > 0:
        return PARTIAL
    return FAILED


@dataclass
class ConferenceResult:
    conference_id: int
    conference_name: str
    matchups_found: int = 0
    matchups_processed: int = 0
    records_updated: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass
class PipelineResult:
    """Totals for one pipeline run."""

    season_id: int
    week: int
    conferences: list[ConferenceResult] = field(default_factory=list)
    season_errors: list[str] = field(default_factory=list)

    @property
    def matchups_processed(self) -> int:
        return sum(c.matchups_processed for c in self.conferences)

    @property
    def records_updated(self) -> int:
        return sum(c.records_updated for c in self.conferences)

    @property
    def total_matchups(self) -> int:
        return sum(c.matchups_found for c in self.conferences)

    @property
    def errors(self) -> list[str]:
        return [error for c in self.conferences for error in c.errors] + self.season_errors

    @property
    def outcome(self) -> str:
        return classify_outcome(self.errors, self.matchups_processed)


class SyncPipeline:
    """Finalizes pending matchups and refreshes standings."""

    def __init__(
        self,
        store_factory: StoreFactory,
        provider: ScoringProvider,
        rules: LeagueRules | None = None,
        max_concurrency: int | None = None,
    ):
        config = get_league_config()
        self.store_factory = store_factory
        self.provider = provider
        self.rules = rules or config.rules
        self.max_concurrency = max_concurrency or config.sync.max_concurrency

    async def _load_scope(
        self, store: RecordStore
    ) -> tuple[SeasonInfo, list[ConferenceInfo], list[ConferenceInfo]]:
        season_row = await store.first(SEASONS, [eq("is_current", True)])
        if season_row is None:
            raise ConfigurationError("No current season found")
        season = SeasonInfo.from_row(season_row)

        rows = await store.query_all(
            CONFERENCES, [eq("season_id", season.id)], order_by=OrderBy("id")
        )
        conferences = [ConferenceInfo.from_row(row) for row in rows]
        active = [c for c in conferences if c.is_active]
        if not active:
            raise ConfigurationError(f"No active conferences for season {season.season_year}")
        return season, conferences, active

    async def run(self, progress: ProgressCallback | None = None) -> PipelineResult:
        """
        Run one pass.

        Raises:
            ConfigurationError: No current season or no active conferences
            StoreError: The season or conferences could not be loaded
        """
        resolver = MatchupResolver(self.provider, self.rules)
        async with self.store_factory() as store:
            season, conferences, active = await self._load_scope(store)
            context = await resolver.build_context(store, season, conferences)

        week = season.current_week
        result = PipelineResult(season_id=season.id, week=week)
        counters = {"processed": 0, "total": 0}

        def report(step: str) -> None:
            if progress is not None:
                progress(step, counters["processed"], counters["total"])

        logger.info(
            "sync_pipeline_started",
            season_id=season.id,
            week=week,
            conferences=len(active),
        )
        report(f"Processing {len(active)} conferences for week {week}")

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def run_conference(conference: ConferenceInfo) -> ConferenceResult:
            async with semaphore:
                return await self._process_conference(
                    conference, season, conferences, context, resolver, counters, report
                )

        result.conferences = list(
            await asyncio.gather(*(run_conference(c) for c in active))
        )

        # Overall rank pools every conference of the season
        report("Ranking overall standings")
        try:
            async with self.store_factory() as store:
                await StandingsCalculator(store, self.rules).refresh_overall_ranks(season.id)
        except Exception as e:
            result.season_errors.append(f"Overall ranking: {e}")
            logger.error(
                "overall_ranking_failed",
                season_id=season.id,
                error=str(e),
                exc_info=True,
            )

        logger.info(
            "sync_pipeline_finished",
            season_id=season.id,
            week=week,
            outcome=result.outcome,
            matchups_processed=result.matchups_processed,
            records_updated=result.records_updated,
            errors=len(result.errors),
        )
        return result

    async def _process_conference(
        self,
        conference: ConferenceInfo,
        season: SeasonInfo,
        conferences: list[ConferenceInfo],
        context: ResolutionContext,
        resolver: MatchupResolver,
        counters: dict[str, int],
        report: Callable[[str], None],
    ) -> ConferenceResult:
        outcome = ConferenceResult(conference.id, conference.conference_name)
        label = conference.conference_name
        try:
            async with self.store_factory() as store:
                roster_map = await build_roster_map(store, [c.id for c in conferences])
                rows = await store.query_all(
                    MATCHUPS,
                    [
                        eq("season_id", season.id),
                        eq("conference_id", conference.id),
                        eq("week", season.current_week),
                        eq("status", PENDING),
                    ],
                    order_by=OrderBy("id"),
                )
                outcome.matchups_found = len(rows)
                counters["total"] += len(rows)
                report(f"Finalizing {len(rows)} matchups in {label}")

                for row in rows:
                    record = MatchupRecord.from_row(row)
                    try:
                        await self._finalize(store, record, conference, roster_map, context, resolver)
                    except (MappingError, ProviderError) as e:
                        outcome.errors.append(f"{label}: matchup {record.id}: {e}")
                        logger.warning(
                            "matchup_finalize_failed",
                            matchup_id=record.id,
                            conference_id=conference.id,
                            error=str(e),
                        )
                        continue
                    outcome.matchups_processed += 1
                    counters["processed"] += 1
                    report(f"Finalized matchup {record.id} in {label}")

                report(f"Recomputing standings for {label}")
                standings = await StandingsCalculator(store, self.rules).recompute(
                    season.id, conference.id, roster_map, update_overall=False
                )
                outcome.records_updated = len(standings)
        except Exception as e:
            outcome.errors.append(f"{label}: {e}")
            logger.error(
                "conference_sync_failed",
                conference_id=conference.id,
                error=str(e),
                exc_info=True,
            )
        return outcome

    async def _finalize(
        self,
        store: RecordStore,
        record: MatchupRecord,
        conference: ConferenceInfo,
        roster_map: RosterMap,
        context: ResolutionContext,
        resolver: MatchupResolver,
    ) -> None:
        hybrid = await resolver.resolve(
            record, conference, roster_map, context, bypass_override=True
        )
        score_1 = hybrid.team_1.points
        score_2 = hybrid.team_2.points
        winner = determine_winner(record.team_1_id, record.team_2_id, score_1, score_2)
        async with store.atomic():
            await store.update(
                MATCHUPS,
                record.id,
                {
                    "team_1_score": score_1,
                    "team_2_score": score_2,
                    "winning_team_id": winner,
                    "status": COMPLETE,
                    "completed_at": datetime.now(timezone.utc),
                },
            )
        logger.debug(
            "matchup_finalized",
            matchup_id=record.id,
            team_1_score=score_1,
            team_2_score=score_2,
            winning_team_id=winner,
        )
