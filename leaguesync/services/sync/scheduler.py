"""Weekly auto-sync scheduler.

State machine:
    idle -> scheduled       schedule enabled, next run computed
    scheduled -> running    timer elapsed or manual trigger
    running -> completed    run finished without errors
    running -> failed       run recorded errors or blew up
    completed/failed -> scheduled   automatic runs, after a short delay
    * -> idle               schedule disabled (pending timer cancelled)

One instance per process, started and shut down by the API lifespan. At most
one run is in flight; a second manual trigger raises SyncAlreadyRunningError.
Runs are never cancelled midway.
"""

import asyncio
import threading
import time
import uuid
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import structlog

from leaguesync.config.league import SyncDefaults, get_league_config
from leaguesync.services.errors import SyncAlreadyRunningError
from leaguesync.services.sync.pipeline import PipelineResult, SyncPipeline
from leaguesync.services.sync.schedule import SyncSchedule, compute_next_run
from leaguesync.services.sync.state import (
    COMPLETED,
    FAILED,
    IDLE,
    RUNNING,
    SCHEDULED,
    SyncRunEntry,
    SyncStateStore,
    SyncStatus,
)

logger = structlog.get_logger(__name__)

StatusListener = Callable[[SyncStatus], None]
HistoryListener = Callable[[list[SyncRunEntry]], None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WeeklySyncScheduler:
    """Runs the sync pipeline on a weekly recurrence."""

    def __init__(
        self,
        pipeline: SyncPipeline,
        state_store: SyncStateStore | None = None,
        defaults: SyncDefaults | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.pipeline = pipeline
        self.state_store = state_store
        self.defaults = defaults or get_league_config().sync
        self.clock = clock

        self.schedule = SyncSchedule.from_defaults(self.defaults)
        self._status = SyncStatus()
        self._history: list[SyncRunEntry] = []
        self._lock = threading.Lock()
        self._status_listeners: list[StatusListener] = []
        self._history_listeners: list[HistoryListener] = []

        self._running = False
        self._timer: asyncio.Task | None = None
        self._run_task: asyncio.Task | None = None
        self._started = False

    # -- lifecycle -------------------------------------------------------

    async def start(self) -> None:
        """Load persisted state and arm the timer if the schedule is enabled."""
        if self.state_store is not None:
            self.schedule, history = await self.state_store.load(self.schedule)
            with self._lock:
                self._history = history[: self.defaults.history_limit]
        self._started = True
        if self.schedule.enabled:
            self._schedule_next()
        else:
            self._set_status(status=IDLE, next_run_time=None)
        logger.info(
            "sync_scheduler_started",
            enabled=self.schedule.enabled,
            schedule=self.schedule.describe(),
            history=len(self._history),
        )

    async def shutdown(self) -> None:
        """Cancel the timer, wait for an in-flight run and persist state."""
        self._started = False
        self._cancel_timer()
        if self._run_task is not None and not self._run_task.done():
            await asyncio.gather(self._run_task, return_exceptions=True)
        await self._persist()
        logger.info("sync_scheduler_stopped")

    # -- read side -------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._running

    def get_status(self) -> SyncStatus:
        with self._lock:
            return replace(self._status, errors=list(self._status.errors))

    def get_history(self) -> list[SyncRunEntry]:
        with self._lock:
            return list(self._history)

    def subscribe_status(self, listener: StatusListener) -> Callable[[], None]:
        """Register a status listener. Returns a callable that unsubscribes it."""
        with self._lock:
            self._status_listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._status_listeners:
                    self._status_listeners.remove(listener)

        return unsubscribe

    def subscribe_history(self, listener: HistoryListener) -> Callable[[], None]:
        with self._lock:
            self._history_listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._history_listeners:
                    self._history_listeners.remove(listener)

        return unsubscribe

    # -- schedule --------------------------------------------------------

    async def update_schedule(self, **changes) -> SyncSchedule:
        """
        Apply schedule changes and persist them.

        Enabling arms the timer for the next occurrence; disabling cancels
        any pending timer and returns to idle. An in-flight run is left to
        finish.
        """
        self.schedule = SyncSchedule.from_dict(changes, self.schedule)
        if self.schedule.enabled:
            if self._running:
                self._set_status(next_run_time=compute_next_run(self.schedule, self.clock()))
            elif self._started:
                self._schedule_next()
        else:
            self._cancel_timer()
            if self._running:
                self._set_status(next_run_time=None)
            else:
                self._set_status(status=IDLE, next_run_time=None)
        await self._persist()
        logger.info(
            "sync_schedule_updated",
            enabled=self.schedule.enabled,
            schedule=self.schedule.describe(),
        )
        return self.schedule

    def _cancel_timer(self) -> None:
        timer = self._timer
        self._timer = None
        if timer is not None and not timer.done() and timer is not asyncio.current_task():
            timer.cancel()

    def _schedule_next(self) -> None:
        self._cancel_timer()
        next_run = compute_next_run(self.schedule, self.clock())
        delay = max(0.0, (next_run - self.clock()).total_seconds())
        self._set_status(status=SCHEDULED, next_run_time=next_run)
        self._timer = asyncio.create_task(self._after(delay, self._start_automatic_run))
        logger.info("sync_scheduled", next_run_time=next_run.isoformat(), delay_seconds=delay)

    async def _after(self, delay: float, action: Callable[[], None]) -> None:
        await asyncio.sleep(delay)
        action()

    def _start_automatic_run(self) -> None:
        if not self.schedule.enabled:
            return
        if self._running:
            logger.warning("automatic_sync_skipped_already_running")
            self._schedule_next()
            return
        self._running = True
        self._run_task = asyncio.create_task(self._execute(manual=False))

    # -- runs ------------------------------------------------------------

    async def run_manual_sync(self) -> SyncRunEntry:
        """
        Run the pipeline now and wait for the result.

        Raises:
            SyncAlreadyRunningError: A run is already in flight
        """
        if self._running:
            raise SyncAlreadyRunningError()
        self._running = True
        return await self._execute(manual=True)

    def trigger_manual_sync(self) -> str:
        """
        Start a manual run in the background.

        Returns:
            The run id

        Raises:
            SyncAlreadyRunningError: A run is already in flight
        """
        if self._running:
            raise SyncAlreadyRunningError()
        self._running = True
        run_id = uuid.uuid4().hex
        self._run_task = asyncio.create_task(self._execute(manual=True, run_id=run_id))
        return run_id

    def _on_progress(self, step: str, processed: int, total: int) -> None:
        progress = int(processed * 100 / total) if total else 0
        self._set_status(
            current_step=step,
            processed_matchups=processed,
            total_matchups=total,
            progress=min(progress, 99),
        )

    async def _execute(self, manual: bool, run_id: str | None = None) -> SyncRunEntry:
        run_id = run_id or uuid.uuid4().hex
        started_at = self.clock()
        started = time.monotonic()
        self._set_status(
            id=run_id,
            status=RUNNING,
            started_at=started_at,
            ended_at=None,
            progress=0,
            current_step="Starting sync",
            processed_matchups=0,
            total_matchups=0,
            errors=[],
        )
        logger.info("sync_run_started", run_id=run_id, manual=manual)

        result: PipelineResult | None = None
        try:
            result = await self.pipeline.run(progress=self._on_progress)
            errors = result.errors
            outcome = result.outcome
        except Exception as e:
            logger.error("sync_run_aborted", run_id=run_id, error=str(e), exc_info=True)
            errors = [str(e) or type(e).__name__]
            outcome = FAILED

        ended_at = self.clock()
        entry = SyncRunEntry(
            id=run_id,
            timestamp=started_at,
            ended_at=ended_at,
            outcome=outcome,
            duration_ms=int((time.monotonic() - started) * 1000),
            matchups_processed=result.matchups_processed if result else 0,
            records_updated=result.records_updated if result else 0,
            errors=tuple(errors),
            details="Manual sync" if manual else "Scheduled sync",
        )
        self._set_status(
            status=COMPLETED if not errors else FAILED,
            ended_at=ended_at,
            progress=100,
            current_step="Sync complete" if not errors else "Sync finished with errors",
            errors=list(errors),
            last_run_time=ended_at,
            processed_matchups=entry.matchups_processed,
            total_matchups=result.total_matchups if result else 0,
        )
        self._running = False
        await self._append_history(entry)

        logger.info(
            "sync_run_finished",
            run_id=run_id,
            outcome=outcome,
            duration_ms=entry.duration_ms,
            matchups_processed=entry.matchups_processed,
            errors=len(errors),
        )

        if not manual and self._started and self.schedule.enabled:
            if result is None:
                # Top-level failure: retry after the backoff
                delay = self.defaults.retry_backoff_seconds
                self._set_status(
                    status=SCHEDULED,
                    next_run_time=self.clock() + timedelta(seconds=delay),
                )
                self._timer = asyncio.create_task(
                    self._after(delay, self._start_automatic_run)
                )
                logger.info("sync_retry_scheduled", run_id=run_id, delay_seconds=delay)
            else:
                self._timer = asyncio.create_task(
                    self._after(self.defaults.reschedule_delay_seconds, self._schedule_next)
                )
        return entry

    # -- state -----------------------------------------------------------

    def _set_status(self, **changes) -> None:
        with self._lock:
            for key, value in changes.items():
                setattr(self._status, key, value)
            snapshot = replace(self._status, errors=list(self._status.errors))
            listeners = list(self._status_listeners)
        for listener in listeners:
            try:
                listener(snapshot)
            except Exception as e:
                logger.warning("status_listener_failed", error=str(e))

    async def _append_history(self, entry: SyncRunEntry) -> None:
        with self._lock:
            self._history.insert(0, entry)
            del self._history[self.defaults.history_limit :]
            history = list(self._history)
            listeners = list(self._history_listeners)
        await self._persist()
        for listener in listeners:
            try:
                listener(history)
            except Exception as e:
                logger.warning("history_listener_failed", error=str(e))

    async def _persist(self) -> None:
        if self.state_store is None:
            return
        await self.state_store.save(self.schedule, self.get_history())
