"""Weekly synchronization: recurrence, pipeline and scheduler."""

from leaguesync.services.sync.pipeline import (
    ConferenceResult,
    PipelineResult,
    SyncPipeline,
    classify_outcome,
)
from leaguesync.services.sync.schedule import SyncSchedule, compute_next_run
from leaguesync.services.sync.scheduler import WeeklySyncScheduler
from leaguesync.services.sync.state import SyncRunEntry, SyncStateStore, SyncStatus

__all__ = [
    "ConferenceResult",
    "PipelineResult",
    "SyncPipeline",
    "SyncRunEntry",
    "SyncSchedule",
    "SyncStateStore",
    "SyncStatus",
    "WeeklySyncScheduler",
    "classify_outcome",
    "compute_next_run",
]
