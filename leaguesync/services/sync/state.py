"""Sync run history, live status and their Redis persistence.

The schedule and the bounded run history are stored together as one JSON
blob under a fixed key and reloaded at process start.
"""

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any

import redis.asyncio as redis
import structlog

from leaguesync.services.sync.schedule import SyncSchedule

logger = structlog.get_logger(__name__)

# Run outcomes
SUCCESS = "success"
PARTIAL = "partial"
FAILED = "failed"

# Scheduler states
IDLE = "idle"
SCHEDULED = "scheduled"
RUNNING = "running"
COMPLETED = "completed"


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


@dataclass(frozen=True)
class SyncRunEntry:
    """One finished run. Never mutated once appended to history."""

    id: str
    timestamp: datetime
    ended_at: datetime
    outcome: str
    duration_ms: int
    matchups_processed: int = 0
    records_updated: int = 0
    errors: tuple[str, ...] = ()
    details: str = ""

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["timestamp"] = _iso(self.timestamp)
        data["ended_at"] = _iso(self.ended_at)
        data["errors"] = list(self.errors)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SyncRunEntry":
        return cls(
            id=str(data["id"]),
            timestamp=_parse(data["timestamp"]),
            ended_at=_parse(data.get("ended_at")) or _parse(data["timestamp"]),
            outcome=data.get("outcome", FAILED),
            duration_ms=int(data.get("duration_ms", 0)),
            matchups_processed=int(data.get("matchups_processed", 0)),
            records_updated=int(data.get("records_updated", 0)),
            errors=tuple(data.get("errors") or ()),
            details=data.get("details", ""),
        )


@dataclass
class SyncStatus:
    """Live scheduler status published to subscribers."""

    id: str | None = None
    status: str = IDLE
    started_at: datetime | None = None
    ended_at: datetime | None = None
    progress: int = 0
    current_step: str = ""
    processed_matchups: int = 0
    total_matchups: int = 0
    errors: list[str] = field(default_factory=list)
    last_run_time: datetime | None = None
    next_run_time: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        for key in ("started_at", "ended_at", "last_run_time", "next_run_time"):
            data[key] = _iso(getattr(self, key))
        return data


class SyncStateStore:
    """Loads and saves the schedule + history blob."""

    def __init__(self, redis_client: redis.Redis, key: str):
        self.redis = redis_client
        self.key = key

    async def load(
        self, fallback: SyncSchedule
    ) -> tuple[SyncSchedule, list[SyncRunEntry]]:
        """
        Read persisted state.

        Missing, unreadable or corrupt state yields the fallback schedule and
        an empty history so the scheduler can always start.
        """
        try:
            raw = await self.redis.get(self.key)
        except redis.RedisError as e:
            logger.error("sync_state_load_failed", key=self.key, error=str(e))
            return fallback, []
        if not raw:
            return fallback, []

        try:
            data = json.loads(raw)
            schedule = SyncSchedule.from_dict(data.get("schedule") or {}, fallback)
            history = [SyncRunEntry.from_dict(item) for item in data.get("history") or []]
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("sync_state_corrupt", key=self.key, error=str(e))
            return fallback, []
        return schedule, history

    async def save(self, schedule: SyncSchedule, history: list[SyncRunEntry]) -> None:
        payload = json.dumps(
            {
                "schedule": schedule.to_dict(),
                "history": [entry.to_dict() for entry in history],
            }
        )
        try:
            await self.redis.set(self.key, payload)
        except redis.RedisError as e:
            logger.error("sync_state_save_failed", key=self.key, error=str(e))
