"""Weekly recurrence rule.

day_of_week counts from Sunday = 0, matching how league admins describe the
schedule ("Tuesday morning") rather than Python's Monday = 0.
"""

from dataclasses import asdict, dataclass
from datetime import datetime, time, timedelta
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from leaguesync.config.league import SyncDefaults

DAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")


@dataclass
class SyncSchedule:
    """When the automatic sync fires."""

    enabled: bool = False
    day_of_week: int = 2
    hour: int = 9
    minute: int = 0
    timezone: str = "America/New_York"

    def __post_init__(self):
        if not 0 <= self.day_of_week <= 6:
            raise ValueError(f"day_of_week must be 0-6 (0 = Sunday), got {self.day_of_week}")
        if not 0 <= self.hour <= 23:
            raise ValueError(f"hour must be 0-23, got {self.hour}")
        if not 0 <= self.minute <= 59:
            raise ValueError(f"minute must be 0-59, got {self.minute}")
        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {self.timezone}") from e

    @classmethod
    def from_defaults(cls, defaults: SyncDefaults) -> "SyncSchedule":
        return cls(
            enabled=defaults.enabled,
            day_of_week=defaults.day_of_week,
            hour=defaults.hour,
            minute=defaults.minute,
            timezone=defaults.timezone,
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any], fallback: "SyncSchedule | None" = None) -> "SyncSchedule":
        base = asdict(fallback or cls())
        base.update({k: v for k, v in data.items() if k in cls.__dataclass_fields__})
        return cls(**base)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def describe(self) -> str:
        return f"{DAY_NAMES[self.day_of_week]} {self.hour:02d}:{self.minute:02d} {self.timezone}"


def compute_next_run(schedule: SyncSchedule, now: datetime) -> datetime:
    """
    Next instant at or after now on the schedule's weekday and time.

    Computed in the schedule's timezone. When today is the target day and the
    time has already passed, the result is exactly seven days later.
    Naive "now" values are taken to be in the schedule's timezone.
    """
    tz = ZoneInfo(schedule.timezone)
    local_now = now.astimezone(tz) if now.tzinfo else now.replace(tzinfo=tz)

    today = (local_now.weekday() + 1) % 7
    days_ahead = (schedule.day_of_week - today) % 7
    target_day = local_now.date() + timedelta(days=days_ahead)
    at = time(schedule.hour, schedule.minute)

    candidate = datetime.combine(target_day, at, tzinfo=tz)
    if candidate < local_now:
        candidate = datetime.combine(target_day + timedelta(days=7), at, tzinfo=tz)
    return candidate
