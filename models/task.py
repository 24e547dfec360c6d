# taskwise/models/task.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from typing import FrozenSet, Iterable, Optional
import uuid

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from utils.datetime_utils import local_now


TASK_STATUSES = ("active", "completed", "archived")
SCHEDULE_TYPES = ("one-time", "repeating")
FREQUENCIES = ("weekly",)

# Index matches ``date.weekday()``: Monday is 0.
WEEKDAY_NAMES = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")


def weekdays_to_mask(weekdays: Iterable[int | str]) -> int:
    mask = 0
    for day in weekdays:
        index = WEEKDAY_NAMES.index(day.lower()) if isinstance(day, str) else int(day)
        if not 0 <= index <= 6:
            raise ValueError(f"Invalid weekday: {day!r}")
        mask |= 1 << index
    return mask


def mask_to_weekdays(mask: int) -> FrozenSet[int]:
    return frozenset(i for i in range(7) if mask & (1 << i))


@dataclass(frozen=True)
class TimeOfDay:
    hour: int
    minute: int = 0

    def __post_init__(self):
        if not 0 <= self.hour <= 23 or not 0 <= self.minute <= 59:
            raise ValueError(f"Invalid time of day: {self.hour:02d}:{self.minute:02d}")

    def as_time(self) -> time:
        return time(self.hour, self.minute)


@dataclass(frozen=True)
class RepeatRule:
    """Weekly schedule: selected weekdays between two inclusive dates."""

    weekdays: FrozenSet[int]
    start_date: date
    end_date: date
    time_of_day: Optional[TimeOfDay] = None
    frequency: str = "weekly"

    @classmethod
    def weekly(
        cls,
        weekdays: Iterable[int | str],
        start_date: date,
        end_date: date,
        time_of_day: Optional[TimeOfDay] = None,
    ) -> "RepeatRule":
        return cls(
            weekdays=mask_to_weekdays(weekdays_to_mask(weekdays)),
            start_date=start_date,
            end_date=end_date,
            time_of_day=time_of_day,
        )

    @property
    def weekday_names(self) -> list[str]:
        return [WEEKDAY_NAMES[i] for i in sorted(self.weekdays)]


class Task(SQLModel, table=True):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    title: str = Field(index=True)
    notes: str = ""
    all_day: bool = False
    priority: int = 0
    status: str = Field(default="active", index=True)

    schedule_type: str = "one-time"
    due_at: Optional[datetime] = Field(default=None, index=True, sa_type=DateTime)

    repeat_frequency: Optional[str] = None
    repeat_weekdays: int = 0
    repeat_start: Optional[date] = None
    repeat_end: Optional[date] = None
    repeat_hour: Optional[int] = None
    repeat_minute: Optional[int] = None

    created_at: datetime = Field(default_factory=local_now, sa_type=DateTime)
    updated_at: datetime = Field(default_factory=local_now, sa_type=DateTime)

    @property
    def repeat_rule(self) -> Optional[RepeatRule]:
        if self.repeat_start is None or self.repeat_end is None:
            return None
        time_of_day = None
        if self.repeat_hour is not None:
            time_of_day = TimeOfDay(self.repeat_hour, self.repeat_minute or 0)
        return RepeatRule(
            weekdays=mask_to_weekdays(self.repeat_weekdays or 0),
            start_date=self.repeat_start,
            end_date=self.repeat_end,
            time_of_day=time_of_day,
            frequency=self.repeat_frequency or "weekly",
        )

    def apply_repeat_rule(self, rule: Optional[RepeatRule]) -> None:
        if rule is None:
            self.repeat_frequency = None
            self.repeat_weekdays = 0
            self.repeat_start = None
            self.repeat_end = None
            self.repeat_hour = None
            self.repeat_minute = None
            return
        self.repeat_frequency = rule.frequency
        self.repeat_weekdays = weekdays_to_mask(rule.weekdays)
        self.repeat_start = rule.start_date
        self.repeat_end = rule.end_date
        self.repeat_hour = rule.time_of_day.hour if rule.time_of_day else None
        self.repeat_minute = rule.time_of_day.minute if rule.time_of_day else None


__all__ = [
    "FREQUENCIES",
    "RepeatRule",
    "SCHEDULE_TYPES",
    "TASK_STATUSES",
    "Task",
    "TimeOfDay",
    "WEEKDAY_NAMES",
    "mask_to_weekdays",
    "weekdays_to_mask",
]
