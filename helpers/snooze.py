"""Reusable snooze presets for occurrences."""
from __future__ import annotations

from datetime import datetime, timedelta, time
from typing import Optional

from core.settings import SNOOZE


def minutes(minutes_delta: Optional[int] = None, *, now: Optional[datetime] = None) -> datetime:
    base = now or datetime.now()
    delta = SNOOZE.default_minutes if minutes_delta is None else minutes_delta
    if delta <= 0:
        raise ValueError("Snooze delay must be positive")
    return base.replace(second=0, microsecond=0) + timedelta(minutes=delta)


def tonight(*, now: Optional[datetime] = None) -> datetime:
    current = now or datetime.now()
    target_time = time(SNOOZE.evening_hour, SNOOZE.evening_minute)
    candidate = current.replace(hour=target_time.hour, minute=target_time.minute, second=0, microsecond=0)
    if candidate <= current:
        candidate = candidate + timedelta(days=1)
    return candidate


def tomorrow_morning(*, now: Optional[datetime] = None) -> datetime:
    current = now or datetime.now()
    base = current + timedelta(days=1)
    return base.replace(hour=SNOOZE.tomorrow_hour, minute=SNOOZE.tomorrow_minute, second=0, microsecond=0)


PRESETS = {
    "10m": lambda now=None: minutes(10, now=now),
    "1h": lambda now=None: minutes(60, now=now),
    "tonight": lambda now=None: tonight(now=now),
    "tomorrow": lambda now=None: tomorrow_morning(now=now),
}


__all__ = ["PRESETS", "minutes", "tonight", "tomorrow_morning"]
