"""Parsing of user-entered dates, times and weekday lists."""
from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import List, Optional

from models.task import WEEKDAY_NAMES, TimeOfDay


def _parse_int(value: str) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_date_input(value: str | None, *, today: Optional[date] = None) -> Optional[date]:
    """Parse ISO ``YYYY-MM-DD``, ``DD.MM.YYYY`` or the words ``today``/``tomorrow``."""

    if not value:
        return None
    text = value.strip().lower()
    if not text:
        return None

    base = today or date.today()
    if text == "today":
        return base
    if text == "tomorrow":
        return base + timedelta(days=1)

    for fmt in ("%Y-%m-%d", "%d.%m.%Y"):
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def parse_time_input(value: str | None, *, now: Optional[datetime] = None) -> Optional[time]:
    """Parse ``HH:MM``, short ``930``/``0930`` or relative ``now+30``."""

    if not value:
        return None
    text = value.strip().lower()
    if not text:
        return None

    if text.startswith("now"):
        parts = text.split("+", 1)
        delta = _parse_int(parts[1]) if len(parts) == 2 else 0
        base = (now or datetime.now()).replace(second=0, microsecond=0)
        shifted = base + timedelta(minutes=max(delta or 0, 0))
        return time(shifted.hour, shifted.minute)

    for fmt in ("%H:%M", "%H.%M"):
        try:
            parsed = datetime.strptime(text, fmt)
            return time(parsed.hour, parsed.minute)
        except ValueError:
            continue

    if len(text) in {3, 4} and text.isdigit():
        hours = _parse_int(text[:-2])
        minutes = _parse_int(text[-2:])
        if hours is not None and minutes is not None and 0 <= hours <= 23 and 0 <= minutes <= 59:
            return time(hours, minutes)

    return None


def _require(parsed, raw: str | None, what: str):
    if parsed is None and raw and raw.strip():
        raise ValueError(f"Unrecognized {what}: {raw.strip()}")
    return parsed


def parse_date_strict(value: str | None, *, today: Optional[date] = None) -> Optional[date]:
    return _require(parse_date_input(value, today=today), value, "date")


def parse_time_of_day(value: str | None) -> Optional[TimeOfDay]:
    """Strict variant for form input: non-empty text that does not parse is an error."""

    parsed = _require(parse_time_input(value), value, "time")
    if parsed is None:
        return None
    return TimeOfDay(parsed.hour, parsed.minute)


def parse_weekdays(value: str | None) -> List[str]:
    """Parse ``mon,wed`` style lists; also accepts ``weekdays`` and ``daily``."""

    if not value:
        return []
    text = value.strip().lower()
    if text == "daily":
        return list(WEEKDAY_NAMES)
    if text == "weekdays":
        return list(WEEKDAY_NAMES[:5])
    names = []
    for chunk in text.replace(" ", ",").split(","):
        token = chunk.strip()[:3]
        if not token:
            continue
        if token not in WEEKDAY_NAMES:
            raise ValueError(f"Unknown weekday: {chunk.strip()}")
        if token not in names:
            names.append(token)
    return names


def build_due_datetime(raw_date: str | None, raw_time: str | None) -> Optional[datetime]:
    """Combine date & time inputs; a missing time means midnight, a missing date today.

    Raises ``ValueError`` when a non-empty value cannot be parsed.
    """

    parsed_date = _require(parse_date_input(raw_date), raw_date, "date")
    parsed_time = _require(parse_time_input(raw_time), raw_time, "time")
    if parsed_date is None and parsed_time is None:
        return None
    return datetime.combine(parsed_date or date.today(), parsed_time or time(0, 0))


__all__ = [
    "build_due_datetime",
    "parse_date_input",
    "parse_date_strict",
    "parse_time_input",
    "parse_time_of_day",
    "parse_weekdays",
]
