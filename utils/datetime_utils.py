"""Wall-clock datetime helpers.

Scheduling values are stored as naive local datetimes. Anything aware is
converted to the machine's local zone first and then stripped of ``tzinfo``
so that instants read back from SQLite compare equal to freshly computed ones.
"""
from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Optional, Union


DateLike = Union[date, datetime]


def local_now() -> datetime:
    return datetime.now()


def local_today() -> date:
    return date.today()


def to_local_naive(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt
    return dt.astimezone().replace(tzinfo=None)


def as_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        return to_local_naive(value).date()
    return value


def start_of_day(value: DateLike) -> datetime:
    return datetime.combine(as_date(value), time.min)


def end_of_day(value: DateLike) -> datetime:
    return datetime.combine(as_date(value), time.max)


def range_start(value: DateLike) -> datetime:
    """Lower bound of an inclusive range: a bare date means its midnight."""

    if isinstance(value, datetime):
        return to_local_naive(value)
    return start_of_day(value)


def range_end(value: DateLike) -> datetime:
    """Upper bound of an inclusive range: a bare date covers the whole day."""

    if isinstance(value, datetime):
        return to_local_naive(value)
    return end_of_day(value)


def iter_days(first: date, last: date):
    """Yield every calendar day from ``first`` to ``last`` inclusive."""

    current = first
    while current <= last:
        yield current
        current += timedelta(days=1)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 string (``Z`` suffix allowed) into a local naive datetime."""

    if not value:
        return None
    text = value.strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return to_local_naive(datetime.fromisoformat(text))
    except ValueError:
        return None


__all__ = [
    "DateLike",
    "as_date",
    "end_of_day",
    "iter_days",
    "local_now",
    "local_today",
    "parse_iso_datetime",
    "range_end",
    "range_start",
    "start_of_day",
    "to_local_naive",
]
