"""Expansion of a task's schedule into concrete occurrence instants."""
from __future__ import annotations

from datetime import datetime, time
from typing import List, Tuple

from models.task import Task
from utils.datetime_utils import (
    DateLike,
    iter_days,
    range_end,
    range_start,
    to_local_naive,
)


def _normalize(task: Task, moment: datetime) -> datetime:
    moment = to_local_naive(moment)
    if task.all_day:
        return moment.replace(hour=0, minute=0, second=0, microsecond=0)
    return moment


def _expand_one_time(task: Task, lower: datetime, upper: datetime) -> List[datetime]:
    if task.due_at is None:
        return []
    due = _normalize(task, task.due_at)
    if lower <= due <= upper:
        return [due]
    return []


def _expand_weekly(task: Task, lower: datetime, upper: datetime) -> List[datetime]:
    rule = task.repeat_rule
    if rule is None or rule.frequency != "weekly" or not rule.weekdays:
        return []

    first = max(lower.date(), rule.start_date)
    last = min(upper.date(), rule.end_date)
    if first > last:
        return []

    if rule.time_of_day is not None and not task.all_day:
        at = rule.time_of_day.as_time()
    else:
        at = time.min

    # Days ascend and repeat at most once, so the list is already ordered.
    instants = (
        datetime.combine(day, at)
        for day in iter_days(first, last)
        if day.weekday() in rule.weekdays
    )
    return [moment for moment in instants if lower <= moment <= upper]


def expand(task: Task, start: DateLike, end: DateLike) -> List[datetime]:
    """Return the ordered occurrence instants of ``task`` within ``[start, end]``.

    Bare dates are inclusive calendar days. Malformed schedules (missing due
    date or rule, empty weekday set, end before start) produce no instants.
    """

    lower = range_start(start)
    upper = range_end(end)
    if lower > upper:
        return []
    if task.schedule_type == "one-time":
        return _expand_one_time(task, lower, upper)
    if task.schedule_type == "repeating":
        return _expand_weekly(task, lower, upper)
    return []


def schedule_signature(task: Task) -> Tuple:
    """Fields whose change requires occurrences to be reconciled."""

    return (
        task.schedule_type,
        to_local_naive(task.due_at),
        task.repeat_frequency,
        task.repeat_weekdays,
        task.repeat_start,
        task.repeat_end,
        task.repeat_hour,
        task.repeat_minute,
        task.all_day,
        task.status,
    )


__all__ = ["expand", "schedule_signature"]
