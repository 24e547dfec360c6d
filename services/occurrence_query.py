"""Read-side selection of occurrences for the calendar and list views.

All functions work on snapshots handed in by the caller and never touch the
database.
"""
from __future__ import annotations

import re
from collections import OrderedDict
from dataclasses import dataclass
from datetime import date, datetime
from typing import Collection, Dict, Iterable, List, Mapping, Optional, Sequence

from models.occurrence import Occurrence
from models.task import Task
from utils.datetime_utils import DateLike, as_date, range_end, range_start, to_local_naive


VIEWS = ("all", "today", "upcoming", "overdue", "completed")


@dataclass(frozen=True)
class TaskOccurrence:
    occurrence: Occurrence
    task: Task

    @property
    def at(self) -> datetime:
        return to_local_naive(self.occurrence.occurrence_at)


def effective_due(occurrence: Occurrence) -> datetime:
    """The moment the occurrence is due for display: its snooze target if set."""

    return to_local_naive(occurrence.snoozed_until or occurrence.occurrence_at)


def _sort_key(pair: TaskOccurrence):
    return (pair.at, pair.occurrence.id)


def join_tasks(occurrences: Iterable[Occurrence], tasks: Iterable[Task]) -> List[TaskOccurrence]:
    """Pair each occurrence with its task; occurrences without a task are dropped."""

    by_id = {task.id: task for task in tasks}
    pairs = []
    for occ in occurrences:
        task = by_id.get(occ.task_id)
        if task is not None:
            pairs.append(TaskOccurrence(occ, task))
    return pairs


def occurrences_on_date(
    occurrences: Iterable[Occurrence],
    tasks: Iterable[Task],
    day: DateLike,
) -> List[TaskOccurrence]:
    target = as_date(day)
    selected = [occ for occ in occurrences if as_date(occ.occurrence_at) == target]
    return sorted(join_tasks(selected, tasks), key=_sort_key)


def occurrences_in_range(
    occurrences: Iterable[Occurrence],
    start: DateLike,
    end: DateLike,
) -> List[Occurrence]:
    lower = range_start(start)
    upper = range_end(end)
    return [occ for occ in occurrences if lower <= to_local_naive(occ.occurrence_at) <= upper]


def occurrences_by_day(
    occurrences: Iterable[Occurrence],
    start: DateLike,
    end: DateLike,
) -> Dict[date, int]:
    """Number of occurrences per day within the range (month view markers)."""

    counts: Dict[date, int] = {}
    for occ in occurrences_in_range(occurrences, start, end):
        day = as_date(occ.occurrence_at)
        counts[day] = counts.get(day, 0) + 1
    return counts


# ---------- predicates ----------
def filter_view(
    pairs: Iterable[TaskOccurrence],
    view: str,
    *,
    now: Optional[datetime] = None,
) -> List[TaskOccurrence]:
    """Apply one of the list screen views.

    ``completed`` shows completed occurrences of any task; every other view
    shows unfinished occurrences of active tasks only.
    """

    if view not in VIEWS:
        raise ValueError(f"Unsupported view: {view}")
    current = to_local_naive(now) or datetime.now()
    today = current.date()

    if view == "completed":
        return [p for p in pairs if p.occurrence.state == "completed"]

    open_pairs = [
        p for p in pairs if p.task.status == "active" and p.occurrence.state != "completed"
    ]
    if view == "today":
        return [p for p in open_pairs if p.at.date() == today]
    if view == "upcoming":
        return [p for p in open_pairs if p.at.date() > today]
    if view == "overdue":
        return [p for p in open_pairs if p.at < current and p.at.date() != today]
    return open_pairs


def by_priority(pairs: Iterable[TaskOccurrence], priorities: Collection[int]) -> List[TaskOccurrence]:
    if not priorities:
        return list(pairs)
    return [p for p in pairs if p.task.priority in priorities]


def by_tags(
    pairs: Iterable[TaskOccurrence],
    tag_ids: Collection[str],
    tags_by_task: Mapping[str, Collection[str]],
) -> List[TaskOccurrence]:
    """Keep pairs whose task carries at least one of ``tag_ids``."""

    if not tag_ids:
        return list(pairs)
    wanted = set(tag_ids)
    return [p for p in pairs if wanted.intersection(tags_by_task.get(p.task.id, ()))]


_RE_SPACES = re.compile(r"\s+")


def _normalize_text(text: str) -> str:
    return _RE_SPACES.sub(" ", (text or "").lower()).strip()


def by_search(pairs: Iterable[TaskOccurrence], query: str) -> List[TaskOccurrence]:
    """Every whitespace-separated token must appear in the title or notes."""

    tokens = [tok for tok in _normalize_text(query).split(" ") if tok]
    if not tokens:
        return list(pairs)
    result = []
    for pair in pairs:
        haystack = _normalize_text(f"{pair.task.title} {pair.task.notes or ''}")
        if all(tok in haystack for tok in tokens):
            result.append(pair)
    return result


def apply_filters(
    pairs: Iterable[TaskOccurrence],
    *,
    view: str = "all",
    priorities: Collection[int] = (),
    tag_ids: Collection[str] = (),
    tags_by_task: Optional[Mapping[str, Collection[str]]] = None,
    query: str = "",
    now: Optional[datetime] = None,
) -> List[TaskOccurrence]:
    result = filter_view(pairs, view, now=now)
    result = by_priority(result, priorities)
    result = by_tags(result, tag_ids, tags_by_task or {})
    result = by_search(result, query)
    return sorted(result, key=_sort_key)


def group_by_day(pairs: Sequence[TaskOccurrence]) -> "OrderedDict[date, List[TaskOccurrence]]":
    """Bucket pairs by calendar day, days ascending, pairs ascending within a day."""

    groups: "OrderedDict[date, List[TaskOccurrence]]" = OrderedDict()
    for pair in sorted(pairs, key=_sort_key):
        groups.setdefault(pair.at.date(), []).append(pair)
    return groups


__all__ = [
    "TaskOccurrence",
    "VIEWS",
    "apply_filters",
    "by_priority",
    "by_search",
    "by_tags",
    "effective_due",
    "filter_view",
    "group_by_day",
    "join_tasks",
    "occurrences_by_day",
    "occurrences_in_range",
    "occurrences_on_date",
]
