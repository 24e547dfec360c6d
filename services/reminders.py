"""Fire times of task reminders.

Only the schedule is computed here; delivering notifications is left to the
platform integration that consumes it.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, List, Mapping, Sequence

from models.occurrence import Occurrence
from models.reminder import Reminder
from services.occurrence_query import TaskOccurrence, effective_due
from utils.datetime_utils import DateLike, range_end, range_start


@dataclass(frozen=True)
class ScheduledReminder:
    fire_at: datetime
    reminder_id: str
    occurrence_id: str
    task_id: str
    title: str


def reminder_times(occurrence: Occurrence, reminders: Iterable[Reminder]) -> List[datetime]:
    """Fire times for one occurrence; nothing for finished or skipped ones."""

    if occurrence.state != "pending":
        return []
    due = effective_due(occurrence)
    times = {due - timedelta(minutes=r.offset_minutes) for r in reminders if r.enabled}
    return sorted(times)


def upcoming_reminders(
    pairs: Iterable[TaskOccurrence],
    reminders_by_task: Mapping[str, Sequence[Reminder]],
    start: DateLike,
    end: DateLike,
) -> List[ScheduledReminder]:
    lower = range_start(start)
    upper = range_end(end)
    scheduled = []
    for pair in pairs:
        if pair.task.status != "active" or pair.occurrence.state != "pending":
            continue
        due = effective_due(pair.occurrence)
        for reminder in reminders_by_task.get(pair.task.id, ()):
            if not reminder.enabled:
                continue
            fire_at = due - timedelta(minutes=reminder.offset_minutes)
            if lower <= fire_at <= upper:
                scheduled.append(
                    ScheduledReminder(
                        fire_at=fire_at,
                        reminder_id=reminder.id,
                        occurrence_id=pair.occurrence.id,
                        task_id=pair.task.id,
                        title=pair.task.title,
                    )
                )
    scheduled.sort(key=lambda item: (item.fire_at, item.occurrence_id, item.reminder_id))
    return scheduled


__all__ = ["ScheduledReminder", "reminder_times", "upcoming_reminders"]
