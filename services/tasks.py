# taskwise/services/tasks.py
from __future__ import annotations

from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from sqlmodel import Session, select

from core.log import get_logger
from core.priorities import normalize_priority
from core.settings import LIMITS
from models.occurrence import Occurrence
from models.reminder import Reminder
from models.subtask import Subtask
from models.tag import TaskTag
from models.task import FREQUENCIES, SCHEDULE_TYPES, TASK_STATUSES, RepeatRule, Task
from services.occurrences import OccurrenceService
from services.recurrence import schedule_signature
from storage.db import get_session, transaction
from utils.datetime_utils import local_now, to_local_naive


logger = get_logger("taskwise.tasks")

_UNSET = object()


def _clean_title(title: Optional[str], max_length: int = LIMITS.title_max_length) -> str:
    cleaned = (title or "").strip()
    if not cleaned:
        raise ValueError("Title must not be empty")
    if len(cleaned) > max_length:
        raise ValueError("Title is too long")
    return cleaned


def _validate_schedule(
    schedule_type: str,
    due_at: Optional[datetime],
    rule: Optional[RepeatRule],
) -> None:
    if schedule_type not in SCHEDULE_TYPES:
        raise ValueError(f"Unsupported schedule type: {schedule_type}")
    if schedule_type == "one-time":
        if due_at is None:
            raise ValueError("One-time tasks need a due date")
        return
    if rule is None:
        raise ValueError("Repeating tasks need a repeat rule")
    if rule.frequency not in FREQUENCIES:
        raise ValueError(f"Unsupported frequency: {rule.frequency}")
    if not rule.weekdays:
        raise ValueError("At least one weekday must be selected")
    if rule.end_date < rule.start_date:
        raise ValueError("Repeat end date is before its start date")


def _validate_offsets(offsets: Sequence[int]) -> List[int]:
    unique = sorted({int(offset) for offset in offsets})
    if any(offset < 0 for offset in unique):
        raise ValueError("Reminder offsets must not be negative")
    if len(unique) > LIMITS.max_reminders:
        raise ValueError(f"At most {LIMITS.max_reminders} reminders per task")
    return unique


class TaskService:
    _listeners = {
        "after_create": set(),
        "after_update": set(),
        "after_delete": set(),
    }

    def __init__(
        self,
        session_factory: Callable[[], Session] = get_session,
        occurrences: Optional[OccurrenceService] = None,
    ):
        self._session_factory = session_factory
        self.occurrences = occurrences or OccurrenceService(session_factory=session_factory)

    @property
    def session_factory(self) -> Callable[[], Session]:
        return self._session_factory

    # ---------- events ----------
    @classmethod
    def subscribe(cls, event: str, callback):
        if event not in cls._listeners:
            raise ValueError(f"Unsupported event: {event}")
        cls._listeners[event].add(callback)

    @classmethod
    def unsubscribe(cls, event: str, callback):
        if event not in cls._listeners:
            return
        cls._listeners[event].discard(callback)

    @classmethod
    def _emit(cls, event: str, task_id: str):
        listeners = list(cls._listeners.get(event, []))
        for listener in listeners:
            try:
                listener(task_id)
            except Exception:
                logger.exception("Listener for %s failed on task %s", event, task_id)

    # ---------- CRUD ----------
    def create(
        self,
        title: str,
        *,
        schedule_type: str = "one-time",
        due_at: Optional[datetime] = None,
        repeat_rule: Optional[RepeatRule] = None,
        notes: str = "",
        all_day: bool = False,
        priority: int | str = 0,
        tag_ids: Iterable[str] = (),
        subtasks: Iterable[str] = (),
        reminder_offsets: Sequence[int] = (),
        emit: bool = True,
    ) -> Task:
        """Persist a new task together with its occurrences.

        The task row and its occurrence set are written in one transaction, so
        a storage failure leaves neither behind.
        """

        cleaned_title = _clean_title(title)
        if schedule_type == "one-time":
            repeat_rule = None
        else:
            due_at = None
        _validate_schedule(schedule_type, due_at, repeat_rule)
        offsets = _validate_offsets(reminder_offsets)
        subtask_titles = [_clean_title(item, LIMITS.subtask_title_max_length) for item in subtasks]

        task = Task(
            title=cleaned_title,
            notes=notes or "",
            all_day=bool(all_day),
            priority=normalize_priority(priority),
            schedule_type=schedule_type,
            due_at=to_local_naive(due_at),
        )
        task.apply_repeat_rule(repeat_rule)

        with OccurrenceService.task_lock(task.id):
            with transaction(self._session_factory) as s:
                s.add(task)
                for tag_id in dict.fromkeys(tag_ids):
                    s.add(TaskTag(task_id=task.id, tag_id=tag_id))
                for position, subtask_title in enumerate(subtask_titles):
                    s.add(Subtask(task_id=task.id, title=subtask_title, position=position))
                for offset in offsets:
                    s.add(Reminder(task_id=task.id, offset_minutes=offset))
                s.flush()
                self.occurrences.reconcile(task, session=s)

        logger.info("Task %s created (%s)", task.id, task.schedule_type)
        if emit:
            self._emit("after_create", task.id)
        return task

    def get(self, task_id: str) -> Optional[Task]:
        with self._session_factory() as s:
            return s.get(Task, task_id)

    def list_all(self) -> List[Task]:
        with self._session_factory() as s:
            stmt = select(Task).order_by(Task.created_at.asc())
            return list(s.exec(stmt))

    def list_by_status(self, status: str) -> List[Task]:
        with self._session_factory() as s:
            stmt = select(Task).where(Task.status == status).order_by(Task.created_at.asc())
            return list(s.exec(stmt))

    def update(
        self,
        task_id: str,
        *,
        title: Optional[str] = None,
        notes: Optional[str] = None,
        all_day: Optional[bool] = None,
        priority: Optional[int | str] = None,
        schedule_type: Optional[str] = None,
        due_at=_UNSET,
        repeat_rule=_UNSET,
        emit: bool = True,
    ) -> Optional[Task]:
        """Apply the given changes; occurrences are reconciled when the schedule moved."""

        with OccurrenceService.task_lock(task_id):
            with transaction(self._session_factory) as s:
                task = s.get(Task, task_id)
                if not task:
                    return None
                before = schedule_signature(task)

                if title is not None:
                    task.title = _clean_title(title)
                if notes is not None:
                    task.notes = notes
                if all_day is not None:
                    task.all_day = bool(all_day)
                if priority is not None:
                    task.priority = normalize_priority(priority)

                schedule_touched = (
                    schedule_type is not None or due_at is not _UNSET or repeat_rule is not _UNSET
                )
                if schedule_touched:
                    new_type = schedule_type or task.schedule_type
                    new_due = task.due_at if due_at is _UNSET else to_local_naive(due_at)
                    new_rule = task.repeat_rule if repeat_rule is _UNSET else repeat_rule
                    if new_type == "one-time":
                        new_rule = None
                    else:
                        new_due = None
                    _validate_schedule(new_type, new_due, new_rule)
                    task.schedule_type = new_type
                    task.due_at = new_due
                    task.apply_repeat_rule(new_rule)

                task.updated_at = local_now()
                s.add(task)
                s.flush()
                if schedule_signature(task) != before:
                    self.occurrences.reconcile(task, session=s)

        if emit:
            self._emit("after_update", task.id)
        return task

    def set_status(self, task_id: str, status: str, *, emit: bool = True) -> Optional[Task]:
        if status not in TASK_STATUSES:
            raise ValueError(f"Unsupported status: {status}")
        with OccurrenceService.task_lock(task_id):
            with transaction(self._session_factory) as s:
                task = s.get(Task, task_id)
                if not task:
                    return None
                task.status = status
                task.updated_at = local_now()
                s.add(task)
                s.flush()
                self.occurrences.reconcile(task, session=s)
        logger.info("Task %s status -> %s", task_id, status)
        if emit:
            self._emit("after_update", task_id)
        return task

    def archive(self, task_id: str) -> Optional[Task]:
        return self.set_status(task_id, "archived")

    def delete(self, task_id: str, *, emit: bool = True) -> bool:
        """Remove a task with its occurrences, tag links, subtasks and reminders."""

        with OccurrenceService.task_lock(task_id):
            with transaction(self._session_factory) as s:
                task = s.get(Task, task_id)
                if not task:
                    return False
                self.occurrences.purge(task_id, session=s)
                for model in (TaskTag, Subtask, Reminder):
                    for row in s.exec(select(model).where(model.task_id == task_id)):
                        s.delete(row)
                s.delete(task)
        OccurrenceService.forget_lock(task_id)
        logger.info("Task %s deleted", task_id)
        if emit:
            self._emit("after_delete", task_id)
        return True

    def refresh_occurrences(self) -> int:
        """Re-run reconciliation for every task so the window follows today's date."""

        return self.occurrences.reconcile_all(self.list_all())

    def load_snapshot(self, start, end) -> tuple[List[Task], List[Occurrence]]:
        """Tasks and the occurrences within ``[start, end]`` for a screen refresh."""

        return self.list_all(), self.occurrences.list_in_range(start, end)

    # ---------- subtasks ----------
    def list_subtasks(self, task_id: str) -> List[Subtask]:
        with self._session_factory() as s:
            stmt = select(Subtask).where(Subtask.task_id == task_id).order_by(Subtask.position.asc())
            return list(s.exec(stmt))

    def add_subtask(self, task_id: str, title: str) -> Optional[Subtask]:
        cleaned = _clean_title(title, LIMITS.subtask_title_max_length)
        with transaction(self._session_factory) as s:
            if not s.get(Task, task_id):
                return None
            existing = list(s.exec(select(Subtask).where(Subtask.task_id == task_id)))
            position = max((row.position for row in existing), default=-1) + 1
            subtask = Subtask(task_id=task_id, title=cleaned, position=position)
            s.add(subtask)
        return subtask

    def toggle_subtask(self, subtask_id: str) -> Optional[Subtask]:
        with transaction(self._session_factory) as s:
            subtask = s.get(Subtask, subtask_id)
            if not subtask:
                return None
            subtask.completed = not subtask.completed
            s.add(subtask)
        return subtask

    def remove_subtask(self, subtask_id: str) -> None:
        with transaction(self._session_factory) as s:
            subtask = s.get(Subtask, subtask_id)
            if subtask:
                s.delete(subtask)

    # ---------- reminders ----------
    def list_reminders(self, task_id: str) -> List[Reminder]:
        with self._session_factory() as s:
            stmt = (
                select(Reminder)
                .where(Reminder.task_id == task_id)
                .order_by(Reminder.offset_minutes.asc())
            )
            return list(s.exec(stmt))

    def set_reminders(self, task_id: str, offsets: Sequence[int]) -> List[Reminder]:
        """Replace the task's reminders with one per offset (minutes before the occurrence)."""

        unique = _validate_offsets(offsets)
        with transaction(self._session_factory) as s:
            for row in s.exec(select(Reminder).where(Reminder.task_id == task_id)):
                s.delete(row)
            reminders = [Reminder(task_id=task_id, offset_minutes=offset) for offset in unique]
            for reminder in reminders:
                s.add(reminder)
        return reminders

    def reminders_by_task(self) -> Dict[str, List[Reminder]]:
        with self._session_factory() as s:
            rows = list(s.exec(select(Reminder).where(Reminder.enabled == True)))  # noqa: E712
        result: Dict[str, List[Reminder]] = {}
        for row in rows:
            result.setdefault(row.task_id, []).append(row)
        return result


__all__ = ["TaskService"]
