# taskwise/services/occurrences.py
from __future__ import annotations

import threading
from contextlib import contextmanager
from datetime import date, datetime, timedelta
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Tuple

from sqlmodel import Session

from core.log import get_logger
from core.settings import OccurrenceWindowSettings
from models.occurrence import Occurrence
from models.task import Task
from services.occurrence_store import OccurrenceStore
from services.recurrence import expand
from storage.config import occurrence_window
from storage.db import get_session
from utils.datetime_utils import (
    DateLike,
    local_now,
    local_today,
    range_end,
    range_start,
    to_local_naive,
)


logger = get_logger("taskwise.occurrences")


class OccurrenceService:
    """Owns the occurrence set of every task.

    ``reconcile`` is the only code path that creates or deletes occurrences.
    Calls for the same task id are serialized through a per-task lock, and
    each reconciliation is applied in a single transaction.
    """

    _locks: Dict[str, threading.RLock] = {}
    _locks_guard = threading.Lock()

    def __init__(
        self,
        store: Optional[OccurrenceStore] = None,
        *,
        session_factory: Callable[[], Session] = get_session,
        window: Optional[OccurrenceWindowSettings] = None,
        today: Callable[[], date] = local_today,
        now: Callable[[], datetime] = local_now,
    ):
        self.store = store or OccurrenceStore(session_factory)
        self.window = window or occurrence_window()
        self._today = today
        self._now = now

    # ---------- locking ----------
    @classmethod
    @contextmanager
    def task_lock(cls, task_id: str) -> Iterator[None]:
        with cls._locks_guard:
            lock = cls._locks.setdefault(task_id, threading.RLock())
        with lock:
            yield

    @classmethod
    def forget_lock(cls, task_id: str) -> None:
        """Drop the lock of a task that no longer exists."""

        with cls._locks_guard:
            cls._locks.pop(task_id, None)

    # ---------- reconciliation ----------
    def default_window(self) -> Tuple[date, date]:
        today = self._today()
        return (
            today - timedelta(days=self.window.lookback_days),
            today + timedelta(days=self.window.lookahead_days),
        )

    def reconcile(
        self,
        task: Task,
        *,
        window: Optional[Tuple[DateLike, DateLike]] = None,
        session: Optional[Session] = None,
    ) -> List[Occurrence]:
        """Bring the stored occurrences of ``task`` in line with its schedule.

        Occurrences whose exact instant is still produced by the schedule keep
        their id and state; new instants get fresh pending occurrences; all
        others are removed. Returns the resulting set in instant order.
        """

        with self.task_lock(task.id):
            if task.status == "archived":
                removed = self.store.delete_all_for_task(task.id, session=session)
                logger.debug("Task %s archived: removed %d occurrences", task.id, removed)
                return []

            existing = self.store.get_for_task(task.id, session=session)
            by_instant: Dict[datetime, Occurrence] = {}
            for occ in existing:
                by_instant.setdefault(to_local_naive(occ.occurrence_at), occ)

            start, end = window or self.default_window()
            resolved: List[Occurrence] = []
            created = 0
            for instant in expand(task, start, end):
                occ = by_instant.get(instant)
                if occ is None:
                    occ = Occurrence(task_id=task.id, occurrence_at=instant)
                    created += 1
                resolved.append(occ)

            result = self.store.replace_for_task(task.id, resolved, session=session)
            logger.debug(
                "Reconciled task %s: %d kept, %d created, %d removed",
                task.id,
                len(resolved) - created,
                created,
                len(existing) - (len(resolved) - created),
            )
            return result

    def reconcile_all(self, tasks: Iterable[Task]) -> int:
        """Reconcile every task (e.g. after the day rolls over). Returns the task count."""

        count = 0
        for task in tasks:
            self.reconcile(task)
            count += 1
        logger.info("Reconciled occurrences for %d tasks", count)
        return count

    def purge(self, task_id: str, *, session: Optional[Session] = None) -> int:
        with self.task_lock(task_id):
            removed = self.store.delete_all_for_task(task_id, session=session)
        # Within an outer session the caller still holds the lock and drops it.
        if session is None:
            self.forget_lock(task_id)
        return removed

    # ---------- reads ----------
    def get(self, occurrence_id: str) -> Optional[Occurrence]:
        return self.store.get(occurrence_id)

    def list_for_task(self, task_id: str) -> List[Occurrence]:
        return self.store.get_for_task(task_id)

    def list_in_range(self, start: DateLike, end: DateLike) -> List[Occurrence]:
        return self.store.get_in_range(range_start(start), range_end(end))

    # ---------- state changes ----------
    def _update(self, occurrence_id: str, mutate: Callable[[Occurrence], None]) -> Optional[Occurrence]:
        occ = self.store.get(occurrence_id)
        if occ is None:
            return None
        with self.task_lock(occ.task_id):
            occ = self.store.get(occurrence_id)
            if occ is None:
                return None
            mutate(occ)
            return self.store.put(occ)

    def complete(self, occurrence_id: str, *, at: Optional[datetime] = None) -> Optional[Occurrence]:
        def _apply(occ: Occurrence) -> None:
            if occ.state != "completed":
                occ.completed_at = to_local_naive(at) or self._now()
            occ.state = "completed"

        return self._update(occurrence_id, _apply)

    def reopen(self, occurrence_id: str) -> Optional[Occurrence]:
        def _apply(occ: Occurrence) -> None:
            occ.state = "pending"
            occ.completed_at = None

        return self._update(occurrence_id, _apply)

    def toggle_complete(self, occurrence_id: str) -> Optional[Occurrence]:
        occ = self.store.get(occurrence_id)
        if occ is None:
            return None
        if occ.state == "completed":
            return self.reopen(occurrence_id)
        return self.complete(occurrence_id)

    def skip(self, occurrence_id: str) -> Optional[Occurrence]:
        def _apply(occ: Occurrence) -> None:
            occ.state = "skipped"
            occ.completed_at = None

        return self._update(occurrence_id, _apply)

    def snooze(
        self,
        occurrence_id: str,
        *,
        minutes: Optional[int] = None,
        until: Optional[datetime] = None,
    ) -> Optional[Occurrence]:
        if until is None:
            if minutes is None or minutes <= 0:
                raise ValueError("Snooze needs a positive number of minutes or a target time")
            until = self._now() + timedelta(minutes=minutes)

        def _apply(occ: Occurrence) -> None:
            occ.snoozed_until = to_local_naive(until)

        return self._update(occurrence_id, _apply)

    def clear_snooze(self, occurrence_id: str) -> Optional[Occurrence]:
        def _apply(occ: Occurrence) -> None:
            occ.snoozed_until = None

        return self._update(occurrence_id, _apply)


__all__ = ["OccurrenceService"]
