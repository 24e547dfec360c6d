"""Persistence of occurrence records."""
from __future__ import annotations

from datetime import datetime
from typing import Callable, List, Optional, Sequence

from sqlmodel import Session, select

from models.occurrence import Occurrence
from storage.db import get_session, transaction


class OccurrenceStore:
    """Reads and writes ``Occurrence`` rows.

    Every method accepts an optional outer ``session``. When given, the work
    joins that session's transaction and nothing is committed here; otherwise a
    session is opened and committed per call. Database errors surface as
    :class:`core.errors.StorageError`.
    """

    def __init__(self, session_factory: Callable[[], Session] = get_session):
        self._session_factory = session_factory

    def get(self, occurrence_id: str, *, session: Optional[Session] = None) -> Optional[Occurrence]:
        with transaction(self._session_factory, session) as s:
            return s.get(Occurrence, occurrence_id)

    def get_for_task(self, task_id: str, *, session: Optional[Session] = None) -> List[Occurrence]:
        with transaction(self._session_factory, session) as s:
            stmt = (
                select(Occurrence)
                .where(Occurrence.task_id == task_id)
                .order_by(Occurrence.occurrence_at.asc(), Occurrence.id.asc())
            )
            return list(s.exec(stmt))

    def get_in_range(
        self,
        start: datetime,
        end: datetime,
        *,
        session: Optional[Session] = None,
    ) -> List[Occurrence]:
        with transaction(self._session_factory, session) as s:
            stmt = (
                select(Occurrence)
                .where(Occurrence.occurrence_at >= start, Occurrence.occurrence_at <= end)
                .order_by(Occurrence.occurrence_at.asc())
            )
            return list(s.exec(stmt))

    def delete_all_for_task(self, task_id: str, *, session: Optional[Session] = None) -> int:
        with transaction(self._session_factory, session) as s:
            rows = list(s.exec(select(Occurrence).where(Occurrence.task_id == task_id)))
            for row in rows:
                s.delete(row)
            s.flush()
            return len(rows)

    def put(self, occurrence: Occurrence, *, session: Optional[Session] = None) -> Occurrence:
        """Insert or update ``occurrence`` by id."""

        with transaction(self._session_factory, session) as s:
            merged = s.merge(occurrence)
            s.flush()
            return merged

    def replace_for_task(
        self,
        task_id: str,
        occurrences: Sequence[Occurrence],
        *,
        session: Optional[Session] = None,
    ) -> List[Occurrence]:
        """Make ``occurrences`` the complete stored set for ``task_id``.

        Rows not in the new set are deleted, new rows are inserted and rows
        already stored with the same id are left as they are. Both halves run
        in one transaction.
        """

        keep_ids = {occ.id for occ in occurrences}
        with transaction(self._session_factory, session) as s:
            stored = {
                row.id: row
                for row in s.exec(select(Occurrence).where(Occurrence.task_id == task_id))
            }
            for occ_id, row in stored.items():
                if occ_id not in keep_ids:
                    s.delete(row)
            result = []
            for occ in occurrences:
                if occ.id in stored:
                    result.append(stored[occ.id])
                else:
                    s.add(occ)
                    result.append(occ)
            s.flush()
            return result


__all__ = ["OccurrenceStore"]
