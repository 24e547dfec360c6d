import threading
from datetime import date, datetime

import pytest
from sqlalchemy import DateTime
from sqlalchemy.exc import OperationalError
from sqlmodel import SQLModel

from core.errors import StorageError
from core.settings import OccurrenceWindowSettings
from models.occurrence import Occurrence
from models.task import RepeatRule, Task, TimeOfDay
from services.occurrence_store import OccurrenceStore
from services.occurrences import OccurrenceService
from services.recurrence import expand
from storage.db import transaction

from conftest import NOW, TODAY


def _saved_task(session_factory, task):
    with session_factory() as session:
        session.add(task)
        session.commit()
    return task


def _repeating(session_factory, rule, **kwargs):
    task = Task(title="Gym", schedule_type="repeating", **kwargs)
    task.apply_repeat_rule(rule)
    return _saved_task(session_factory, task)


def _snapshot(occurrences):
    return sorted((o.id, o.occurrence_at, o.state, o.completed_at, o.snoozed_until) for o in occurrences)


def test_reconcile_creates_pending_occurrences(session_factory, occurrence_service, mon_wed_rule):
    task = _repeating(session_factory, mon_wed_rule)
    result = occurrence_service.reconcile(task)

    assert [o.occurrence_at for o in result] == [
        datetime(2024, 6, 3, 9, 0),
        datetime(2024, 6, 5, 9, 0),
        datetime(2024, 6, 10, 9, 0),
        datetime(2024, 6, 12, 9, 0),
    ]
    assert all(o.state == "pending" and o.completed_at is None and o.snoozed_until is None for o in result)
    assert len({o.id for o in result}) == 4
    assert _snapshot(occurrence_service.list_for_task(task.id)) == _snapshot(result)


def test_reconcile_is_idempotent(session_factory, occurrence_service, mon_wed_rule):
    task = _repeating(session_factory, mon_wed_rule)
    occurrence_service.reconcile(task)
    first = _snapshot(occurrence_service.list_for_task(task.id))

    occurrence_service.reconcile(task)
    assert _snapshot(occurrence_service.list_for_task(task.id)) == first


def test_reconcile_preserves_completed_occurrence(session_factory, occurrence_service, mon_wed_rule):
    task = _repeating(session_factory, mon_wed_rule)
    target = occurrence_service.reconcile(task)[1]
    occurrence_service.complete(target.id)

    with session_factory() as session:
        stored = session.get(Task, task.id)
        stored.title = "Gym (renamed)"
        session.add(stored)
        session.commit()
    occurrence_service.reconcile(stored)

    kept = occurrence_service.get(target.id)
    assert kept is not None
    assert kept.state == "completed"
    assert kept.completed_at == NOW
    assert kept.occurrence_at == datetime(2024, 6, 5, 9, 0)


def test_removed_weekday_is_pruned(session_factory, occurrence_service, mon_wed_rule):
    task = _repeating(session_factory, mon_wed_rule)
    before = {o.occurrence_at: o.id for o in occurrence_service.reconcile(task)}

    task.apply_repeat_rule(
        RepeatRule.weekly(["mon"], mon_wed_rule.start_date, mon_wed_rule.end_date, TimeOfDay(9, 0))
    )
    _saved_task(session_factory, task)
    after = occurrence_service.reconcile(task)

    assert all(o.occurrence_at.weekday() == 0 for o in after)
    assert {o.occurrence_at: o.id for o in after} == {
        datetime(2024, 6, 3, 9, 0): before[datetime(2024, 6, 3, 9, 0)],
        datetime(2024, 6, 10, 9, 0): before[datetime(2024, 6, 10, 9, 0)],
    }
    assert len(occurrence_service.list_for_task(task.id)) == 2


def test_archived_task_has_no_occurrences(session_factory, occurrence_service, mon_wed_rule):
    task = _repeating(session_factory, mon_wed_rule)
    occurrence_service.reconcile(task)

    task.status = "archived"
    assert occurrence_service.reconcile(task) == []
    assert occurrence_service.list_for_task(task.id) == []


def test_shortened_rule_keeps_completed_state(session_factory, occurrence_service, mon_wed_rule):
    task = _repeating(session_factory, mon_wed_rule)
    generated = occurrence_service.reconcile(task)
    wednesday = next(o for o in generated if o.occurrence_at == datetime(2024, 6, 5, 9, 0))
    occurrence_service.complete(wednesday.id)

    task.repeat_end = date(2024, 6, 7)
    _saved_task(session_factory, task)
    occurrence_service.reconcile(task)

    remaining = occurrence_service.list_for_task(task.id)
    assert [o.occurrence_at for o in remaining] == [
        datetime(2024, 6, 3, 9, 0),
        datetime(2024, 6, 5, 9, 0),
    ]
    assert remaining[1].id == wednesday.id
    assert remaining[1].state == "completed"


def test_time_of_day_change_recreates_occurrences(session_factory, occurrence_service, mon_wed_rule):
    task = _repeating(session_factory, mon_wed_rule)
    first = occurrence_service.reconcile(task)
    occurrence_service.complete(first[0].id)

    task.repeat_hour = 10
    _saved_task(session_factory, task)
    second = occurrence_service.reconcile(task)

    assert not {o.id for o in first} & {o.id for o in second}
    assert all(o.state == "pending" for o in second)


def test_default_window_follows_today(session_factory, mon_wed_rule):
    rule = RepeatRule.weekly(["mon"], date(2024, 1, 1), date(2024, 12, 31), TimeOfDay(9, 0))
    task = _repeating(session_factory, rule)
    service = OccurrenceService(
        session_factory=session_factory,
        window=OccurrenceWindowSettings(lookback_days=7, lookahead_days=14),
        today=lambda: TODAY,
    )

    assert service.default_window() == (date(2024, 5, 25), date(2024, 6, 15))
    result = service.reconcile(task)
    assert [o.occurrence_at.date() for o in result] == [
        date(2024, 5, 27),
        date(2024, 6, 3),
        date(2024, 6, 10),
    ]


def test_explicit_window_overrides_default(session_factory, occurrence_service):
    rule = RepeatRule.weekly(["mon"], date(2024, 1, 1), date(2024, 12, 31), TimeOfDay(9, 0))
    task = _repeating(session_factory, rule)
    result = occurrence_service.reconcile(task, window=(date(2024, 9, 1), date(2024, 9, 10)))
    assert [o.occurrence_at for o in result] == [
        datetime(2024, 9, 2, 9, 0),
        datetime(2024, 9, 9, 9, 0),
    ]


def test_one_time_task_outside_window_has_no_occurrence(session_factory, occurrence_service):
    task = _saved_task(
        session_factory,
        Task(title="Far away", schedule_type="one-time", due_at=datetime(2025, 1, 1, 9, 0)),
    )
    assert occurrence_service.reconcile(task) == []


def test_duplicate_rows_for_one_instant_are_collapsed(session_factory, occurrence_service):
    due = datetime(2024, 6, 10, 15, 0)
    task = _saved_task(session_factory, Task(title="Call", schedule_type="one-time", due_at=due))
    store = OccurrenceStore(session_factory)
    store.put(Occurrence(id="a", task_id=task.id, occurrence_at=due, state="completed"))
    store.put(Occurrence(id="b", task_id=task.id, occurrence_at=due))

    result = occurrence_service.reconcile(task)
    assert [(o.id, o.state) for o in result] == [("a", "completed")]
    assert [o.id for o in occurrence_service.list_for_task(task.id)] == ["a"]


def test_reconcile_all_counts_tasks(session_factory, occurrence_service, mon_wed_rule):
    tasks = [_repeating(session_factory, mon_wed_rule) for _ in range(3)]
    assert occurrence_service.reconcile_all(tasks) == 3
    assert all(len(occurrence_service.list_for_task(t.id)) == 4 for t in tasks)


def test_purge_removes_everything(session_factory, occurrence_service, mon_wed_rule):
    task = _repeating(session_factory, mon_wed_rule)
    occurrence_service.reconcile(task)
    assert occurrence_service.purge(task.id) == 4
    assert occurrence_service.list_for_task(task.id) == []


class _FailingStore(OccurrenceStore):
    def replace_for_task(self, task_id, occurrences, *, session=None):
        with transaction(self._session_factory, session) as s:
            super().replace_for_task(task_id, occurrences, session=s)
            raise OperationalError("INSERT INTO occurrence", {}, Exception("disk I/O error"))


def test_failed_write_leaves_previous_set_intact(session_factory, occurrence_service, mon_wed_rule):
    task = _repeating(session_factory, mon_wed_rule)
    occurrence_service.reconcile(task)
    before = _snapshot(occurrence_service.list_for_task(task.id))

    failing = OccurrenceService(
        _FailingStore(session_factory),
        window=occurrence_service.window,
        today=lambda: TODAY,
    )
    task.apply_repeat_rule(RepeatRule.weekly(["fri"], date(2024, 6, 3), date(2024, 6, 14)))
    with pytest.raises(StorageError):
        failing.reconcile(task)

    assert _snapshot(occurrence_service.list_for_task(task.id)) == before


def test_missing_table_surfaces_as_storage_error(engine, session_factory, occurrence_service, mon_wed_rule):
    task = _repeating(session_factory, mon_wed_rule)
    SQLModel.metadata.tables["occurrence"].drop(engine)
    with pytest.raises(StorageError):
        occurrence_service.reconcile(task)


# ---------- state changes ----------
def _first(session_factory, occurrence_service, rule):
    task = _repeating(session_factory, rule)
    return occurrence_service.reconcile(task)[0]


def test_complete_and_reopen(session_factory, occurrence_service, mon_wed_rule):
    occ = _first(session_factory, occurrence_service, mon_wed_rule)

    done = occurrence_service.complete(occ.id)
    assert done.state == "completed"
    assert done.completed_at == NOW

    reopened = occurrence_service.reopen(occ.id)
    assert reopened.state == "pending"
    assert reopened.completed_at is None


def test_toggle_complete_flips_state(session_factory, occurrence_service, mon_wed_rule):
    occ = _first(session_factory, occurrence_service, mon_wed_rule)
    assert occurrence_service.toggle_complete(occ.id).state == "completed"
    assert occurrence_service.toggle_complete(occ.id).state == "pending"
    assert occurrence_service.get(occ.id).completed_at is None


def test_skip_clears_completion(session_factory, occurrence_service, mon_wed_rule):
    occ = _first(session_factory, occurrence_service, mon_wed_rule)
    occurrence_service.complete(occ.id)
    skipped = occurrence_service.skip(occ.id)
    assert skipped.state == "skipped"
    assert skipped.completed_at is None


def test_snooze_defers_without_moving_instant(session_factory, occurrence_service, mon_wed_rule):
    occ = _first(session_factory, occurrence_service, mon_wed_rule)

    snoozed = occurrence_service.snooze(occ.id, minutes=15)
    assert snoozed.snoozed_until == datetime(2024, 6, 1, 8, 45)
    assert snoozed.occurrence_at == occ.occurrence_at

    target = datetime(2024, 6, 3, 18, 0)
    assert occurrence_service.snooze(occ.id, until=target).snoozed_until == target
    assert occurrence_service.clear_snooze(occ.id).snoozed_until is None


def test_snooze_requires_positive_delay(session_factory, occurrence_service, mon_wed_rule):
    occ = _first(session_factory, occurrence_service, mon_wed_rule)
    with pytest.raises(ValueError):
        occurrence_service.snooze(occ.id, minutes=0)


def test_state_changes_on_unknown_id_return_none(occurrence_service):
    assert occurrence_service.complete("missing") is None
    assert occurrence_service.toggle_complete("missing") is None
    assert occurrence_service.snooze("missing", minutes=5) is None


def test_snoozed_state_survives_reconcile(session_factory, occurrence_service, mon_wed_rule):
    task = _repeating(session_factory, mon_wed_rule)
    occ = occurrence_service.reconcile(task)[0]
    occurrence_service.snooze(occ.id, minutes=30)

    occurrence_service.reconcile(task)
    assert occurrence_service.get(occ.id).snoozed_until == datetime(2024, 6, 1, 9, 0)


def test_list_in_range_uses_whole_days(session_factory, occurrence_service, mon_wed_rule):
    task = _repeating(session_factory, mon_wed_rule)
    occurrence_service.reconcile(task)
    found = occurrence_service.list_in_range(date(2024, 6, 5), date(2024, 6, 10))
    assert [o.occurrence_at for o in found] == [
        datetime(2024, 6, 5, 9, 0),
        datetime(2024, 6, 10, 9, 0),
    ]


def test_naive_instants_round_trip_through_store(session_factory):
    store = OccurrenceStore(session_factory)
    at = datetime(2024, 6, 3, 9, 0)
    snoozed = datetime(2024, 6, 3, 9, 10)
    store.put(Occurrence(id="naive", task_id="t", occurrence_at=at, snoozed_until=snoozed))

    loaded = store.get("naive")
    assert loaded.occurrence_at == at
    assert loaded.occurrence_at.tzinfo is None
    assert loaded.snoozed_until == snoozed
    assert [o.id for o in store.get_in_range(datetime(2024, 6, 3), datetime(2024, 6, 3, 23, 59))] == ["naive"]


@pytest.mark.parametrize(
    "model,column",
    [
        (Occurrence, "occurrence_at"),
        (Occurrence, "snoozed_until"),
        (Occurrence, "completed_at"),
        (Task, "due_at"),
        (Task, "created_at"),
    ],
)
def test_datetime_columns_store_without_zone(model, column):
    column_type = model.__table__.c[column].type
    assert isinstance(column_type, DateTime)
    assert column_type.timezone is False


def test_concurrent_reconciles_keep_one_row_per_instant(session_factory):
    rule = RepeatRule.weekly(["mon", "wed", "fri"], date(2024, 5, 1), date(2024, 7, 31), TimeOfDay(9, 0))
    task = _repeating(session_factory, rule)
    window = OccurrenceWindowSettings(lookback_days=30, lookahead_days=60)
    errors = []
    start = threading.Barrier(4)

    def worker():
        service = OccurrenceService(session_factory=session_factory, window=window, today=lambda: TODAY)
        try:
            start.wait()
            for _ in range(5):
                service.reconcile(task)
        except Exception as exc:  # collected for the assertion below
            errors.append(exc)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)

    assert errors == []
    stored = OccurrenceStore(session_factory).get_for_task(task.id)
    instants = [o.occurrence_at for o in stored]
    expected = expand(task, date(2024, 5, 2), date(2024, 7, 31))
    assert len(instants) == len(set(instants))
    assert sorted(instants) == expected


def test_purge_forgets_task_lock(session_factory, occurrence_service, mon_wed_rule):
    task = _repeating(session_factory, mon_wed_rule)
    occurrence_service.reconcile(task)
    assert task.id in OccurrenceService._locks

    occurrence_service.purge(task.id)
    assert task.id not in OccurrenceService._locks
