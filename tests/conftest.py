import os
import tempfile
from datetime import date, datetime

# Keep logs and the default database out of the real user data directory.
os.environ.setdefault("TASKWISE_DATA_DIR", tempfile.mkdtemp(prefix="taskwise-tests-"))

import pytest  # noqa: E402
from sqlmodel import Session, create_engine  # noqa: E402

from core.settings import OccurrenceWindowSettings  # noqa: E402
from models.task import RepeatRule, TimeOfDay  # noqa: E402
from services.occurrences import OccurrenceService  # noqa: E402
from services.tasks import TaskService  # noqa: E402
from storage.db import init_db  # noqa: E402


TODAY = date(2024, 6, 1)
NOW = datetime(2024, 6, 1, 8, 30)


@pytest.fixture()
def engine(tmp_path):
    engine = create_engine(f"sqlite:///{(tmp_path / 'test.db').as_posix()}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    def factory():
        return Session(engine, expire_on_commit=False)

    return factory


@pytest.fixture()
def occurrence_service(session_factory):
    return OccurrenceService(
        session_factory=session_factory,
        window=OccurrenceWindowSettings(lookback_days=30, lookahead_days=60),
        today=lambda: TODAY,
        now=lambda: NOW,
    )


@pytest.fixture()
def task_service(session_factory, occurrence_service):
    return TaskService(session_factory=session_factory, occurrences=occurrence_service)


@pytest.fixture()
def mon_wed_rule():
    return RepeatRule.weekly(
        ["mon", "wed"],
        date(2024, 6, 3),
        date(2024, 6, 14),
        time_of_day=TimeOfDay(9, 0),
    )
