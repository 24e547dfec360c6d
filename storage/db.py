# taskwise/storage/db.py
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import SQLModel, create_engine, Session

from core.errors import StorageError
from core.log import get_logger
from core.settings import DB_PATH

# Ensure SQLModel metadata is populated
import models  # noqa: F401
from storage import migrations


logger = get_logger("taskwise.storage")

_engine = create_engine(f"sqlite:///{DB_PATH.as_posix()}", echo=False)


def init_db(engine=None):
    actual_engine = engine or _engine
    if engine is None:
        DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    SQLModel.metadata.create_all(actual_engine)
    migrations.run_all(actual_engine)


def get_session() -> Session:
    # Records outlive their session (services hand them to callers), so keep
    # loaded attributes after commit.
    return Session(_engine, expire_on_commit=False)


@contextmanager
def transaction(
    session_factory: Callable[[], Session] = get_session,
    session: Optional[Session] = None,
) -> Iterator[Session]:
    """Yield a session whose work is committed as one unit.

    With an outer ``session`` the work joins it and the owner commits.
    Database errors surface as :class:`StorageError`; an owned session is
    rolled back first.
    """

    if session is not None:
        try:
            yield session
        except SQLAlchemyError as exc:
            logger.error("Storage operation failed: %s", exc)
            raise StorageError(str(exc)) from exc
        return

    with session_factory() as own:
        try:
            yield own
            own.commit()
        except SQLAlchemyError as exc:
            own.rollback()
            logger.error("Storage operation failed: %s", exc)
            raise StorageError(str(exc)) from exc
