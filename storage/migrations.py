"""Ad-hoc database migrations for Taskwise.

``create_all`` builds the tables; this module adds the composite indexes
it does not declare. Every step is idempotent.
"""

from __future__ import annotations

from sqlalchemy import text


def ensure_occurrence_indexes(conn) -> None:
    # Range scans for the calendar and per-task loads during reconciliation.
    conn.execute(
        text(
            """
            CREATE INDEX IF NOT EXISTS ix_occurrence_task_at
            ON occurrence (task_id, occurrence_at)
            """
        )
    )


def ensure_tag_indexes(conn) -> None:
    conn.execute(text("CREATE INDEX IF NOT EXISTS ix_task_tags_task ON task_tags(task_id)"))
    conn.execute(text("CREATE INDEX IF NOT EXISTS ix_task_tags_tag ON task_tags(tag_id)"))


def run_all(engine) -> None:
    with engine.begin() as conn:
        ensure_occurrence_indexes(conn)
        ensure_tag_indexes(conn)


__all__ = ["run_all"]
