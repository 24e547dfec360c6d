# taskwise/models/reminder.py
from __future__ import annotations

import uuid

from sqlmodel import Field, SQLModel


class Reminder(SQLModel, table=True):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    task_id: str = Field(index=True, foreign_key="task.id")
    # 0 fires at the occurrence time, positive values fire that many minutes before.
    offset_minutes: int = 0
    enabled: bool = True


__all__ = ["Reminder"]
