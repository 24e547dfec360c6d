# taskwise/models/subtask.py
from __future__ import annotations

import uuid

from sqlmodel import Field, SQLModel


class Subtask(SQLModel, table=True):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    task_id: str = Field(index=True, foreign_key="task.id")
    title: str
    completed: bool = False
    position: int = 0


__all__ = ["Subtask"]
