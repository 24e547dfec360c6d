# taskwise/models/tag.py
from __future__ import annotations

from datetime import datetime
import uuid

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from utils.datetime_utils import local_now


class Tag(SQLModel, table=True):
    __tablename__ = "tags"
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    name: str = Field(unique=True, index=True)
    color_hex: str
    created_at: datetime = Field(default_factory=local_now, sa_type=DateTime)
    updated_at: datetime = Field(default_factory=local_now, sa_type=DateTime)


class TaskTag(SQLModel, table=True):
    __tablename__ = "task_tags"

    task_id: str = Field(primary_key=True, foreign_key="task.id")
    tag_id: str = Field(primary_key=True, foreign_key="tags.id")


__all__ = ["Tag", "TaskTag"]
