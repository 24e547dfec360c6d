# taskwise/models/occurrence.py
from __future__ import annotations

from datetime import datetime
from typing import Optional
import uuid

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


OCCURRENCE_STATES = ("pending", "completed", "skipped")


class Occurrence(SQLModel, table=True):
    """One dated instance of a task, materialized by the reconciler."""

    # Instants are naive local wall-clock values, stored without a zone.
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    task_id: str = Field(index=True)
    occurrence_at: datetime = Field(index=True, sa_type=DateTime)
    state: str = Field(default="pending")
    snoozed_until: Optional[datetime] = Field(default=None, sa_type=DateTime)
    completed_at: Optional[datetime] = Field(default=None, sa_type=DateTime)


__all__ = ["OCCURRENCE_STATES", "Occurrence"]
