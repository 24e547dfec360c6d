"""Single-row table holding the passcode lock configuration."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from utils.datetime_utils import local_now


class AuthState(SQLModel, table=True):
    id: str = Field(default="main", primary_key=True)
    passcode_hash: Optional[str] = None
    biometric_enabled: bool = False
    updated_at: datetime = Field(default_factory=local_now, sa_type=DateTime)


__all__ = ["AuthState"]
