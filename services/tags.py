# taskwise/services/tags.py
from __future__ import annotations

import re
from typing import Callable, Dict, Iterable, List, Optional, Set

from sqlmodel import Session, select

from models.tag import Tag, TaskTag
from storage.db import get_session, transaction
from utils.datetime_utils import local_now


NAME_RE = re.compile(r"^.{1,40}$")
COLOR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")


class TagService:
    def __init__(self, session_factory: Callable[[], Session] = get_session):
        self._session_factory = session_factory

    def list(self) -> List[Tag]:
        with self._session_factory() as session:
            stmt = select(Tag).order_by(Tag.name.asc())
            return list(session.exec(stmt))

    def create(self, name: str, color_hex: str) -> Tag:
        name = name.strip()
        self._validate_name(name)
        self._validate_color(color_hex)
        self._ensure_unique(name)
        with transaction(self._session_factory) as session:
            tag = Tag(name=name, color_hex=color_hex.upper())
            session.add(tag)
        return tag

    def rename(self, tag_id: str, new_name: str) -> Optional[Tag]:
        new_name = new_name.strip()
        self._validate_name(new_name)
        self._ensure_unique(new_name, exclude_id=tag_id)
        with transaction(self._session_factory) as session:
            tag = session.get(Tag, tag_id)
            if not tag:
                return None
            tag.name = new_name
            tag.updated_at = local_now()
            session.add(tag)
        return tag

    def recolor(self, tag_id: str, color_hex: str) -> Optional[Tag]:
        self._validate_color(color_hex)
        with transaction(self._session_factory) as session:
            tag = session.get(Tag, tag_id)
            if not tag:
                return None
            tag.color_hex = color_hex.upper()
            tag.updated_at = local_now()
            session.add(tag)
        return tag

    def delete(self, tag_id: str) -> None:
        with transaction(self._session_factory) as session:
            tag = session.get(Tag, tag_id)
            if not tag:
                return
            for link in session.exec(select(TaskTag).where(TaskTag.tag_id == tag_id)):
                session.delete(link)
            session.delete(tag)

    def set_for_task(self, task_id: str, tag_ids: Iterable[str]) -> None:
        unique_ids = set(tag_ids)
        with transaction(self._session_factory) as session:
            existing = list(session.exec(select(TaskTag).where(TaskTag.task_id == task_id)))
            for link in existing:
                if link.tag_id not in unique_ids:
                    session.delete(link)
            existing_ids = {link.tag_id for link in existing}
            for tag_id in unique_ids - existing_ids:
                session.add(TaskTag(task_id=task_id, tag_id=tag_id))

    def add_to_task(self, task_id: str, tag_id: str) -> None:
        with transaction(self._session_factory) as session:
            if session.get(TaskTag, (task_id, tag_id)):
                return
            session.add(TaskTag(task_id=task_id, tag_id=tag_id))

    def remove_from_task(self, task_id: str, tag_id: str) -> None:
        with transaction(self._session_factory) as session:
            link = session.get(TaskTag, (task_id, tag_id))
            if link:
                session.delete(link)

    def get_for_task(self, task_id: str) -> List[Tag]:
        with self._session_factory() as session:
            stmt = (
                select(Tag)
                .join(TaskTag, Tag.id == TaskTag.tag_id)
                .where(TaskTag.task_id == task_id)
                .order_by(Tag.name.asc())
            )
            return list(session.exec(stmt))

    def tag_ids_by_task(self) -> Dict[str, Set[str]]:
        """Map of task id to its tag ids, for filtering occurrence lists."""

        with self._session_factory() as session:
            links = list(session.exec(select(TaskTag)))
        result: Dict[str, Set[str]] = {}
        for link in links:
            result.setdefault(link.task_id, set()).add(link.tag_id)
        return result

    # ------------------------------------------------------------------
    def _ensure_unique(self, name: str, *, exclude_id: Optional[str] = None) -> None:
        with self._session_factory() as session:
            clash = session.exec(select(Tag).where(Tag.name == name)).first()
        if clash is not None and clash.id != exclude_id:
            raise ValueError(f"Tag '{name}' already exists")

    def _validate_name(self, name: str) -> None:
        if not NAME_RE.match(name):
            raise ValueError("Tag name must be between 1 and 40 characters")

    def _validate_color(self, color_hex: str) -> None:
        if not COLOR_RE.match(color_hex):
            raise ValueError("Color must be in #RRGGBB format")


__all__ = ["TagService"]
