# backend/lessonbook/repositories/lesson_status_history_repository.py
"""
Repository helpers for the append-only lesson status history.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..models.lesson_status_history import LessonStatusHistory


class LessonStatusHistoryRepository:
    """Persist and query status history entries. There is no update or delete."""

    def __init__(self, db: Session):
        self.db = db

    def write(self, entry: LessonStatusHistory) -> LessonStatusHistory:
        """Persist a new history row inside the active transaction."""
        self.db.add(entry)
        self.db.flush()
        return entry

    def list(self, lesson_id: str) -> list[LessonStatusHistory]:
        """Return history rows for a lesson in the order they were written."""
        stmt = (
            select(LessonStatusHistory)
            .where(LessonStatusHistory.lesson_id == lesson_id)
            .order_by(LessonStatusHistory.id)
        )
        return list(self.db.execute(stmt).scalars().all())

    def count(self, lesson_id: Optional[str] = None) -> int:
        stmt = select(func.count()).select_from(LessonStatusHistory)
        if lesson_id is not None:
            stmt = stmt.where(LessonStatusHistory.lesson_id == lesson_id)
        return int(self.db.execute(stmt).scalar_one())
