# backend/lessonbook/repositories/lesson_repository.py
"""
Lesson Repository.

Loads lessons for the state machine (always under a row lock) and finds
in-progress lessons that have run past their abandon window.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..core.enums import LessonStatus
from ..models.lesson import Lesson
from .base_repository import BaseRepository


class LessonRepository(BaseRepository[Lesson]):
    def __init__(self, db: Session):
        super().__init__(db, Lesson)

    def get_for_update(self, lesson_id: str) -> Optional[Lesson]:
        """Lock the lesson row so concurrent transitions serialize."""
        return self.get_by_id(lesson_id, for_update=True)

    def list_in_progress_started_before(self, cutoff: datetime) -> List[Lesson]:
        """In-progress lessons started at or before ``cutoff`` (aware UTC), oldest first."""
        stmt = (
            select(Lesson)
            .where(
                Lesson.status == LessonStatus.IN_PROGRESS.value,
                Lesson.started_at <= cutoff,
            )
            .order_by(Lesson.started_at, Lesson.id)
        )
        return list(self.db.execute(stmt).scalars().all())
