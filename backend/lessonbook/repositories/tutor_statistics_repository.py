"""Repository for per-tutor statistics counters."""

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.orm import Session

from ..models.tutor_statistics import TutorStatistics
from .base_repository import BaseRepository


class TutorStatisticsRepository(BaseRepository[TutorStatistics]):
    def __init__(self, db: Session):
        super().__init__(db, TutorStatistics)

    def get_or_create(self, tutor_id: str) -> TutorStatistics:
        stats = self.get_by_id(tutor_id)
        if stats is None:
            stats = self.create(
                tutor_id=tutor_id, completed_lessons=0, rating_count=0, rating_total=0
            )
        return stats

    def increment_completed(self, tutor_id: str) -> None:
        stats = self.get_or_create(tutor_id)
        self.db.execute(
            update(TutorStatistics)
            .where(TutorStatistics.tutor_id == tutor_id)
            .values(completed_lessons=TutorStatistics.completed_lessons + 1)
            .execution_options(synchronize_session=False)
        )
        self.db.expire(stats)

    def add_rating(self, tutor_id: str, rating: int) -> None:
        stats = self.get_or_create(tutor_id)
        self.db.execute(
            update(TutorStatistics)
            .where(TutorStatistics.tutor_id == tutor_id)
            .values(
                rating_count=TutorStatistics.rating_count + 1,
                rating_total=TutorStatistics.rating_total + rating,
            )
            .execution_options(synchronize_session=False)
        )
        self.db.expire(stats)
