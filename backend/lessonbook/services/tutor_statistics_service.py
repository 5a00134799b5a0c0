"""
Tutor statistics, kept up to date by lesson event listeners.

The listener runs after the lesson transaction has committed and uses its
own session, so a statistics failure can never undo a completed lesson.
"""

from __future__ import annotations

from typing import Callable, Optional

from sqlalchemy.orm import Session

from ..database import SessionLocal
from ..events.lesson_events import (
    LessonCompleted,
    LessonEvent,
    LessonEventListener,
    LessonEvents,
    LessonFeedbackSubmitted,
)
from ..models.tutor_statistics import TutorStatistics
from ..repositories.tutor_statistics_repository import TutorStatisticsRepository
from .base import BaseService


class TutorStatisticsService(BaseService):
    def __init__(self, db: Session, repository: Optional[TutorStatisticsRepository] = None):
        super().__init__(db)
        self.repository = repository or TutorStatisticsRepository(db)

    def get_statistics(self, tutor_id: str) -> Optional[TutorStatistics]:
        return self.repository.get_by_id(tutor_id)

    @BaseService.measure_operation("record_completed_lesson")
    def record_completed_lesson(self, tutor_id: str) -> None:
        with self.transaction():
            self.repository.increment_completed(tutor_id)

    @BaseService.measure_operation("record_rating")
    def record_rating(self, tutor_id: str, rating: int) -> None:
        with self.transaction():
            self.repository.add_rating(tutor_id, rating)

    def handle_event(self, event: LessonEvent) -> None:
        if isinstance(event, LessonCompleted):
            self.record_completed_lesson(event.tutor_id)
        elif isinstance(event, LessonFeedbackSubmitted):
            self.record_rating(event.tutor_id, event.rating)


def build_statistics_listener(
    session_factory: Callable[[], Session] = SessionLocal,
) -> LessonEventListener:
    """Listener that applies lesson events to tutor statistics in a fresh session."""

    def listener(event: LessonEvent) -> None:
        if not isinstance(event, (LessonCompleted, LessonFeedbackSubmitted)):
            return
        db = session_factory()
        try:
            TutorStatisticsService(db).handle_event(event)
        finally:
            db.close()

    return listener


def register_statistics_listener(
    session_factory: Callable[[], Session] = SessionLocal,
) -> LessonEventListener:
    listener = build_statistics_listener(session_factory)
    LessonEvents.register(listener)
    return listener
