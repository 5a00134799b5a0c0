# backend/lessonbook/models/lesson_status_history.py
"""
Append-only audit trail of lesson status transitions.

One row per accepted transition, including the initial ``None -> scheduled``
row written by the booking transaction. Existing rows can never be updated
or deleted; the mapper listeners below refuse both at flush time.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text, event
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from lessonbook.core.exceptions import RepositoryException
from lessonbook.database import Base


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class LessonStatusHistory(Base):
    __tablename__ = "lesson_status_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    lesson_id = Column(String(26), ForeignKey("lessons.id"), nullable=False)
    status = Column(String(20), nullable=False)
    previous_status = Column(String(20), nullable=True)
    reason = Column(Text, nullable=True)
    changed_by_role = Column(String(20), nullable=False)
    changed_by_user_id = Column(String(26), nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=_now_utc,
        server_default=func.now(),
    )

    lesson = relationship("Lesson", back_populates="status_history")

    __table_args__ = (Index("ix_lesson_status_history_lesson_id", "lesson_id", "id"),)

    def __repr__(self) -> str:
        return (
            f"<LessonStatusHistory {self.id}: lesson={self.lesson_id} "
            f"{self.previous_status}->{self.status} by={self.changed_by_role}>"
        )


@event.listens_for(LessonStatusHistory, "before_update")
def _refuse_history_update(mapper: Any, connection: Any, target: LessonStatusHistory) -> None:
    raise RepositoryException(f"Lesson status history row {target.id} is immutable")


@event.listens_for(LessonStatusHistory, "before_delete")
def _refuse_history_delete(mapper: Any, connection: Any, target: LessonStatusHistory) -> None:
    raise RepositoryException(f"Lesson status history row {target.id} cannot be deleted")
