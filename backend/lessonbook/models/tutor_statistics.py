"""Per-tutor counters maintained by lesson event listeners, outside booking transactions."""

from __future__ import annotations

from typing import Optional

from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.sql import func

from lessonbook.database import Base


class TutorStatistics(Base):
    __tablename__ = "tutor_statistics"

    tutor_id = Column(String(26), primary_key=True)
    completed_lessons = Column(Integer, nullable=False, default=0)
    rating_count = Column(Integer, nullable=False, default=0)
    rating_total = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @property
    def average_rating(self) -> Optional[float]:
        if not self.rating_count:
            return None
        return round(self.rating_total / self.rating_count, 2)

    def __repr__(self) -> str:
        return f"<TutorStatistics {self.tutor_id}: completed={self.completed_lessons}>"
