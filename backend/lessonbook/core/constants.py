"""Scheduling constants that are not environment-tunable."""

from __future__ import annotations

from .enums import LessonStatus

MINUTES_PER_HOUR = 60

# Legacy half-day blocks, exposed only as a read-time view over hourly units.
COARSE_BLOCKS: dict[str, tuple[int, int]] = {
    "morning": (8, 16),
    "afternoon": (14, 22),
}

# Text constraints
MAX_REASON_LENGTH = 500
MAX_TOPIC_LENGTH = 255
MIN_RATING = 1
MAX_RATING = 5

DEFAULT_STATUS_REASONS: dict[LessonStatus, str] = {
    LessonStatus.SCHEDULED: "Lesson scheduled",
    LessonStatus.IN_PROGRESS: "Lesson started",
    LessonStatus.COMPLETED: "Lesson completed",
    LessonStatus.CANCELLED: "Lesson cancelled",
    LessonStatus.NO_SHOW_STUDENT: "Student did not attend",
    LessonStatus.NO_SHOW_TUTOR: "Tutor did not attend",
    LessonStatus.TECHNICAL_ISSUES: "Technical issues",
}
