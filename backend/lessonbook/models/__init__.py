"""
Database models for the lesson scheduling core.

- Availability: hourly units per tutor and date
- Packages: catalogue packages and per-student hour ledgers
- Lessons: bookings and their append-only status history
- Tutor statistics: counters fed by lesson events
"""

from .availability import AvailabilityUnit
from .lesson import Lesson
from .lesson_status_history import LessonStatusHistory
from .package import Package, PackageAssignment
from .tutor_statistics import TutorStatistics

__all__ = [
    "AvailabilityUnit",
    "Lesson",
    "LessonStatusHistory",
    "Package",
    "PackageAssignment",
    "TutorStatistics",
]
