"""
Repository layer for the lesson scheduling core.

Repositories own every SQL statement; services own transactions.
"""

from .availability_repository import AvailabilityRepository
from .base_repository import BaseRepository, IRepository
from .lesson_repository import LessonRepository
from .lesson_status_history_repository import LessonStatusHistoryRepository
from .package_assignment_repository import PackageAssignmentRepository, PackageRepository
from .tutor_statistics_repository import TutorStatisticsRepository

__all__ = [
    "AvailabilityRepository",
    "BaseRepository",
    "IRepository",
    "LessonRepository",
    "LessonStatusHistoryRepository",
    "PackageAssignmentRepository",
    "PackageRepository",
    "TutorStatisticsRepository",
]
