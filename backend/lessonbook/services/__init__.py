"""
Service layer for the lesson scheduling core.

Services own transactions and business rules; repositories own SQL.
"""

from .availability_service import AvailabilityQuery, AvailabilityService
from .base import BaseService
from .booking_service import BookingService
from .cancellation_policy import CancellationDecision, CancellationPolicyEngine
from .hour_ledger_service import HourLedgerService
from .lesson_state_machine import ALLOWED_TRANSITIONS, LessonStateMachine, TransitionOutcome
from .lesson_status_service import LessonStatusService
from .tutor_statistics_service import (
    TutorStatisticsService,
    build_statistics_listener,
    register_statistics_listener,
)

__all__ = [
    "ALLOWED_TRANSITIONS",
    "AvailabilityQuery",
    "AvailabilityService",
    "BaseService",
    "BookingService",
    "CancellationDecision",
    "CancellationPolicyEngine",
    "HourLedgerService",
    "LessonStateMachine",
    "LessonStatusService",
    "TransitionOutcome",
    "TutorStatisticsService",
    "build_statistics_listener",
    "register_statistics_listener",
]
