# backend/lessonbook/services/booking_service.py
"""
Booking Service for the lesson scheduling core.

A booking is one transaction: reserve the tutor's hours, debit the
student's package, create the lesson and write its first history row.
Any failure rolls all of it back; the LessonBooked event is only
dispatched once the transaction has committed.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, Optional, Union

from sqlalchemy.orm import Session

from ..core.clock import Clock
from ..core.config import Settings
from ..core.constants import DEFAULT_STATUS_REASONS
from ..core.enums import ActorRole, LessonStatus
from ..core.exceptions import BusinessRuleException, ValidationException
from ..core.timezone_utils import combine_local
from ..events.lesson_events import LessonBooked, LessonEvents
from ..models.lesson import Lesson
from ..models.lesson_status_history import LessonStatusHistory
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.lesson_repository import LessonRepository
from ..repositories.lesson_status_history_repository import LessonStatusHistoryRepository
from ..schemas.base import parse_request
from ..schemas.booking import Actor, BookingRequest
from .availability_service import AvailabilityService
from .base import BaseService
from .hour_ledger_service import HourLedgerService


class BookingService(BaseService):
    """Creates lessons from booking requests."""

    def __init__(
        self,
        db: Session,
        *,
        availability_service: Optional[AvailabilityService] = None,
        ledger_service: Optional[HourLedgerService] = None,
        lesson_repository: Optional[LessonRepository] = None,
        history_repository: Optional[LessonStatusHistoryRepository] = None,
        clock: Optional[Clock] = None,
        config: Optional[Settings] = None,
    ):
        super().__init__(db, clock=clock, config=config)
        self.availability_service = availability_service or AvailabilityService(
            db, clock=self.clock, config=self.settings
        )
        self.ledger_service = ledger_service or HourLedgerService(
            db, clock=self.clock, config=self.settings
        )
        self.lesson_repository = lesson_repository or LessonRepository(db)
        self.history_repository = history_repository or LessonStatusHistoryRepository(db)

    @BaseService.measure_operation("book_lesson")
    def book_lesson(
        self,
        request: Union[BookingRequest, Mapping[str, Any]],
        *,
        actor: Optional[Actor] = None,
        now: Optional[datetime] = None,
    ) -> Lesson:
        """
        Book a lesson.

        Args:
            request: Validated request, or a raw payload to validate
            actor: Who is booking (defaults to the student)
            now: Booking instant (defaults to the service clock)

        Returns:
            The committed lesson, status ``scheduled``

        Raises:
            ValidationException: Malformed request or package owned by someone else
            BusinessRuleException: Lesson would start in the past
            SlotUnavailableError: Hours not open or full
            LedgerError: Package cannot pay for the lesson
        """
        if not isinstance(request, BookingRequest):
            request = parse_request(BookingRequest, request)
        actor = actor or Actor(role=ActorRole.STUDENT, user_id=request.student_id)
        now = self.now(now)
        hour_range = request.hour_range

        lesson_start = combine_local(
            request.lesson_date, request.start_time, self.settings.platform_timezone
        )
        if lesson_start <= now:
            raise BusinessRuleException(
                f"Lesson on {request.lesson_date} at {request.start_time} is in the past",
                code="LESSON_IN_PAST",
                details={"lesson_start": lesson_start.isoformat(), "now": now.isoformat()},
            )

        with self.transaction():
            self.availability_service.reserve(request.tutor_id, request.lesson_date, hour_range)

            if request.package_assignment_id:
                assignment = self.ledger_service.get_assignment(request.package_assignment_id)
                if assignment.student_id != request.student_id:
                    raise ValidationException(
                        "Package assignment does not belong to this student",
                        code="PACKAGE_NOT_OWNED",
                        details={"package_assignment_id": request.package_assignment_id},
                    )
                self.ledger_service.debit(assignment.id, len(hour_range), now=now)

            lesson = self.lesson_repository.create(
                tutor_id=request.tutor_id,
                student_id=request.student_id,
                package_assignment_id=request.package_assignment_id,
                lesson_date=request.lesson_date,
                start_time=request.start_time,
                end_time=hour_range.end_time(),
                duration_minutes=request.duration_minutes,
                status=LessonStatus.SCHEDULED.value,
                status_updated_at=now,
                lesson_type=request.lesson_type.value,
                language=request.language,
                topic=request.topic,
                notes=request.notes,
            )
            self.history_repository.write(
                LessonStatusHistory(
                    lesson_id=lesson.id,
                    status=LessonStatus.SCHEDULED.value,
                    previous_status=None,
                    reason=DEFAULT_STATUS_REASONS[LessonStatus.SCHEDULED],
                    changed_by_role=actor.role.value,
                    changed_by_user_id=actor.user_id,
                    created_at=now,
                )
            )

        prometheus_metrics.inc_lesson_booked(
            "package" if request.package_assignment_id else "none"
        )
        self.log_operation(
            "book_lesson",
            lesson_id=lesson.id,
            tutor_id=lesson.tutor_id,
            student_id=lesson.student_id,
            hours=hour_range.label(),
        )
        LessonEvents.dispatch(
            LessonBooked(
                lesson_id=lesson.id,
                occurred_at=now,
                tutor_id=lesson.tutor_id,
                student_id=lesson.student_id,
                lesson_date=lesson.lesson_date,
                start_hour=hour_range.start,
                duration_hours=len(hour_range),
                package_assignment_id=lesson.package_assignment_id,
            )
        )
        return lesson
