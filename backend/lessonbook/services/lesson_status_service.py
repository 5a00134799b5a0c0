# backend/lessonbook/services/lesson_status_service.py
"""
Lesson Status Service.

Public entry points for changing a lesson after it was booked. Each call
locks the lesson row, runs the state machine in one transaction and
dispatches the resulting events after commit.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import List, Optional, Union

from sqlalchemy.orm import Session

from ..core.clock import Clock
from ..core.config import Settings
from ..core.constants import MAX_RATING, MIN_RATING, MINUTES_PER_HOUR
from ..core.enums import LessonStatus
from ..core.exceptions import (
    BusinessRuleException,
    DomainException,
    NotFoundException,
    ValidationException,
)
from ..core.timezone_utils import ensure_stored_utc
from ..events.lesson_events import LessonFeedbackSubmitted, dispatch_all
from ..models.lesson import Lesson
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.lesson_repository import LessonRepository
from ..repositories.lesson_status_history_repository import LessonStatusHistoryRepository
from ..schemas.booking import Actor
from ..schemas.lesson import CancellationResult, StatusHistoryEntry, TimeoutSweepResult
from .base import BaseService
from .lesson_state_machine import LessonStateMachine, TransitionOutcome


class LessonStatusService(BaseService):
    def __init__(
        self,
        db: Session,
        *,
        state_machine: Optional[LessonStateMachine] = None,
        lesson_repository: Optional[LessonRepository] = None,
        history_repository: Optional[LessonStatusHistoryRepository] = None,
        clock: Optional[Clock] = None,
        config: Optional[Settings] = None,
    ):
        super().__init__(db, clock=clock, config=config)
        self.lesson_repository = lesson_repository or LessonRepository(db)
        self.history_repository = history_repository or LessonStatusHistoryRepository(db)
        self.state_machine = state_machine or LessonStateMachine(
            db,
            history_repository=self.history_repository,
            clock=self.clock,
            config=self.settings,
        )

    @BaseService.measure_operation("cancel_lesson")
    def cancel_lesson(
        self,
        lesson_id: str,
        actor: Actor,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> CancellationResult:
        """
        Cancel a scheduled lesson, releasing its hours and refunding per policy.

        Raises:
            NotFoundException: Unknown lesson
            InvalidTransitionError: Lesson is not scheduled or has already started
        """
        now = self.now(now)
        with self.transaction():
            lesson = self._lock_lesson(lesson_id)
            outcome = self.state_machine.transition(
                lesson, LessonStatus.CANCELLED, actor, reason, now
            )

        decision = outcome.decision
        refunded = bool(decision and decision.refund)
        prometheus_metrics.inc_lesson_cancelled(refunded, actor.role.value)
        dispatch_all(outcome.events)
        return CancellationResult(
            lesson_id=lesson_id,
            refunded=refunded,
            hours_credited=outcome.hours_credited,
            released_hours=outcome.released_hours,
            policy_basis=decision.policy_basis if decision else None,
        )

    @BaseService.measure_operation("transition_lesson")
    def transition_lesson(
        self,
        lesson_id: str,
        new_status: Union[LessonStatus, str],
        actor: Actor,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Lesson:
        """
        Move a lesson to any status other than ``cancelled``.

        Raises:
            ValidationException: Unknown status, or ``cancelled`` (use cancel_lesson)
            NotFoundException: Unknown lesson
            InvalidTransitionError: Edge not allowed at this time
        """
        try:
            target = LessonStatus.parse(new_status)
        except ValueError as exc:
            raise ValidationException(str(exc), code="UNKNOWN_STATUS") from exc
        if target == LessonStatus.CANCELLED:
            raise ValidationException(
                "Cancellations must go through cancel_lesson", code="USE_CANCEL_LESSON"
            )

        outcome = self._run_transition(lesson_id, target, actor, reason, self.now(now))
        return outcome.lesson

    def get_status_history(self, lesson_id: str) -> List[StatusHistoryEntry]:
        if not self.lesson_repository.exists(id=lesson_id):
            raise NotFoundException(f"Lesson {lesson_id} not found", code="LESSON_NOT_FOUND")
        return [
            StatusHistoryEntry.model_validate(row)
            for row in self.history_repository.list(lesson_id)
        ]

    @BaseService.measure_operation("submit_feedback")
    def submit_feedback(
        self,
        lesson_id: str,
        rating: int,
        feedback: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Lesson:
        """Record the student's rating of a completed lesson. Allowed once."""
        if isinstance(rating, bool) or not isinstance(rating, int) or not (
            MIN_RATING <= rating <= MAX_RATING
        ):
            raise ValidationException(
                f"Rating must be between {MIN_RATING} and {MAX_RATING}", code="INVALID_RATING"
            )
        now = self.now(now)

        with self.transaction():
            lesson = self._lock_lesson(lesson_id)
            if lesson.status_enum != LessonStatus.COMPLETED:
                raise BusinessRuleException(
                    f"Lesson {lesson_id} is {lesson.status}; only completed lessons can be rated",
                    code="LESSON_NOT_COMPLETED",
                )
            if lesson.feedback_submitted_at is not None:
                raise BusinessRuleException(
                    f"Feedback for lesson {lesson_id} was already submitted",
                    code="FEEDBACK_ALREADY_SUBMITTED",
                )
            lesson.student_rating = rating
            lesson.student_feedback = feedback.strip() if feedback else None
            lesson.feedback_submitted_at = now
            self.lesson_repository.flush()

        dispatch_all(
            [
                LessonFeedbackSubmitted(
                    lesson_id=lesson.id,
                    occurred_at=now,
                    tutor_id=lesson.tutor_id,
                    student_id=lesson.student_id,
                    rating=rating,
                )
            ]
        )
        return lesson

    @BaseService.measure_operation("complete_timed_out_lessons")
    def complete_timed_out_lessons(self, now: Optional[datetime] = None) -> TimeoutSweepResult:
        """
        Complete in-progress lessons whose abandon window has passed.

        Each lesson is handled in its own transaction; a failure is recorded
        and the sweep moves on.
        """
        now = self.now(now)
        result = TimeoutSweepResult()
        cutoff = now - timedelta(minutes=self.settings.lesson_abandon_minutes)

        for lesson in self.lesson_repository.list_in_progress_started_before(cutoff):
            if now - ensure_stored_utc(lesson.started_at) <= self.timeout_after(lesson):
                continue
            result.processed += 1
            try:
                self._run_transition(
                    lesson.id,
                    LessonStatus.COMPLETED,
                    Actor.system(),
                    "Completed automatically after timeout",
                    now,
                )
                result.completed += 1
            except DomainException as exc:
                self.logger.warning(
                    "Failed to complete timed-out lesson",
                    extra={"lesson_id": lesson.id, "error": exc.message},
                )
                result.errors.append(f"{lesson.id}: {exc.message}")

        self.log_operation(
            "complete_timed_out_lessons",
            processed=result.processed,
            completed=result.completed,
            errors=len(result.errors),
        )
        return result

    def timeout_after(self, lesson: Lesson) -> timedelta:
        """Running time after which an in-progress lesson is completed automatically."""
        overrun = self.settings.lesson_abandon_minutes - MINUTES_PER_HOUR
        return timedelta(minutes=max(lesson.duration_minutes + overrun, 0))

    def _run_transition(
        self,
        lesson_id: str,
        target: LessonStatus,
        actor: Actor,
        reason: Optional[str],
        now: datetime,
    ) -> TransitionOutcome:
        with self.transaction():
            lesson = self._lock_lesson(lesson_id)
            outcome = self.state_machine.transition(lesson, target, actor, reason, now)
        dispatch_all(outcome.events)
        return outcome

    def _lock_lesson(self, lesson_id: str) -> Lesson:
        lesson = self.lesson_repository.get_for_update(lesson_id)
        if lesson is None:
            raise NotFoundException(f"Lesson {lesson_id} not found", code="LESSON_NOT_FOUND")
        return lesson
