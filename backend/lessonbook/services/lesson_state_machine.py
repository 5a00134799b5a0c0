# backend/lessonbook/services/lesson_state_machine.py
"""
Lesson status state machine.

Every status change goes through ``LessonStateMachine.transition``, which
validates the edge, applies its side effects and appends exactly one
history row, all inside the caller's transaction. Events describing the
change are returned to the caller, who dispatches them after commit.

    scheduled --> in_progress | completed | cancelled | no_show_* | technical_issues
    in_progress --> completed | no_show_* | technical_issues

Everything else is terminal.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, FrozenSet, List, Optional

from sqlalchemy.orm import Session

from ..core.clock import Clock
from ..core.config import Settings
from ..core.constants import DEFAULT_STATUS_REASONS, MAX_REASON_LENGTH
from ..core.enums import ActorRole, LessonStatus
from ..core.exceptions import InvalidTransitionError, ValidationException
from ..events.lesson_events import (
    LessonCancelled,
    LessonCompleted,
    LessonEvent,
    LessonStatusChanged,
)
from ..models.lesson import Lesson
from ..models.lesson_status_history import LessonStatusHistory
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.lesson_status_history_repository import LessonStatusHistoryRepository
from ..schemas.booking import Actor
from .availability_service import AvailabilityService
from .base import BaseService
from .cancellation_policy import CancellationDecision, CancellationPolicyEngine
from .hour_ledger_service import HourLedgerService

NO_SHOW_STATUSES: FrozenSet[LessonStatus] = frozenset(
    {LessonStatus.NO_SHOW_STUDENT, LessonStatus.NO_SHOW_TUTOR}
)

ALLOWED_TRANSITIONS: Dict[LessonStatus, FrozenSet[LessonStatus]] = {
    LessonStatus.SCHEDULED: frozenset(
        {
            LessonStatus.IN_PROGRESS,
            LessonStatus.COMPLETED,
            LessonStatus.CANCELLED,
            LessonStatus.NO_SHOW_STUDENT,
            LessonStatus.NO_SHOW_TUTOR,
            LessonStatus.TECHNICAL_ISSUES,
        }
    ),
    LessonStatus.IN_PROGRESS: frozenset(
        {
            LessonStatus.COMPLETED,
            LessonStatus.NO_SHOW_STUDENT,
            LessonStatus.NO_SHOW_TUTOR,
            LessonStatus.TECHNICAL_ISSUES,
        }
    ),
}


@dataclass
class TransitionOutcome:
    lesson: Lesson
    previous_status: LessonStatus
    status: LessonStatus
    history: LessonStatusHistory
    decision: Optional[CancellationDecision] = None
    hours_credited: int = 0
    released_hours: List[int] = field(default_factory=list)
    events: List[LessonEvent] = field(default_factory=list)


class LessonStateMachine(BaseService):
    def __init__(
        self,
        db: Session,
        *,
        availability_service: Optional[AvailabilityService] = None,
        ledger_service: Optional[HourLedgerService] = None,
        policy: Optional[CancellationPolicyEngine] = None,
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
        self.policy = policy or CancellationPolicyEngine(self.settings)
        self.history_repository = history_repository or LessonStatusHistoryRepository(db)

    def allowed_targets(self, current: LessonStatus) -> FrozenSet[LessonStatus]:
        return ALLOWED_TRANSITIONS.get(current, frozenset())

    def start_window(self, lesson: Lesson, role: ActorRole) -> tuple[datetime, datetime]:
        """Earliest and latest instants at which ``role`` may start the lesson."""
        lesson_start = lesson.starts_at(self.settings.platform_timezone)
        if role == ActorRole.STUDENT:
            early = self.settings.student_early_join_minutes
        else:
            early = self.settings.tutor_early_start_minutes
        return (
            lesson_start - timedelta(minutes=early),
            lesson_start + timedelta(minutes=self.settings.lesson_abandon_minutes),
        )

    def refusal_reason(
        self,
        lesson: Lesson,
        new_status: LessonStatus,
        actor: Actor,
        now: datetime,
    ) -> Optional[str]:
        """Why the edge is not allowed right now, or None if it is."""
        current = lesson.status_enum
        if new_status not in self.allowed_targets(current):
            if current.is_terminal:
                return f"{current.value} is a final status"
            return "transition not allowed"

        lesson_start = lesson.starts_at(self.settings.platform_timezone)
        if new_status == LessonStatus.IN_PROGRESS:
            earliest, latest = self.start_window(lesson, actor.role)
            if now < earliest:
                return f"too early to start, earliest start is {earliest.isoformat()}"
            if now > latest:
                return "lesson start window has passed"
        elif new_status == LessonStatus.CANCELLED:
            if now > lesson_start:
                return "lesson has already started"
        elif new_status in NO_SHOW_STATUSES:
            if now < lesson_start:
                return "no-show cannot be recorded before the lesson starts"
        return None

    def validate(
        self, lesson: Lesson, new_status: LessonStatus, actor: Actor, now: datetime
    ) -> None:
        reason = self.refusal_reason(lesson, new_status, actor, now)
        if reason is not None:
            raise InvalidTransitionError(lesson.id, lesson.status, new_status.value, reason)

    def transition(
        self,
        lesson: Lesson,
        new_status: LessonStatus,
        actor: Actor,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> TransitionOutcome:
        """
        Move ``lesson`` to ``new_status``. Does not commit.

        Raises:
            InvalidTransitionError: The edge is not allowed; nothing was written
            ValidationException: The reason is too long
        """
        now = self.now(now)
        if reason is not None and len(reason) > MAX_REASON_LENGTH:
            raise ValidationException(
                f"Reason must be at most {MAX_REASON_LENGTH} characters", code="REASON_TOO_LONG"
            )
        self.validate(lesson, new_status, actor, now)

        previous = lesson.status_enum
        outcome_kwargs: dict = {}
        events: List[LessonEvent] = []

        if new_status == LessonStatus.CANCELLED:
            outcome_kwargs = self._apply_cancellation(lesson, actor, reason, now)
            events.append(
                LessonCancelled(
                    lesson_id=lesson.id,
                    occurred_at=now,
                    tutor_id=lesson.tutor_id,
                    student_id=lesson.student_id,
                    cancelled_by=actor.role.value,
                    refunded=outcome_kwargs["decision"].refund,
                    hours_credited=outcome_kwargs["hours_credited"],
                )
            )
        elif new_status == LessonStatus.IN_PROGRESS:
            lesson.started_at = now
        elif new_status == LessonStatus.COMPLETED:
            lesson.completed_at = now
            events.append(
                LessonCompleted(
                    lesson_id=lesson.id,
                    occurred_at=now,
                    tutor_id=lesson.tutor_id,
                    student_id=lesson.student_id,
                    duration_hours=lesson.duration_hours,
                )
            )
        elif new_status == LessonStatus.NO_SHOW_TUTOR and lesson.package_assignment_id:
            # The student is not charged when the tutor does not turn up
            self.ledger_service.credit(lesson.package_assignment_id, lesson.duration_hours)
            outcome_kwargs["hours_credited"] = lesson.duration_hours

        lesson.status = new_status.value
        lesson.status_updated_at = now

        history = self.history_repository.write(
            LessonStatusHistory(
                lesson_id=lesson.id,
                status=new_status.value,
                previous_status=previous.value,
                reason=reason or DEFAULT_STATUS_REASONS[new_status],
                changed_by_role=actor.role.value,
                changed_by_user_id=actor.user_id,
                created_at=now,
            )
        )
        events.insert(
            0,
            LessonStatusChanged(
                lesson_id=lesson.id,
                occurred_at=now,
                previous_status=previous.value,
                status=new_status.value,
                changed_by_role=actor.role.value,
            ),
        )
        prometheus_metrics.inc_lesson_transition(previous.value, new_status.value)

        self.logger.info(
            "Lesson status changed",
            extra={
                "lesson_id": lesson.id,
                "from": previous.value,
                "to": new_status.value,
                "actor_role": actor.role.value,
            },
        )
        return TransitionOutcome(
            lesson=lesson,
            previous_status=previous,
            status=new_status,
            history=history,
            events=events,
            **outcome_kwargs,
        )

    def _apply_cancellation(
        self, lesson: Lesson, actor: Actor, reason: Optional[str], now: datetime
    ) -> dict:
        decision = self.policy.evaluate(lesson, now, cancelled_by=actor.role)
        released = self.availability_service.release(
            lesson.tutor_id, lesson.lesson_date, lesson.hour_range
        )
        hours_credited = self.policy.hours_to_credit(decision, lesson)
        if hours_credited:
            self.ledger_service.credit(lesson.package_assignment_id, hours_credited)

        lesson.cancelled_by = actor.role.value
        lesson.cancelled_by_user_id = actor.user_id
        lesson.cancelled_at = now
        lesson.cancellation_reason = reason
        lesson.hours_refunded = decision.refund and bool(hours_credited)

        self.logger.info(
            "Cancellation policy applied",
            extra={"lesson_id": lesson.id, **decision.to_payload(), "credited": hours_credited},
        )
        return {"decision": decision, "hours_credited": hours_credited, "released_hours": released}
