"""Cancellation refund policy for booked lessons."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from ..core.config import Settings, settings as default_settings
from ..core.enums import ActorRole, LessonStatus
from ..core.timezone_utils import ensure_utc
from ..models.lesson import Lesson


@dataclass(frozen=True)
class CancellationDecision:
    refund: bool
    hours_before_start: float
    policy_basis: str = ""

    def to_payload(self) -> dict[str, object]:
        return {
            "refund": self.refund,
            "hours_before_start": round(self.hours_before_start, 4),
            "policy_basis": self.policy_basis,
        }


class CancellationPolicyEngine:
    """
    Decides whether a cancellation returns the lesson's hours to the package.

    Evaluation is pure: it reads the lesson and the given instant, and
    never touches the database. Applying the decision (release, credit) is
    the caller's job.
    """

    def __init__(self, config: Optional[Settings] = None):
        self.settings = config or default_settings

    @property
    def free_cancellation_window(self) -> timedelta:
        return timedelta(hours=self.settings.free_cancellation_hours)

    def evaluate(
        self,
        lesson: Lesson,
        cancellation_time: datetime,
        *,
        cancelled_by: Optional[ActorRole] = None,
    ) -> CancellationDecision:
        lesson_start = lesson.starts_at(self.settings.platform_timezone)
        notice = lesson_start - ensure_utc(cancellation_time, self.settings.platform_timezone)
        hours_before_start = notice.total_seconds() / 3600

        if lesson.status_enum != LessonStatus.SCHEDULED:
            return CancellationDecision(
                refund=False,
                hours_before_start=hours_before_start,
                policy_basis=f"Lesson is {lesson.status}: no refund",
            )

        if (
            cancelled_by in (ActorRole.TUTOR, ActorRole.ADMIN)
            and self.settings.staff_cancellation_always_refunds
        ):
            return CancellationDecision(
                refund=True,
                hours_before_start=hours_before_start,
                policy_basis=f"Cancelled by {cancelled_by.value}: full refund (policy override)",
            )

        if notice <= timedelta(0):
            return CancellationDecision(
                refund=False,
                hours_before_start=hours_before_start,
                policy_basis="Lesson already started: no refund",
            )

        window = self.settings.free_cancellation_hours
        if notice >= self.free_cancellation_window:
            return CancellationDecision(
                refund=True,
                hours_before_start=hours_before_start,
                policy_basis=f">={window} hours before lesson: hours returned to package",
            )

        return CancellationDecision(
            refund=False,
            hours_before_start=hours_before_start,
            policy_basis=f"<{window} hours before lesson: hours forfeited",
        )

    @staticmethod
    def hours_to_credit(decision: CancellationDecision, lesson: Lesson) -> int:
        """Hours the caller should credit back; zero for lessons booked without a package."""
        if not decision.refund or not lesson.package_assignment_id:
            return 0
        return lesson.duration_hours
