from datetime import date, datetime, time, timezone
from unittest.mock import Mock

import pytest

from lessonbook.core.config import Settings
from lessonbook.core.enums import ActorRole, LessonStatus
from lessonbook.core.exceptions import InvalidTransitionError, ValidationException
from lessonbook.events.lesson_events import LessonCompleted, LessonStatusChanged
from lessonbook.models.lesson import Lesson
from lessonbook.schemas.booking import Actor
from lessonbook.services.lesson_state_machine import ALLOWED_TRANSITIONS, LessonStateMachine

START = datetime(2025, 3, 10, 10, 0, tzinfo=timezone.utc)
STUDENT = Actor(role=ActorRole.STUDENT, user_id="student-1")
TUTOR = Actor(role=ActorRole.TUTOR, user_id="tutor-1")


def _lesson(status: LessonStatus = LessonStatus.SCHEDULED, hours: int = 1) -> Lesson:
    return Lesson(
        id="lesson-1",
        tutor_id="tutor-1",
        student_id="student-1",
        package_assignment_id="pkg-1",
        lesson_date=date(2025, 3, 10),
        start_time=time(10, 0),
        end_time=time(10 + hours, 0),
        duration_minutes=hours * 60,
        status=status.value,
    )


@pytest.fixture
def machine() -> LessonStateMachine:
    history_repository = Mock()
    history_repository.write.side_effect = lambda entry: entry
    return LessonStateMachine(
        Mock(),
        availability_service=Mock(),
        ledger_service=Mock(),
        history_repository=history_repository,
        config=Settings(platform_timezone="UTC"),
    )


class TestAllowedTransitions:
    @pytest.mark.parametrize(
        "terminal",
        [
            LessonStatus.COMPLETED,
            LessonStatus.CANCELLED,
            LessonStatus.NO_SHOW_STUDENT,
            LessonStatus.NO_SHOW_TUTOR,
            LessonStatus.TECHNICAL_ISSUES,
        ],
    )
    def test_terminal_statuses_have_no_exits(self, machine, terminal):
        assert terminal not in ALLOWED_TRANSITIONS
        assert machine.allowed_targets(terminal) == frozenset()

    def test_in_progress_cannot_be_cancelled_or_rescheduled(self, machine):
        targets = machine.allowed_targets(LessonStatus.IN_PROGRESS)

        assert LessonStatus.CANCELLED not in targets
        assert LessonStatus.SCHEDULED not in targets
        assert LessonStatus.COMPLETED in targets

    def test_completed_back_to_scheduled_is_refused(self, machine):
        lesson = _lesson(LessonStatus.COMPLETED)

        with pytest.raises(InvalidTransitionError) as exc_info:
            machine.transition(lesson, LessonStatus.SCHEDULED, TUTOR, now=START)

        assert exc_info.value.code == "INVALID_TRANSITION"
        assert "final status" in exc_info.value.message
        assert lesson.status == LessonStatus.COMPLETED.value
        machine.history_repository.write.assert_not_called()


class TestStartWindow:
    def test_tutor_may_start_eleven_minutes_early(self, machine):
        earliest, latest = machine.start_window(_lesson(), ActorRole.TUTOR)

        assert earliest == datetime(2025, 3, 10, 9, 49, tzinfo=timezone.utc)
        assert latest == datetime(2025, 3, 10, 11, 20, tzinfo=timezone.utc)

    def test_student_may_join_ten_minutes_early(self, machine):
        earliest, _ = machine.start_window(_lesson(), ActorRole.STUDENT)

        assert earliest == datetime(2025, 3, 10, 9, 50, tzinfo=timezone.utc)

    @pytest.mark.parametrize(
        "now,allowed",
        [
            (datetime(2025, 3, 10, 9, 48, tzinfo=timezone.utc), False),
            (datetime(2025, 3, 10, 9, 49, tzinfo=timezone.utc), True),
            (datetime(2025, 3, 10, 11, 20, tzinfo=timezone.utc), True),
            (datetime(2025, 3, 10, 11, 21, tzinfo=timezone.utc), False),
        ],
    )
    def test_tutor_start_boundaries(self, machine, now, allowed):
        reason = machine.refusal_reason(_lesson(), LessonStatus.IN_PROGRESS, TUTOR, now)

        assert (reason is None) is allowed

    def test_student_too_early_at_tutor_boundary(self, machine):
        now = datetime(2025, 3, 10, 9, 49, tzinfo=timezone.utc)

        reason = machine.refusal_reason(_lesson(), LessonStatus.IN_PROGRESS, STUDENT, now)

        assert reason is not None and reason.startswith("too early")


class TestTimingRules:
    def test_cancel_after_start_is_refused(self, machine):
        now = datetime(2025, 3, 10, 10, 1, tzinfo=timezone.utc)

        assert machine.refusal_reason(_lesson(), LessonStatus.CANCELLED, STUDENT, now) == (
            "lesson has already started"
        )

    def test_no_show_before_start_is_refused(self, machine):
        now = datetime(2025, 3, 10, 9, 59, tzinfo=timezone.utc)

        assert machine.refusal_reason(_lesson(), LessonStatus.NO_SHOW_STUDENT, TUTOR, now)
        assert machine.refusal_reason(_lesson(), LessonStatus.NO_SHOW_STUDENT, TUTOR, START) is None


class TestTransitionEffects:
    def test_start_records_started_at_and_history(self, machine):
        lesson = _lesson()

        outcome = machine.transition(lesson, LessonStatus.IN_PROGRESS, TUTOR, now=START)

        assert lesson.status == LessonStatus.IN_PROGRESS.value
        assert lesson.started_at == START
        assert outcome.history.previous_status == LessonStatus.SCHEDULED.value
        assert outcome.history.reason == "Lesson started"
        assert outcome.history.changed_by_role == "tutor"
        assert [type(event) for event in outcome.events] == [LessonStatusChanged]

    def test_complete_emits_completed_event(self, machine):
        lesson = _lesson(LessonStatus.IN_PROGRESS, hours=2)

        outcome = machine.transition(lesson, LessonStatus.COMPLETED, TUTOR, now=START)

        assert lesson.completed_at == START
        completed = outcome.events[-1]
        assert isinstance(completed, LessonCompleted)
        assert completed.duration_hours == 2

    def test_tutor_no_show_credits_package(self, machine):
        lesson = _lesson(hours=2)

        outcome = machine.transition(lesson, LessonStatus.NO_SHOW_TUTOR, STUDENT, now=START)

        machine.ledger_service.credit.assert_called_once_with("pkg-1", 2)
        assert outcome.hours_credited == 2

    def test_student_no_show_keeps_hours(self, machine):
        machine.transition(_lesson(), LessonStatus.NO_SHOW_STUDENT, TUTOR, now=START)

        machine.ledger_service.credit.assert_not_called()

    def test_cancel_releases_and_credits(self, machine):
        machine.availability_service.release.return_value = [10]
        lesson = _lesson()
        now = datetime(2025, 3, 9, 9, 0, tzinfo=timezone.utc)

        outcome = machine.transition(lesson, LessonStatus.CANCELLED, STUDENT, "Sick", now)

        machine.availability_service.release.assert_called_once()
        machine.ledger_service.credit.assert_called_once_with("pkg-1", 1)
        assert outcome.decision.refund is True
        assert outcome.released_hours == [10]
        assert lesson.cancelled_by == "student"
        assert lesson.cancellation_reason == "Sick"
        assert lesson.hours_refunded is True

    def test_overlong_reason_is_rejected_before_anything_changes(self, machine):
        lesson = _lesson()

        with pytest.raises(ValidationException):
            machine.transition(lesson, LessonStatus.IN_PROGRESS, TUTOR, "x" * 501, START)

        assert lesson.status == LessonStatus.SCHEDULED.value
        machine.history_repository.write.assert_not_called()
