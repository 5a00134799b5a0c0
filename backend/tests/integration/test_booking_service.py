"""Booking transaction: reserve, debit, create and record, or nothing at all."""

from datetime import time

import pytest

from lessonbook.core.enums import LessonStatus
from lessonbook.core.exceptions import (
    BusinessRuleException,
    CapacityExceededError,
    ExpiredError,
    InsufficientHoursError,
    NotOpenError,
    ValidationException,
)
from lessonbook.events.lesson_events import LessonBooked, LessonEvents
from lessonbook.repositories.lesson_repository import LessonRepository
from lessonbook.repositories.lesson_status_history_repository import (
    LessonStatusHistoryRepository,
)
from tests._utils.lesson_builders import (
    LESSON_DAY,
    OTHER_STUDENT_ID,
    START_OF_TEST,
    STUDENT_ID,
    TUTOR_ID,
    at,
    booking_request,
    make_assignment,
)


def _lesson_count(db) -> int:
    return LessonRepository(db).count()


def _booked(services) -> dict[int, int]:
    return {
        unit.hour: unit.hours_booked
        for unit in services.availability.get_day(TUTOR_ID, LESSON_DAY)
        if unit.hours_booked
    }


class TestBookLesson:
    def test_successful_booking(self, published_day, db):
        assignment = make_assignment(db, hours=5)
        received = []
        LessonEvents.register(received.append)

        lesson = published_day.booking.book_lesson(booking_request(assignment_id=assignment.id))

        assert lesson.status == LessonStatus.SCHEDULED.value
        assert lesson.start_time == time(10, 0)
        assert lesson.end_time == time(11, 0)
        assert _booked(published_day) == {10: 1}
        assert published_day.ledger.query_ledger(assignment.id).hours_remaining == 4

        history = published_day.status.get_status_history(lesson.id)
        assert [(entry.previous_status, entry.status) for entry in history] == [(None, "scheduled")]
        assert history[0].changed_by_role == "student"

        assert len(received) == 1
        event = received[0]
        assert isinstance(event, LessonBooked)
        assert (event.start_hour, event.duration_hours) == (10, 1)

    def test_multi_hour_booking_debits_every_hour(self, published_day, db):
        assignment = make_assignment(db, hours=5)

        lesson = published_day.booking.book_lesson(
            booking_request(start_hour=13, hours=3, assignment_id=assignment.id)
        )

        assert lesson.duration_hours == 3
        assert _booked(published_day) == {13: 1, 14: 1, 15: 1}
        assert published_day.ledger.query_ledger(assignment.id).hours_remaining == 2

    def test_accepts_raw_payload(self, published_day):
        lesson = published_day.booking.book_lesson(
            {
                "tutor_id": TUTOR_ID,
                "student_id": STUDENT_ID,
                "lesson_date": LESSON_DAY.isoformat(),
                "start_time": "09:00",
                "topic": "  Conditionals ",
            }
        )

        assert lesson.topic == "Conditionals"
        assert lesson.package_assignment_id is None

    def test_invalid_payload_is_a_validation_error(self, published_day, db):
        with pytest.raises(ValidationException) as exc_info:
            published_day.booking.book_lesson(
                {"tutor_id": TUTOR_ID, "student_id": STUDENT_ID, "lesson_date": "2025-03-10"}
            )

        assert exc_info.value.code == "INVALID_REQUEST"
        assert _lesson_count(db) == 0

    def test_lesson_in_the_past_is_rejected(self, published_day, db):
        with pytest.raises(BusinessRuleException) as exc_info:
            published_day.booking.book_lesson(
                booking_request(), now=at(LESSON_DAY, 10, 0)
            )

        assert exc_info.value.code == "LESSON_IN_PAST"
        assert _booked(published_day) == {}


class TestBookingRollsBack:
    def test_taken_slot(self, published_day, db):
        first = make_assignment(db, hours=5)
        second = make_assignment(db, student_id=OTHER_STUDENT_ID, hours=5)
        published_day.booking.book_lesson(booking_request(assignment_id=first.id))

        with pytest.raises(CapacityExceededError):
            published_day.booking.book_lesson(
                booking_request(student_id=OTHER_STUDENT_ID, assignment_id=second.id)
            )

        assert published_day.ledger.query_ledger(second.id).hours_remaining == 5
        assert _lesson_count(db) == 1

    def test_unpublished_hour(self, published_day, db):
        assignment = make_assignment(db, hours=5)

        with pytest.raises(NotOpenError):
            published_day.booking.book_lesson(
                booking_request(start_hour=15, hours=2, assignment_id=assignment.id)
            )

        assert _booked(published_day) == {}
        assert published_day.ledger.query_ledger(assignment.id).hours_remaining == 5

    def test_insufficient_hours_releases_reserved_units(self, published_day, db):
        assignment = make_assignment(db, hours=1)

        with pytest.raises(InsufficientHoursError):
            published_day.booking.book_lesson(
                booking_request(hours=2, assignment_id=assignment.id)
            )

        assert _booked(published_day) == {}
        assert _lesson_count(db) == 0
        assert LessonStatusHistoryRepository(db).count() == 0

    def test_expired_package(self, published_day, db):
        assignment = make_assignment(db, expires_at=START_OF_TEST)

        with pytest.raises(ExpiredError):
            published_day.booking.book_lesson(
                booking_request(assignment_id=assignment.id),
                now=at(START_OF_TEST.date(), 9, 0),
            )

        assert _booked(published_day) == {}

    def test_package_of_another_student(self, published_day, db):
        assignment = make_assignment(db, student_id=OTHER_STUDENT_ID)

        with pytest.raises(ValidationException) as exc_info:
            published_day.booking.book_lesson(booking_request(assignment_id=assignment.id))

        assert exc_info.value.code == "PACKAGE_NOT_OWNED"
        assert _booked(published_day) == {}
        assert published_day.ledger.query_ledger(assignment.id).hours_remaining == 5
