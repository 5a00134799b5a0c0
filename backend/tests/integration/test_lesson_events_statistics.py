import pytest

from lessonbook.events.lesson_events import LessonBooked, LessonEvents
from lessonbook.services.tutor_statistics_service import (
    TutorStatisticsService,
    register_statistics_listener,
)
from tests._utils.lesson_builders import LESSON_DAY, TUTOR_ID, at, booking_request, tutor


@pytest.fixture
def statistics_listener(session_factory):
    listener = register_statistics_listener(session_factory)
    yield listener
    LessonEvents.unregister(listener)


def _finish_lesson(services, start_hour: int, rating: int | None = None) -> None:
    lesson = services.booking.book_lesson(booking_request(start_hour=start_hour))
    services.status.transition_lesson(
        lesson.id, "completed", tutor(), now=at(LESSON_DAY, start_hour + 1)
    )
    if rating is not None:
        services.status.submit_feedback(lesson.id, rating, now=at(LESSON_DAY, 20))


def test_completed_lessons_and_ratings_update_statistics(
    published_day, session_factory, statistics_listener
):
    _finish_lesson(published_day, 9, rating=5)
    _finish_lesson(published_day, 10, rating=4)
    _finish_lesson(published_day, 11)

    with session_factory() as db:
        stats = TutorStatisticsService(db).get_statistics(TUTOR_ID)

    assert stats.completed_lessons == 3
    assert stats.rating_count == 2
    assert stats.average_rating == 4.5


def test_unrelated_events_do_not_create_statistics(
    published_day, session_factory, statistics_listener
):
    published_day.booking.book_lesson(booking_request())

    with session_factory() as db:
        assert TutorStatisticsService(db).get_statistics(TUTOR_ID) is None


def test_failing_listener_does_not_break_booking(published_day, caplog):
    received = []

    def broken(event):
        raise RuntimeError("listener down")

    LessonEvents.register(broken)
    LessonEvents.register(received.append)

    lesson = published_day.booking.book_lesson(booking_request())

    assert lesson.id
    assert [type(event) for event in received] == [LessonBooked]
    assert "Lesson event listener error" in caplog.text


def test_unregister_listener():
    received = []
    LessonEvents.register(received.append)
    LessonEvents.unregister(received.append)

    assert LessonEvents.listeners() == ()
