"""In-process lesson domain events."""

from .lesson_events import (
    LessonBooked,
    LessonCancelled,
    LessonCompleted,
    LessonEvent,
    LessonEvents,
    LessonFeedbackSubmitted,
    LessonStatusChanged,
    dispatch_all,
    register_listener,
    unregister_listener,
)

__all__ = [
    "LessonBooked",
    "LessonCancelled",
    "LessonCompleted",
    "LessonEvent",
    "LessonEvents",
    "LessonFeedbackSubmitted",
    "LessonStatusChanged",
    "dispatch_all",
    "register_listener",
    "unregister_listener",
]
