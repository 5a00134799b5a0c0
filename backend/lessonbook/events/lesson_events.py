"""Typed lesson events and dispatcher helpers.

Events are dispatched after the transaction that produced them has
committed. Listeners run in-process and must open their own session;
a failing listener is logged and never affects the caller.
"""

from __future__ import annotations

from datetime import date, datetime
import logging
from typing import Callable, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger("lessonbook.events.lessons")


class LessonEvent(BaseModel):
    """Base class for lesson domain events."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    lesson_id: str
    occurred_at: datetime


LessonEventListener = Callable[[LessonEvent], None]


class LessonEvents:
    """Registry for lesson event listeners."""

    _listeners: List[LessonEventListener] = []

    @classmethod
    def register(cls, listener: LessonEventListener) -> None:
        cls._listeners.append(listener)

    @classmethod
    def unregister(cls, listener: LessonEventListener) -> None:
        cls._listeners = [existing for existing in cls._listeners if existing != listener]

    @classmethod
    def clear(cls) -> None:
        cls._listeners = []

    @classmethod
    def listeners(cls) -> Sequence[LessonEventListener]:
        return tuple(cls._listeners)

    @classmethod
    def dispatch(cls, event: LessonEvent) -> None:
        for listener in list(cls._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Lesson event listener error: %s", listener)
        logger.info("lesson_event=%s payload=%s", event.__class__.__name__, event.model_dump())


class LessonBooked(LessonEvent):
    tutor_id: str
    student_id: str
    lesson_date: date
    start_hour: int
    duration_hours: int
    package_assignment_id: Optional[str] = None


class LessonStatusChanged(LessonEvent):
    previous_status: str
    status: str
    changed_by_role: str


class LessonCancelled(LessonEvent):
    tutor_id: str
    student_id: str
    cancelled_by: str
    refunded: bool
    hours_credited: int


class LessonCompleted(LessonEvent):
    tutor_id: str
    student_id: str
    duration_hours: int


class LessonFeedbackSubmitted(LessonEvent):
    tutor_id: str
    student_id: str
    rating: int


def register_listener(listener: LessonEventListener) -> None:
    """Register an in-process listener for lesson events."""

    LessonEvents.register(listener)


def unregister_listener(listener: LessonEventListener) -> None:
    """Remove a previously registered listener."""

    LessonEvents.unregister(listener)


def dispatch_all(events: Sequence[LessonEvent]) -> None:
    """Dispatch events collected during a committed unit of work, in order."""
    for event in events:
        LessonEvents.dispatch(event)
