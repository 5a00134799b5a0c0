"""Closed vocabularies shared by models, services and schemas."""

from enum import Enum


class LessonStatus(str, Enum):
    """Lesson lifecycle statuses."""

    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW_STUDENT = "no_show_student"
    NO_SHOW_TUTOR = "no_show_tutor"
    TECHNICAL_ISSUES = "technical_issues"

    @property
    def is_terminal(self) -> bool:
        return self not in (LessonStatus.SCHEDULED, LessonStatus.IN_PROGRESS)

    @classmethod
    def parse(cls, value: "str | LessonStatus") -> "LessonStatus":
        """Coerce a raw value, raising ValueError for anything outside the enum."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown lesson status: {value!r}") from None


class LessonType(str, Enum):
    INDIVIDUAL = "individual"
    GROUP = "group"
    INTENSIVE = "intensive"
    CONVERSATION = "conversation"


class ActorRole(str, Enum):
    """Who initiated a change."""

    STUDENT = "student"
    TUTOR = "tutor"
    ADMIN = "admin"
    SYSTEM = "system"


class PackageAssignmentStatus(str, Enum):
    """Derived ledger state; computed, never stored."""

    ACTIVE = "active"
    EXPIRED = "expired"
    EXHAUSTED = "exhausted"
    INACTIVE = "inactive"
