# backend/lessonbook/core/exceptions.py
"""
Domain-specific exceptions for the lesson scheduling core.

Each error carries a stable ``code`` and a ``details`` dict, and knows
the HTTP status an API layer should answer with.
Every error is raised before commit, so a caught exception always
means the whole unit of work was rolled back.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Root of the lessonbook error hierarchy."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    user_message: str = "Something went wrong. Please try again."

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.user_message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Malformed input; the caller can fix the request and retry."""

    status_code = status.HTTP_400_BAD_REQUEST
    user_message = "The request is invalid."

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={"message": self.message, "code": self.code, "details": self.details},
        )


class NotFoundException(DomainException):
    """Lesson, package or assignment id that matches nothing."""

    status_code = status.HTTP_404_NOT_FOUND
    user_message = "The requested resource was not found."


class ConflictException(DomainException):
    """The request collides with committed state, e.g. a taken hour."""

    status_code = status.HTTP_409_CONFLICT
    user_message = "This change conflicts with existing data."


class BusinessRuleException(DomainException):
    """Well-formed request refused by a scheduling or ledger rule."""

    status_code = HTTP_422_UNPROCESSABLE
    user_message = "This lesson can no longer be cancelled or modified."


class ServiceException(DomainException):
    """Infrastructure failure underneath a service call."""


class RepositoryException(Exception):
    """
    Data-access failure, wrapped so callers never see raw SQLAlchemy errors.

    Used when data access operations fail, such as database connection
    issues, query failures, or constraint violations.
    """


# Availability


class ConflictError(ConflictException):
    """Raised when publishing would narrow availability that is already booked."""

    user_message = "Booked hours cannot be removed from availability."

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, code="AVAILABILITY_CONFLICT", details=details)


class SlotUnavailableError(ConflictException):
    """Base for reservation failures; the caller may retry with another time."""

    user_message = "The selected time is no longer available."


class CapacityExceededError(SlotUnavailableError):
    def __init__(self, tutor_id: str, day: str, hours: list[int]):
        super().__init__(
            message=f"Tutor {tutor_id} has no capacity left on {day} at hours {hours}",
            code="CAPACITY_EXCEEDED",
            details={"tutor_id": tutor_id, "date": day, "hours": hours},
        )


class NotOpenError(SlotUnavailableError):
    def __init__(self, tutor_id: str, day: str, hours: list[int]):
        super().__init__(
            message=f"Tutor {tutor_id} is not available on {day} at hours {hours}",
            code="NOT_OPEN",
            details={"tutor_id": tutor_id, "date": day, "hours": hours},
        )


# Hour ledger


class LedgerError(BusinessRuleException):
    """Base for package preconditions; not retryable without buying more hours."""

    user_message = "Your package is no longer valid."


class InsufficientHoursError(LedgerError):
    user_message = "You don't have enough hours remaining."

    def __init__(self, assignment_id: str, requested: int, remaining: int):
        super().__init__(
            message=(
                f"Package assignment {assignment_id} has {remaining} hours, {requested} requested"
            ),
            code="INSUFFICIENT_HOURS",
            details={
                "assignment_id": assignment_id,
                "requested_hours": requested,
                "hours_remaining": remaining,
            },
        )


class ExpiredError(LedgerError):
    def __init__(self, assignment_id: str, expires_at: str):
        super().__init__(
            message=f"Package assignment {assignment_id} expired at {expires_at}",
            code="PACKAGE_EXPIRED",
            details={"assignment_id": assignment_id, "expires_at": expires_at},
        )


class InactiveError(LedgerError):
    def __init__(self, assignment_id: str):
        super().__init__(
            message=f"Package assignment {assignment_id} is inactive",
            code="PACKAGE_INACTIVE",
            details={"assignment_id": assignment_id},
        )


# Lesson lifecycle


class InvalidTransitionError(BusinessRuleException):
    """Raised when a lesson status change is not allowed."""

    def __init__(
        self,
        lesson_id: str,
        current: Optional[str],
        requested: str,
        reason: Optional[str] = None,
    ):
        message = f"Lesson {lesson_id} cannot move from {current} to {requested}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(
            message=message,
            code="INVALID_TRANSITION",
            details={"lesson_id": lesson_id, "from": current, "to": requested},
        )
