# backend/lessonbook/services/base.py
"""
Shared plumbing for lessonbook services.

Every service owns a session, a clock and a Settings instance. Services
that write wrap their unit of work in ``transaction()``; helpers that run
inside someone else's unit of work (reserve, release, debit, credit) never
commit. Public operations are timed with ``measure_operation``.
"""

from contextlib import contextmanager
from datetime import datetime
from functools import wraps
import logging
import time
from typing import Any, Callable, Dict, Iterator, Optional, TypeVar, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.clock import Clock, SystemClock
from ..core.config import Settings, settings as default_settings
from ..core.exceptions import ServiceException
from ..core.timezone_utils import ensure_utc
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

SLOW_OPERATION_SECONDS = 1.0

_OperationStats = Dict[str, float]


class BaseService:
    """Session, clock, settings, transactions and timing for a service."""

    # service class name -> operation -> running totals
    _operation_stats: Dict[str, Dict[str, _OperationStats]] = {}

    def __init__(
        self,
        db: Session,
        *,
        clock: Optional[Clock] = None,
        config: Optional[Settings] = None,
    ):
        """
        Args:
            db: Session shared with the repositories the service builds
            clock: Source of "now" when the caller does not pass one
            config: Settings instance (defaults to the module singleton)
        """
        self.db = db
        self.clock: Clock = clock or SystemClock()
        self.settings: Settings = config or default_settings
        self.logger = logging.getLogger(self.__class__.__name__)

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        One unit of work: commit on success, roll back on any error.

        Database errors surface as ServiceException; domain errors raised
        inside the block propagate unchanged after the rollback.
        """
        try:
            yield self.db
            self.db.commit()
        except SQLAlchemyError as exc:
            self.logger.error("Rolling back after database error: %s", exc)
            self.db.rollback()
            raise ServiceException(f"Database operation failed: {exc}") from exc
        except Exception as exc:
            self.logger.info("Rolling back: %s: %s", type(exc).__name__, exc)
            self.db.rollback()
            raise

    def now(self, now: Optional[datetime] = None) -> datetime:
        """Caller-supplied instant, else the injected clock."""
        tz_name = self.settings.platform_timezone
        return ensure_utc(now if now is not None else self.clock.now(), tz_name)

    @staticmethod
    def measure_operation(operation_name: str) -> Callable[[F], F]:
        """
        Time a service method and report it.

        Usage:
            @BaseService.measure_operation("book_lesson")
            def book_lesson(self, request):
                ...
        """

        def decorator(func: F) -> F:
            @wraps(func)
            def wrapper(self, *args, **kwargs):
                started = time.perf_counter()
                error_type: Optional[str] = None
                try:
                    return func(self, *args, **kwargs)
                except Exception as exc:
                    error_type = type(exc).__name__
                    raise
                finally:
                    elapsed = time.perf_counter() - started
                    self._record_metric(operation_name, elapsed, error_type is None)
                    if elapsed > SLOW_OPERATION_SECONDS:
                        self.logger.warning(
                            f"Slow operation: {operation_name} took {elapsed:.2f}s",
                            extra={"operation": operation_name, "elapsed": elapsed},
                        )
                    prometheus_metrics.record_service_operation(
                        service=self.__class__.__name__,
                        operation=operation_name,
                        duration=elapsed,
                        status="success" if error_type is None else "error",
                        error_type=error_type,
                    )

            wrapper._operation_name = operation_name  # type: ignore[attr-defined]
            return cast(F, wrapper)

        return decorator

    def log_operation(self, operation: str, **context: Any) -> None:
        """Info-level record of a completed operation with structured context."""
        self.logger.info(f"Operation: {operation}", extra={"operation": operation, **context})

    def _record_metric(self, operation: str, elapsed: float, success: bool) -> None:
        per_service = BaseService._operation_stats.setdefault(self.__class__.__name__, {})
        stats = per_service.setdefault(
            operation, {"count": 0, "failures": 0, "total_time": 0.0, "max_time": 0.0}
        )
        stats["count"] += 1
        stats["total_time"] += elapsed
        stats["max_time"] = max(stats["max_time"], elapsed)
        if not success:
            stats["failures"] += 1

    def get_metrics(self) -> Dict[str, _OperationStats]:
        """In-process timing summary for this service class."""
        summary: Dict[str, _OperationStats] = {}
        for operation, stats in BaseService._operation_stats.get(
            self.__class__.__name__, {}
        ).items():
            count = stats["count"] or 1
            summary[operation] = {
                "count": stats["count"],
                "avg_time": stats["total_time"] / count,
                "max_time": stats["max_time"],
                "success_rate": (stats["count"] - stats["failures"]) / count,
            }
        return summary
