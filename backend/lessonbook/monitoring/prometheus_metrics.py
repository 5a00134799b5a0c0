"""
Prometheus metrics for the lesson scheduling core.

Metrics live on a private registry so the embedding application decides
whether and where to expose them. Service timings are fed by the
@measure_operation decorator; the domain counters are incremented by the
services after the corresponding change has been flushed.
"""

from typing import Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "lessonbook_service_operation_duration_seconds",
    "Wall time of lessonbook service operations",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "lessonbook_service_operations_total",
    "Service operations by outcome",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "lessonbook_errors_total",
    "Failed service operations by exception type",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

lessons_booked_total = Counter(
    "lessonbook_lessons_booked_total",
    "Lessons booked",
    ["paid_with"],  # package | none
    registry=REGISTRY,
)

lessons_cancelled_total = Counter(
    "lessonbook_lessons_cancelled_total",
    "Lesson cancellations by policy outcome",
    ["outcome", "cancelled_by"],  # outcome: refunded | forfeited
    registry=REGISTRY,
)

ledger_hours_total = Counter(
    "lessonbook_ledger_hours_total",
    "Hours moved through package ledgers",
    ["direction"],  # debit | credit | grant
    registry=REGISTRY,
)

lesson_transitions_total = Counter(
    "lessonbook_lesson_transitions_total",
    "Accepted lesson status transitions",
    ["from_status", "to_status"],
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Thin facade over the module-level collectors."""

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        """Fed by BaseService.measure_operation; ``error_type`` is the exception class name."""
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()

    @staticmethod
    def inc_lesson_booked(paid_with: str) -> None:
        lessons_booked_total.labels(paid_with=paid_with).inc()

    @staticmethod
    def inc_lesson_cancelled(refunded: bool, cancelled_by: str) -> None:
        outcome = "refunded" if refunded else "forfeited"
        lessons_cancelled_total.labels(outcome=outcome, cancelled_by=cancelled_by).inc()

    @staticmethod
    def record_ledger_movement(direction: str, hours: int) -> None:
        ledger_hours_total.labels(direction=direction).inc(hours)

    @staticmethod
    def inc_lesson_transition(from_status: str, to_status: str) -> None:
        lesson_transitions_total.labels(from_status=from_status, to_status=to_status).inc()

    @staticmethod
    def get_metrics() -> bytes:
        """Render the registry in the Prometheus text exposition format."""
        return generate_latest(REGISTRY)

    @staticmethod
    def get_content_type() -> str:
        return CONTENT_TYPE_LATEST


prometheus_metrics = PrometheusMetrics()
