"""
Prometheus metrics for the booking and settlement engine.

Service timings come from the ``@measure_operation`` decorator; the domain
counters are incremented by the services at the point an outcome is known.
"""

from typing import Optional, cast

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Custom registry to avoid conflicts with default process metrics
REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "urbanserve_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "urbanserve_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "urbanserve_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

booking_transitions_total = Counter(
    "urbanserve_booking_transitions_total",
    "Booking status transitions by edge and outcome",
    ["from_status", "to_status", "outcome"],  # outcome: applied | conflict
    registry=REGISTRY,
)

payment_verifications_total = Counter(
    "urbanserve_payment_verifications_total",
    "Payment callback verifications by outcome",
    ["outcome"],  # confirmed | awaiting_assignment | refund_required | replayed | invalid_signature
    registry=REGISTRY,
)

admin_actions_total = Counter(
    "urbanserve_admin_actions_total",
    "Audited admin actions by type",
    ["action_type"],
    registry=REGISTRY,
)

gateway_requests_total = Counter(
    "urbanserve_payment_gateway_requests_total",
    "Payment gateway HTTP calls by operation and outcome",
    ["operation", "outcome"],  # outcome: success | retry | error
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Manages Prometheus metrics collection and exposure."""

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        """
        Record service operation metrics from @measure_operation decorator.

        Args:
            service: Service name (e.g., 'PaymentSettlementService')
            operation: Operation/method name (e.g., 'verify_payment')
            duration: Operation duration in seconds
            status: Operation status ('success' or 'error')
            error_type: Type of error if status is 'error'
        """
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()

        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()

    @staticmethod
    def record_booking_transition(from_status: str, to_status: str, outcome: str) -> None:
        booking_transitions_total.labels(
            from_status=from_status, to_status=to_status, outcome=outcome
        ).inc()

    @staticmethod
    def record_payment_verification(outcome: str) -> None:
        payment_verifications_total.labels(outcome=outcome).inc()

    @staticmethod
    def record_admin_action(action_type: str) -> None:
        admin_actions_total.labels(action_type=action_type).inc()

    @staticmethod
    def record_gateway_request(operation: str, outcome: str) -> None:
        gateway_requests_total.labels(operation=operation, outcome=outcome).inc()

    @staticmethod
    def get_metrics() -> bytes:
        """Generate Prometheus metrics in exposition format."""
        return cast(bytes, generate_latest(REGISTRY))

    @staticmethod
    def get_content_type() -> str:
        return cast(str, CONTENT_TYPE_LATEST)


# Singleton instance
prometheus_metrics = PrometheusMetrics()
