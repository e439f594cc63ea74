"""
Prometheus metrics module for Medtik.

This module provides Prometheus-compatible metrics fed by the
@measure_operation decorator and by the reservation, callback and sweep
flows. It follows Prometheus naming conventions.
"""

from typing import Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Create a custom registry to avoid conflicts with default metrics
REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "medtik_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "medtik_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "medtik_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

reservations_total = Counter(
    "medtik_reservations_total",
    "Reservation attempts by outcome",
    ["outcome"],
    registry=REGISTRY,
)

payment_callbacks_total = Counter(
    "medtik_payment_callbacks_total",
    "Gateway callbacks by outcome",
    ["outcome"],
    registry=REGISTRY,
)

sweep_items_total = Counter(
    "medtik_sweep_items_total",
    "Items handled by periodic sweeps",
    ["sweep", "outcome"],
    registry=REGISTRY,
)

gateway_requests_total = Counter(
    "medtik_gateway_requests_total",
    "Outbound payment gateway calls",
    ["operation", "status"],
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
            service: Service name (e.g., 'ReservationService')
            operation: Operation/method name (e.g., 'reserve_slot')
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
    def record_reservation(outcome: str) -> None:
        reservations_total.labels(outcome=outcome).inc()

    @staticmethod
    def record_payment_callback(outcome: str) -> None:
        payment_callbacks_total.labels(outcome=outcome).inc()

    @staticmethod
    def record_sweep_item(sweep: str, outcome: str) -> None:
        sweep_items_total.labels(sweep=sweep, outcome=outcome).inc()

    @staticmethod
    def record_gateway_request(operation: str, status: str) -> None:
        gateway_requests_total.labels(operation=operation, status=status).inc()

    @staticmethod
    def get_metrics() -> bytes:
        """Generate Prometheus metrics in exposition format."""
        return generate_latest(REGISTRY)

    @staticmethod
    def get_content_type() -> str:
        return CONTENT_TYPE_LATEST


# Global instance
prometheus_metrics = PrometheusMetrics()
