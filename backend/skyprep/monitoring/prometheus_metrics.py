"""
Prometheus metrics module for SkyPrep.

Service timings come from the @measure_operation decorator; scheduling
specific counters track session transitions and contended writes.
"""

from typing import Optional, cast

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

# Custom registry so test processes can import the module repeatedly
REGISTRY = CollectorRegistry()

http_request_duration_seconds = Histogram(
    "skyprep_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint", "status_code"],
    registry=REGISTRY,
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

http_requests_total = Counter(
    "skyprep_http_requests_total",
    "Total number of HTTP requests",
    ["method", "endpoint", "status_code"],
    registry=REGISTRY,
)

http_requests_in_progress = Gauge(
    "skyprep_http_requests_in_progress",
    "Number of HTTP requests currently being processed",
    ["method", "endpoint"],
    registry=REGISTRY,
)

service_operation_duration_seconds = Histogram(
    "skyprep_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "skyprep_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "skyprep_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

sessions_transitions_total = Counter(
    "skyprep_sessions_transitions_total",
    "Committed session lifecycle actions",
    ["action"],  # requested | scheduled | accepted | rejected | cancelled | ...
    registry=REGISTRY,
)

session_write_retries_total = Counter(
    "skyprep_session_write_retries_total",
    "Session writes that lost a calendar version race",
    ["outcome"],  # retried | exhausted
    registry=REGISTRY,
)

notifications_total = Counter(
    "skyprep_notifications_total",
    "Session notification deliveries",
    ["event_type", "status"],  # status: sent | failed
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Recording helpers over the module-level collectors."""

    @staticmethod
    def record_http_request(method: str, endpoint: str, duration: float, status_code: int) -> None:
        labels = {"method": method, "endpoint": endpoint, "status_code": str(status_code)}
        http_request_duration_seconds.labels(**labels).observe(duration)
        http_requests_total.labels(**labels).inc()

    @staticmethod
    def track_http_request_start(method: str, endpoint: str) -> None:
        http_requests_in_progress.labels(method=method, endpoint=endpoint).inc()

    @staticmethod
    def track_http_request_end(method: str, endpoint: str) -> None:
        http_requests_in_progress.labels(method=method, endpoint=endpoint).dec()

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        """
        Record one call of a measured service method.

        Args:
            service: Service class name (e.g., 'SessionBookingService')
            operation: Operation name (e.g., 'request_session')
            duration: Wall time in seconds
            status: 'success' or 'error'
            error_type: Exception class name when status is 'error'
        """
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()

    @staticmethod
    def inc_session_transition(action: str) -> None:
        sessions_transitions_total.labels(action=action).inc()

    @staticmethod
    def inc_write_retry(outcome: str) -> None:
        """Count a lost calendar version race (retried or exhausted)."""
        session_write_retries_total.labels(outcome=outcome).inc()

    @staticmethod
    def record_notification(event_type: str, status: str) -> None:
        notifications_total.labels(event_type=event_type, status=status).inc()

    @staticmethod
    def get_metrics() -> bytes:
        """Current registry contents in the Prometheus text format."""
        return cast(bytes, generate_latest(REGISTRY))

    @staticmethod
    def get_content_type() -> str:
        return cast(str, CONTENT_TYPE_LATEST)


prometheus_metrics = PrometheusMetrics()
