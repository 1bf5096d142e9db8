"""
Metrics Collection with Prometheus.

Exposes generation, ledger and upstream metrics for monitoring.
"""

from enum import StrEnum

from prometheus_client import Counter, Gauge, Histogram, Info

from app.config import settings


class MetricLabels(StrEnum):
    """Standard metric label names."""

    ENDPOINT = "endpoint"
    METHOD = "method"
    STATUS_CODE = "status_code"
    OPERATION = "operation"
    GENERATION_TYPE = "generation_type"
    JOB_STATUS = "job_status"
    ERROR_TYPE = "error_type"


class GenerationMetrics:
    """
    Centralized metrics for the generation API.

    Covers:
    - HTTP requests (rate, duration, errors)
    - Generations created per type
    - Status checks (cached vs upstream, resulting status)
    - Upstream calls (latency, errors)
    - Credit ledger (deductions, compensating deletes)
    """

    def __init__(self) -> None:
        """Initialize all Prometheus metrics."""

        # ====================================================================
        # Service Info
        # ====================================================================
        self.service_info = Info(
            "genstudio_service",
            "Service information",
        )
        self.service_info.info(
            {
                "version": settings.api_version,
                "service_name": settings.service_name,
            }
        )

        # ====================================================================
        # HTTP Metrics
        # ====================================================================
        self.http_requests_total = Counter(
            "genstudio_http_requests_total",
            "Total HTTP requests",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD, MetricLabels.STATUS_CODE],
        )

        self.http_request_duration_seconds = Histogram(
            "genstudio_http_request_duration_seconds",
            "HTTP request duration in seconds",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
            buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
        )

        self.http_requests_in_progress = Gauge(
            "genstudio_http_requests_in_progress",
            "Number of HTTP requests currently being processed",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
        )

        # ====================================================================
        # Generation Metrics
        # ====================================================================
        self.generations_created_total = Counter(
            "genstudio_generations_created_total",
            "Total generation jobs created",
            [MetricLabels.GENERATION_TYPE, MetricLabels.JOB_STATUS],
        )

        self.status_checks_total = Counter(
            "genstudio_status_checks_total",
            "Total status reconciliations",
            [MetricLabels.GENERATION_TYPE, MetricLabels.JOB_STATUS, "cached"],
        )

        # ====================================================================
        # Upstream Metrics
        # ====================================================================
        self.upstream_request_duration_seconds = Histogram(
            "genstudio_upstream_request_duration_seconds",
            "Upstream provider call duration in seconds",
            [MetricLabels.OPERATION, MetricLabels.GENERATION_TYPE],
            buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
        )

        self.upstream_errors_total = Counter(
            "genstudio_upstream_errors_total",
            "Total upstream provider errors",
            [MetricLabels.OPERATION, MetricLabels.GENERATION_TYPE],
        )

        self.unrecognized_responses_total = Counter(
            "genstudio_unrecognized_responses_total",
            "Upstream status responses matching no known shape",
            [MetricLabels.GENERATION_TYPE],
        )

        # ====================================================================
        # Ledger Metrics
        # ====================================================================
        self.credits_deducted_total = Counter(
            "genstudio_credits_deducted_total",
            "Total credits deducted",
            [MetricLabels.GENERATION_TYPE],
        )

        self.compensating_deletes_total = Counter(
            "genstudio_compensating_deletes_total",
            "Generations removed after a failed credit deduction",
            [MetricLabels.GENERATION_TYPE],
        )

        self.profiles_created_total = Counter(
            "genstudio_profiles_created_total",
            "Total profiles created",
            ["source"],
        )

        # ====================================================================
        # Error Metrics
        # ====================================================================
        self.errors_total = Counter(
            "genstudio_errors_total",
            "Total errors by type",
            [MetricLabels.ERROR_TYPE, MetricLabels.OPERATION],
        )

    # ========================================================================
    # Helper Methods
    # ========================================================================

    def record_http_request(
        self, endpoint: str, method: str, status_code: int, duration: float
    ) -> None:
        """Record HTTP request metrics."""
        self.http_requests_total.labels(
            endpoint=endpoint, method=method, status_code=status_code
        ).inc()
        self.http_request_duration_seconds.labels(endpoint=endpoint, method=method).observe(
            duration
        )

    def record_generation_created(self, generation_type: str, status: str) -> None:
        """Record a committed generation and its credit deduction."""
        self.generations_created_total.labels(
            generation_type=generation_type, job_status=status
        ).inc()
        self.credits_deducted_total.labels(generation_type=generation_type).inc()

    def record_status_check(self, generation_type: str, status: str, cached: bool) -> None:
        """Record a status reconciliation outcome."""
        self.status_checks_total.labels(
            generation_type=generation_type, job_status=status, cached=str(cached)
        ).inc()

    def record_upstream_call(
        self, operation: str, generation_type: str, duration: float, success: bool
    ) -> None:
        """Record an upstream provider call."""
        self.upstream_request_duration_seconds.labels(
            operation=operation, generation_type=generation_type
        ).observe(duration)
        if not success:
            self.upstream_errors_total.labels(
                operation=operation, generation_type=generation_type
            ).inc()

    def record_error(self, error_type: str, operation: str) -> None:
        """Record error occurrence."""
        self.errors_total.labels(error_type=error_type, operation=operation).inc()


# Global metrics instance
metrics = GenerationMetrics()
