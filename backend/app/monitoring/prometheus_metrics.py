"""
Prometheus metrics module for the scheduling platform.

Service timings come from the @measure_operation decorator; the
schedule-specific counters track slot reconciliation outcomes and
rule expansion passes.
"""

from threading import Lock
from time import monotonic
from typing import Optional, cast

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
    "schedule_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 10.0, 30.0),
)

service_operations_total = Counter(
    "schedule_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "schedule_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

schedule_slots_upserted_total = Counter(
    "schedule_slots_upserted_total",
    "Candidate slots reconciled against the appointment inventory",
    ["outcome"],  # created | updated | unchanged | failed
    registry=REGISTRY,
)

schedule_rule_expansions_total = Counter(
    "schedule_rule_expansions_total",
    "Rule expansion passes by outcome",
    ["status"],  # advanced | stalled | noop | error
    registry=REGISTRY,
)

_METRICS_TTL_SECONDS = 1.0


class PrometheusMetrics:
    """Manages Prometheus metrics collection and exposure."""

    _cache_lock: Lock = Lock()
    _cache_payload: Optional[bytes] = None
    _cache_ts: Optional[float] = None

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
            service: Service name (e.g., 'ScheduleExpansionService')
            operation: Operation/method name (e.g., 'expand_doctor_schedule')
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
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def record_slot_outcomes(
        *, created: int = 0, updated: int = 0, unchanged: int = 0, failed: int = 0
    ) -> None:
        """Add one reconciliation batch's counts to the slot outcome counter."""
        for outcome, count in (
            ("created", created),
            ("updated", updated),
            ("unchanged", unchanged),
            ("failed", failed),
        ):
            if count:
                schedule_slots_upserted_total.labels(outcome=outcome).inc(count)
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def inc_rule_expansion(status: str) -> None:
        """Count one rule pass by outcome."""
        schedule_rule_expansions_total.labels(status=status).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def get_metrics() -> bytes:
        """
        Generate Prometheus metrics in exposition format.

        Returns:
            Metrics data in Prometheus text format
        """
        now = monotonic()
        payload = PrometheusMetrics._cache_payload
        ts = PrometheusMetrics._cache_ts
        if payload is not None and ts is not None and (now - ts) <= _METRICS_TTL_SECONDS:
            return payload

        with PrometheusMetrics._cache_lock:
            PrometheusMetrics._cache_payload = cast(bytes, generate_latest(REGISTRY))
            PrometheusMetrics._cache_ts = monotonic()
            return PrometheusMetrics._cache_payload

    @staticmethod
    def get_content_type() -> str:
        """Get the content type for Prometheus metrics."""
        return cast(str, CONTENT_TYPE_LATEST)

    @staticmethod
    def _invalidate_cache() -> None:
        """Invalidate cached metrics so next scrape refreshes."""
        with PrometheusMetrics._cache_lock:
            PrometheusMetrics._cache_ts = None
            PrometheusMetrics._cache_payload = None


# Singleton instance
prometheus_metrics = PrometheusMetrics()
