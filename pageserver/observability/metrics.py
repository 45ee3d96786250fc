from __future__ import annotations

import logging
from time import perf_counter

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, Gauge, Histogram, generate_latest

logger = logging.getLogger(__name__)

DURATION_BUCKETS = (0.0005, 0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)

EXPOSITION_CONTENT_TYPE = CONTENT_TYPE_LATEST


class MetricsRecorder:
    """Thread-safe, process-local HTTP metrics (resets on restart).

    Each recorder owns its registry so several instances (e.g. in tests) never
    collide on metric names.
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry if registry is not None else CollectorRegistry()
        self.requests_total = Counter(
            "http_requests",
            "Total number of HTTP requests",
            ["method"],
            registry=self.registry,
        )
        self.requests_in_flight = Gauge(
            "http_requests_in_flight",
            "Number of HTTP requests currently in flight",
            ["method"],
            registry=self.registry,
        )
        self.request_duration = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "status"],
            buckets=DURATION_BUCKETS,
            registry=self.registry,
        )

    def record_request(self, method: str) -> None:
        try:
            self.requests_total.labels(method=method).inc()
            self.requests_in_flight.labels(method=method).inc()
        except Exception:
            # Metrics must never break the response path.
            logger.exception("metrics.record_request_failed", extra={"method": method})

    def record_response(self, method: str, status: int, start: float) -> None:
        try:
            elapsed = max(perf_counter() - start, 0.0)
            self.request_duration.labels(method=method, status=str(status)).observe(elapsed)
            self.requests_in_flight.labels(method=method).dec()
        except Exception:
            logger.exception("metrics.record_response_failed", extra={"method": method, "status": status})

    def render(self) -> bytes:
        """Current state in the Prometheus text exposition format."""
        return generate_latest(self.registry)


_METRICS: MetricsRecorder | None = None


def get_metrics() -> MetricsRecorder:
    global _METRICS
    if _METRICS is None:
        _METRICS = MetricsRecorder()
    return _METRICS


def reset_metrics() -> None:
    """Replace the process-wide recorder with a fresh one (used by tests)."""

    global _METRICS
    _METRICS = MetricsRecorder()
