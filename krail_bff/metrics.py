from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Histogram
from prometheus_client.context_managers import Timer

OPERATION_HEALTH = "health"
OPERATION_TRIP = "trip"


class UpstreamMetrics:
    """Operational counters for one executor, kept in their own registry."""

    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        self.registry = registry if registry is not None else CollectorRegistry()
        self.results = Counter(
            "nsw_upstream_result",
            "Upstream call outcomes by operation and result class",
            ["operation", "result"],
            registry=self.registry,
        )
        self.retries = Counter(
            "nsw_upstream_retry",
            "Upstream attempts repeated after a retryable failure",
            ["operation"],
            registry=self.registry,
        )
        self.durations = Histogram(
            "nsw_upstream_duration_seconds",
            "Upstream call latency including retries",
            ["operation"],
            registry=self.registry,
        )

    def record(self, operation: str, result: str) -> None:
        self.results.labels(operation=operation, result=result).inc()

    def record_retry(self, operation: str) -> None:
        self.retries.labels(operation=operation).inc()

    def timer(self, operation: str) -> Timer:
        return self.durations.labels(operation=operation).time()

    def count(self, operation: str, result: str) -> float:
        value = self.registry.get_sample_value(
            "nsw_upstream_result_total", {"operation": operation, "result": result}
        )
        return value or 0.0
