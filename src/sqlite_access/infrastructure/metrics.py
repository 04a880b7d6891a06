"""Prometheus metrics for the access layer."""

from __future__ import annotations

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    Info,
    start_http_server,
    REGISTRY,
    CollectorRegistry,
)


class MetricsRegistry:
    """Registry of all access layer metrics."""

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        """Initialize metrics registry."""
        self._registry = registry or REGISTRY

        # Operation metrics
        self.operations_total = Counter(
            "sqlite_access_operations_total",
            "Total number of operations admitted through the serializer",
            ["operation", "status"],  # status: success, error
            registry=self._registry,
        )

        self.operation_latency_seconds = Histogram(
            "sqlite_access_operation_latency_seconds",
            "Operation latency in seconds, excluding serializer wait",
            ["operation"],
            buckets=(0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 5.0),
            registry=self._registry,
        )

        self.errors_total = Counter(
            "sqlite_access_errors_total",
            "Total failures recorded as last error",
            ["kind"],
            registry=self._registry,
        )

        # Transaction metrics
        self.transactions_total = Counter(
            "sqlite_access_transactions_total",
            "Total number of transactions",
            ["outcome"],  # commit, rollback, failed
            registry=self._registry,
        )

        self.transactions_active = Gauge(
            "sqlite_access_transactions_active",
            "Number of active transactions (0 or 1)",
            registry=self._registry,
        )

        # Serializer metrics
        self.serializer_wait_seconds = Histogram(
            "sqlite_access_serializer_wait_seconds",
            "Time callers spent waiting for admission",
            buckets=(0.0001, 0.001, 0.01, 0.1, 0.5, 1.0, 5.0, 30.0),
            registry=self._registry,
        )

        self.serializer_waiting = Gauge(
            "sqlite_access_serializer_waiting",
            "Callers currently blocked waiting for admission",
            registry=self._registry,
        )

        self.info = Info(
            "sqlite_access",
            "SQLite access layer information",
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        """The collector registry the metrics are registered in."""
        return self._registry


# Global metrics registry
_metrics: MetricsRegistry | None = None


def setup_metrics(port: int = 8001, registry: CollectorRegistry | None = None) -> MetricsRegistry:
    """
    Set up Prometheus metrics server.

    Args:
        port: Port for the metrics HTTP server
        registry: Optional custom registry

    Returns:
        The metrics registry
    """
    global _metrics
    _metrics = MetricsRegistry(registry)

    from sqlite_access import __version__
    _metrics.info.info({
        "version": __version__,
    })

    start_http_server(port, registry=registry or REGISTRY)

    return _metrics


def get_metrics() -> MetricsRegistry:
    """Get the global metrics registry."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsRegistry()
    return _metrics
