"""Infrastructure layer - cross-cutting concerns."""

from sqlite_access.infrastructure.config import Config, get_config
from sqlite_access.infrastructure.container import Container, get_container, reset_container
from sqlite_access.infrastructure.logging import setup_logging, get_logger, operation_context
from sqlite_access.infrastructure.metrics import setup_metrics, get_metrics, MetricsRegistry
from sqlite_access.infrastructure.tracing import setup_tracing, get_tracer, operation_span, mark_failed

__all__ = [
    "Config",
    "get_config",
    "Container",
    "get_container",
    "reset_container",
    "setup_logging",
    "get_logger",
    "setup_metrics",
    "get_metrics",
    "MetricsRegistry",
    "setup_tracing",
    "get_tracer",
    "operation_span",
    "mark_failed",
    "operation_context",
]
