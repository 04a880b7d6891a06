"""OpenTelemetry tracing for facade operations.

Each public ``DatabaseManager`` call runs in one ``sqlite_access.<operation>``
span carrying the database semantic attributes (``db.system``, ``db.name``,
``db.operation`` and, when there is one, a shortened ``db.statement``). A call
that records a failure marks its span as an error with the failure kind.
Without ``setup_tracing`` the global no-op provider is used.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.trace import Status, StatusCode

from sqlite_access.domain.value_objects import LastError

STATEMENT_ATTRIBUTE_CHARS = 1000

_tracer: trace.Tracer | None = None


def setup_tracing(
    service_name: str = "sqlite_access",
    otlp_endpoint: str | None = None,
    console_export: bool = False,
) -> trace.Tracer:
    """
    Install a tracer provider exporting to OTLP and/or the console.

    Args:
        service_name: Reported ``service.name``
        otlp_endpoint: OTLP gRPC collector endpoint (e.g. "http://localhost:4317")
        console_export: Also print spans, for debugging

    Returns:
        The tracer used for facade spans
    """
    global _tracer

    from sqlite_access import __version__

    provider = TracerProvider(
        resource=Resource.create({"service.name": service_name, "service.version": __version__})
    )
    if otlp_endpoint:
        provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint, insecure=True))
        )
    if console_export:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
    trace.set_tracer_provider(provider)

    _tracer = trace.get_tracer(service_name)
    return _tracer


def get_tracer() -> trace.Tracer:
    """Get the tracer for facade spans."""
    global _tracer
    if _tracer is None:
        _tracer = trace.get_tracer("sqlite_access")
    return _tracer


@contextmanager
def operation_span(
    operation: str,
    db_path: str,
    sql: str | None = None,
) -> Iterator[trace.Span]:
    """Run a facade operation inside a database client span.

    Args:
        operation: Facade method name (``execute_update``, ``transaction``...)
        db_path: Path of the backing store
        sql: Statement text, if the operation has one
    """
    with get_tracer().start_as_current_span(
        f"sqlite_access.{operation}", kind=trace.SpanKind.CLIENT
    ) as span:
        span.set_attribute("db.system", "sqlite")
        span.set_attribute("db.name", db_path)
        span.set_attribute("db.operation", operation)
        if sql is not None:
            span.set_attribute("db.statement", sql[:STATEMENT_ATTRIBUTE_CHARS])
        yield span


def mark_failed(span: trace.Span, error: LastError) -> None:
    """Flag ``span`` with the failure an operation recorded."""
    span.set_attribute("sqlite_access.error_kind", error.kind.value)
    if error.code is not None:
        span.set_attribute("sqlite_access.error_code", error.code)
    span.set_status(Status(StatusCode.ERROR, str(error)))
