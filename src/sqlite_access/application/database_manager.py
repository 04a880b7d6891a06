"""Database Manager - unified entry point for the access layer.

The manager ties the components together: every public call is admitted by
the AccessSerializer, then runs through the StatementExecutor or the
TransactionController against the connection owned by the SQLiteStore.

Usage:
    from sqlite_access import DatabaseManager

    with DatabaseManager("data/app.db") as db:
        db.execute_update("CREATE TABLE t (name TEXT, age INTEGER)")
        db.execute_update("INSERT INTO t (name, age) VALUES (?, ?)", ["alice", 30])
        rows = db.execute_query("SELECT * FROM t WHERE age > ?", [25])

        def unit(txn):
            txn.execute_update("INSERT INTO t VALUES (?, ?)", ["bob", 20])
            return True  # commit

        db.begin_transaction(unit)

Code that wants an implicit process-wide instance can call
``shared_manager()`` instead; it is built lazily from ``get_config()`` and
closed at interpreter exit.
"""

from __future__ import annotations

import atexit
import threading
import time
from pathlib import Path
from typing import Any, Callable, TypeVar

from opentelemetry.trace import Span

from sqlite_access.adapters.outbound import SQLiteStore
from sqlite_access.application.statement_executor import StatementExecutor
from sqlite_access.application.transaction_controller import (
    TransactionController,
    TransactionHandle,
)
from sqlite_access.domain.entities import ResultRow
from sqlite_access.domain.services import AccessSerializer, ValueBinder
from sqlite_access.domain.value_objects import (
    ConnectionState,
    ErrorKind,
    LastError,
    StoreError,
    TransactionOutcome,
)
from sqlite_access.infrastructure.config import Config, get_config
from sqlite_access.infrastructure.container import Container, get_container, reset_container
from sqlite_access.infrastructure.logging import get_logger, operation_context, setup_logging
from sqlite_access.infrastructure.metrics import MetricsRegistry, get_metrics, setup_metrics
from sqlite_access.infrastructure.tracing import mark_failed, operation_span, setup_tracing
from sqlite_access.ports.inbound import Params, RowCallback, TransactionUnit
from sqlite_access.ports.outbound import Store

logger = get_logger(__name__)

T = TypeVar("T")


class DatabaseManager:
    """Serialized access to one embedded SQLite connection.

    Every operation reports failure through its return value (False, None
    or a zero value) and records the details in ``last_error``; store
    failures never raise.

    Thread Safety:
        Any number of threads may share a manager. Operations are admitted
        one at a time in arrival order; a transaction holds the connection
        for the full duration of its unit of work. Calls a unit makes on the
        manager itself (rather than on its handle) join the running
        transaction.
    """

    def __init__(
        self,
        db_path: str | Path | None = None,
        config: Config | None = None,
        metrics: MetricsRegistry | None = None,
        store: Store | None = None,
    ) -> None:
        """Initialize the manager. Nothing is opened yet.

        Args:
            db_path: Backing file or ``":memory:"`` (default from config).
            config: Configuration (default ``get_config()``).
            metrics: Metrics registry (default global registry).
            store: Store implementation (default ``SQLiteStore``).
        """
        self._config = config or get_config()
        self._metrics = metrics or get_metrics()
        self._store: Store = store or SQLiteStore(db_path, self._config.store)

        self._serializer = AccessSerializer()
        self._executor = StatementExecutor(
            self._store,
            ValueBinder(self._config.binder.date_storage),
            self._metrics,
        )
        self._transactions = TransactionController(self._executor, self._metrics)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def db_path(self) -> str:
        """Path to the backing store."""
        return self._store.path

    @db_path.setter
    def db_path(self, value: str | Path) -> None:
        """Change the backing store path.

        Raises:
            RuntimeError: If the store was already opened or closed.
        """
        with self._serializer.admit("set_db_path"):
            self._store.path = str(value)

    @property
    def state(self) -> ConnectionState:
        return self._store.state

    @property
    def is_open(self) -> bool:
        return self._store.state is ConnectionState.OPEN

    @property
    def is_closed(self) -> bool:
        return self._store.state is ConnectionState.CLOSED

    @property
    def last_error(self) -> LastError | None:
        """The most recent failure. Kept until the next failure or a clear."""
        return self._store.last_error

    def clear_last_error(self) -> None:
        self._run("clear_last_error", self._store.clear_last_error)

    def open(self, path: str | Path | None = None) -> bool:
        """Open the store now instead of on first use.

        Returns:
            True if the store is open; False if it was closed or could not
            be opened.
        """
        def work() -> bool:
            try:
                self._store.open(None if path is None else str(path))
            except StoreError as e:
                self._executor.fail(e)
                return False
            return True

        return self._run("open", work)

    def close(self) -> None:
        """Close the connection.

        Any later operation fails with CONNECTION_CLOSED. Closing from inside
        a transaction unit is refused with TRANSACTION_ALREADY_ACTIVE.
        """
        def work() -> None:
            if self._transactions.active is not None:
                self._executor.fail(
                    StoreError(
                        ErrorKind.TRANSACTION_ALREADY_ACTIVE,
                        "close() requested inside an active transaction",
                    )
                )
                return
            try:
                self._store.close()
            except StoreError as e:
                self._executor.fail(e)

        self._run("close", work)

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    def execute_update(self, sql: str, params: Params = None) -> bool:
        """Execute a single statement that returns no rows.

        Args:
            sql: SQL with optional ``?`` placeholders.
            params: Values bound to the placeholders, left to right.

        Returns:
            True upon success; False upon failure.
        """
        return self._run("execute_update", lambda: self._executor.execute(sql, params), sql)

    def execute_query(self, sql: str, params: Params = None) -> list[ResultRow] | None:
        """Execute a SELECT.

        Returns:
            All rows upon success (``[]`` when nothing matched); None upon
            failure.
        """
        return self._run("execute_query", lambda: self._executor.query(sql, params), sql)

    def execute_statements(self, sql: str, callback: RowCallback | None = None) -> bool:
        """Execute several semicolon separated statements.

        Args:
            sql: The script. It takes no parameters.
            callback: Receives every row of every statement that returns
                rows; return ``BulkCallbackResult.abort(...)`` to stop.

        Returns:
            True upon success; False on a failing statement or an abort.
        """
        return self._run(
            "execute_statements",
            lambda: self._executor.execute_statements(sql, callback),
            sql,
        )

    def long_for_query(self, sql: str, params: Params = None) -> int:
        return self._run(
            "long_for_query", lambda: self._executor.long_for_query(sql, params), sql
        )

    def int_for_query(self, sql: str, params: Params = None) -> int:
        return self._run(
            "int_for_query", lambda: self._executor.int_for_query(sql, params), sql
        )

    def double_for_query(self, sql: str, params: Params = None) -> float:
        return self._run(
            "double_for_query", lambda: self._executor.double_for_query(sql, params), sql
        )

    def string_for_query(self, sql: str, params: Params = None) -> str:
        return self._run(
            "string_for_query", lambda: self._executor.string_for_query(sql, params), sql
        )

    def last_insert_row_id(self) -> int:
        """Rowid of the most recent successful insert (0 before any)."""
        def work() -> int:
            if not self._store.state.accepts_work():
                self._executor.fail(StoreError(ErrorKind.CONNECTION_CLOSED, "Connection is closed"))
                return 0
            return self._executor.last_insert_row_id()

        return self._run("last_insert_row_id", work)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def begin_transaction(self, unit: TransactionUnit) -> bool:
        """Run ``unit`` in a transaction.

        The unit receives a ``TransactionHandle`` and returns True to commit
        or False to roll back. If it raises, the transaction is rolled back
        and the exception propagates.

        Returns:
            True only if the unit returned True and COMMIT succeeded.
        """
        outcome = self.run_transaction(unit)
        return outcome is TransactionOutcome.COMMITTED

    def run_transaction(self, unit: TransactionUnit) -> TransactionOutcome:
        """Like ``begin_transaction`` but reports how the transaction ended."""
        return self._run("transaction", lambda: self._transactions.run(unit))

    @property
    def active_transaction(self) -> TransactionHandle | None:
        return self._transactions.active

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def get_stats(self) -> dict[str, Any]:
        """Get access layer statistics."""
        txn_stats = self._transactions.get_stats()
        last_error = self._store.last_error
        return {
            "db_path": self._store.path,
            "state": self._store.state.name.lower(),
            "last_insert_rowid": self._store.last_insert_rowid,
            "operations": self._serializer.admitted_total,
            "waiting": self._serializer.waiting,
            "transactions": {
                "active": txn_stats.active,
                "committed": txn_stats.committed_total,
                "rolled_back": txn_stats.rolled_back_total,
                "failed": txn_stats.failed_total,
                "avg_duration_ms": txn_stats.avg_duration_ms,
            },
            "last_error": str(last_error) if last_error is not None else None,
        }

    def _run(self, operation: str, work: Callable[[], T], sql: str | None = None) -> T:
        """Admit ``operation`` through the serializer and run ``work``.

        A call from the thread that already holds the gate (a transaction
        unit calling back into the manager) runs inside that admission.
        """
        with operation_span(operation, self._store.path, sql) as span:
            if self._serializer.held_by_current_thread():
                return self._perform(operation, work, span)

            self._metrics.serializer_waiting.inc()
            admitted = False
            try:
                with self._serializer.admit(operation) as admission:
                    admitted = True
                    self._metrics.serializer_waiting.dec()
                    self._metrics.serializer_wait_seconds.observe(admission.wait_seconds)
                    return self._perform(operation, work, span)
            finally:
                if not admitted:
                    self._metrics.serializer_waiting.dec()

    def _perform(self, operation: str, work: Callable[[], T], span: Span) -> T:
        before = self._store.last_error
        started = time.perf_counter()
        try:
            with operation_context(operation, self._store.path):
                return work()
        finally:
            error = self._store.last_error
            failed = error is not None and error is not before
            if failed:
                mark_failed(span, error)
            self._metrics.operations_total.labels(
                operation=operation, status="error" if failed else "success"
            ).inc()
            self._metrics.operation_latency_seconds.labels(operation=operation).observe(
                time.perf_counter() - started
            )

    def __enter__(self) -> DatabaseManager:
        """Context manager entry: open the store."""
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit: close the store."""
        if not self.is_closed:
            self.close()

    def __repr__(self) -> str:
        return f"DatabaseManager(db_path={self.db_path!r}, state={self.state.name})"


# ----------------------------------------------------------------------
# Process-wide instance
# ----------------------------------------------------------------------

_shared_lock = threading.Lock()
_exit_hook_registered = False


def _build_shared_manager(container: Container) -> DatabaseManager:
    config = container.resolve(Config) if container.has(Config) else get_config()
    config.ensure_directories()
    manager = DatabaseManager(config=config)
    logger.info("shared_manager_created", db_path=manager.db_path)
    return manager


def _close_shared_at_exit() -> None:
    """Close whichever shared manager is current when the interpreter exits."""
    container = get_container()
    if container.is_resolved(DatabaseManager):
        manager = container.resolve(DatabaseManager)
        if not manager.is_closed:
            manager.close()


def shared_manager() -> DatabaseManager:
    """Return the process-wide manager, building it on first access.

    The instance lives in the global DI container. Register a ``Config``
    singleton in the container beforehand to override ``get_config()``.
    """
    global _exit_hook_registered
    container = get_container()
    with _shared_lock:
        if not container.has(DatabaseManager):
            container.register_factory(DatabaseManager, _build_shared_manager)
        if not _exit_hook_registered:
            atexit.register(_close_shared_at_exit)
            _exit_hook_registered = True
    return container.resolve(DatabaseManager)


def reset_shared_manager() -> None:
    """Close the process-wide manager and forget it (useful for testing)."""
    with _shared_lock:
        reset_container()


def configure_observability(config: Config | None = None) -> None:
    """Wire logging, tracing and the metrics endpoint from configuration."""
    config = config or get_config()
    observability = config.observability

    setup_logging(observability.log_level, observability.log_format)
    if observability.otel_endpoint:
        setup_tracing(observability.otel_service_name, observability.otel_endpoint)
    if observability.metrics_port is not None:
        setup_metrics(observability.metrics_port)

    logger.info(
        "observability_configured",
        log_level=observability.log_level,
        tracing=bool(observability.otel_endpoint),
        metrics_port=observability.metrics_port,
    )
