"""Transaction Controller.

Wraps a caller-supplied unit of work in BEGIN / COMMIT / ROLLBACK:

    BEGIN ──fails──> FAILED (unit never invoked)
      │
      v
    unit(handle) ──raises──> ROLLBACK, exception propagates
      │
      ├── transaction already ended by the engine ──> FAILED
      │
      ├── False ──> ROLLBACK ──> ROLLED_BACK
      │
      └── True ───> COMMIT ──ok──> COMMITTED
                      │
                      └─fails─> ROLLBACK ──> FAILED

At most one transaction is active. A second ``run`` while one is active
fails fast with TRANSACTION_ALREADY_ACTIVE; nested transactions are neither
emulated nor flattened. The unit itself may not issue transaction control
statements (TRANSACTION_CONTROL_REJECTED), so the transaction can only end
here or by an engine rollback (``INSERT OR ROLLBACK``, ``RAISE(ROLLBACK)``).
The latter is reported as FAILED whatever the unit returned.

The controller takes no lock itself. The manager runs it inside one
admission of the AccessSerializer, so the unit executes on the caller's
thread with exclusive use of the connection for the whole transaction.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass

from sqlite_access.application.statement_executor import StatementExecutor
from sqlite_access.domain.entities import ResultRow
from sqlite_access.domain.value_objects import (
    ErrorKind,
    LastError,
    StoreError,
    TransactionOutcome,
)
from sqlite_access.infrastructure.logging import get_logger
from sqlite_access.infrastructure.metrics import MetricsRegistry, get_metrics
from sqlite_access.ports.inbound import Params, RowCallback, TransactionUnit

logger = get_logger(__name__)


class TransactionHandle:
    """Statement runner scoped to one running transaction.

    The handle is passed to the unit of work. It only accepts calls from
    the thread running the transaction, and only until the transaction
    ends; anything else fails with TRANSACTION_NOT_ACTIVE.
    """

    def __init__(self, executor: StatementExecutor, txn_id: int) -> None:
        self._executor = executor
        self._txn_id = txn_id
        self._thread_id = threading.get_ident()
        self._active = True

    @property
    def txn_id(self) -> int:
        return self._txn_id

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def last_error(self) -> LastError | None:
        return self._executor.store.last_error

    def execute_update(self, sql: str, params: Params = None) -> bool:
        if not self._usable("execute_update"):
            return False
        return self._executor.execute(sql, params)

    def execute_query(self, sql: str, params: Params = None) -> list[ResultRow] | None:
        if not self._usable("execute_query"):
            return None
        return self._executor.query(sql, params)

    def execute_statements(self, sql: str, callback: RowCallback | None = None) -> bool:
        if not self._usable("execute_statements"):
            return False
        return self._executor.execute_statements(sql, callback)

    def long_for_query(self, sql: str, params: Params = None) -> int:
        if not self._usable("long_for_query"):
            return 0
        return self._executor.long_for_query(sql, params)

    def int_for_query(self, sql: str, params: Params = None) -> int:
        if not self._usable("int_for_query"):
            return 0
        return self._executor.int_for_query(sql, params)

    def double_for_query(self, sql: str, params: Params = None) -> float:
        if not self._usable("double_for_query"):
            return 0.0
        return self._executor.double_for_query(sql, params)

    def string_for_query(self, sql: str, params: Params = None) -> str:
        if not self._usable("string_for_query"):
            return ""
        return self._executor.string_for_query(sql, params)

    def last_insert_row_id(self) -> int:
        return self._executor.last_insert_row_id()

    def end(self) -> None:
        """Invalidate the handle; called when the transaction finishes."""
        self._active = False

    def _usable(self, operation: str) -> bool:
        if not self._active:
            reason = f"transaction {self._txn_id} has ended"
        elif threading.get_ident() != self._thread_id:
            reason = f"transaction {self._txn_id} belongs to another thread"
        else:
            return True

        self._executor.fail(
            StoreError(ErrorKind.TRANSACTION_NOT_ACTIVE, f"{operation} rejected: {reason}")
        )
        return False

    def __repr__(self) -> str:
        return f"TransactionHandle(txn_id={self._txn_id}, active={self._active})"


@dataclass
class TransactionStats:
    """Statistics for transaction monitoring."""

    active: bool
    committed_total: int
    rolled_back_total: int
    failed_total: int
    avg_duration_ms: float


class TransactionController:
    """Runs units of work inside explicit transactions.

    Usage:
        controller = TransactionController(executor)

        def transfer(txn):
            return (txn.execute_update("UPDATE acct SET bal = bal - 10 WHERE id = 1")
                    and txn.execute_update("UPDATE acct SET bal = bal + 10 WHERE id = 2"))

        outcome = controller.run(transfer)
    """

    def __init__(
        self,
        executor: StatementExecutor,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        self._executor = executor
        self._metrics = metrics or get_metrics()
        self._active: TransactionHandle | None = None
        self._next_txn_id = 1

        # Statistics
        self._outcomes = {outcome: 0 for outcome in TransactionOutcome}
        self._total_duration_ms = 0.0

    @property
    def active(self) -> TransactionHandle | None:
        """Handle of the running transaction, if any."""
        return self._active

    def run(self, unit: TransactionUnit) -> TransactionOutcome:
        """Run ``unit`` in a transaction.

        Args:
            unit: Callable receiving a ``TransactionHandle``; returns True to
                commit, False to roll back.

        Returns:
            How the transaction ended.

        Raises:
            Exception: Whatever the unit raised, after rolling back.
        """
        if self._active is not None:
            self._executor.fail(
                StoreError(
                    ErrorKind.TRANSACTION_ALREADY_ACTIVE,
                    f"Transaction {self._active.txn_id} is already active",
                )
            )
            return TransactionOutcome.FAILED

        store = self._executor.store
        try:
            store.ensure_open()
        except StoreError as e:
            self._executor.fail(e)
            return self._finish(TransactionOutcome.FAILED, None, time.perf_counter())

        started = time.perf_counter()
        try:
            store.run("BEGIN")
        except StoreError as e:
            self._executor.fail(
                StoreError(
                    ErrorKind.TRANSACTION_BEGIN_FAILURE,
                    f"BEGIN failed: {e.message}",
                    code=e.code,
                    sql="BEGIN",
                )
            )
            return self._finish(TransactionOutcome.FAILED, None, started)

        handle = TransactionHandle(self._executor, self._next_txn_id)
        self._next_txn_id += 1
        self._active = handle
        self._metrics.transactions_active.inc()
        logger.debug("transaction_begin", txn_id=handle.txn_id)

        try:
            try:
                with self._executor.unit_scope():
                    should_commit = bool(unit(handle))
            except BaseException:
                logger.warning("transaction_unit_raised", txn_id=handle.txn_id, exc_info=True)
                self._rollback(handle)
                self._finish(TransactionOutcome.ROLLED_BACK, handle, started)
                raise

            if not store.in_transaction:
                self._executor.fail(
                    StoreError(
                        ErrorKind.TRANSACTION_NOT_ACTIVE,
                        f"Transaction {handle.txn_id} was ended by the engine inside its unit",
                    )
                )
                return self._finish(TransactionOutcome.FAILED, handle, started)

            if not should_commit:
                outcome = (
                    TransactionOutcome.ROLLED_BACK
                    if self._rollback(handle)
                    else TransactionOutcome.FAILED
                )
                return self._finish(outcome, handle, started)

            try:
                store.run("COMMIT")
            except StoreError as e:
                self._executor.fail(
                    StoreError(
                        ErrorKind.TRANSACTION_COMMIT_FAILURE,
                        f"COMMIT failed: {e.message}",
                        code=e.code,
                        sql="COMMIT",
                    )
                )
                self._rollback(handle)
                return self._finish(TransactionOutcome.FAILED, handle, started)

            return self._finish(TransactionOutcome.COMMITTED, handle, started)
        finally:
            handle.end()
            self._active = None
            self._metrics.transactions_active.dec()

    def get_stats(self) -> TransactionStats:
        """Get transaction statistics."""
        finished = sum(self._outcomes.values())
        return TransactionStats(
            active=self._active is not None,
            committed_total=self._outcomes[TransactionOutcome.COMMITTED],
            rolled_back_total=self._outcomes[TransactionOutcome.ROLLED_BACK],
            failed_total=self._outcomes[TransactionOutcome.FAILED],
            avg_duration_ms=self._total_duration_ms / finished if finished else 0.0,
        )

    def _rollback(self, handle: TransactionHandle) -> bool:
        """Roll back if the engine still has the transaction open."""
        store = self._executor.store
        if not store.in_transaction:
            # the engine already rolled back
            return True
        try:
            store.run("ROLLBACK")
        except StoreError as e:
            logger.error("transaction_rollback_failed", txn_id=handle.txn_id, error=e.message)
            self._executor.fail(e)
            return False
        return True

    def _finish(
        self,
        outcome: TransactionOutcome,
        handle: TransactionHandle | None,
        started: float,
    ) -> TransactionOutcome:
        duration_ms = (time.perf_counter() - started) * 1000
        self._outcomes[outcome] += 1
        self._total_duration_ms += duration_ms
        self._metrics.transactions_total.labels(outcome=outcome.value).inc()
        logger.info(
            "transaction_end",
            txn_id=handle.txn_id if handle is not None else None,
            outcome=outcome.value,
            duration_ms=round(duration_ms, 3),
        )
        return outcome
