"""Statement Executor.

Runs SQL against the store on behalf of an already admitted caller. The
executor itself takes no lock: the manager admits the caller through the
AccessSerializer first, and transaction handles run inside the admission of
their transaction.

Every operation converts ``StoreError`` into the public contract:

    ===================  ===========  ====================
    Operation            Success      Failure
    ===================  ===========  ====================
    execute              True         False
    query                list (maybe  None
                         empty)
    *_for_query          coerced      zero value
                         value
    execute_statements   True         False
    ===================  ===========  ====================

and records the failure as the store's last error.

Inside ``unit_scope()`` (while a transaction unit runs) statements that
would end or nest the transaction are refused with
TRANSACTION_CONTROL_REJECTED, and nothing runs once the engine itself has
ended the transaction.
"""

from __future__ import annotations

import re
import sqlite3
from contextlib import contextmanager
from typing import Any, Callable, Iterator, TypeVar

from sqlite_access.domain.entities import ResultRow
from sqlite_access.domain.services import ValueBinder
from sqlite_access.domain.value_objects import ErrorKind, StoreError
from sqlite_access.infrastructure.logging import get_logger
from sqlite_access.infrastructure.metrics import MetricsRegistry, get_metrics
from sqlite_access.ports.inbound import Params, RowCallback
from sqlite_access.ports.outbound import Store

logger = get_logger(__name__)

T = TypeVar("T")

_INT32 = 1 << 32
_INT64 = 1 << 64

_LEADING_NOISE = re.compile(r"(?:[\s;]+|--[^\n]*(?:\n|\Z)|/\*.*?(?:\*/|\Z))*", re.S)
_TRANSACTION_KEYWORD = re.compile(r"(?:BEGIN|COMMIT|END|ROLLBACK|SAVEPOINT|RELEASE)\b", re.I)


def _wrap_signed(value: int, modulus: int) -> int:
    """Wrap ``value`` into the signed range of a ``modulus``-sized integer."""
    half = modulus >> 1
    return ((value + half) % modulus) - half


def coerce_int(value: Any) -> int:
    """Best-effort integer conversion; anything unconvertible becomes 0."""
    if value is None:
        return 0
    if isinstance(value, (bytes, bytearray, memoryview)):
        value = bytes(value).decode("utf-8", errors="replace")
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            value = float(text)
        except ValueError:
            return 0
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        # nan / inf / unsupported objects
        return 0


def coerce_float(value: Any) -> float:
    """Best-effort float conversion; anything unconvertible becomes 0.0."""
    if value is None:
        return 0.0
    if isinstance(value, (bytes, bytearray, memoryview)):
        value = bytes(value).decode("utf-8", errors="replace")
    if isinstance(value, str):
        value = value.strip()
    try:
        return float(value)
    except (TypeError, ValueError, OverflowError):
        return 0.0


def coerce_str(value: Any) -> str:
    """Text form of a column value; NULL becomes the empty string."""
    if value is None:
        return ""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    return str(value)


def split_statements(sql: str) -> list[str]:
    """Split a script into complete SQL statements.

    A semicolon ends a statement only when ``sqlite3.complete_statement``
    agrees, so semicolons inside string literals, comments and trigger
    bodies are kept. A trailing statement without semicolon is included.
    Blank pieces are dropped.
    """
    statements: list[str] = []
    buffer = ""
    for piece in sql.split(";"):
        buffer = f"{buffer};{piece}" if buffer else piece
        candidate = f"{buffer};"
        if sqlite3.complete_statement(candidate):
            if candidate.strip(" \t\r\n;"):
                statements.append(candidate.strip())
            buffer = ""

    if buffer.strip():
        statements.append(buffer.strip())
    return statements


def is_transaction_control(sql: str) -> bool:
    """Check if ``sql`` is a BEGIN, COMMIT, END, ROLLBACK, SAVEPOINT or RELEASE.

    Leading whitespace, semicolons and comments are skipped before the first
    keyword is compared.
    """
    start = _LEADING_NOISE.match(sql).end()
    return _TRANSACTION_KEYWORD.match(sql, start) is not None


class StatementExecutor:
    """Executes statements, queries and scripts against a store.

    Usage:
        executor = StatementExecutor(store, ValueBinder())
        executor.execute("INSERT INTO t(name) VALUES (?)", ["alice"])
        rows = executor.query("SELECT * FROM t")
    """

    def __init__(
        self,
        store: Store,
        binder: ValueBinder | None = None,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        self._store = store
        self._binder = binder or ValueBinder()
        self._metrics = metrics or get_metrics()
        self._in_unit = False

    @property
    def store(self) -> Store:
        return self._store

    @contextmanager
    def unit_scope(self) -> Iterator[None]:
        """Guard statements run while a transaction unit executes."""
        self._in_unit = True
        try:
            yield
        finally:
            self._in_unit = False

    def execute(self, sql: str, params: Params = None) -> bool:
        """Run a statement that returns no rows to completion."""
        if not self._admits(sql):
            return False
        try:
            self._store.run(sql, self._binder.bind(params))
        except StoreError as e:
            self.fail(e)
            return False
        return True

    def query(self, sql: str, params: Params = None) -> list[ResultRow] | None:
        """Run a SELECT and materialize all rows.

        Returns:
            The rows, ``[]`` for no rows, or None on failure.
        """
        if not self._admits(sql):
            return None
        try:
            result = self._store.run(sql, self._binder.bind(params))
        except StoreError as e:
            self.fail(e)
            return None
        return [ResultRow(result.columns, row) for row in result.rows]

    def long_for_query(self, sql: str, params: Params = None) -> int:
        return self._scalar(sql, params, lambda v: _wrap_signed(coerce_int(v), _INT64), 0)

    def int_for_query(self, sql: str, params: Params = None) -> int:
        return self._scalar(sql, params, lambda v: _wrap_signed(coerce_int(v), _INT32), 0)

    def double_for_query(self, sql: str, params: Params = None) -> float:
        return self._scalar(sql, params, coerce_float, 0.0)

    def string_for_query(self, sql: str, params: Params = None) -> str:
        return self._scalar(sql, params, coerce_str, "")

    def execute_statements(self, sql: str, callback: RowCallback | None = None) -> bool:
        """Run every statement of a script in order.

        For each row a statement yields, ``callback`` receives a
        ``ResultRow``. The first ``BulkCallbackResult.abort`` stops the run:
        the remaining statements are not executed and the run fails with
        BULK_CALLBACK_ABORT. Without a callback rows are discarded.
        """
        statements = split_statements(sql)
        logger.debug("bulk_execute", statements=len(statements))
        if not all(self._admits(statement) for statement in statements):
            return False

        for index, statement in enumerate(statements):
            if index and not self._admits(statement):
                return False
            try:
                result = self._store.run(statement)
            except StoreError as e:
                self.fail(e)
                return False

            if callback is None or not result.returns_rows:
                continue

            for values in result.rows:
                status = callback(ResultRow(result.columns, values))
                if status is None or status.ok:
                    continue
                self.fail(
                    StoreError(
                        ErrorKind.BULK_CALLBACK_ABORT,
                        status.reason or "aborted by callback",
                        sql=statement,
                    )
                )
                logger.info(
                    "bulk_execute_aborted",
                    statement_index=index,
                    skipped=len(statements) - index - 1,
                )
                return False

        return True

    def last_insert_row_id(self) -> int:
        return self._store.last_insert_rowid

    def fail(self, error: StoreError) -> None:
        """Record a failure as last error and count it."""
        self._store.record_error(error)
        self._metrics.errors_total.labels(kind=error.kind.value).inc()

    def _admits(self, sql: str) -> bool:
        """Refuse statements that would escape the running transaction."""
        if not self._in_unit:
            return True
        if is_transaction_control(sql):
            self.fail(
                StoreError(
                    ErrorKind.TRANSACTION_CONTROL_REJECTED,
                    "Transaction control is not allowed inside a transaction unit",
                    sql=sql,
                )
            )
            return False
        if not self._store.in_transaction:
            self.fail(
                StoreError(
                    ErrorKind.TRANSACTION_NOT_ACTIVE,
                    "The engine ended the transaction; statement not run",
                    sql=sql,
                )
            )
            return False
        return True

    def _scalar(
        self,
        sql: str,
        params: Params,
        convert: Callable[[Any], T],
        zero: T,
    ) -> T:
        rows = self.query(sql, params)
        if not rows:
            return zero
        row = rows[0]
        if not row.columns:
            return zero
        return convert(row.value_at(0))


__all__ = [
    "StatementExecutor",
    "coerce_float",
    "coerce_int",
    "coerce_str",
    "is_transaction_control",
    "split_statements",
]
