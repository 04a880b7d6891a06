"""Database access port offered to application callers.

This inbound port defines the public surface of the access layer. Two
protocols share the statement operations:

- ``StatementRunner``: statements, scalar queries and bulk scripts. Both the
  manager and a transaction handle offer it.
- ``DatabaseAccess``: a ``StatementRunner`` that also owns the connection
  lifecycle and runs transaction blocks.

No operation raises for store failures. Failures come back as ``False``,
``None`` (queries) or a zero value (scalars), with details in ``last_error``.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Any, Callable, Protocol, Sequence

from sqlite_access.domain.entities import ResultRow
from sqlite_access.domain.value_objects import BulkCallbackResult, LastError

Params = Sequence[Any] | None
"""Positional values for ``?`` placeholders, bound left to right."""

RowCallback = Callable[[ResultRow], "BulkCallbackResult | None"]
"""Called for every row a bulk script produces. ``None`` means proceed."""

TransactionUnit = Callable[["StatementRunner"], bool]
"""A unit of work: return True to commit, False to roll back."""


class StatementRunner(Protocol):
    """Statement operations shared by the manager and transaction handles."""

    @abstractmethod
    def execute_update(self, sql: str, params: Params = None) -> bool:
        """Execute one statement that returns no rows (INSERT, UPDATE, DDL...).

        Returns:
            True upon success; False upon failure (see ``last_error``).
        """
        ...

    @abstractmethod
    def execute_query(self, sql: str, params: Params = None) -> list[ResultRow] | None:
        """Execute a SELECT and materialize every row.

        Returns:
            The rows (possibly empty) upon success; None upon failure.
        """
        ...

    @abstractmethod
    def execute_statements(self, sql: str, callback: RowCallback | None = None) -> bool:
        """Execute a semicolon separated script without parameters.

        Returns:
            True if every statement ran and no callback aborted.
        """
        ...

    @abstractmethod
    def long_for_query(self, sql: str, params: Params = None) -> int:
        """First column of the first row as a signed 64-bit integer, else 0."""
        ...

    @abstractmethod
    def int_for_query(self, sql: str, params: Params = None) -> int:
        """First column of the first row as a signed 32-bit integer, else 0."""
        ...

    @abstractmethod
    def double_for_query(self, sql: str, params: Params = None) -> float:
        """First column of the first row as a float, else 0.0."""
        ...

    @abstractmethod
    def string_for_query(self, sql: str, params: Params = None) -> str:
        """First column of the first row as text, else ""."""
        ...

    @abstractmethod
    def last_insert_row_id(self) -> int:
        """Rowid of the most recent successful insert."""
        ...

    @property
    @abstractmethod
    def last_error(self) -> LastError | None:
        """The most recent failure, or None."""
        ...


class DatabaseAccess(StatementRunner, Protocol):
    """Protocol for the connection-owning manager.

    Thread Safety:
        Every method is safe to call from any thread. Calls are admitted
        one at a time.
    """

    @property
    @abstractmethod
    def db_path(self) -> str:
        """Path to the backing store (settable before the first open)."""
        ...

    @abstractmethod
    def open(self, path: str | None = None) -> bool:
        """Open the store explicitly. Idempotent while open."""
        ...

    @abstractmethod
    def begin_transaction(self, unit: TransactionUnit) -> bool:
        """Run ``unit`` inside BEGIN ... COMMIT/ROLLBACK.

        Returns:
            True only if the unit returned True and COMMIT succeeded.
        """
        ...

    @abstractmethod
    def close(self) -> None:
        """Close the connection. Later operations fail with CONNECTION_CLOSED."""
        ...
