"""Store port for the single underlying connection.

This outbound port defines the contract for the component that owns the one
connection handle to the embedded engine (the Connection Lifecycle Manager).
Nothing else holds a handle; every statement goes through ``run``.

The store is not thread-safe. Callers serialize access externally through
the ``AccessSerializer``.
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass, field
from typing import Any, Protocol, Sequence

from sqlite_access.domain.value_objects import ConnectionState, LastError, StoreError


@dataclass
class StatementResult:
    """Outcome of running one statement to completion.

    Attributes:
        columns: Column names, empty for statements that return no rows.
        rows: Every row produced, in the engine's natural order.
        lastrowid: Rowid of the row inserted by this statement, if any.
        rowcount: Rows changed by a DML statement (-1 when not applicable).
    """

    columns: list[str] = field(default_factory=list)
    rows: list[tuple[Any, ...]] = field(default_factory=list)
    lastrowid: int | None = None
    rowcount: int = -1

    @property
    def returns_rows(self) -> bool:
        return bool(self.columns)


class Store(Protocol):
    """Protocol for the connection lifecycle manager."""

    @property
    @abstractmethod
    def path(self) -> str:
        """Path of the backing file, or ``":memory:"``."""
        ...

    @path.setter
    def path(self, value: str) -> None:
        """Change the path. Only allowed before the first open.

        Raises:
            RuntimeError: If the store was already opened or closed.
        """
        ...

    @property
    @abstractmethod
    def state(self) -> ConnectionState:
        """Current lifecycle state."""
        ...

    @property
    @abstractmethod
    def in_transaction(self) -> bool:
        """True while the engine has an open transaction."""
        ...

    @property
    @abstractmethod
    def last_insert_rowid(self) -> int:
        """Rowid of the most recent successful insert (0 before any)."""
        ...

    @property
    @abstractmethod
    def last_error(self) -> LastError | None:
        """Most recent recorded failure, or None."""
        ...

    @abstractmethod
    def open(self, path: str | None = None) -> None:
        """Open (or create) the store. Idempotent while open.

        Raises:
            StoreError: CONNECTION_CLOSED after close, OPEN_FAILURE if the
                engine refuses the file.
        """
        ...

    @abstractmethod
    def ensure_open(self) -> None:
        """Open lazily on first use.

        Raises:
            StoreError: As for ``open``.
        """
        ...

    @abstractmethod
    def run(self, sql: str, values: Sequence[Any] = ()) -> StatementResult:
        """Prepare, bind and step ``sql`` to completion.

        The underlying statement is finalized before returning, on every
        path.

        Raises:
            StoreError: PREPARE_FAILURE, BIND_FAILURE, STEP_FAILURE or
                CONNECTION_CLOSED.
        """
        ...

    @abstractmethod
    def record_error(self, error: StoreError) -> LastError:
        """Record ``error`` as the last error and return the snapshot."""
        ...

    @abstractmethod
    def clear_last_error(self) -> None:
        """Forget the recorded failure."""
        ...

    @abstractmethod
    def close(self) -> None:
        """Roll back any open transaction and release the handle."""
        ...
