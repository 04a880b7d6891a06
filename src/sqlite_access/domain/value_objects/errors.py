"""Failure taxonomy for store operations.

Low-level driver failures are classified into an ``ErrorKind`` and carried
inside the access layer as ``StoreError``. At the public boundary they are
converted into a ``LastError`` snapshot plus a boolean/absent/zero return.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ErrorKind(Enum):
    """Categories of failure an operation can record."""

    PREPARE_FAILURE = "prepare_failure"
    """SQL text could not be compiled (syntax error, unknown table or column)."""

    BIND_FAILURE = "bind_failure"
    """Parameter count did not match the placeholders, or a value was rejected."""

    STEP_FAILURE = "step_failure"
    """Execution failed (constraint violation, busy, I/O error, read-only file)."""

    CONNECTION_CLOSED = "connection_closed"
    """The connection was closed; nothing reopens it implicitly."""

    OPEN_FAILURE = "open_failure"
    """The backing store could not be opened or configured."""

    TRANSACTION_ALREADY_ACTIVE = "transaction_already_active"
    """A transaction was requested while another one is running."""

    TRANSACTION_BEGIN_FAILURE = "transaction_begin_failure"
    """BEGIN was rejected; the unit of work was not invoked."""

    TRANSACTION_COMMIT_FAILURE = "transaction_commit_failure"
    """COMMIT failed after the unit succeeded; a rollback was attempted."""

    TRANSACTION_NOT_ACTIVE = "transaction_not_active"
    """A transaction handle was used after its transaction ended, or the engine
    ended the transaction while its unit was still running."""

    TRANSACTION_CONTROL_REJECTED = "transaction_control_rejected"
    """A unit of work issued BEGIN, COMMIT, ROLLBACK, END, SAVEPOINT or RELEASE."""

    BULK_CALLBACK_ABORT = "bulk_callback_abort"
    """A bulk execution callback asked to stop."""


@dataclass(frozen=True, slots=True)
class LastError:
    """Snapshot of the most recent failure on a connection.

    Attributes:
        kind: Failure category.
        message: Human readable detail, usually the engine's message.
        code: Engine result code (``sqlite3.Error.sqlite_errorcode``) when known.
        sql: The statement that failed, when there was one.
    """

    kind: ErrorKind
    message: str
    code: int | None = None
    sql: str | None = None

    def __str__(self) -> str:
        suffix = f" (code {self.code})" if self.code is not None else ""
        return f"{self.kind.value}: {self.message}{suffix}"


class StoreError(Exception):
    """Internal failure raised below the facade and recorded as ``LastError``."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        code: int | None = None,
        sql: str | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.code = code
        self.sql = sql

    def to_last_error(self) -> LastError:
        """Freeze this failure into a ``LastError`` snapshot."""
        return LastError(kind=self.kind, message=self.message, code=self.code, sql=self.sql)
