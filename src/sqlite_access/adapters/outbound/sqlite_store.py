"""SQLite implementation of the Store port.

This adapter owns the single ``sqlite3.Connection`` of the access layer: it
opens it (lazily or explicitly), runs statements on it, records the last
failure, and closes it exactly once.

Connection settings:
    - ``check_same_thread=False``: any thread may use the handle, because
      the AccessSerializer guarantees only one does at a time.
    - ``isolation_level=None``: the driver never opens implicit
      transactions, so BEGIN/COMMIT/ROLLBACK are exactly the statements the
      transaction controller issues.

Error classification:
    ==========================================  ===================
    Driver exception                            ErrorKind
    ==========================================  ===================
    InterfaceError                              BIND_FAILURE
    ProgrammingError "...bindings..."           BIND_FAILURE
    ProgrammingError "...closed..."             CONNECTION_CLOSED
    other ProgrammingError, Warning             PREPARE_FAILURE
    OverflowError (integer beyond 64 bits)      BIND_FAILURE
    UnicodeEncodeError in a bound value         BIND_FAILURE
    UnicodeEncodeError in the SQL text          PREPARE_FAILURE
    OperationalError with SQLITE_ERROR          PREPARE_FAILURE
    other OperationalError, IntegrityError...   STEP_FAILURE
    ==========================================  ===================
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Any, Sequence

from sqlite_access.domain.value_objects import (
    ConnectionState,
    ErrorKind,
    LastError,
    StoreError,
)
from sqlite_access.infrastructure.config import MEMORY_PATH, StoreConfig
from sqlite_access.infrastructure.logging import get_logger
from sqlite_access.ports.outbound.store import StatementResult

logger = get_logger(__name__)


def classify_error(exc: Exception, sql: str | None = None) -> StoreError:
    """Map a driver exception onto the failure taxonomy."""
    message = str(exc) or type(exc).__name__
    code = getattr(exc, "sqlite_errorcode", None)
    name = getattr(exc, "sqlite_errorname", None)
    lowered = message.lower()

    if isinstance(exc, (sqlite3.InterfaceError, OverflowError)):
        kind = ErrorKind.BIND_FAILURE
    elif isinstance(exc, UnicodeEncodeError):
        kind = ErrorKind.BIND_FAILURE if _encodable(sql) else ErrorKind.PREPARE_FAILURE
    elif isinstance(exc, sqlite3.ProgrammingError):
        if "closed" in lowered:
            kind = ErrorKind.CONNECTION_CLOSED
        elif "binding" in lowered:
            kind = ErrorKind.BIND_FAILURE
        else:
            kind = ErrorKind.PREPARE_FAILURE
    elif isinstance(exc, sqlite3.Warning):
        # "You can only execute one statement at a time." on older drivers
        kind = ErrorKind.PREPARE_FAILURE
    elif isinstance(exc, sqlite3.OperationalError) and name in (None, "SQLITE_ERROR"):
        kind = ErrorKind.PREPARE_FAILURE
    else:
        kind = ErrorKind.STEP_FAILURE

    return StoreError(kind, message, code=code, sql=sql)


def _encodable(sql: str | None) -> bool:
    if sql is None:
        return True
    try:
        sql.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


class SQLiteStore:
    """sqlite3-backed implementation of the Store protocol.

    Attributes:
        path: Path to the database file, or ``":memory:"``.
        state: UNOPENED until the first open, then OPEN, finally CLOSED.

    Thread Safety:
        None. All access must be serialized by the caller.
    """

    def __init__(
        self,
        path: str | Path | None = None,
        config: StoreConfig | None = None,
    ) -> None:
        """Initialize the store without opening it.

        Args:
            path: Backing file (defaults to ``config.db_path``).
            config: Connection settings (defaults to ``StoreConfig()``).
        """
        self._config = config or StoreConfig()
        self._path = str(path) if path is not None else self._config.db_path
        self._conn: sqlite3.Connection | None = None
        self._state = ConnectionState.UNOPENED
        self._last_error: LastError | None = None
        self._last_insert_rowid = 0

    @property
    def path(self) -> str:
        return self._path

    @path.setter
    def path(self, value: str | Path) -> None:
        if self._state is not ConnectionState.UNOPENED:
            raise RuntimeError(
                f"Cannot change the store path once opened (state {self._state.name})"
            )
        self._path = str(value)

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_memory(self) -> bool:
        return self._path == MEMORY_PATH

    @property
    def in_transaction(self) -> bool:
        return self._conn is not None and self._conn.in_transaction

    @property
    def last_insert_rowid(self) -> int:
        return self._last_insert_rowid

    @property
    def last_error(self) -> LastError | None:
        return self._last_error

    def open(self, path: str | Path | None = None) -> None:
        """Open (or create) the backing store.

        Args:
            path: Optional new path; only honoured before the first open.

        Raises:
            StoreError: CONNECTION_CLOSED after close, OPEN_FAILURE if the
                file cannot be opened or configured.
        """
        if self._state is ConnectionState.CLOSED:
            raise StoreError(ErrorKind.CONNECTION_CLOSED, "Connection is closed")

        if self._state is ConnectionState.OPEN:
            if path is not None and str(path) != self._path:
                logger.warning(
                    "store_already_open",
                    path=self._path,
                    requested=str(path),
                )
            return

        if path is not None:
            self._path = str(path)

        conn: sqlite3.Connection | None = None
        try:
            if not self.is_memory:
                Path(self._path).parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(
                self._path,
                timeout=self._config.busy_timeout_ms / 1000,
                check_same_thread=False,
                isolation_level=None,
            )
            self._configure(conn)
        except (OSError, sqlite3.Error) as e:
            if conn is not None:
                conn.close()
            raise StoreError(
                ErrorKind.OPEN_FAILURE,
                f"Cannot open store at {self._path}: {e}",
                code=getattr(e, "sqlite_errorcode", None),
            ) from e

        self._conn = conn
        self._state = ConnectionState.OPEN
        logger.info("store_opened", path=self._path)

    def ensure_open(self) -> None:
        """Open lazily on first use."""
        if self._state is not ConnectionState.OPEN:
            self.open()

    def run(self, sql: str, values: Sequence[Any] = ()) -> StatementResult:
        """Prepare, bind and step ``sql`` to completion.

        The cursor (the prepared statement) is closed before returning on
        every path, including prepare and bind failures.

        Raises:
            StoreError: Classified driver failure.
        """
        self.ensure_open()
        assert self._conn is not None

        try:
            cursor = self._conn.cursor()
        except sqlite3.Error as e:
            raise classify_error(e, sql) from e

        try:
            cursor.execute(sql, tuple(values))
            columns = [column[0] for column in cursor.description or ()]
            rows = cursor.fetchall() if columns else []
            result = StatementResult(
                columns=columns,
                rows=rows,
                lastrowid=cursor.lastrowid,
                rowcount=cursor.rowcount,
            )
        except (sqlite3.Error, sqlite3.Warning, OverflowError, UnicodeEncodeError) as e:
            raise classify_error(e, sql) from e
        finally:
            cursor.close()

        if result.lastrowid is not None:
            self._last_insert_rowid = result.lastrowid
        return result

    def record_error(self, error: StoreError) -> LastError:
        """Record ``error`` as the last error."""
        self._last_error = error.to_last_error()
        logger.warning(
            "store_error",
            kind=error.kind.value,
            code=error.code,
            message=error.message,
            sql=error.sql,
        )
        return self._last_error

    def clear_last_error(self) -> None:
        self._last_error = None

    def close(self) -> None:
        """Release the handle. A dangling transaction is rolled back first.

        Raises:
            StoreError: CONNECTION_CLOSED if already closed.
        """
        if self._state is ConnectionState.CLOSED:
            raise StoreError(ErrorKind.CONNECTION_CLOSED, "Connection is already closed")

        conn, self._conn = self._conn, None
        self._state = ConnectionState.CLOSED

        if conn is None:
            logger.info("store_closed", path=self._path, opened=False)
            return

        try:
            if conn.in_transaction:
                logger.warning("store_close_rollback", path=self._path)
                conn.execute("ROLLBACK").close()
        except sqlite3.Error as e:
            logger.warning("store_close_rollback_failed", path=self._path, error=str(e))
        finally:
            conn.close()

        logger.info("store_closed", path=self._path, opened=True)

    def _configure(self, conn: sqlite3.Connection) -> None:
        """Apply connection pragmas from configuration."""
        pragmas = [f"PRAGMA foreign_keys = {'ON' if self._config.foreign_keys else 'OFF'}"]
        if self._config.journal_mode and not self.is_memory:
            pragmas.append(f"PRAGMA journal_mode = {self._config.journal_mode}")

        for pragma in pragmas:
            cursor = conn.execute(pragma)
            try:
                cursor.fetchall()
            finally:
                cursor.close()
