"""Connection and transaction lifecycle types."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto


class ConnectionState(Enum):
    """Connection lifecycle states.

        UNOPENED ──open()──> OPEN ──close()──> CLOSED
            │                                    ^
            └──────────────close()───────────────┘

    There is no edge out of CLOSED: a closed connection is never reopened.
    """

    UNOPENED = auto()
    """No handle yet; the first operation (or ``open()``) creates it."""

    OPEN = auto()
    """Handle is live and accepts statements."""

    CLOSED = auto()
    """Handle released. Every further operation fails."""

    def accepts_work(self) -> bool:
        """Check if operations may still run (possibly after a lazy open)."""
        return self is not ConnectionState.CLOSED


class TransactionOutcome(Enum):
    """How a transaction block ended."""

    COMMITTED = "commit"
    """The unit succeeded and COMMIT was accepted."""

    ROLLED_BACK = "rollback"
    """The unit reported failure (or raised) and its writes were discarded."""

    FAILED = "failed"
    """BEGIN or COMMIT failed, or the engine ended the transaction inside the
    unit; nothing was committed."""


@dataclass(frozen=True, slots=True)
class BulkCallbackResult:
    """Status returned by a bulk execution row callback.

    Example:
        >>> def on_row(row):
        ...     if row["id"] > 10:
        ...         return BulkCallbackResult.abort("id out of range")
        ...     return BulkCallbackResult.proceed()
    """

    ok: bool = True
    reason: str = ""

    @classmethod
    def proceed(cls) -> BulkCallbackResult:
        """Continue with the next row/statement."""
        return _PROCEED

    @classmethod
    def abort(cls, reason: str = "aborted by callback") -> BulkCallbackResult:
        """Stop the bulk run; remaining statements are not executed."""
        return cls(ok=False, reason=reason)


_PROCEED = BulkCallbackResult()
