"""Access Serializer: the single gate in front of the connection.

The sqlite3 connection handle is not safe for concurrent use, so every
public operation is admitted through one critical section. Admission is
ticket based: each caller draws a ticket on arrival and is admitted when the
"now serving" counter reaches it, which gives FIFO order among blocked
callers. Waiting callers sleep on a condition variable; there is no timeout
and no cancellation once admitted.

There is no read/write distinction. A transaction holds the gate for its
whole duration, including the time spent in the caller's unit of work.
"""

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator


@dataclass(frozen=True, slots=True)
class Admission:
    """Receipt for one admitted operation."""

    operation: str
    ticket: int
    wait_seconds: float


class ReentrantAdmissionError(RuntimeError):
    """Raised when the thread already inside the gate asks to enter again."""


class AccessSerializer:
    """FIFO mutual exclusion for store operations.

    Usage:
        serializer = AccessSerializer()
        with serializer.admit("execute_update") as admission:
            ...  # exclusive access to the connection

    Thread Safety:
        All methods are thread-safe. The gate is not reentrant; use
        ``held_by_current_thread()`` to detect a call that already runs
        inside an admission.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._next_ticket = 0
        self._now_serving = 0
        # tickets whose holder gave up while queued (e.g. KeyboardInterrupt)
        self._abandoned: set[int] = set()

        self._owner: int | None = None
        self._operation: str | None = None
        self._waiting = 0
        self._admitted_total = 0

    @contextmanager
    def admit(self, operation: str = "operation") -> Iterator[Admission]:
        """Block until this caller is admitted, then hold the gate.

        Args:
            operation: Name of the operation, for diagnostics.

        Yields:
            The ``Admission`` receipt, including how long the caller waited.

        Raises:
            ReentrantAdmissionError: If the calling thread already holds the gate.
        """
        me = threading.get_ident()
        if self._owner == me:
            raise ReentrantAdmissionError(
                f"'{operation}' requested while '{self._operation}' holds the gate on this thread"
            )

        started = time.perf_counter()
        with self._cond:
            ticket = self._next_ticket
            self._next_ticket += 1

            if ticket != self._now_serving:
                self._waiting += 1
                try:
                    while ticket != self._now_serving:
                        self._cond.wait()
                except BaseException:
                    if ticket == self._now_serving:
                        self._advance()
                    else:
                        self._abandoned.add(ticket)
                    raise
                finally:
                    self._waiting -= 1

            self._owner = me
            self._operation = operation

        admission = Admission(
            operation=operation,
            ticket=ticket,
            wait_seconds=time.perf_counter() - started,
        )
        try:
            yield admission
        finally:
            with self._cond:
                self._owner = None
                self._operation = None
                self._admitted_total += 1
                self._advance()

    def held_by_current_thread(self) -> bool:
        """Check if the calling thread is inside an admission."""
        return self._owner == threading.get_ident()

    @property
    def waiting(self) -> int:
        """Number of callers currently blocked."""
        with self._cond:
            return self._waiting

    @property
    def busy(self) -> bool:
        """True while some caller holds the gate."""
        with self._cond:
            return self._owner is not None

    @property
    def current_operation(self) -> str | None:
        """Name of the operation holding the gate, if any."""
        with self._cond:
            return self._operation

    @property
    def admitted_total(self) -> int:
        """Number of admissions completed so far."""
        with self._cond:
            return self._admitted_total

    def _advance(self) -> None:
        """Serve the next live ticket. Caller holds ``_cond``."""
        self._now_serving += 1
        while self._now_serving in self._abandoned:
            self._abandoned.discard(self._now_serving)
            self._now_serving += 1
        self._cond.notify_all()
