"""Value objects for the access layer domain.

Value objects are immutable types that represent domain concepts.
They have no identity - two value objects with the same attributes are equal.

Exports:
    Parameters:
        - Parameter: Tagged statement parameter
        - ParameterKind: NULL, INTEGER, REAL, TEXT, BLOB, DATE, FALLBACK_TEXT

    Errors:
        - ErrorKind: Failure taxonomy
        - LastError: Frozen snapshot of the most recent failure
        - StoreError: Internal exception carrying an ErrorKind

    Lifecycle:
        - ConnectionState: UNOPENED, OPEN, CLOSED
        - TransactionOutcome: COMMITTED, ROLLED_BACK, FAILED
        - BulkCallbackResult: Continue/abort status for bulk callbacks
"""

from sqlite_access.domain.value_objects.connection_types import (
    BulkCallbackResult,
    ConnectionState,
    TransactionOutcome,
)
from sqlite_access.domain.value_objects.errors import ErrorKind, LastError, StoreError
from sqlite_access.domain.value_objects.parameter import Parameter, ParameterKind

__all__ = [
    # Parameters
    "Parameter",
    "ParameterKind",
    # Errors
    "ErrorKind",
    "LastError",
    "StoreError",
    # Lifecycle
    "ConnectionState",
    "TransactionOutcome",
    "BulkCallbackResult",
]
