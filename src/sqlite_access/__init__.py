"""
SQLite Access - serialized single-connection access layer

One managed connection to an embedded SQLite store, shared safely by any
number of threads: parameterized statements, typed scalar queries and
all-or-nothing transaction blocks.
"""

__version__ = "0.1.0"
__author__ = "Systems Engineering Portfolio"

from sqlite_access.application import (  # noqa: E402
    DatabaseManager,
    TransactionHandle,
    reset_shared_manager,
    shared_manager,
)
from sqlite_access.domain.entities import ResultRow  # noqa: E402
from sqlite_access.domain.value_objects import (  # noqa: E402
    BulkCallbackResult,
    ErrorKind,
    LastError,
    Parameter,
    TransactionOutcome,
)

__all__ = [
    "__version__",
    "DatabaseManager",
    "TransactionHandle",
    "shared_manager",
    "reset_shared_manager",
    "ResultRow",
    "BulkCallbackResult",
    "ErrorKind",
    "LastError",
    "Parameter",
    "TransactionOutcome",
]
