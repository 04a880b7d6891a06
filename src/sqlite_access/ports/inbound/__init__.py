"""Inbound ports - APIs offered to application callers."""

from sqlite_access.ports.inbound.database_access import (
    DatabaseAccess,
    Params,
    RowCallback,
    StatementRunner,
    TransactionUnit,
)

__all__ = [
    "DatabaseAccess",
    "StatementRunner",
    "Params",
    "RowCallback",
    "TransactionUnit",
]
