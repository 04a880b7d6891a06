"""Ports layer - interface definitions following Hexagonal Architecture.

Ports are abstract interfaces (protocols) that define contracts:
- Inbound ports: APIs offered to callers (DatabaseAccess, StatementRunner)
- Outbound ports: Dependencies on the embedded engine (Store)

Adapters implement these ports with concrete functionality.
"""

from sqlite_access.ports.inbound import (
    DatabaseAccess,
    Params,
    RowCallback,
    StatementRunner,
    TransactionUnit,
)
from sqlite_access.ports.outbound import StatementResult, Store

__all__ = [
    # Inbound ports
    "DatabaseAccess",
    "StatementRunner",
    "Params",
    "RowCallback",
    "TransactionUnit",
    # Outbound ports
    "Store",
    "StatementResult",
]
