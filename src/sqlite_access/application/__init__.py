"""Application layer for the access layer.

The application layer orchestrates domain services and the store adapter
to fulfill the public operations.

Exports:
    DatabaseManager:
        - DatabaseManager: Main entry point, one serialized connection
        - shared_manager / reset_shared_manager: Process-wide instance
        - configure_observability: Logging, tracing and metrics wiring
    Executor:
        - StatementExecutor: Statements, queries, scalars and scripts
    Transactions:
        - TransactionController: BEGIN/COMMIT/ROLLBACK around a unit
        - TransactionHandle: Statement runner scoped to one transaction
        - TransactionStats: Transaction counters
"""

from sqlite_access.application.database_manager import (
    DatabaseManager,
    configure_observability,
    reset_shared_manager,
    shared_manager,
)
from sqlite_access.application.statement_executor import (
    StatementExecutor,
    split_statements,
)
from sqlite_access.application.transaction_controller import (
    TransactionController,
    TransactionHandle,
    TransactionStats,
)

__all__ = [
    "DatabaseManager",
    "shared_manager",
    "reset_shared_manager",
    "configure_observability",
    "StatementExecutor",
    "split_statements",
    "TransactionController",
    "TransactionHandle",
    "TransactionStats",
]
