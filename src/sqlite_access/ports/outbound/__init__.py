"""Outbound ports - interfaces for external dependencies.

Outbound ports define contracts for the embedded engine the access layer
drives.
"""

from sqlite_access.ports.outbound.store import StatementResult, Store

__all__ = [
    "Store",
    "StatementResult",
]
