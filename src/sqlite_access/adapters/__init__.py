"""Adapters layer - concrete implementations of ports.

Adapters implement the port interfaces defined in the ports layer.
The only outbound adapter drives the standard library sqlite3 driver.
"""

from sqlite_access.adapters.outbound import SQLiteStore, classify_error

__all__ = [
    "SQLiteStore",
    "classify_error",
]
