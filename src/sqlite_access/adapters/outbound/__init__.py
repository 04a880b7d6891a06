"""Outbound adapters - implementations of outbound ports."""

from sqlite_access.adapters.outbound.sqlite_store import SQLiteStore, classify_error

__all__ = [
    "SQLiteStore",
    "classify_error",
]
