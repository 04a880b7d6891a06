"""Domain entities for the access layer.

Exports:
    - ResultRow: Column-name keyed mapping for one query result row
"""

from sqlite_access.domain.entities.result_row import ResultRow

__all__ = ["ResultRow"]
