"""Query result rows."""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from typing import Any


class ResultRow(Mapping[str, Any]):
    """One row of a query result, keyed by column name.

    Behaves as a read-only ``Mapping``; iteration follows the column order of
    the statement. Values can also be read by position with ``value_at``.
    When a statement yields duplicate column names the last one wins for
    key access, as in the engine's own dictionary conversion.

    Example:
        >>> row = ResultRow(["name", "age"], ["alice", 30])
        >>> row["name"], row.value_at(1)
        ('alice', 30)
    """

    __slots__ = ("_columns", "_values", "_index")

    def __init__(self, columns: Sequence[str], values: Sequence[Any]) -> None:
        if len(columns) != len(values):
            raise ValueError(
                f"ResultRow needs one value per column, got {len(columns)} columns "
                f"and {len(values)} values"
            )
        self._columns = tuple(columns)
        self._values = tuple(values)
        self._index = {name: position for position, name in enumerate(self._columns)}

    @property
    def columns(self) -> tuple[str, ...]:
        """Column names in statement order."""
        return self._columns

    def value_at(self, position: int) -> Any:
        """Return the value of the column at ``position``."""
        return self._values[position]

    def as_dict(self) -> dict[str, Any]:
        """Copy the row into a plain dict."""
        return dict(zip(self._columns, self._values))

    def __getitem__(self, key: str) -> Any:
        try:
            return self._values[self._index[key]]
        except KeyError as e:
            raise KeyError(f"Column '{key}' not found") from e

    def __iter__(self) -> Iterator[str]:
        return iter(self._index)

    def __len__(self) -> int:
        return len(self._index)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ResultRow):
            return self._columns == other._columns and self._values == other._values
        return Mapping.__eq__(self, other)

    def __hash__(self) -> int:
        return hash((self._columns, self._values))

    def __repr__(self) -> str:
        pairs = ", ".join(f"{c}={v!r}" for c, v in zip(self._columns, self._values))
        return f"ResultRow({pairs})"
