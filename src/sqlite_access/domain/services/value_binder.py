"""Value Binder: turns application values into driver bind values.

The binder is the only place that knows how each ``ParameterKind`` is
represented in storage. It produces the positional tuple the driver binds to
``?`` placeholders left to right (slot 1 first).
"""

from __future__ import annotations

import datetime
from collections.abc import Iterable
from typing import Any, Literal

from sqlite_access.domain.value_objects import Parameter, ParameterKind

BindValue = int | float | str | bytes | None
"""Values the sqlite3 driver binds natively."""

DateStorage = Literal["epoch", "iso"]


class ValueBinder:
    """Converts parameters into native bind values.

    Dates are stored as REAL seconds since the Unix epoch by default, or as
    ISO-8601 TEXT. Naive datetimes and plain dates are taken to be UTC.
    """

    def __init__(self, date_storage: DateStorage = "epoch") -> None:
        if date_storage not in ("epoch", "iso"):
            raise ValueError(f"Unknown date storage {date_storage!r}")
        self._date_storage = date_storage

    @property
    def date_storage(self) -> DateStorage:
        return self._date_storage

    def classify(self, params: Iterable[Any] | None) -> list[Parameter]:
        """Classify every value; ``None`` means no parameters."""
        if params is None:
            return []
        if isinstance(params, (str, bytes, bytearray)):
            # a lone string is one value, not a sequence of characters
            return [Parameter.of(params)]
        return [Parameter.of(value) for value in params]

    def bind(self, params: Iterable[Any] | None) -> tuple[BindValue, ...]:
        """Classify and convert ``params`` into the positional bind tuple."""
        return tuple(self.to_bind_value(p) for p in self.classify(params))

    def to_bind_value(self, param: Parameter) -> BindValue:
        """Emit the bind value for one parameter according to its kind."""
        kind = param.kind
        if kind is ParameterKind.NULL:
            return None
        if kind is ParameterKind.INTEGER:
            return int(param.value)
        if kind is ParameterKind.REAL:
            return float(param.value)
        if kind is ParameterKind.BLOB:
            return bytes(param.value)
        if kind is ParameterKind.DATE:
            return self._bind_date(param.value)
        # TEXT and FALLBACK_TEXT
        return str(param.value)

    def _bind_date(self, value: datetime.date) -> float | str:
        if not isinstance(value, datetime.datetime):
            value = datetime.datetime(value.year, value.month, value.day)
        if value.tzinfo is None:
            value = value.replace(tzinfo=datetime.timezone.utc)

        if self._date_storage == "iso":
            return value.isoformat()
        return value.timestamp()
