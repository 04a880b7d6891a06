"""Tagged statement parameters.

Every value handed to a statement is first classified into a ``Parameter``:
a closed set of storage categories plus one explicit fallback for anything
else. Classification looks at the Python type only; ``"42"`` stays text.

    ============  ==========================================  ==============
    Kind          Python values                                Bound as
    ============  ==========================================  ==============
    NULL          ``None``                                     NULL
    INTEGER       ``int``, ``bool``, other ``numbers.Integral``  INTEGER
    REAL          ``float``, other ``numbers.Real``              REAL
    TEXT          ``str``                                      TEXT
    BLOB          ``bytes``, ``bytearray``, ``memoryview``     BLOB
    DATE          ``datetime.date``, ``datetime.datetime``     REAL or TEXT
    FALLBACK_TEXT anything else                                ``str(value)``
    ============  ==========================================  ==============
"""

from __future__ import annotations

import datetime
import numbers
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any


class ParameterKind(Enum):
    """Storage category of a bound value."""

    NULL = auto()
    INTEGER = auto()
    REAL = auto()
    TEXT = auto()
    BLOB = auto()
    DATE = auto()
    FALLBACK_TEXT = auto()
    """Unrecognized object, bound through its text form (lossy, never fails)."""


@dataclass(frozen=True, slots=True)
class Parameter:
    """A classified positional statement parameter."""

    kind: ParameterKind
    value: Any = None

    @classmethod
    def of(cls, value: Any) -> Parameter:
        """Classify an application value.

        Already classified parameters pass through unchanged.
        """
        if isinstance(value, Parameter):
            return value
        if value is None:
            return cls(ParameterKind.NULL)
        # bool is an Integral; it binds as 0/1
        if isinstance(value, numbers.Integral):
            return cls(ParameterKind.INTEGER, int(value))
        if isinstance(value, numbers.Real):
            return cls(ParameterKind.REAL, float(value))
        if isinstance(value, str):
            return cls(ParameterKind.TEXT, value)
        if isinstance(value, (bytes, bytearray, memoryview)):
            return cls(ParameterKind.BLOB, bytes(value))
        if isinstance(value, datetime.date):
            return cls(ParameterKind.DATE, value)
        return cls(ParameterKind.FALLBACK_TEXT, str(value))

    @classmethod
    def null(cls) -> Parameter:
        return cls(ParameterKind.NULL)

    @classmethod
    def integer(cls, value: int) -> Parameter:
        return cls(ParameterKind.INTEGER, int(value))

    @classmethod
    def real(cls, value: float) -> Parameter:
        return cls(ParameterKind.REAL, float(value))

    @classmethod
    def text(cls, value: str) -> Parameter:
        return cls(ParameterKind.TEXT, value)

    @classmethod
    def blob(cls, value: bytes) -> Parameter:
        return cls(ParameterKind.BLOB, bytes(value))

    @classmethod
    def date(cls, value: datetime.date) -> Parameter:
        return cls(ParameterKind.DATE, value)

    @property
    def is_fallback(self) -> bool:
        """True when the value was bound through its text form."""
        return self.kind is ParameterKind.FALLBACK_TEXT
