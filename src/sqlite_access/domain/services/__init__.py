"""Domain services for the access layer.

Exports:
    - AccessSerializer: FIFO admission gate in front of the connection
    - Admission: Receipt for one admitted operation
    - ReentrantAdmissionError: Nested admission from the owning thread
    - ValueBinder: Parameter to bind value conversion
"""

from sqlite_access.domain.services.access_serializer import (
    AccessSerializer,
    Admission,
    ReentrantAdmissionError,
)
from sqlite_access.domain.services.value_binder import BindValue, ValueBinder

__all__ = [
    "AccessSerializer",
    "Admission",
    "ReentrantAdmissionError",
    "BindValue",
    "ValueBinder",
]
