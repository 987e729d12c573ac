"""Connection factory, entity registry and table mapping."""

from .connection import build_engine, connect
from .mapping import (
    DbMap,
    FieldMap,
    TableMap,
    UTCDateTime,
    build_dataclass,
    column_type_for,
    dataclass_fields,
)
from .registry import Registration, Registry, default_registry, register

__all__ = [
    "DbMap",
    "FieldMap",
    "Registration",
    "Registry",
    "TableMap",
    "UTCDateTime",
    "build_dataclass",
    "build_engine",
    "column_type_for",
    "connect",
    "dataclass_fields",
    "default_registry",
    "register",
]
