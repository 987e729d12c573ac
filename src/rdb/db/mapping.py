"""Binding between entity dataclasses and SQLAlchemy tables.

Every dataclass field becomes a column named after the field in snake_case.
Column types follow the field annotations; ``X | None`` makes the column
nullable. The key column is the primary key and never autoincrements, the
repository assigns identifiers itself.
"""

from __future__ import annotations

import dataclasses
import types
import typing
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Mapping

import sqlalchemy as sa
from sqlalchemy.types import TypeDecorator, TypeEngine

from ..exceptions import UnknownTableError
from ..utils.naming import to_snake_case
from .registry import Registration, Registry


class UTCDateTime(TypeDecorator):
    """Timestamp column that always round-trips as an aware UTC datetime.

    Naive values are taken to be UTC. Backends without time zone support
    (SQLite) store the UTC wall clock.
    """

    impl = sa.DateTime
    cache_ok = True

    def __init__(self) -> None:
        super().__init__(timezone=True)

    def process_bind_param(self, value: datetime | None, dialect: Any) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value: datetime | None, dialect: Any) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


_SCALAR_TYPES: tuple[tuple[type, Any], ...] = (
    (bool, sa.Boolean),
    (int, sa.BigInteger),
    (float, sa.Float),
    (Decimal, sa.Numeric),
    (str, sa.Text),
    (datetime, UTCDateTime),
    (date, sa.Date),
    (bytes, sa.LargeBinary),
    (uuid.UUID, sa.Uuid),
)
_JSON_ORIGINS = (dict, list)

TRANSIENT = "transient"
"""Field metadata key; ``field(metadata={TRANSIENT: True})`` keeps a field out of the table."""


def _unwrap_optional(hint: Any) -> tuple[Any, bool]:
    origin = typing.get_origin(hint)
    if origin is typing.Union or origin is types.UnionType:
        args = [arg for arg in typing.get_args(hint) if arg is not type(None)]
        nullable = len(args) != len(typing.get_args(hint))
        if len(args) == 1:
            return args[0], nullable
        raise TypeError(f"Unsupported union annotation: {hint!r}")
    return hint, False


def column_type_for(hint: Any) -> tuple[TypeEngine[Any], bool]:
    """Return the column type for an annotation and whether it is nullable."""

    inner, nullable = _unwrap_optional(hint)
    origin = typing.get_origin(inner) or inner
    if origin in _JSON_ORIGINS:
        return sa.JSON(), nullable
    if isinstance(inner, type):
        if issubclass(inner, Enum):
            return sa.Enum(inner, native_enum=False, validate_strings=True), nullable
        for python_type, column_type in _SCALAR_TYPES:
            if issubclass(inner, python_type):
                return column_type(), nullable
    raise TypeError(f"No column type for annotation {hint!r}")


@dataclass(frozen=True)
class FieldMap:
    """One dataclass field and the column that stores it."""

    name: str
    column: str
    init: bool


def dataclass_fields(entity_type: type) -> tuple[FieldMap, ...]:
    """Return the field/column pairs of a dataclass, transient fields excluded."""

    if not dataclasses.is_dataclass(entity_type):
        raise TypeError(f"{entity_type.__name__} must be a dataclass to be mapped")
    return tuple(
        FieldMap(name=field.name, column=to_snake_case(field.name), init=field.init)
        for field in dataclasses.fields(entity_type)
        if not field.metadata.get(TRANSIENT)
    )


def build_dataclass(entity_type: type, fields: Iterable[FieldMap], row: Mapping[str, Any]) -> Any:
    """Create an ``entity_type`` instance from a row mapping.

    A column fills the field whose column name or attribute name it carries.
    Fields without a column keep their dataclass defaults; a column no field
    takes raises :class:`TypeError`.
    """

    by_column: dict[str, FieldMap] = {}
    for field in fields:
        by_column.setdefault(field.name, field)
        by_column[field.column] = field

    kwargs = {}
    deferred = {}
    for column, value in row.items():
        field = by_column.get(column)
        if field is None:
            raise TypeError(f"{entity_type.__name__} has no field for column {column!r}")
        if field.init:
            kwargs[field.name] = value
        else:
            deferred[field.name] = value
    entity = entity_type(**kwargs)
    for name, value in deferred.items():
        setattr(entity, name, value)
    return entity


class TableMap:
    """Table binding for one registered entity type."""

    def __init__(
        self,
        entity_type: type,
        table: sa.Table,
        fields: Iterable[FieldMap],
        key_field: str,
    ) -> None:
        self.entity_type = entity_type
        self.table = table
        self.fields = tuple(fields)
        self.key_field = key_field

    @property
    def table_name(self) -> str:
        return self.table.name

    @property
    def key_column(self) -> sa.Column[Any]:
        return self.table.c[to_snake_case(self.key_field)]

    def key_value(self, entity: object) -> Any:
        return getattr(entity, self.key_field)

    def values(self, entity: object, *, include_key: bool = True) -> dict[str, Any]:
        """Return column values for ``entity``."""

        return {
            field.column: getattr(entity, field.name)
            for field in self.fields
            if include_key or field.name != self.key_field
        }

    def build(self, row: Mapping[str, Any]) -> Any:
        return build_dataclass(self.entity_type, self.fields, row)

    @classmethod
    def from_registration(cls, registration: Registration, metadata: sa.MetaData) -> "TableMap":
        entity_type = registration.entity_type
        field_maps = dataclass_fields(entity_type)
        hints = typing.get_type_hints(entity_type)
        columns: list[sa.Column[Any]] = []
        key_field: str | None = None
        for field in field_maps:
            is_key = registration.key in (field.name, field.column)
            column_type, nullable = column_type_for(hints[field.name])
            columns.append(
                sa.Column(
                    field.column,
                    column_type,
                    primary_key=is_key,
                    autoincrement=False if is_key else "auto",
                    nullable=nullable and not is_key,
                )
            )
            if is_key:
                key_field = field.name

        if key_field is None:
            raise TypeError(
                f"{entity_type.__name__} has no field for key column {registration.key!r}"
            )

        table = sa.Table(registration.table_name, metadata, *columns)
        return cls(entity_type, table, field_maps, key_field)


class DbMap:
    """Type-to-table mapping built once from a registry snapshot."""

    def __init__(self, metadata: sa.MetaData | None = None) -> None:
        self.metadata = metadata if metadata is not None else sa.MetaData()
        self._tables: dict[type, TableMap] = {}

    @classmethod
    def from_registry(cls, registry: Registry, metadata: sa.MetaData | None = None) -> "DbMap":
        dbmap = cls(metadata)
        for registration in registry.snapshot():
            dbmap.add_table(registration)
        return dbmap

    def add_table(self, registration: Registration) -> TableMap:
        table_map = TableMap.from_registration(registration, self.metadata)
        self._tables[registration.entity_type] = table_map
        return table_map

    def table_for(self, entity_type: type) -> TableMap | None:
        return self._tables.get(entity_type)

    def require(self, entity_type: type) -> TableMap:
        """Return the mapping for ``entity_type`` or raise :class:`UnknownTableError`."""

        table_map = self._tables.get(entity_type)
        if table_map is None:
            raise UnknownTableError(entity_type)
        return table_map

    def require_for(self, entity: object) -> TableMap:
        return self.require(type(entity))

    def __contains__(self, entity_type: object) -> bool:
        return entity_type in self._tables

    def __len__(self) -> int:
        return len(self._tables)


__all__ = [
    "DbMap",
    "FieldMap",
    "TRANSIENT",
    "TableMap",
    "UTCDateTime",
    "build_dataclass",
    "column_type_for",
    "dataclass_fields",
]
