"""Create, update and select primitives shared by :class:`Repo` and :class:`Tx`."""

from __future__ import annotations

import dataclasses
from typing import Any, Callable, TypeVar, cast
from uuid import uuid4

import sqlalchemy as sa
import structlog
from sqlalchemy.engine import Row
from sqlalchemy.sql.base import Executable

from ..db.mapping import build_dataclass, dataclass_fields
from ..domain.entity import Entity
from ..exceptions import UnexpectedUpdateCountError, translate_insert_errors
from .executor import Executor

T = TypeVar("T")

logger = structlog.get_logger(__name__)


def new_id() -> str:
    """Return a fresh random identifier."""

    return str(uuid4())


def create(entity: Entity, executor: Executor) -> None:
    """Insert ``entity``, assigning an identifier when it has none.

    Raises :class:`~rdb.exceptions.EntityAlreadyExistsError` when the
    identifier (or any other unique column) is already taken.
    """

    if not entity.get_id():
        entity.set_id(new_id())
    with translate_insert_errors():
        executor.insert(entity)
    logger.debug("entity_created", entity_type=type(entity).__name__, entity_id=entity.get_id())


def update(entity: Entity, executor: Executor) -> None:
    """Update every column of ``entity`` matching its identifier.

    An update that touches no row is reported as
    :class:`~rdb.exceptions.UnexpectedUpdateCountError`.
    """

    count = executor.update(entity)
    if count == 0:
        raise UnexpectedUpdateCountError(count)
    logger.debug("entity_updated", entity_type=type(entity).__name__, entity_id=entity.get_id())


def get(target: type[T], query: Executable, executor: Executor) -> T:
    """Return the first row of ``query`` converted to ``target``.

    Raises :class:`sqlalchemy.exc.NoResultFound` when nothing matches.
    """

    return _converter(target, executor)(executor.select_one(query))


def get_by_id(target: type[T], entity_id: str, executor: Executor) -> T:
    table_map = executor.dbmap.require(target)
    query = sa.select(table_map.table).where(table_map.key_column == entity_id)
    return get(target, query, executor)


def find(target: type[T], query: Executable, executor: Executor) -> list[T]:
    """Return every row of ``query`` converted to ``target``; may be empty."""

    convert = _converter(target, executor)
    return [convert(row) for row in executor.select_all(query)]


def _converter(target: type[T], executor: Executor) -> Callable[[Row[Any]], T]:
    """Return the row conversion for ``target``.

    Registered types and any other dataclass are built from the row by column
    name. Otherwise a single-column row yields its value, coerced to
    ``target``, and a wider row is only accepted as ``tuple`` or ``dict``.
    """

    table_map = executor.dbmap.table_for(target)
    if table_map is not None or dataclasses.is_dataclass(target):
        fields = table_map.fields if table_map is not None else dataclass_fields(target)

        def build(row: Row[Any]) -> T:
            entity = build_dataclass(target, fields, row._mapping)
            hook = getattr(entity, "post_get", None)
            if callable(hook):
                hook(executor)
            return cast(T, entity)

        return build

    def scan(row: Row[Any]) -> T:
        if target is tuple:
            return cast(T, tuple(row))
        if target is dict:
            return cast(T, dict(row._mapping))
        if len(row) != 1:
            raise TypeError(f"Cannot scan a {len(row)}-column row into {target.__name__}")
        value = row[0]
        if value is None or isinstance(value, target):
            return cast(T, value)
        return target(value)  # type: ignore[call-arg]

    return scan


__all__ = ["create", "find", "get", "get_by_id", "new_id", "update"]
