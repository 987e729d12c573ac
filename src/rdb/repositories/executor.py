"""Statement execution against an engine or an open transaction.

The CRUD primitives are written once against :class:`Executor`; the two
implementations differ only in where the connection comes from.
"""

from __future__ import annotations

import logging
from contextlib import AbstractContextManager, contextmanager
from typing import Any, Iterator, Protocol, Sequence

import structlog
from sqlalchemy import exc as sa_exc
from sqlalchemy.engine import Connection, Dialect, Engine, Row
from sqlalchemy.sql.base import Executable
from sqlalchemy.sql.elements import ClauseElement

from ..db.mapping import DbMap, TableMap
from ..exceptions import QueryBuildError, TransactionClosedError

logger = structlog.get_logger(__name__)
_stdlib_logger = logging.getLogger(__name__)


class Executor(Protocol):
    """Insert, update and select capability shared by Repo and Tx."""

    dbmap: DbMap

    def insert(self, entity: object) -> None: ...

    def update(self, entity: object) -> int: ...

    def select_one(self, query: Executable) -> Row[Any]: ...

    def select_all(self, query: Executable) -> Sequence[Row[Any]]: ...


def ensure_statement(query: object) -> None:
    """Raise :class:`QueryBuildError` unless ``query`` is an executable SQL statement."""

    if not isinstance(query, Executable) or not isinstance(query, ClauseElement):
        raise QueryBuildError(f"Expected an executable SQL statement, got {type(query).__name__}")


@contextmanager
def translate_build_errors() -> Iterator[None]:
    """Report statements SQLAlchemy cannot compile as :class:`QueryBuildError`."""

    try:
        yield
    except (sa_exc.CompileError, sa_exc.ArgumentError) as exc:
        raise QueryBuildError(str(exc)) from exc


def render_query(query: object, dialect: Dialect) -> tuple[str, dict[str, Any]]:
    """Render ``query`` to SQL text with bound parameters for ``dialect``.

    Raises :class:`QueryBuildError` when ``query`` is not an executable
    statement or cannot be compiled.
    """

    ensure_statement(query)
    with translate_build_errors():
        compiled = query.compile(dialect=dialect)  # type: ignore[attr-defined]
    return str(compiled), dict(compiled.params)


def _run_hook(entity: object, name: str, executor: Executor) -> None:
    hook = getattr(entity, name, None)
    if callable(hook):
        hook(executor)


class _ConnectionExecutor:
    """Executor logic common to both connection sources."""

    dbmap: DbMap

    @property
    def dialect(self) -> Dialect:
        raise NotImplementedError

    def _connection(self) -> AbstractContextManager[Connection]:
        raise NotImplementedError

    def insert(self, entity: object) -> None:
        table_map = self.dbmap.require_for(entity)
        _run_hook(entity, "pre_insert", self)
        statement = table_map.table.insert().values(table_map.values(entity))
        with self._connection() as conn:
            conn.execute(statement)

    def update(self, entity: object) -> int:
        table_map = self.dbmap.require_for(entity)
        _run_hook(entity, "pre_update", self)
        statement = (
            table_map.table.update()
            .where(table_map.key_column == table_map.key_value(entity))
            .values(self._update_values(table_map, entity))
        )
        with self._connection() as conn:
            return conn.execute(statement).rowcount

    def select_one(self, query: Executable) -> Row[Any]:
        self._log_query(query)
        with self._connection() as conn, translate_build_errors():
            row = conn.execute(query).first()
        if row is None:
            raise sa_exc.NoResultFound("No row was found when one was required")
        return row

    def select_all(self, query: Executable) -> Sequence[Row[Any]]:
        self._log_query(query)
        with self._connection() as conn, translate_build_errors():
            return conn.execute(query).all()

    def _log_query(self, query: Executable) -> None:
        ensure_statement(query)
        if _stdlib_logger.isEnabledFor(logging.DEBUG):
            sql, params = render_query(query, self.dialect)
            logger.debug("select", sql=sql, params=params)

    @staticmethod
    def _update_values(table_map: TableMap, entity: object) -> dict[str, Any]:
        values = table_map.values(entity, include_key=False)
        if not values:
            # key-only entity: still issue an UPDATE so the row count is meaningful
            values = {table_map.key_column.name: table_map.key_value(entity)}
        return values


class EngineExecutor(_ConnectionExecutor):
    """Runs every call in its own transaction on a pooled connection."""

    def __init__(self, engine: Engine, dbmap: DbMap) -> None:
        self.engine = engine
        self.dbmap = dbmap

    @property
    def dialect(self) -> Dialect:
        return self.engine.dialect

    @contextmanager
    def _connection(self) -> Iterator[Connection]:
        with self.engine.begin() as conn:
            yield conn


class TransactionExecutor(_ConnectionExecutor):
    """Runs calls on the connection owning an open transaction."""

    def __init__(self, connection: Connection, dbmap: DbMap) -> None:
        self.connection = connection
        self.dbmap = dbmap
        self.active = True

    @property
    def dialect(self) -> Dialect:
        return self.connection.dialect

    def close(self) -> None:
        self.active = False

    def ensure_active(self) -> None:
        if not self.active:
            raise TransactionClosedError("Transaction has already been committed or rolled back")

    @contextmanager
    def _connection(self) -> Iterator[Connection]:
        self.ensure_active()
        yield self.connection


__all__ = [
    "EngineExecutor",
    "Executor",
    "TransactionExecutor",
    "ensure_statement",
    "render_query",
    "translate_build_errors",
]
