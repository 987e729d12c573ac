"""Repository façades: :class:`Repo` over the engine, :class:`Tx` over a transaction."""

from __future__ import annotations

from types import TracebackType
from typing import TypeVar

import sqlalchemy as sa
import structlog
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.sql.base import Executable

from ..core.config import RepoSettings
from ..db.connection import connect
from ..db.mapping import DbMap
from ..db.registry import Registry, default_registry
from ..domain.entity import Entity
from . import crud
from .executor import EngineExecutor, TransactionExecutor

T = TypeVar("T")

logger = structlog.get_logger(__name__)


class Repo:
    """Entity repository bound to one engine.

    The type mapping is built from ``registry`` (the process-wide default
    registry when omitted) at construction time; types registered later are
    unknown to this repository. Without an explicit ``engine`` the connection
    factory opens one from ``settings`` and raises
    :class:`~rdb.exceptions.ConnectionFailedError` if the database is
    unreachable.
    """

    def __init__(
        self,
        settings: RepoSettings | None = None,
        *,
        registry: Registry | None = None,
        engine: Engine | None = None,
    ) -> None:
        self.dbmap = DbMap.from_registry(registry if registry is not None else default_registry)
        self.engine = engine if engine is not None else connect(settings or RepoSettings())
        self._executor = EngineExecutor(self.engine, self.dbmap)

    @property
    def metadata(self) -> sa.MetaData:
        return self.dbmap.metadata

    def table_for(self, entity_type: type) -> sa.Table:
        return self.dbmap.require(entity_type).table

    def create(self, entity: Entity) -> None:
        crud.create(entity, self._executor)

    def update(self, entity: Entity) -> None:
        crud.update(entity, self._executor)

    def get(self, target: type[T], query: Executable) -> T:
        return crud.get(target, query, self._executor)

    def get_by_id(self, target: type[T], entity_id: str) -> T:
        return crud.get_by_id(target, entity_id, self._executor)

    def find(self, target: type[T], query: Executable) -> list[T]:
        return crud.find(target, query, self._executor)

    def begin(self) -> "Tx":
        """Open a transaction on a pooled connection.

        The connection stays checked out until the transaction ends, so with
        the default single-connection pool other calls on this repository
        wait until then.
        """

        connection = self.engine.connect()
        try:
            tx = Tx(connection, self.dbmap)
        except Exception:
            connection.close()
            raise
        logger.debug("transaction_started")
        return tx

    def close(self) -> None:
        self.engine.dispose()

    def __enter__(self) -> "Repo":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


class Tx:
    """Transaction-scoped counterpart of :class:`Repo`.

    Ends with exactly one :meth:`commit` or :meth:`rollback`; afterwards every
    call raises :class:`~rdb.exceptions.TransactionClosedError`. As a context
    manager it commits on success and rolls back when the block raises.
    """

    def __init__(self, connection: Connection, dbmap: DbMap) -> None:
        self.dbmap = dbmap
        self._connection = connection
        self._transaction = connection.begin()
        self._executor = TransactionExecutor(connection, dbmap)

    @property
    def closed(self) -> bool:
        return not self._executor.active

    def table_for(self, entity_type: type) -> sa.Table:
        return self.dbmap.require(entity_type).table

    def create(self, entity: Entity) -> None:
        self._executor.ensure_active()
        crud.create(entity, self._executor)

    def update(self, entity: Entity) -> None:
        self._executor.ensure_active()
        crud.update(entity, self._executor)

    def get(self, target: type[T], query: Executable) -> T:
        self._executor.ensure_active()
        return crud.get(target, query, self._executor)

    def get_by_id(self, target: type[T], entity_id: str) -> T:
        self._executor.ensure_active()
        return crud.get_by_id(target, entity_id, self._executor)

    def find(self, target: type[T], query: Executable) -> list[T]:
        self._executor.ensure_active()
        return crud.find(target, query, self._executor)

    def commit(self) -> None:
        self._executor.ensure_active()
        try:
            self._transaction.commit()
        finally:
            self._finish()
        logger.debug("transaction_committed")

    def rollback(self) -> None:
        self._executor.ensure_active()
        try:
            self._transaction.rollback()
        finally:
            self._finish()
        logger.debug("transaction_rolled_back")

    def _finish(self) -> None:
        self._executor.close()
        self._connection.close()

    def __enter__(self) -> "Tx":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self.closed:
            return
        if exc_type is not None:
            self.rollback()
        else:
            self.commit()


__all__ = ["Repo", "Tx"]
