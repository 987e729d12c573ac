"""Generic entity repository over a relational store.

Register dataclass entity types, build a :class:`Repo` and issue operations
directly or inside a :class:`Tx`::

    @register
    @dataclass
    class Invoice(EntityMixin):
        id: str = ""
        total: int = 0

    repo = Repo()
    repo.create(invoice)
    with repo.begin() as tx:
        tx.update(invoice)
"""

from .core.config import RepoSettings
from .db.connection import connect
from .db.registry import Registry, default_registry, register
from .domain.entity import Entity, EntityMixin
from .exceptions import (
    ConnectionFailedError,
    EntityAlreadyExistsError,
    QueryBuildError,
    RepositoryError,
    TransactionClosedError,
    UnexpectedUpdateCountError,
    UnknownTableError,
)
from .logging import configure_logging
from .repositories import Repo, Tx

__all__ = [
    "ConnectionFailedError",
    "Entity",
    "EntityAlreadyExistsError",
    "EntityMixin",
    "QueryBuildError",
    "Registry",
    "Repo",
    "RepoSettings",
    "RepositoryError",
    "TransactionClosedError",
    "Tx",
    "UnexpectedUpdateCountError",
    "UnknownTableError",
    "configure_logging",
    "connect",
    "default_registry",
    "register",
]
