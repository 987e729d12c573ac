"""Repository error taxonomy and driver error classification."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import exc as sa_exc

__all__ = [
    "RepositoryError",
    "ConnectionFailedError",
    "EntityAlreadyExistsError",
    "UnexpectedUpdateCountError",
    "UnknownTableError",
    "QueryBuildError",
    "TransactionClosedError",
    "UNIQUE_VIOLATION_SQLSTATE",
    "is_unique_violation",
    "translate_insert_errors",
]

UNIQUE_VIOLATION_SQLSTATE = "23505"
_SQLITE_UNIQUE_ERRORS = frozenset({"SQLITE_CONSTRAINT_PRIMARYKEY", "SQLITE_CONSTRAINT_UNIQUE"})


class RepositoryError(Exception):
    """Base class for persistence layer failures."""


class ConnectionFailedError(RepositoryError):
    """Raised when the database cannot be reached while building a repository."""


class EntityAlreadyExistsError(RepositoryError):
    """Raised when an insert collides with an existing unique value."""

    def __init__(self, original_error: BaseException) -> None:
        super().__init__(str(original_error))
        self.original_error = original_error


class UnexpectedUpdateCountError(RepositoryError):
    """Raised when an update matched no rows."""

    def __init__(self, count: int) -> None:
        super().__init__(f"Unexpected update count: {count}")
        self.count = count


class UnknownTableError(RepositoryError):
    """Raised when a type has no table mapping."""

    def __init__(self, entity_type: type) -> None:
        super().__init__(f"Unknown table for type: {entity_type.__name__}")
        self.entity_type = entity_type


class QueryBuildError(RepositoryError):
    """Raised when a query cannot be rendered to SQL."""


class TransactionClosedError(RepositoryError):
    """Raised when a transaction is used after commit or rollback."""


def is_unique_violation(exc: BaseException) -> bool:
    """Return ``True`` when ``exc`` reports a uniqueness constraint violation.

    Accepts SQLAlchemy wrappers as well as raw psycopg/sqlite3 errors.
    """

    original = exc.orig if isinstance(exc, sa_exc.DBAPIError) else exc
    if getattr(original, "sqlstate", None) == UNIQUE_VIOLATION_SQLSTATE:
        return True
    if getattr(original, "sqlite_errorname", None) in _SQLITE_UNIQUE_ERRORS:
        return True
    return isinstance(original, sqlite3.IntegrityError) and "UNIQUE constraint failed" in str(original)


@contextmanager
def translate_insert_errors() -> Iterator[None]:
    """Turn uniqueness violations into :class:`EntityAlreadyExistsError`.

    Every other error propagates untouched.
    """

    try:
        yield
    except sa_exc.IntegrityError as exc:
        if is_unique_violation(exc):
            raise EntityAlreadyExistsError(exc.orig) from exc
        raise
