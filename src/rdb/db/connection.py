"""Engine factory honouring the repository's pool settings."""

from __future__ import annotations

import structlog
from sqlalchemy import create_engine
from sqlalchemy import exc as sa_exc
from sqlalchemy.engine import Engine

from ..core.config import RepoSettings
from ..exceptions import ConnectionFailedError
from ..utils.postgres_dsn import normalize_database_url

logger = structlog.get_logger(__name__)


def build_engine(settings: RepoSettings) -> Engine:
    """Create the engine without touching the database.

    ``max_idle_connections`` becomes the pool size and the remainder up to
    ``max_open_connections`` the overflow, so the defaults give exactly one
    connection shared by every caller.
    """

    url = normalize_database_url(settings.database_url)
    return create_engine(
        url,
        echo=settings.echo_sql,
        pool_size=settings.max_idle_connections,
        max_overflow=settings.max_overflow,
        pool_recycle=settings.connection_max_lifetime_seconds,
        pool_timeout=settings.pool_timeout_seconds,
    )


def connect(settings: RepoSettings) -> Engine:
    """Build the engine and verify that the database answers.

    Raises :class:`ConnectionFailedError` when no connection can be opened;
    the engine is disposed before raising.
    """

    engine = build_engine(settings)
    safe_url = engine.url.render_as_string(hide_password=True)
    try:
        with engine.connect():
            pass
    except sa_exc.DBAPIError as exc:
        engine.dispose()
        logger.error("database_connection_failed", url=safe_url, error=str(exc))
        raise ConnectionFailedError(f"Failed connecting to the database at {safe_url}") from exc

    logger.info(
        "database_connected",
        url=safe_url,
        max_open_connections=settings.max_open_connections,
        max_idle_connections=settings.max_idle_connections,
    )
    return engine


__all__ = ["build_engine", "connect"]
