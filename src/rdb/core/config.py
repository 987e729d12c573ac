"""Repository configuration.

Values are read from ``RDB_``-prefixed environment variables. The defaults
reproduce the single-connection layout the repository was designed around:
one open connection, one idle connection, recycled every hour.
"""

from __future__ import annotations

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RepoSettings(BaseSettings):
    """Pydantic settings container for the connection factory."""

    model_config = SettingsConfigDict(env_prefix="RDB_", extra="ignore")

    database_url: str = Field(
        default="postgresql://localhost:5432/rdb",
        min_length=1,
        description="Connection string (URL or libpq key/value) of the database.",
    )
    connection_max_lifetime_seconds: int = Field(
        default=60 * 60,
        ge=1,
        description="Connections older than this are recycled on checkout.",
    )
    max_open_connections: int = Field(
        default=1,
        ge=1,
        description="Upper bound on simultaneously open connections.",
    )
    max_idle_connections: int = Field(
        default=1,
        ge=1,
        description="Connections kept open in the pool while idle.",
    )
    pool_timeout_seconds: float | None = Field(
        default=None,
        gt=0,
        description="Seconds to wait for a free connection; ``None`` waits indefinitely.",
    )
    echo_sql: bool = Field(
        default=False,
        description="Emit every statement through SQLAlchemy's engine logger.",
    )

    @model_validator(mode="after")
    def _check_pool_bounds(self) -> "RepoSettings":
        if self.max_idle_connections > self.max_open_connections:
            raise ValueError(
                "max_idle_connections cannot exceed max_open_connections "
                f"({self.max_idle_connections} > {self.max_open_connections})"
            )
        return self

    @property
    def max_overflow(self) -> int:
        """Connections opened beyond the idle pool when demand peaks."""

        return self.max_open_connections - self.max_idle_connections


__all__ = ["RepoSettings"]
