"""Helper utilities shared by the connection and mapping layers."""

from .naming import to_snake_case
from .postgres_dsn import normalize_database_url, normalize_postgres_dsn

__all__ = [
    "normalize_database_url",
    "normalize_postgres_dsn",
    "to_snake_case",
]
