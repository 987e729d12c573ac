"""Helpers for turning configured DSNs into SQLAlchemy URLs."""

from __future__ import annotations

from typing import Mapping

from psycopg import conninfo
from sqlalchemy.engine import URL, make_url

POSTGRES_DRIVERNAME = "postgresql+psycopg"

_LIBPQ_KEYS = ("host", "port", "dbname", "user", "password")
_POSTGRES_SCHEMES = ("postgres", "postgresql")


def _coerce_port(value: str | int | None) -> int | None:
    if value in (None, ""):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid PostgreSQL port value: {value!r}") from exc


def _normalize_drivername(drivername: str | None) -> str:
    if not drivername or drivername in _POSTGRES_SCHEMES:
        return POSTGRES_DRIVERNAME
    if drivername.split("+", 1)[0] in _POSTGRES_SCHEMES:
        return POSTGRES_DRIVERNAME
    return drivername


def _url_from_libpq(mapping: Mapping[str, str]) -> URL:
    query = {k: v for k, v in mapping.items() if k not in _LIBPQ_KEYS and v}
    return URL.create(
        drivername=POSTGRES_DRIVERNAME,
        username=mapping.get("user") or None,
        password=mapping.get("password") or None,
        host=mapping.get("host") or None,
        port=_coerce_port(mapping.get("port")),
        database=mapping.get("dbname") or None,
        query=query,
    )


def normalize_postgres_dsn(raw_dsn: str) -> str:
    """Return the SQLAlchemy URL for a PostgreSQL DSN.

    Accepts either a URL (``postgresql://user@host/db``) or a libpq key/value
    string (``host=... dbname=...``). The result always selects the psycopg 3
    driver.
    """

    raw = raw_dsn.strip()
    if not raw:
        raise ValueError("PostgreSQL DSN must be a non-empty string")

    if "://" in raw:
        url = make_url(raw)
        url = url.set(drivername=_normalize_drivername(url.drivername))
    else:
        url = _url_from_libpq(conninfo.conninfo_to_dict(raw))
    return url.render_as_string(hide_password=False)


def normalize_database_url(raw: str) -> str:
    """Return the SQLAlchemy URL for any supported database setting.

    PostgreSQL DSNs go through :func:`normalize_postgres_dsn`; other URLs
    (``sqlite:///...`` for offline runs) are returned unchanged.
    """

    value = raw.strip()
    if "://" in value and make_url(value).get_backend_name() not in _POSTGRES_SCHEMES:
        return value
    return normalize_postgres_dsn(value)


__all__ = [
    "POSTGRES_DRIVERNAME",
    "normalize_database_url",
    "normalize_postgres_dsn",
]
