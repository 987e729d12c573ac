from __future__ import annotations

import os
from pathlib import Path
from typing import Iterator

import pytest

from rdb import Repo, RepoSettings
from tests.helpers.entities import build_registry

TEST_DATABASE_ENV = "RDB_TEST_DATABASE_URL"


@pytest.fixture(scope="session")
def postgres_dsn() -> str:
    """DSN of a scratch PostgreSQL database; tests needing it skip without one."""

    dsn = os.environ.get(TEST_DATABASE_ENV)
    if not dsn:
        pytest.skip(f"{TEST_DATABASE_ENV} is not set")
    return dsn


@pytest.fixture
def sqlite_url(tmp_path: Path) -> str:
    return f"sqlite:///{tmp_path / 'rdb.sqlite3'}"


@pytest.fixture(
    params=[
        "sqlite",
        pytest.param("postgres", marks=[pytest.mark.integration, pytest.mark.postgres]),
    ]
)
def database_url(request: pytest.FixtureRequest, sqlite_url: str) -> str:
    if request.param == "sqlite":
        return sqlite_url
    return request.getfixturevalue("postgres_dsn")


@pytest.fixture
def repo(database_url: str) -> Iterator[Repo]:
    repository = Repo(RepoSettings(database_url=database_url), registry=build_registry())
    repository.metadata.create_all(repository.engine)
    yield repository
    repository.close()
