"""Repository behaviour shared by every backend the ``repo`` fixture provides."""

from __future__ import annotations

import threading
from datetime import datetime, timezone

import pytest
import sqlalchemy as sa
from sqlalchemy.exc import NoResultFound

from rdb import (
    EntityAlreadyExistsError,
    QueryBuildError,
    Repo,
    UnexpectedUpdateCountError,
    UnknownTableError,
)
from rdb.exceptions import is_unique_violation
from rdb.repositories.crud import new_id
from tests.helpers.entities import EntitySample, LedgerAccount, SampleSummary, Unregistered


def _all_samples(repo: Repo) -> list[EntitySample]:
    return repo.find(EntitySample, sa.select(repo.table_for(EntitySample)))


def test_create_assigns_id_and_get_by_id_round_trips(repo: Repo) -> None:
    before = datetime.now(timezone.utc)
    new_entity = EntitySample()

    repo.create(new_entity)
    after = datetime.now(timezone.utc)

    assert new_entity.id
    entity = repo.get_by_id(EntitySample, new_entity.id)
    assert entity == new_entity
    assert entity.created is not None
    assert before <= entity.created <= after

    entity.enabled = True
    repo.update(entity)
    assert repo.get_by_id(EntitySample, new_entity.id).enabled is True


def test_create_keeps_given_id(repo: Repo) -> None:
    entity_id = new_id()
    new_entity = EntitySample(id=entity_id)

    repo.create(new_entity)

    assert new_entity.id == entity_id
    assert repo.get_by_id(EntitySample, entity_id) == new_entity


def test_create_existing_id_raises_already_exists(repo: Repo) -> None:
    entity_id = new_id()
    repo.create(EntitySample(id=entity_id))

    with pytest.raises(EntityAlreadyExistsError) as excinfo:
        repo.create(EntitySample(id=entity_id))

    assert is_unique_violation(excinfo.value.original_error)
    assert str(excinfo.value) == str(excinfo.value.original_error)


def test_get_by_id_not_found(repo: Repo) -> None:
    with pytest.raises(NoResultFound):
        repo.get_by_id(EntitySample, new_id())


def test_get_by_id_unregistered_type(repo: Repo) -> None:
    with pytest.raises(UnknownTableError, match="Unknown table for type: Unregistered"):
        repo.get_by_id(Unregistered, new_id())


def test_update_missing_row(repo: Repo) -> None:
    with pytest.raises(UnexpectedUpdateCountError) as excinfo:
        repo.update(EntitySample(id=new_id()))

    assert str(excinfo.value) == "Unexpected update count: 0"
    assert excinfo.value.count == 0


def test_get_count(repo: Repo) -> None:
    repo.create(EntitySample())
    query = sa.select(sa.func.count(repo.table_for(EntitySample).c.id))

    count = repo.get(int, query)

    assert isinstance(count, int)
    assert count >= 1


def test_get_scalar_with_text_query(repo: Repo) -> None:
    entity = EntitySample()
    repo.create(entity)
    query = sa.text("SELECT id FROM entity_sample WHERE id = :id").bindparams(id=entity.id)

    assert repo.get(str, query) == entity.id


def test_get_rejects_unrenderable_query(repo: Repo) -> None:
    with pytest.raises(QueryBuildError):
        repo.get(EntitySample, "SELECT * FROM entity_sample")  # type: ignore[arg-type]


def test_find(repo: Repo) -> None:
    e1 = EntitySample()
    repo.create(e1)
    e2 = EntitySample()
    repo.create(e2)

    entities = _all_samples(repo)

    assert len(entities) >= 2
    assert e1 in entities
    assert e2 in entities


def test_find_without_matches_returns_empty_list(repo: Repo) -> None:
    table = repo.table_for(EntitySample)

    assert repo.find(EntitySample, sa.select(table).where(table.c.id == new_id())) == []


def test_get_projection_into_unregistered_dataclass(repo: Repo) -> None:
    entity = EntitySample(enabled=True)
    repo.create(entity)
    table = repo.table_for(EntitySample)

    summary = repo.get(
        SampleSummary, sa.select(table.c.id, table.c.enabled).where(table.c.id == entity.id)
    )

    assert summary == SampleSummary(id=entity.id, enabled=True)


def test_find_projection_into_unregistered_dataclass(repo: Repo) -> None:
    enabled = EntitySample(enabled=True)
    disabled = EntitySample()
    repo.create(enabled)
    repo.create(disabled)
    table = repo.table_for(EntitySample)
    query = sa.select(table.c.id, table.c.enabled).where(table.c.id.in_([enabled.id, disabled.id]))

    summaries = repo.find(SampleSummary, query)

    assert sorted(summaries, key=lambda summary: summary.id) == sorted(
        [SampleSummary(id=enabled.id, enabled=True), SampleSummary(id=disabled.id, enabled=False)],
        key=lambda summary: summary.id,
    )


def test_get_partial_projection_into_registered_entity(repo: Repo) -> None:
    entity = EntitySample(enabled=True)
    repo.create(entity)
    table = repo.table_for(EntitySample)

    loaded = repo.get(EntitySample, sa.select(table.c.id, table.c.enabled).where(table.c.id == entity.id))

    assert loaded == EntitySample(id=entity.id, enabled=True, created=None)


def test_get_multi_column_row_as_tuple_or_dict(repo: Repo) -> None:
    entity = EntitySample(enabled=True)
    repo.create(entity)
    table = repo.table_for(EntitySample)
    query = sa.select(table.c.id, table.c.enabled).where(table.c.id == entity.id)

    assert repo.get(tuple, query) == (entity.id, True)
    assert repo.get(dict, query) == {"id": entity.id, "enabled": True}


def test_get_multi_column_row_into_scalar_raises(repo: Repo) -> None:
    entity = EntitySample()
    repo.create(entity)
    table = repo.table_for(EntitySample)
    query = sa.select(table.c.id, table.c.enabled).where(table.c.id == entity.id)

    with pytest.raises(TypeError, match="2-column row into str"):
        repo.get(str, query)


def test_projection_with_column_missing_from_target_raises(repo: Repo) -> None:
    entity = EntitySample()
    repo.create(entity)
    table = repo.table_for(EntitySample)
    query = sa.select(table.c.id, table.c.created).where(table.c.id == entity.id)

    with pytest.raises(TypeError, match="SampleSummary has no field for column 'created'"):
        repo.get(SampleSummary, query)


def test_custom_key_json_column_and_post_get_hook(repo: Repo) -> None:
    account = LedgerAccount(owner="ops", balance=120, tags=["eur", "primary"])
    repo.create(account)

    loaded = repo.get_by_id(LedgerAccount, account.code)

    assert loaded == account
    assert loaded.loaded is True
    assert account.loaded is False

    loaded.balance = 80
    repo.update(loaded)
    assert repo.get_by_id(LedgerAccount, account.code).balance == 80


def test_tx_commit(repo: Repo) -> None:
    new_entity = EntitySample()
    repo.create(new_entity)

    tx = repo.begin()
    entity = tx.get_by_id(EntitySample, new_entity.id)
    assert entity == new_entity
    assert entity.enabled is False

    entity.enabled = True
    tx.update(entity)

    updated_entity = tx.get_by_id(EntitySample, new_entity.id)
    assert updated_entity.enabled is True

    tx.commit()

    entities = _all_samples(repo)
    assert updated_entity in entities
    assert new_entity not in entities


def test_tx_rollback(repo: Repo) -> None:
    new_entity = EntitySample()
    repo.create(new_entity)

    tx = repo.begin()
    entity = tx.get_by_id(EntitySample, new_entity.id)
    assert entity == new_entity

    entity.enabled = True
    tx.update(entity)

    updated_entity = tx.get_by_id(EntitySample, new_entity.id)
    assert updated_entity.enabled is True

    tx.rollback()

    entities = _all_samples(repo)
    assert updated_entity not in entities
    assert new_entity in entities
    assert new_entity.enabled is False


def test_tx_create_visible_only_after_commit(repo: Repo) -> None:
    with repo.begin() as tx:
        entity = EntitySample()
        tx.create(entity)
        assert tx.get_by_id(EntitySample, entity.id) == entity
        assert entity in tx.find(EntitySample, sa.select(tx.table_for(EntitySample)))

    assert tx.closed
    assert repo.get_by_id(EntitySample, entity.id) == entity


def test_tx_context_manager_rolls_back_on_error(repo: Repo) -> None:
    entity = EntitySample()

    with pytest.raises(RuntimeError, match="boom"):
        with repo.begin() as tx:
            tx.create(entity)
            raise RuntimeError("boom")

    assert tx.closed
    with pytest.raises(NoResultFound):
        repo.get_by_id(EntitySample, entity.id)


def test_repo_calls_serialize_on_single_connection(repo: Repo) -> None:
    created: list[str] = []
    errors: list[BaseException] = []
    lock = threading.Lock()

    def worker() -> None:
        try:
            for _ in range(5):
                entity = EntitySample()
                repo.create(entity)
                with lock:
                    created.append(entity.id)
        except BaseException as exc:  # collected and asserted below
            errors.append(exc)

    threads = [threading.Thread(target=worker) for _ in range(3)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert repo.engine.pool.size() == 1
    stored = {entity.id for entity in _all_samples(repo)}
    assert set(created) <= stored
    assert len(created) == 15
