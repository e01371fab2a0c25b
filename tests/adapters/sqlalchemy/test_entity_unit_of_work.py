from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine

from firmlink.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyEntityUnitOfWork,
    StartupError,
    configured_engine,
    is_started,
    shutdown,
    startup,
)
from firmlink.domain.model import MatchLevel, RegistryEntry

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sqlalchemy.engine import Engine


@pytest.fixture(autouse=True)
def reset_unit_of_work_state() -> Iterator[None]:
    shutdown()
    yield
    shutdown()


def _entry(entity_id: str) -> RegistryEntry:
    now = datetime.now(tz=UTC)
    return RegistryEntry(
        entity_id=entity_id,
        brno=entity_id.removeprefix("ent_"),
        crno=None,
        canonical_name="삼성전자",
        name_variants=("삼성전자",),
        confidence=1.0,
        match_level=MatchLevel.MATCH,
        source_count=1,
        sources=("NTS",),
        last_fetched_at=now,
        refresh_due_at=now + timedelta(hours=24),
    )


def test_unit_of_work_requires_startup() -> None:
    assert not is_started()
    with pytest.raises(StartupError):
        SqlAlchemyEntityUnitOfWork()


def test_startup_requires_force_for_reconfiguration() -> None:
    engine_a = create_engine("sqlite+pysqlite:///:memory:", future=True)
    engine_b = create_engine("sqlite+pysqlite:///:memory:", future=True)

    startup(engine=engine_a, force=True)

    with pytest.raises(StartupError):
        startup(engine=engine_b)

    startup(engine=engine_b, force=True)
    assert configured_engine() is engine_b
    assert is_started()


def test_startup_from_database_uri() -> None:
    startup(database_uri="sqlite+pysqlite:///:memory:")

    engine = configured_engine()
    assert engine is not None
    assert engine.dialect.name == "sqlite"


def test_repositories_need_an_open_unit_of_work(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)
    uow = SqlAlchemyEntityUnitOfWork()

    with pytest.raises(StartupError):
        _ = uow.repositories


def test_committed_work_is_visible_to_the_next_unit(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)

    with SqlAlchemyEntityUnitOfWork() as uow:
        uow.repositories.registry.add(_entry("ent_1248100998"))
        uow.commit()

    with SqlAlchemyEntityUnitOfWork() as uow:
        stored = uow.repositories.registry.get("ent_1248100998")
    assert stored is not None
    assert stored.sources == ("NTS",)


def test_uncommitted_work_is_discarded(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)

    with SqlAlchemyEntityUnitOfWork() as uow:
        uow.repositories.registry.add(_entry("ent_1248100998"))
        uow.rollback()

    with SqlAlchemyEntityUnitOfWork() as uow:
        assert uow.repositories.registry.get("ent_1248100998") is None


def test_errors_roll_back_and_propagate(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)

    with pytest.raises(RuntimeError, match="boom"), SqlAlchemyEntityUnitOfWork() as uow:
        uow.repositories.registry.add(_entry("ent_1248100998"))
        raise RuntimeError("boom")

    with SqlAlchemyEntityUnitOfWork() as uow:
        assert uow.repositories.registry.get("ent_1248100998") is None
