from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine  # noqa: TC002
from sqlalchemy.pool import StaticPool

from orgsync.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork, shutdown, startup
from orgsync.domain.defaults import default_field_mappings
from orgsync.domain.model import EntityKind, ExtractionSetting, ResolutionMode, ResolutionSetting
from tests.helpers.store import CountingUnitOfWorkFactory
from tests.helpers.warehouse import RecordingErrorSink

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def sqlite_unit_of_work(
    sqlite_engine: Engine,
) -> Iterator[Callable[[], SqlAlchemyUnitOfWork]]:
    startup(engine=sqlite_engine, force=True)

    def factory() -> SqlAlchemyUnitOfWork:
        return SqlAlchemyUnitOfWork()

    try:
        yield factory
    finally:
        shutdown()


@pytest.fixture
def counting_unit_of_work(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> CountingUnitOfWorkFactory:
    return CountingUnitOfWorkFactory(sqlite_unit_of_work)


@pytest.fixture
def error_sink() -> RecordingErrorSink:
    return RecordingErrorSink()


@pytest.fixture
def seeded_store(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> Callable[[], SqlAlchemyUnitOfWork]:
    """Store with default field mappings, one procedure per kind and every resolution mode."""

    with sqlite_unit_of_work() as uow:
        settings = uow.repositories.settings
        for mapping in default_field_mappings():
            settings.add(mapping)
        for order, (procedure, kind) in enumerate(
            (
                ("SP_COMPANIES", EntityKind.COMPANY),
                ("SP_SUBSIDIARIES", EntityKind.SUBSIDIARY),
                ("SP_LOCATIONS", EntityKind.PRACTICE_LOCATION),
                ("SP_PRACTITIONERS", EntityKind.PRACTITIONER),
            ),
            start=1,
        ):
            settings.add(
                ExtractionSetting(
                    procedure_name=procedure,
                    entity_kind=kind,
                    chunk_size=2,
                    run_order=order,
                )
            )
        for order, mode in enumerate(ResolutionMode, start=1):
            settings.add(ResolutionSetting(mode=mode, batch_size=2, run_order=order))
        uow.commit()
    return sqlite_unit_of_work
