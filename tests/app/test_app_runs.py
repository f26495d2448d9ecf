from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import pytest

from orgsync import app
from orgsync.app import (
    run_extraction,
    run_relationship_resolution,
    run_scheduled_batches,
    seed_default_settings,
)
from orgsync.config import ConfigurationError, get_sync_config
from orgsync.domain.defaults import DEFAULT_PROCEDURES
from orgsync.domain.model import (
    EntityKind,
    ExtractionSetting,
    PracticeLocation,
    Practitioner,
    ResolutionMode,
    RunSummary,
    Subsidiary,
)
from orgsync.domain.ports.fetching import WarehouseSource
from tests.helpers.store import load_record, make_company, make_subsidiary, store_records
from tests.helpers.warehouse import FakeWarehouseSource

if TYPE_CHECKING:
    from collections.abc import Callable

    from orgsync.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork
    from orgsync.domain.model import RawRow, SubmittedQuery
    from tests.helpers.warehouse import RecordingErrorSink

    UnitOfWorkFactory = Callable[[], SqlAlchemyUnitOfWork]


@dataclass
class RoutingWarehouseSource(WarehouseSource):
    """Serves a different fake result set per procedure name."""

    by_procedure: dict[str, FakeWarehouseSource]

    def submit(self, procedure_name: str, start_date: str, end_date: str) -> SubmittedQuery:
        return self.by_procedure[procedure_name].submit(procedure_name, start_date, end_date)

    def fetch_partition(self, index: int, handle: str) -> list[RawRow]:
        (source,) = (s for s in self.by_procedure.values() if s.handle == handle)
        return source.fetch_partition(index, handle)


def _organisation_source() -> RoutingWarehouseSource:
    return RoutingWarehouseSource(
        {
            "SP_COMPANIES": FakeWarehouseSource(
                column_names=("COMPANY_ID", "COMPANY_NAME"),
                partitions=[[["C1", "Acme Health"]]],
                handle="H-C",
            ),
            "SP_SUBSIDIARIES": FakeWarehouseSource(
                column_names=("SUBSIDIARY_ID", "SUBSIDIARY_NAME", "COMPANY_ID"),
                partitions=[[["S1", "Acme East", "C1"]]],
                handle="H-S",
            ),
            "SP_LOCATIONS": FakeWarehouseSource(
                column_names=("PRACTICE_LOCATION_ID", "SUBSIDIARY_ID", "COMPANY_ID"),
                partitions=[[["P1", "S1", "C1"], ["P2", None, "C1"]]],
                handle="H-P",
            ),
            "SP_PRACTITIONERS": FakeWarehouseSource(
                column_names=("NPI", "FIRST_NAME", "LAST_NAME", "PRACTICE_LOCATION_ID"),
                partitions=[[["111", "Ada", "Lovelace", "P1"], ["111", "Ada", "Lovelace", "P2"]]],
                handle="H-D",
            ),
        }
    )


def test_run_extraction_loads_configured_procedure(
    seeded_store: UnitOfWorkFactory,
    error_sink: RecordingErrorSink,
) -> None:
    source = FakeWarehouseSource(
        column_names=("SUBSIDIARY_ID", "SUBSIDIARY_NAME", "COMPANY_ID"),
        partitions=[[["S1", "Acme East", "C1"], ["S2", "Acme West", "C1"]], [["S3", None, None]]],
    )

    summary = run_extraction(
        "sp_subsidiaries",
        "2024-01-01",
        "2024-01-31",
        source=source,
        unit_of_work_factory=seeded_store,
        error_sink=error_sink,
    )

    assert summary == RunSummary(processed=3, succeeded=3)
    assert source.submitted == [("SP_SUBSIDIARIES", "2024-01-01", "2024-01-31")]
    stored = load_record(seeded_store, Subsidiary, "S2")
    assert stored is not None
    assert stored.name == "Acme West"
    assert stored.company_external_id == "C1"
    assert error_sink.entries == []


def test_run_extraction_without_setting_is_a_configuration_error(
    seeded_store: UnitOfWorkFactory,
    error_sink: RecordingErrorSink,
) -> None:
    source = FakeWarehouseSource(column_names=("COMPANY_ID",), partitions=[])

    with pytest.raises(ConfigurationError, match="SP_UNKNOWN"):
        run_extraction(
            "SP_UNKNOWN",
            "2024-01-01",
            "2024-01-31",
            source=source,
            unit_of_work_factory=seeded_store,
            error_sink=error_sink,
        )

    assert source.submitted == []


def test_inactive_extraction_setting_does_nothing(
    seeded_store: UnitOfWorkFactory,
    error_sink: RecordingErrorSink,
) -> None:
    with seeded_store() as uow:
        uow.repositories.settings.add(
            ExtractionSetting(
                procedure_name="SP_RETIRED",
                entity_kind=EntityKind.COMPANY,
                chunk_size=10,
                is_active=False,
            )
        )
        uow.commit()
    source = FakeWarehouseSource(column_names=("COMPANY_ID",), partitions=[[["C1"]]])

    summary = run_extraction(
        "SP_RETIRED",
        "2024-01-01",
        "2024-01-31",
        source=source,
        unit_of_work_factory=seeded_store,
        error_sink=error_sink,
    )

    assert summary == RunSummary()
    assert source.submitted == []


def test_relationship_resolution_uses_configured_batch_size(
    seeded_store: UnitOfWorkFactory,
    error_sink: RecordingErrorSink,
) -> None:
    ids = store_records(
        seeded_store,
        make_company("C1"),
        make_subsidiary("S1", company="C1"),
        make_subsidiary("S2", company="C1"),
        make_subsidiary("S3", company="C1"),
    )

    summary = run_relationship_resolution(
        "subsidiary", unit_of_work_factory=seeded_store, error_sink=error_sink
    )

    assert summary == RunSummary(processed=3, succeeded=3)
    stored = load_record(seeded_store, Subsidiary, "S3")
    assert stored is not None
    assert stored.parent_id == ids["C1"]
    assert stored.relationship_established is True


def test_relationship_resolution_falls_back_to_sync_batch_size(
    sqlite_unit_of_work: UnitOfWorkFactory,
    error_sink: RecordingErrorSink,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    seen: list[int] = []

    def fake_resolution(
        mode: ResolutionMode, factory: object, *, batch_size: int, error_sink: object
    ) -> RunSummary:
        _ = (mode, factory, error_sink)
        seen.append(batch_size)
        return RunSummary()

    monkeypatch.setattr(app, "run_parent_resolution", fake_resolution)

    run_relationship_resolution(
        "subsidiary", unit_of_work_factory=sqlite_unit_of_work, error_sink=error_sink
    )

    assert seen == [get_sync_config().resolution_batch_size]


def test_relationship_resolution_rejects_unknown_mode(
    seeded_store: UnitOfWorkFactory,
    error_sink: RecordingErrorSink,
) -> None:
    with pytest.raises(ValueError, match="company"):
        run_relationship_resolution(
            "company", unit_of_work_factory=seeded_store, error_sink=error_sink
        )


def test_scheduled_batches_extract_then_resolve_everything(
    seeded_store: UnitOfWorkFactory,
    error_sink: RecordingErrorSink,
) -> None:
    summaries = run_scheduled_batches(
        "2024-01-01",
        "2024-01-31",
        source=_organisation_source(),
        unit_of_work_factory=seeded_store,
        error_sink=error_sink,
    )

    assert list(summaries) == [
        "SP_COMPANIES",
        "SP_SUBSIDIARIES",
        "SP_LOCATIONS",
        "SP_PRACTITIONERS",
        str(ResolutionMode.SUBSIDIARY),
        str(ResolutionMode.PRACTICE_LOCATION),
        str(ResolutionMode.PRACTITIONER_FACILITY),
    ]
    assert all(summary.failed == 0 for summary in summaries.values())
    assert error_sink.entries == []

    with seeded_store() as uow:
        company_ids = uow.repositories.companies.ids_by_external_id(["C1"])
        subsidiary_ids = uow.repositories.subsidiaries.ids_by_external_id(["S1"])
        junction_count = uow.repositories.junctions.count()

    via_subsidiary = load_record(seeded_store, PracticeLocation, "P1")
    via_company = load_record(seeded_store, PracticeLocation, "P2")
    practitioner = load_record(seeded_store, Practitioner, "111")
    assert via_subsidiary is not None
    assert via_subsidiary.parent_id == subsidiary_ids["S1"]
    assert via_subsidiary.parent_kind is EntityKind.SUBSIDIARY
    assert via_company is not None
    assert via_company.parent_id == company_ids["C1"]
    assert via_company.parent_kind is EntityKind.COMPANY
    assert practitioner is not None
    assert practitioner.name == "Ada Lovelace"
    assert practitioner.relationship_established is True
    assert junction_count == 2


def test_seed_default_settings_only_seeds_an_empty_store(
    sqlite_unit_of_work: UnitOfWorkFactory,
) -> None:
    assert seed_default_settings(unit_of_work_factory=sqlite_unit_of_work) is True
    assert seed_default_settings(unit_of_work_factory=sqlite_unit_of_work) is False

    with sqlite_unit_of_work() as uow:
        settings = uow.repositories.settings
        procedures = [setting.procedure_name for setting in settings.extraction_settings()]
        modes = [setting.mode for setting in settings.resolution_settings()]
        practitioner_mappings = settings.field_mappings(EntityKind.PRACTITIONER)

    assert procedures == [name for name, _kind in DEFAULT_PROCEDURES]
    assert modes == list(ResolutionMode)
    assert practitioner_mappings
