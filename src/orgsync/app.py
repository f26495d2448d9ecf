"""Application orchestration entry points."""

from __future__ import annotations

from collections.abc import Callable
from contextlib import nullcontext
from logging import getLogger
from typing import TYPE_CHECKING

from orgsync.adapters.sqlalchemy.error_sink import SqlAlchemyErrorSink
from orgsync.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork, is_started, startup
from orgsync.adapters.warehouse import WarehouseClient
from orgsync.config.errors import ConfigurationError
from orgsync.config.sync import get_sync_config
from orgsync.domain.defaults import (
    default_extraction_settings,
    default_field_mappings,
    default_resolution_settings,
)
from orgsync.domain.extraction import PartitionWalker
from orgsync.domain.model import ResolutionMode, RunSummary
from orgsync.domain.ports.unit_of_work import StoreUnitOfWork
from orgsync.domain.relationships import run_junction_build, run_parent_resolution
from orgsync.domain.scheduling import PipelineContext, TaskQueue

if TYPE_CHECKING:
    from orgsync.domain.ports import ErrorSink, WarehouseSource

UnitOfWorkFactory = Callable[[], StoreUnitOfWork]


log = getLogger(__name__)


def _ensure_started() -> None:
    if not is_started():
        startup()


def _source_scope(
    source: WarehouseSource | None,
) -> nullcontext[WarehouseSource] | WarehouseClient:
    """Use ``source`` as given; a default ``WarehouseClient`` is closed on exit."""

    return nullcontext(source) if source is not None else WarehouseClient()


def run_extraction(
    procedure_name: str,
    start_date: str,
    end_date: str,
    *,
    source: WarehouseSource | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    error_sink: ErrorSink | None = None,
) -> RunSummary:
    """Extract one configured procedure over ``[start_date, end_date]``."""

    _ensure_started()
    effective_uow = unit_of_work_factory or SqlAlchemyUnitOfWork
    effective_sink = error_sink or SqlAlchemyErrorSink()

    with effective_uow() as uow:
        setting = uow.repositories.settings.extraction_setting(procedure_name)
        if setting is None:
            raise ConfigurationError(f"No extraction setting for procedure {procedure_name}")
        field_mappings = tuple(uow.repositories.settings.field_mappings(setting.entity_kind))

    if not setting.is_active:
        log.warning("Extraction setting for %s is inactive; nothing to do", procedure_name)
        return RunSummary()

    walker = PartitionWalker.from_setting(
        setting, field_mappings, start_date=start_date, end_date=end_date
    )
    log.info(
        "Starting extraction: procedure=%s, kind=%s, start=%s, end=%s, chunk_size=%s",
        walker.procedure_name,
        walker.entity_kind,
        walker.start_date,
        walker.end_date,
        walker.chunk_size,
    )

    with _source_scope(source) as effective_source:
        queue = TaskQueue(
            PipelineContext(
                source=effective_source,
                unit_of_work_factory=effective_uow,
                error_sink=effective_sink,
            )
        )
        queue.submit(walker)
        steps = queue.drain()

    log.info(
        f"Finished extraction of {walker.procedure_name} in {steps} step(s): {walker.summary}"
    )
    return walker.summary


def run_relationship_resolution(
    mode: ResolutionMode | str,
    *,
    batch_size: int | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    error_sink: ErrorSink | None = None,
) -> RunSummary:
    """Run one resolution batch: parent assignment or practitioner junctions."""

    _ensure_started()
    resolution_mode = ResolutionMode(mode)
    effective_uow = unit_of_work_factory or SqlAlchemyUnitOfWork
    effective_sink = error_sink or SqlAlchemyErrorSink()

    if batch_size is None:
        with effective_uow() as uow:
            setting = uow.repositories.settings.resolution_setting(resolution_mode)
        batch_size = setting.batch_size if setting else get_sync_config().resolution_batch_size

    log.info(
        "Starting relationship resolution: mode=%s, batch_size=%s", resolution_mode, batch_size
    )
    if resolution_mode is ResolutionMode.PRACTITIONER_FACILITY:
        return run_junction_build(
            effective_uow, batch_size=batch_size, error_sink=effective_sink
        )
    return run_parent_resolution(
        resolution_mode,
        effective_uow,
        batch_size=batch_size,
        error_sink=effective_sink,
    )


def run_scheduled_batches(
    start_date: str,
    end_date: str,
    *,
    source: WarehouseSource | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    error_sink: ErrorSink | None = None,
) -> dict[str, RunSummary]:
    """Run every active extraction, then every active resolution, in configured order."""

    _ensure_started()
    effective_uow = unit_of_work_factory or SqlAlchemyUnitOfWork
    effective_sink = error_sink or SqlAlchemyErrorSink()

    with effective_uow() as uow:
        extraction_settings = uow.repositories.settings.extraction_settings()
        resolution_settings = uow.repositories.settings.resolution_settings()

    summaries: dict[str, RunSummary] = {}
    if extraction_settings:
        with _source_scope(source) as effective_source:
            for extraction in extraction_settings:
                summaries[extraction.procedure_name] = run_extraction(
                    extraction.procedure_name,
                    start_date,
                    end_date,
                    source=effective_source,
                    unit_of_work_factory=effective_uow,
                    error_sink=effective_sink,
                )
    for resolution in resolution_settings:
        summaries[str(resolution.mode)] = run_relationship_resolution(
            resolution.mode,
            batch_size=resolution.batch_size,
            unit_of_work_factory=effective_uow,
            error_sink=effective_sink,
        )
    return summaries


def seed_default_settings(*, unit_of_work_factory: UnitOfWorkFactory | None = None) -> bool:
    """Write the built-in configuration rows; return ``False`` when rows already exist."""

    _ensure_started()
    effective_uow = unit_of_work_factory or SqlAlchemyUnitOfWork
    with effective_uow() as uow:
        settings = uow.repositories.settings
        if settings.has_any():
            log.info("Configuration store already populated; leaving it untouched")
            return False
        for item in (
            *default_field_mappings(),
            *default_extraction_settings(),
            *default_resolution_settings(),
        ):
            settings.add(item)
        uow.commit()
    log.info("Seeded default configuration")
    return True
