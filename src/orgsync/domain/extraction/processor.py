"""Transform one chunk of raw rows and persist the resulting records."""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from orgsync.domain.errors import MappingError
from orgsync.domain.extraction.consolidation import consolidate_practitioners
from orgsync.domain.extraction.row_mapper import RowMapper
from orgsync.domain.model import BatchResult, EntityKind, ErrorCode, ErrorLogEntry

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from orgsync.domain.model import DomainRecord, FieldMapping, RawRow
    from orgsync.domain.ports.unit_of_work import StoreRepositories, StoreUnitOfWork

log = getLogger(__name__)

TRANSFORM_OPERATION = "extract.transform"
PERSIST_OPERATION = "extract.persist"


@dataclass(slots=True)
class ChunkOutcome:
    result: BatchResult = field(default_factory=BatchResult)
    skipped: int = 0
    errors: list[ErrorLogEntry] = field(default_factory=list[ErrorLogEntry])


def process_chunk(
    rows: Sequence[RawRow],
    *,
    kind: EntityKind,
    column_names: Sequence[str],
    field_mappings: Sequence[FieldMapping],
    unit_of_work_factory: Callable[[], StoreUnitOfWork],
    partition_id: str,
) -> ChunkOutcome:
    """Map ``rows`` onto records of ``kind`` and upsert them in one unit of work.

    Raises ``ConfigurationError`` when the field mappings are unusable; every
    row-level and record-level problem is returned as an error-log entry.
    """

    mapper = RowMapper(kind, column_names, field_mappings)
    outcome = ChunkOutcome()

    with unit_of_work_factory() as uow:
        repositories = uow.repositories
        records = _transform(rows, mapper, repositories, outcome, partition_id)
        outcome.errors.extend(
            _validation_entry(record.external_id, note, partition_id)
            for record in records
            if record.validation_log
            for note in record.validation_log.splitlines()
        )
        if records:
            result = repositories.records_for(kind).upsert(records)
            uow.commit()
            outcome.result.extend(result)
            outcome.errors.extend(
                ErrorLogEntry(
                    operation=PERSIST_OPERATION,
                    message=failure.message,
                    error_code=ErrorCode.PERSISTENCE,
                    record_id=failure.key,
                    partition_id=partition_id,
                )
                for failure in result.failures
            )

    log.debug(
        "Chunk of %d %s rows in %s: stored=%d failed=%d skipped=%d",
        len(rows),
        kind,
        partition_id,
        outcome.result.succeeded,
        outcome.result.failed,
        outcome.skipped,
    )
    return outcome


def _transform(
    rows: Sequence[RawRow],
    mapper: RowMapper,
    repositories: StoreRepositories,
    outcome: ChunkOutcome,
    partition_id: str,
) -> list[DomainRecord]:
    if mapper.kind is EntityKind.PRACTITIONER:
        consolidated = consolidate_practitioners(
            rows,
            mapper,
            persisted_keys=repositories.practitioners.affiliation_keys_for,
        )
        for skipped in consolidated.skipped:
            outcome.skipped += 1
            outcome.errors.append(_skipped_entry(mapper, skipped.row, skipped.error, partition_id))
        for external_id, failure in consolidated.failures:
            outcome.errors.append(_coercion_entry(external_id, failure.describe(), partition_id))
        return list(consolidated.records)

    records: list[DomainRecord] = []
    for row in rows:
        try:
            mapped = mapper.map_row(row)
        except MappingError as exc:
            outcome.skipped += 1
            outcome.errors.append(_skipped_entry(mapper, row, exc, partition_id))
            continue
        for failure in mapped.failures:
            outcome.errors.append(
                _coercion_entry(mapped.record.external_id, failure.describe(), partition_id)
            )
        records.append(mapped.record)
    return records


def _skipped_entry(
    mapper: RowMapper, row: RawRow, error: MappingError, partition_id: str
) -> ErrorLogEntry:
    log.warning("Skipping %s row in %s: %s", mapper.kind, partition_id, error)
    return ErrorLogEntry(
        operation=TRANSFORM_OPERATION,
        message=str(error),
        error_code=error.code,
        row_snapshot=mapper.columns.snapshot(row),
        partition_id=partition_id,
    )


def _coercion_entry(external_id: str, message: str, partition_id: str) -> ErrorLogEntry:
    return ErrorLogEntry(
        operation=TRANSFORM_OPERATION,
        message=message,
        error_code=ErrorCode.FIELD_COERCION,
        record_id=external_id,
        partition_id=partition_id,
    )


def _validation_entry(external_id: str, note: str, partition_id: str) -> ErrorLogEntry:
    return ErrorLogEntry(
        operation=TRANSFORM_OPERATION,
        message=note,
        error_code=ErrorCode.VALIDATION,
        record_id=external_id,
        partition_id=partition_id,
    )


__all__ = ["ChunkOutcome", "process_chunk"]
