"""State machine that walks one procedure's partitioned result set.

The walker submits the procedure once, then fetches partitions strictly in index
order. Each fetched partition is handed to a fresh ``ChunkTask`` chain whose final
continuation is the walker itself, so the next partition is only requested after
the current one has been fully processed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING

from orgsync.config.errors import ConfigurationError
from orgsync.domain.errors import TransportError
from orgsync.domain.extraction.chunking import ChunkTask
from orgsync.domain.model import ErrorCode, ErrorLogEntry, PartitionDescriptor, RunSummary

if TYPE_CHECKING:
    from orgsync.domain.model import EntityKind, ExtractionSetting, FieldMapping, SubmittedQuery
    from orgsync.domain.scheduling import PipelineContext, Task

log = getLogger(__name__)

SUBMIT_OPERATION = "extract.submit"
FETCH_OPERATION = "extract.fetch"


class WalkerState(StrEnum):
    NOT_STARTED = "not_started"
    AWAITING_FIRST_PARTITION = "awaiting_first_partition"
    CHAINING = "chaining"
    DONE = "done"


@dataclass(slots=True)
class PartitionWalker:
    procedure_name: str
    start_date: str
    end_date: str
    entity_kind: EntityKind
    chunk_size: int
    field_mappings: tuple[FieldMapping, ...]
    state: WalkerState = WalkerState.NOT_STARTED
    query: SubmittedQuery | None = None
    current_partition: int = 0
    partition_in_flight: bool = False
    summary: RunSummary = field(default_factory=RunSummary)

    @classmethod
    def from_setting(
        cls,
        setting: ExtractionSetting,
        field_mappings: tuple[FieldMapping, ...],
        *,
        start_date: str,
        end_date: str,
    ) -> PartitionWalker:
        start, end = setting.effective_dates(start_date, end_date)
        return cls(
            procedure_name=setting.procedure_name,
            start_date=start,
            end_date=end,
            entity_kind=setting.entity_kind,
            chunk_size=setting.chunk_size,
            field_mappings=field_mappings,
        )

    def partition_id(self, index: int | None = None) -> str:
        return f"{self.procedure_name}#{self.current_partition if index is None else index}"

    def run(self, context: PipelineContext) -> Task | None:
        match self.state:
            case WalkerState.DONE:
                return None
            case WalkerState.NOT_STARTED:
                return self._submit(context)
            case WalkerState.AWAITING_FIRST_PARTITION | WalkerState.CHAINING:
                if self.partition_in_flight:
                    return self._advance()
                return self._fetch(context)

    def _submit(self, context: PipelineContext) -> Task | None:
        log.info(
            "Submitting %s for %s..%s", self.procedure_name, self.start_date, self.end_date
        )
        try:
            query = context.source.submit(self.procedure_name, self.start_date, self.end_date)
        except (TransportError, ConfigurationError) as exc:
            log.error("Submit of %s failed: %s", self.procedure_name, exc)
            code = exc.code if isinstance(exc, TransportError) else ErrorCode.CONFIGURATION
            context.error_sink.append(
                [
                    ErrorLogEntry(
                        operation=SUBMIT_OPERATION,
                        message=str(exc),
                        error_code=code,
                        partition_id=self.procedure_name,
                    )
                ]
            )
            self.state = WalkerState.DONE
            return None

        self.query = query
        self.current_partition = 0
        if query.partition_count < 1:
            log.info("%s returned no partitions", self.procedure_name)
            self.state = WalkerState.DONE
            return None
        log.info(
            "%s produced %d partition(s) with %d column(s)",
            self.procedure_name,
            query.partition_count,
            len(query.column_names),
        )
        self.state = WalkerState.AWAITING_FIRST_PARTITION
        return self

    def descriptor(self) -> PartitionDescriptor:
        if self.query is None:
            raise RuntimeError("Partition requested before the query was submitted")
        return PartitionDescriptor.for_query(self.query, self.current_partition)

    def _fetch(self, context: PipelineContext) -> Task | None:
        descriptor = self.descriptor()
        self.state = WalkerState.CHAINING
        try:
            rows = context.source.fetch_partition(descriptor.index, descriptor.handle)
        except TransportError as exc:
            log.error("Fetch of %s failed, skipping: %s", self.partition_id(), exc)
            context.error_sink.append(
                [
                    ErrorLogEntry(
                        operation=FETCH_OPERATION,
                        message=str(exc),
                        error_code=exc.code,
                        partition_id=self.partition_id(),
                    )
                ]
            )
            return self._advance()

        log.info(
            "Fetched %d row(s) for %s (%d/%d)",
            len(rows),
            self.partition_id(),
            descriptor.index + 1,
            descriptor.partition_count,
        )
        if not rows:
            return self._advance()

        self.partition_in_flight = True
        return ChunkTask(
            procedure_name=self.procedure_name,
            partition_index=descriptor.index,
            entity_kind=self.entity_kind,
            column_names=descriptor.column_names,
            field_mappings=self.field_mappings,
            chunk_size=self.chunk_size,
            remaining_rows=rows,
            summary=self.summary,
            on_complete=self,
        )

    def _advance(self) -> Task | None:
        self.partition_in_flight = False
        if not self.descriptor().is_last:
            self.current_partition += 1
            return self
        self.state = WalkerState.DONE
        log.info("Extraction of %s finished: %s", self.procedure_name, self.summary)
        return None


__all__ = ["FETCH_OPERATION", "SUBMIT_OPERATION", "PartitionWalker", "WalkerState"]
