"""Bounded-size chunk tasks for one partition.

A partition's rows are processed through a chain of ``ChunkTask`` instances. Each
task handles at most ``chunk_size`` rows and returns its successor, so chunks of a
partition run strictly in row order with one in flight at a time. When the last
chunk finishes, the task returns ``on_complete`` (the partition walker).
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from logging import getLogger
from typing import TYPE_CHECKING

from orgsync.config.errors import ConfigurationError
from orgsync.domain.errors import PersistenceError
from orgsync.domain.extraction.processor import process_chunk
from orgsync.domain.model import ErrorCode, ErrorLogEntry, RunSummary

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from orgsync.domain.model import EntityKind, FieldMapping, RawRow
    from orgsync.domain.scheduling import PipelineContext, Task

log = getLogger(__name__)


def split_chunk(rows: Sequence[RawRow], chunk_size: int) -> tuple[list[RawRow], list[RawRow]]:
    """Return the first ``chunk_size`` rows and the remainder."""

    if chunk_size < 1:
        raise ValueError("Chunk size must be positive")
    return list(rows[:chunk_size]), list(rows[chunk_size:])


def iter_chunks(rows: Sequence[RawRow], chunk_size: int) -> Iterator[list[RawRow]]:
    remainder = list(rows)
    while remainder:
        chunk, remainder = split_chunk(remainder, chunk_size)
        yield chunk


@dataclass(slots=True)
class ChunkTask:
    procedure_name: str
    partition_index: int
    entity_kind: EntityKind
    column_names: tuple[str, ...]
    field_mappings: tuple[FieldMapping, ...]
    chunk_size: int
    remaining_rows: list[RawRow]
    pending_chunk: list[RawRow] | None = None
    chunk_number: int = 0
    summary: RunSummary = field(default_factory=RunSummary)
    on_complete: Task | None = None
    dispatched: bool = False

    @property
    def partition_id(self) -> str:
        return f"{self.procedure_name}#{self.partition_index}"

    def run(self, context: PipelineContext) -> Task | None:
        if self.dispatched:
            log.warning(
                "Chunk %d of %s already dispatched; ignoring repeated invocation",
                self.chunk_number,
                self.partition_id,
            )
            return None
        self.dispatched = True

        if self.pending_chunk is None:
            chunk, remainder = split_chunk(self.remaining_rows, self.chunk_size)
        else:
            chunk, remainder = self.pending_chunk, self.remaining_rows

        try:
            outcome = process_chunk(
                chunk,
                kind=self.entity_kind,
                column_names=self.column_names,
                field_mappings=self.field_mappings,
                unit_of_work_factory=context.unit_of_work_factory,
                partition_id=self.partition_id,
            )
        except ConfigurationError as exc:
            log.error("Aborting %s for %s: %s", self.entity_kind, self.partition_id, exc)
            self.summary.skipped += len(chunk) + len(remainder)
            context.error_sink.append([self._error(exc, ErrorCode.CONFIGURATION)])
            return self.on_complete
        except PersistenceError as exc:
            log.error(
                "Chunk %d of %s was not stored: %s", self.chunk_number, self.partition_id, exc
            )
            self.summary.failed += len(chunk)
            self.summary.processed += len(chunk)
            context.error_sink.append([self._error(exc, ErrorCode.PERSISTENCE)])
        except Exception as exc:  # noqa: BLE001
            log.exception("Chunk %d of %s failed", self.chunk_number, self.partition_id)
            self.summary.failed += len(chunk)
            self.summary.processed += len(chunk)
            context.error_sink.append([self._error(exc, ErrorCode.UNEXPECTED)])
        else:
            self.summary.record(outcome.result)
            self.summary.skipped += outcome.skipped
            context.error_sink.append(outcome.errors)

        if not remainder:
            log.info("Finished %s after %d chunk(s)", self.partition_id, self.chunk_number + 1)
            return self.on_complete

        next_chunk, rest = split_chunk(remainder, self.chunk_size)
        return replace(
            self,
            pending_chunk=next_chunk,
            remaining_rows=rest,
            chunk_number=self.chunk_number + 1,
            dispatched=False,
        )

    def _error(self, exc: Exception, code: ErrorCode) -> ErrorLogEntry:
        return ErrorLogEntry(
            operation="extract.chunk",
            message=str(exc) or type(exc).__name__,
            error_code=code,
            partition_id=self.partition_id,
        )


__all__ = ["ChunkTask", "iter_chunks", "split_chunk"]
