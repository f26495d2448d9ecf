"""Extraction pipeline: partition walking, chunking, row mapping and consolidation."""

from __future__ import annotations

from .chunking import ChunkTask, iter_chunks, split_chunk
from .coercion import CODE_TABLES, CodeTable, Coerced, CoercionFailure, coerce_value
from .consolidation import ConsolidationResult, SkippedRow, consolidate_practitioners
from .partition_walker import PartitionWalker, WalkerState
from .processor import ChunkOutcome, process_chunk
from .row_mapper import ColumnIndex, MappedRow, RowMapper, active_field_mappings, map_row

__all__ = [
    "CODE_TABLES",
    "ChunkOutcome",
    "ChunkTask",
    "CodeTable",
    "Coerced",
    "CoercionFailure",
    "ColumnIndex",
    "ConsolidationResult",
    "MappedRow",
    "PartitionWalker",
    "RowMapper",
    "SkippedRow",
    "WalkerState",
    "active_field_mappings",
    "coerce_value",
    "consolidate_practitioners",
    "iter_chunks",
    "map_row",
    "process_chunk",
    "split_chunk",
]
