"""Partitioned result-set descriptors."""

from __future__ import annotations

from dataclasses import dataclass

type RawValue = str | int | float | bool | None
type RawRow = list[RawValue]


@dataclass(slots=True, frozen=True)
class SubmittedQuery:
    """Envelope returned when a procedure call is submitted."""

    column_names: tuple[str, ...]
    partition_count: int
    handle: str


@dataclass(slots=True, frozen=True)
class PartitionDescriptor:
    """One partition of a submitted query.

    ``handle`` and ``column_names`` are identical for every partition of a run.
    """

    handle: str
    partition_count: int
    index: int
    column_names: tuple[str, ...]

    @classmethod
    def for_query(cls, query: SubmittedQuery, index: int) -> PartitionDescriptor:
        if not 0 <= index < query.partition_count:
            raise IndexError(f"Partition {index} outside 0..{query.partition_count - 1}")
        return cls(
            handle=query.handle,
            partition_count=query.partition_count,
            index=index,
            column_names=query.column_names,
        )

    @property
    def is_last(self) -> bool:
        return self.index >= self.partition_count - 1
