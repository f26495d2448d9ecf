"""Ports for fetching partitioned result sets from the warehouse."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from orgsync.domain.model import RawRow, SubmittedQuery


@runtime_checkable
class WarehouseSource(Protocol):
    """Two-call contract: submit a procedure once, then fetch partitions by index."""

    def submit(self, procedure_name: str, start_date: str, end_date: str) -> SubmittedQuery:
        """Run ``procedure_name`` over the date range; raise ``TransportError`` on failure."""
        ...

    def fetch_partition(self, index: int, handle: str) -> list[RawRow]:
        """Return the rows of one partition; raise ``TransportError`` on failure."""
        ...


__all__ = ["WarehouseSource"]
