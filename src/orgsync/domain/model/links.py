"""Relationship links, junction rows and error-log entries."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

from orgsync.domain.model.enums import EntityKind, ErrorCode


@dataclass(slots=True, frozen=True)
class RelationshipLink:
    """Parent assignment written back onto a child record."""

    child_id: int
    parent_id: int
    parent_kind: EntityKind
    established: bool = True


@dataclass(eq=False, kw_only=True)
class PractitionerFacility:
    """Association between a practitioner and a practice location."""

    practitioner_id: int
    facility_id: int
    is_active: bool = True
    id: int | None = None

    @property
    def pair(self) -> tuple[int, int]:
        return (self.practitioner_id, self.facility_id)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(eq=False, kw_only=True)
class ErrorLogEntry:
    """Append-only diagnostic row."""

    operation: str
    message: str
    error_code: ErrorCode
    record_id: str | None = None
    row_snapshot: str | None = None
    partition_id: str | None = None
    created_at: datetime = field(default_factory=_utcnow)
    id: int | None = None
