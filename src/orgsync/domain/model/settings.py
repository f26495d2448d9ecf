"""Configuration-store rows: field mappings and batch settings."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from orgsync.domain.model.enums import EntityKind, ResolutionMode

# Joins several source columns into one composite target field.
COMPOSITE_JOIN_OPERATOR: Final[str] = "+"


@dataclass(eq=False, kw_only=True)
class FieldMapping:
    """Maps one target field of an entity kind onto one or more source columns."""

    entity_kind: EntityKind
    target_field: str
    source_column: str
    is_active: bool = True
    id: int | None = None

    @property
    def source_columns(self) -> tuple[str, ...]:
        parts = (part.strip() for part in self.source_column.split(COMPOSITE_JOIN_OPERATOR))
        return tuple(part for part in parts if part)

    @property
    def is_composite(self) -> bool:
        return len(self.source_columns) > 1


@dataclass(eq=False, kw_only=True)
class ExtractionSetting:
    procedure_name: str
    entity_kind: EntityKind
    chunk_size: int
    run_order: int = 0
    start_date_override: str | None = None
    end_date_override: str | None = None
    is_active: bool = True
    id: int | None = None

    def effective_dates(self, start_date: str, end_date: str) -> tuple[str, str]:
        return (self.start_date_override or start_date, self.end_date_override or end_date)


@dataclass(eq=False, kw_only=True)
class ResolutionSetting:
    mode: ResolutionMode
    batch_size: int
    run_order: int = 0
    is_active: bool = True
    id: int | None = None
