"""Translate raw warehouse rows into typed domain records.

A ``RowMapper`` is built once per chunk from the partition's column list and the
field mappings configured for one entity kind. Column lookup is case-insensitive.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Final

from orgsync.config.errors import ConfigurationError
from orgsync.domain.errors import MappingError
from orgsync.domain.extraction.coercion import Coerced, CoercionFailure, coerce_value
from orgsync.domain.model import (
    RECORD_CLASS_BY_KIND,
    ErrorCode,
    FieldType,
    split_affiliation_keys,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from orgsync.domain.model import DomainRecord, EntityKind, FieldMapping, RawRow

log = getLogger(__name__)

EXTERNAL_KEY_FIELD: Final[str] = "external_id"
AFFILIATION_FIELD: Final[str] = "facility_keys"
EMAIL_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"^[A-Za-z0-9.!#$%&'*+/=?^_`{|}~-]+@[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?"
    r"(?:\.[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?)*\.[A-Za-z]{2,}$"
)


@dataclass(slots=True, frozen=True)
class ColumnIndex:
    """Case-insensitive column-name to position lookup for one partition."""

    names: tuple[str, ...]
    positions: Mapping[str, int]

    @classmethod
    def from_names(cls, names: Iterable[str]) -> ColumnIndex:
        ordered = tuple(names)
        positions: dict[str, int] = {}
        for position, name in enumerate(ordered):
            positions.setdefault(name.strip().upper(), position)
        return cls(names=ordered, positions=positions)

    def text(self, row: RawRow, column: str) -> str | None:
        """Return the stripped value of ``column`` or ``None`` when blank/missing."""

        position = self.positions.get(column.strip().upper())
        if position is None or position >= len(row):
            return None
        value = row[position]
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    def snapshot(self, row: RawRow) -> str:
        payload = {
            name: row[pos] if pos < len(row) else None for pos, name in enumerate(self.names)
        }
        return json.dumps(payload, default=str, sort_keys=True)


@dataclass(slots=True)
class MappedRow:
    record: DomainRecord
    failures: list[CoercionFailure] = field(default_factory=list[CoercionFailure])


def active_field_mappings(
    kind: EntityKind, field_mappings: Iterable[FieldMapping]
) -> tuple[FieldMapping, ...]:
    """Return the active mappings for ``kind`` or raise ``ConfigurationError``."""

    record_cls = RECORD_CLASS_BY_KIND[kind]
    active = tuple(m for m in field_mappings if m.is_active and m.entity_kind == kind)
    if not active:
        raise ConfigurationError(f"No active field mappings configured for {kind}")

    unknown = sorted({m.target_field for m in active} - set(record_cls.FIELD_TYPES))
    if unknown:
        raise ConfigurationError(f"Unknown target fields for {kind}: {', '.join(unknown)}")
    if not any(m.target_field == EXTERNAL_KEY_FIELD for m in active):
        raise ConfigurationError(f"No external key mapping configured for {kind}")
    if any(not m.source_columns for m in active):
        raise ConfigurationError(f"Blank source column in field mappings for {kind}")
    return active


class RowMapper:
    """Maps rows of one partition onto records of one entity kind."""

    def __init__(
        self,
        kind: EntityKind,
        column_names: Sequence[str],
        field_mappings: Iterable[FieldMapping],
    ) -> None:
        self.kind = kind
        self.columns = ColumnIndex.from_names(column_names)
        self.mappings = active_field_mappings(kind, field_mappings)
        self._record_cls = RECORD_CLASS_BY_KIND[kind]
        self._by_target = {m.target_field: m for m in self.mappings}

    def read_source(self, row: RawRow, mapping: FieldMapping) -> str | None:
        """Read the source value for ``mapping``; composite columns join non-blank parts."""

        if not mapping.is_composite:
            return self.columns.text(row, mapping.source_columns[0])
        parts = [self.columns.text(row, column) for column in mapping.source_columns]
        joined = " ".join(part for part in parts if part)
        return joined or None

    def external_key(self, row: RawRow) -> str | None:
        return self.read_source(row, self._by_target[EXTERNAL_KEY_FIELD])

    def affiliation_keys(self, row: RawRow) -> set[str]:
        mapping = self._by_target.get(AFFILIATION_FIELD)
        if mapping is None:
            return set()
        return split_affiliation_keys(self.read_source(row, mapping))

    def map_row(self, row: RawRow) -> MappedRow:
        """Build a typed record from ``row``.

        Raises ``MappingError`` when the row carries no external key. Coercion
        failures leave the field unset and are reported on the result.
        """

        values: dict[str, object] = {}
        failures: list[CoercionFailure] = []
        for mapping in self.mappings:
            raw_value = self.read_source(row, mapping)
            if raw_value is None:
                continue
            field_type = self._record_cls.FIELD_TYPES[mapping.target_field]
            match coerce_value(mapping.target_field, raw_value, field_type):
                case Coerced(value=value):
                    values[mapping.target_field] = value
                case CoercionFailure() as failure:
                    log.warning("%s row: %s", self.kind, failure.describe())
                    failures.append(failure)

        if not values.get(EXTERNAL_KEY_FIELD):
            raise MappingError(
                f"Row has no value for the {self.kind} external key",
                code=ErrorCode.MISSING_EXTERNAL_KEY,
            )

        record = self._record_cls(**values)  # pyright: ignore[reportArgumentType]
        self.validate(record, row)
        return MappedRow(record=record, failures=failures)

    def validate(self, record: DomainRecord, row: RawRow) -> list[str]:
        """Check e-mail fields; invalid values are cleared and noted on the record."""

        notes: list[str] = []
        for mapping in self.mappings:
            if self._record_cls.FIELD_TYPES[mapping.target_field] is not FieldType.EMAIL:
                continue
            value = getattr(record, mapping.target_field)
            if value is None or EMAIL_PATTERN.match(value):
                continue
            raw_value = self.read_source(row, mapping)
            note = (
                f"Invalid email {raw_value!r} in {mapping.source_column} "
                f"for {mapping.target_field}"
            )
            record.note_validation(note)
            setattr(record, mapping.target_field, None)
            notes.append(note)
        return notes


def map_row(
    raw_row: RawRow,
    column_names: Sequence[str],
    field_mappings: Iterable[FieldMapping],
    *,
    kind: EntityKind,
) -> MappedRow:
    """Convenience wrapper building a one-off ``RowMapper``."""

    return RowMapper(kind, column_names, field_mappings).map_row(raw_row)


__all__ = [
    "AFFILIATION_FIELD",
    "EMAIL_PATTERN",
    "EXTERNAL_KEY_FIELD",
    "ColumnIndex",
    "MappedRow",
    "RowMapper",
    "active_field_mappings",
    "map_row",
]
