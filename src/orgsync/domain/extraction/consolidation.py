"""Practitioner consolidation by natural key.

Practitioner rows repeat once per practice location. All rows sharing a provider
identifier collapse into one record: the first row supplies the field values,
every row contributes its affiliation keys, and the keys already persisted for
that identifier are unioned in so the stored set never shrinks.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, cast

from orgsync.domain.errors import MappingError
from orgsync.domain.model import EntityKind, ErrorCode, Practitioner

if TYPE_CHECKING:
    from collections.abc import Callable, Collection, Iterable, Mapping

    from orgsync.domain.extraction.coercion import CoercionFailure
    from orgsync.domain.extraction.row_mapper import RowMapper
    from orgsync.domain.model import RawRow

type PersistedKeysLookup = Callable[[Collection[str]], Mapping[str, set[str]]]


@dataclass(slots=True)
class SkippedRow:
    row: RawRow
    error: MappingError


@dataclass(slots=True)
class ConsolidationResult:
    records: list[Practitioner] = field(default_factory=list[Practitioner])
    skipped: list[SkippedRow] = field(default_factory=list[SkippedRow])
    failures: list[tuple[str, CoercionFailure]] = field(
        default_factory=list[tuple[str, "CoercionFailure"]]
    )


def group_by_external_key(
    rows: Iterable[RawRow], mapper: RowMapper
) -> tuple[dict[str, list[RawRow]], list[SkippedRow]]:
    """Group rows by external key in first-seen order; keyless rows are skipped."""

    groups: dict[str, list[RawRow]] = {}
    skipped: list[SkippedRow] = []
    for row in rows:
        key = mapper.external_key(row)
        if key is None:
            error = MappingError(
                f"Row has no value for the {mapper.kind} external key",
                code=ErrorCode.MISSING_EXTERNAL_KEY,
            )
            skipped.append(SkippedRow(row=row, error=error))
            continue
        groups.setdefault(key, []).append(row)
    return groups, skipped


def consolidate_practitioners(
    rows: Iterable[RawRow],
    mapper: RowMapper,
    *,
    persisted_keys: PersistedKeysLookup,
) -> ConsolidationResult:
    if mapper.kind is not EntityKind.PRACTITIONER:
        raise ValueError(f"Consolidation only applies to practitioners, not {mapper.kind}")

    groups, skipped = group_by_external_key(rows, mapper)
    result = ConsolidationResult(skipped=skipped)
    if not groups:
        return result

    existing = persisted_keys(list(groups))
    for external_id, group in groups.items():
        mapped = mapper.map_row(group[0])
        record = cast(Practitioner, mapped.record)
        result.failures.extend((external_id, failure) for failure in mapped.failures)

        keys = record.affiliation_keys()
        for row in group[1:]:
            keys |= mapper.affiliation_keys(row)
        keys |= existing.get(external_id, set())
        record.set_affiliation_keys(keys)
        result.records.append(record)

    return result


__all__ = [
    "ConsolidationResult",
    "PersistedKeysLookup",
    "SkippedRow",
    "consolidate_practitioners",
    "group_by_external_key",
]
