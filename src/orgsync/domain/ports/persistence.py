"""Ports for persisting records, junctions, settings and error-log entries."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from orgsync.domain.model import DomainRecord, HierarchyMember, Practitioner

if TYPE_CHECKING:
    from collections.abc import Collection, Sequence

    from orgsync.domain.model import (
        BatchResult,
        EntityKind,
        ErrorLogEntry,
        ExtractionSetting,
        FieldMapping,
        PractitionerFacility,
        RelationshipLink,
        ResolutionMode,
        ResolutionSetting,
    )


@runtime_checkable
class RecordRepository[TRecord: DomainRecord](Protocol):
    """Bulk upsert and lookup by external key."""

    def upsert(self, records: Sequence[TRecord]) -> BatchResult: ...

    def get_by_external_id(self, external_id: str) -> TRecord | None: ...

    def ids_by_external_id(self, external_ids: Collection[str]) -> dict[str, int]: ...

    def mark_established(self, record_ids: Collection[int]) -> BatchResult: ...


@runtime_checkable
class HierarchyRepository[TRecord: HierarchyMember](RecordRepository[TRecord], Protocol):
    """Repository for records that receive a parent assignment."""

    def resolution_candidates(self, *, after_id: int | None, limit: int) -> list[TRecord]: ...

    def apply_links(self, links: Sequence[RelationshipLink]) -> BatchResult: ...


@runtime_checkable
class PractitionerRepository(RecordRepository[Practitioner], Protocol):
    """Repository for practitioners and their affiliation sets."""

    def affiliation_keys_for(self, external_ids: Collection[str]) -> dict[str, set[str]]: ...

    def pending_affiliations(self, *, after_id: int | None, limit: int) -> list[Practitioner]: ...


@runtime_checkable
class JunctionRepository(Protocol):
    """Repository for practitioner/facility junctions."""

    def existing_pairs(
        self,
        practitioner_ids: Collection[int],
        facility_ids: Collection[int],
    ) -> set[tuple[int, int]]: ...

    def add_all(self, junctions: Sequence[PractitionerFacility]) -> BatchResult: ...


@runtime_checkable
class SettingsRepository(Protocol):
    """Read access to the configuration store."""

    def field_mappings(self, kind: EntityKind) -> list[FieldMapping]: ...

    def extraction_setting(self, procedure_name: str) -> ExtractionSetting | None: ...

    def extraction_settings(self) -> list[ExtractionSetting]: ...

    def resolution_setting(self, mode: ResolutionMode) -> ResolutionSetting | None: ...

    def resolution_settings(self) -> list[ResolutionSetting]: ...

    def has_any(self) -> bool: ...

    def add(self, item: FieldMapping | ExtractionSetting | ResolutionSetting) -> None: ...


@runtime_checkable
class ErrorSink(Protocol):
    """Append-only error-log store. Implementations never raise."""

    def append(self, entries: Sequence[ErrorLogEntry]) -> None: ...
