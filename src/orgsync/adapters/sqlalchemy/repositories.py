"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from itertools import batched
from logging import getLogger
from typing import TYPE_CHECKING, Any, Final, cast

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError

from orgsync.adapters.sqlalchemy.mappings import (
    TABLE_BY_RECORD_CLASS,
    extraction_setting_table,
    field_mapping_table,
    practitioner_facility_table,
    resolution_setting_table,
)
from orgsync.domain.model import (
    BatchResult,
    Company,
    DomainRecord,
    ExtractionSetting,
    FieldMapping,
    HierarchyMember,
    PracticeLocation,
    Practitioner,
    PractitionerFacility,
    ResolutionSetting,
    Subsidiary,
    split_affiliation_keys,
)
from orgsync.domain.relationships.junctions import junction_failure_key

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable, Sequence

    from sqlalchemy.orm import Session

    from orgsync.domain.model import EntityKind, RelationshipLink, ResolutionMode

log = getLogger(__name__)

# Stays well below SQLite's bound-parameter limit.
LOOKUP_BATCH_SIZE: Final[int] = 500


def describe_failure(exc: SQLAlchemyError) -> str:
    original = getattr(exc, "orig", None)
    return str(original or exc).splitlines()[0]


class SqlAlchemyRecordRepository[TRecord: DomainRecord]:
    """Upsert-by-external-key with one savepoint per record."""

    def __init__(self, session: Session, record_cls: type[TRecord]) -> None:
        self.session = session
        self._record_cls = record_cls
        self._table = TABLE_BY_RECORD_CLASS[record_cls]

    def upsert(self, records: Sequence[TRecord]) -> BatchResult:
        result = BatchResult()
        existing = self._load_existing(record.external_id for record in records)
        for record in records:
            stored = existing.get(record.external_id)
            try:
                with self.session.begin_nested():
                    if stored is None:
                        self.session.add(record)
                        stored = record
                    else:
                        _merge_into(stored, record)
                    self.session.flush()
            except SQLAlchemyError as exc:
                log.warning("Upsert of %s %s failed: %s", record.kind, record.external_id, exc)
                result.add_failure(record.external_id, describe_failure(exc))
                continue
            existing[record.external_id] = stored
            result.succeeded += 1
        return result

    def get_by_external_id(self, external_id: str) -> TRecord | None:
        stmt = select(self._record_cls).where(self._table.c.external_id == external_id)
        return self.session.execute(stmt).scalar_one_or_none()

    def ids_by_external_id(self, external_ids: Collection[str]) -> dict[str, int]:
        ids: dict[str, int] = {}
        for batch in batched(sorted(set(external_ids)), LOOKUP_BATCH_SIZE):
            stmt = select(self._table.c.external_id, self._table.c.id).where(
                self._table.c.external_id.in_(batch)
            )
            ids.update({row.external_id: row.id for row in self.session.execute(stmt)})
        return ids

    def mark_established(self, record_ids: Collection[int]) -> BatchResult:
        result = BatchResult()
        for batch in batched(sorted(set(record_ids)), LOOKUP_BATCH_SIZE):
            found = set(
                self.session.scalars(select(self._table.c.id).where(self._table.c.id.in_(batch)))
            )
            for missing in sorted(set(batch) - found):
                result.add_failure(str(missing), "Record not found")
            if not found:
                continue
            try:
                with self.session.begin_nested():
                    self.session.execute(
                        update(self._record_cls)
                        .where(self._table.c.id.in_(sorted(found)))
                        .values(relationship_established=True)
                    )
            except SQLAlchemyError as exc:
                log.warning(
                    "Marking %d %s records established failed: %s",
                    len(found),
                    self._table.name,
                    exc,
                )
                for record_id in sorted(found):
                    result.add_failure(str(record_id), describe_failure(exc))
                continue
            result.succeeded += len(found)
        return result

    def _load_existing(self, external_ids: Iterable[str]) -> dict[str, TRecord]:
        found: dict[str, TRecord] = {}
        for batch in batched(sorted(set(external_ids)), LOOKUP_BATCH_SIZE):
            stmt = select(self._record_cls).where(self._table.c.external_id.in_(batch))
            for record in self.session.scalars(stmt):
                found[record.external_id] = record
        return found

    def _pending_stmt(self, *, after_id: int | None, limit: int) -> Any:
        stmt = select(self._record_cls).where(self._table.c.relationship_established.is_(False))
        if after_id is not None:
            stmt = stmt.where(self._table.c.id > after_id)
        return stmt.order_by(self._table.c.id).limit(limit)


def _merge_into(stored: DomainRecord, incoming: DomainRecord) -> None:
    """Copy the fields set on ``incoming``; a changed reference key reopens resolution."""

    reference_changed = False
    for field_name, value in incoming.assigned_fields().items():
        if field_name == "external_id":
            continue
        if field_name in stored.REFERENCE_FIELDS and getattr(stored, field_name) != value:
            reference_changed = True
        setattr(stored, field_name, value)
    stored.validation_log = incoming.validation_log
    if reference_changed:
        stored.relationship_established = False


class SqlAlchemyCompanyRepository(SqlAlchemyRecordRepository[Company]):
    def __init__(self, session: Session) -> None:
        super().__init__(session, Company)


class SqlAlchemyHierarchyRepository[TRecord: HierarchyMember](SqlAlchemyRecordRepository[TRecord]):
    def resolution_candidates(self, *, after_id: int | None, limit: int) -> list[TRecord]:
        """Page through every child carrying at least one parent key, established or not.

        Established children are included so a parent that arrived later with a
        higher priority can still take over the link.
        """

        has_parent_key = or_(
            *(self._table.c[name].is_not(None) for name in self._record_cls.REFERENCE_FIELDS)
        )
        stmt = select(self._record_cls).where(has_parent_key)
        if after_id is not None:
            stmt = stmt.where(self._table.c.id > after_id)
        return list(self.session.scalars(stmt.order_by(self._table.c.id).limit(limit)))

    def apply_links(self, links: Sequence[RelationshipLink]) -> BatchResult:
        result = BatchResult()
        for link in links:
            record = self.session.get(self._record_cls, link.child_id)
            if record is None:
                result.add_failure(str(link.child_id), "Record not found")
                continue
            try:
                with self.session.begin_nested():
                    record.parent_id = link.parent_id
                    record.parent_kind = link.parent_kind
                    record.relationship_established = link.established
                    self.session.flush()
            except SQLAlchemyError as exc:
                log.warning("Linking %s %s failed: %s", record.kind, record.external_id, exc)
                result.add_failure(str(link.child_id), describe_failure(exc))
                continue
            result.succeeded += 1
        return result


class SqlAlchemySubsidiaryRepository(SqlAlchemyHierarchyRepository[Subsidiary]):
    def __init__(self, session: Session) -> None:
        super().__init__(session, Subsidiary)


class SqlAlchemyPracticeLocationRepository(SqlAlchemyHierarchyRepository[PracticeLocation]):
    def __init__(self, session: Session) -> None:
        super().__init__(session, PracticeLocation)


class SqlAlchemyPractitionerRepository(SqlAlchemyRecordRepository[Practitioner]):
    def __init__(self, session: Session) -> None:
        super().__init__(session, Practitioner)

    def affiliation_keys_for(self, external_ids: Collection[str]) -> dict[str, set[str]]:
        keys: dict[str, set[str]] = {}
        for batch in batched(sorted(set(external_ids)), LOOKUP_BATCH_SIZE):
            stmt = select(self._table.c.external_id, self._table.c.facility_keys).where(
                self._table.c.external_id.in_(batch)
            )
            for row in self.session.execute(stmt):
                keys[row.external_id] = split_affiliation_keys(row.facility_keys)
        return keys

    def pending_affiliations(self, *, after_id: int | None, limit: int) -> list[Practitioner]:
        stmt = self._pending_stmt(after_id=after_id, limit=limit).where(
            self._table.c.facility_keys.is_not(None)
        )
        return list(self.session.scalars(stmt))


class SqlAlchemyJunctionRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def existing_pairs(
        self,
        practitioner_ids: Collection[int],
        facility_ids: Collection[int],
    ) -> set[tuple[int, int]]:
        table = practitioner_facility_table
        wanted_facilities = set(facility_ids)
        pairs: set[tuple[int, int]] = set()
        for batch in batched(sorted(set(practitioner_ids)), LOOKUP_BATCH_SIZE):
            stmt = select(table.c.practitioner_id, table.c.facility_id).where(
                table.c.practitioner_id.in_(batch)
            )
            pairs.update(
                (row.practitioner_id, row.facility_id)
                for row in self.session.execute(stmt)
                if row.facility_id in wanted_facilities
            )
        return pairs

    def add_all(self, junctions: Sequence[PractitionerFacility]) -> BatchResult:
        result = BatchResult()
        for junction in junctions:
            try:
                with self.session.begin_nested():
                    self.session.add(junction)
                    self.session.flush()
            except SQLAlchemyError as exc:
                key = junction_failure_key(junction.practitioner_id, junction.facility_id)
                log.warning("Junction %s failed: %s", key, exc)
                result.add_failure(key, describe_failure(exc))
                continue
            result.succeeded += 1
        return result

    def count(self) -> int:
        stmt = select(func.count()).select_from(practitioner_facility_table)
        return cast(int, self.session.execute(stmt).scalar_one())


class SqlAlchemySettingsRepository:
    """Configuration-store reads, plus the writes used for seeding defaults."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def field_mappings(self, kind: EntityKind) -> list[FieldMapping]:
        stmt = (
            select(FieldMapping)
            .where(field_mapping_table.c.entity_kind == kind)
            .order_by(field_mapping_table.c.id)
        )
        return list(self.session.scalars(stmt))

    def extraction_setting(self, procedure_name: str) -> ExtractionSetting | None:
        stmt = select(ExtractionSetting).where(
            func.upper(extraction_setting_table.c.procedure_name) == procedure_name.upper()
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def extraction_settings(self) -> list[ExtractionSetting]:
        stmt = (
            select(ExtractionSetting)
            .where(extraction_setting_table.c.is_active.is_(True))
            .order_by(extraction_setting_table.c.run_order, extraction_setting_table.c.id)
        )
        return list(self.session.scalars(stmt))

    def resolution_setting(self, mode: ResolutionMode) -> ResolutionSetting | None:
        stmt = select(ResolutionSetting).where(resolution_setting_table.c.mode == mode)
        return self.session.execute(stmt).scalar_one_or_none()

    def resolution_settings(self) -> list[ResolutionSetting]:
        stmt = (
            select(ResolutionSetting)
            .where(resolution_setting_table.c.is_active.is_(True))
            .order_by(resolution_setting_table.c.run_order, resolution_setting_table.c.id)
        )
        return list(self.session.scalars(stmt))

    def has_any(self) -> bool:
        stmt = select(field_mapping_table.c.id).limit(1)
        return self.session.execute(stmt).first() is not None

    def add(self, item: FieldMapping | ExtractionSetting | ResolutionSetting) -> None:
        self.session.add(item)
