"""Typed record structures, one per entity kind.

Each record class declares the fields the row mapper may populate together with
their ``FieldType``. Unset fields stay ``None``; the store never receives an
empty string for a blank source value.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar

from orgsync.config.sync import AFFILIATION_SEPARATOR
from orgsync.domain.model.enums import EntityKind, FieldType

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping
    from datetime import date, datetime
    from decimal import Decimal

_ADDRESS_FIELDS: dict[str, FieldType] = {
    "phone": FieldType.TEXT,
    "street": FieldType.TEXT,
    "city": FieldType.TEXT,
    "state": FieldType.TEXT,
    "postal_code": FieldType.TEXT,
}


@dataclass(eq=False, kw_only=True)
class DomainRecord:
    """Fields shared by every materialised record."""

    KIND: ClassVar[EntityKind]
    FIELD_TYPES: ClassVar[Mapping[str, FieldType]]
    # Fields whose change invalidates an earlier parent/junction resolution.
    REFERENCE_FIELDS: ClassVar[tuple[str, ...]] = ()

    external_id: str
    id: int | None = None
    name: str | None = None
    relationship_established: bool = False
    validation_log: str | None = None

    @property
    def kind(self) -> EntityKind:
        return self.KIND

    def assigned_fields(self) -> dict[str, object]:
        """Return the mapped fields that carry a value."""

        values: dict[str, object] = {}
        for field_name in self.FIELD_TYPES:
            value = getattr(self, field_name)
            if value is not None:
                values[field_name] = value
        return values

    def note_validation(self, message: str) -> None:
        if self.validation_log:
            self.validation_log = f"{self.validation_log}\n{message}"
        else:
            self.validation_log = message


@dataclass(eq=False, kw_only=True)
class HierarchyMember(DomainRecord):
    """A record that is attached to a parent record once resolved."""

    parent_id: int | None = None
    parent_kind: EntityKind | None = None


@dataclass(eq=False, kw_only=True)
class Company(DomainRecord):
    KIND: ClassVar[EntityKind] = EntityKind.COMPANY
    FIELD_TYPES: ClassVar[Mapping[str, FieldType]] = {
        "external_id": FieldType.TEXT,
        "name": FieldType.TEXT,
        "email": FieldType.EMAIL,
        "website": FieldType.TEXT,
        "is_active": FieldType.BOOLEAN,
        "founded_on": FieldType.DATE,
        "employee_count": FieldType.INTEGER,
        **_ADDRESS_FIELDS,
    }

    email: str | None = None
    website: str | None = None
    phone: str | None = None
    street: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    is_active: bool | None = None
    founded_on: date | None = None
    employee_count: int | None = None


@dataclass(eq=False, kw_only=True)
class Subsidiary(HierarchyMember):
    KIND: ClassVar[EntityKind] = EntityKind.SUBSIDIARY
    FIELD_TYPES: ClassVar[Mapping[str, FieldType]] = {
        "external_id": FieldType.TEXT,
        "name": FieldType.TEXT,
        "company_external_id": FieldType.TEXT,
        "is_active": FieldType.BOOLEAN,
        **_ADDRESS_FIELDS,
    }
    REFERENCE_FIELDS: ClassVar[tuple[str, ...]] = ("company_external_id",)

    company_external_id: str | None = None
    phone: str | None = None
    street: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    is_active: bool | None = None


@dataclass(eq=False, kw_only=True)
class PracticeLocation(HierarchyMember):
    KIND: ClassVar[EntityKind] = EntityKind.PRACTICE_LOCATION
    FIELD_TYPES: ClassVar[Mapping[str, FieldType]] = {
        "external_id": FieldType.TEXT,
        "name": FieldType.TEXT,
        "subsidiary_external_id": FieldType.TEXT,
        "company_external_id": FieldType.TEXT,
        "email": FieldType.EMAIL,
        "latitude": FieldType.DECIMAL,
        "longitude": FieldType.DECIMAL,
        "opened_on": FieldType.DATE,
        "is_active": FieldType.BOOLEAN,
        **_ADDRESS_FIELDS,
    }
    REFERENCE_FIELDS: ClassVar[tuple[str, ...]] = (
        "subsidiary_external_id",
        "company_external_id",
    )

    subsidiary_external_id: str | None = None
    company_external_id: str | None = None
    email: str | None = None
    phone: str | None = None
    street: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    latitude: Decimal | None = None
    longitude: Decimal | None = None
    opened_on: date | None = None
    is_active: bool | None = None


@dataclass(eq=False, kw_only=True)
class Practitioner(DomainRecord):
    """A practitioner keyed by its numeric provider identifier.

    ``facility_keys`` holds the affiliation set: practice-location external keys
    joined by ``AFFILIATION_SEPARATOR``.
    """

    KIND: ClassVar[EntityKind] = EntityKind.PRACTITIONER
    FIELD_TYPES: ClassVar[Mapping[str, FieldType]] = {
        "external_id": FieldType.TEXT,
        "name": FieldType.TEXT,
        "first_name": FieldType.TEXT,
        "last_name": FieldType.TEXT,
        "credential": FieldType.TEXT,
        "gender": FieldType.CODE,
        "email": FieldType.EMAIL,
        "phone": FieldType.TEXT,
        "accepts_new_patients": FieldType.BOOLEAN,
        "years_in_practice": FieldType.INTEGER,
        "license_expires_on": FieldType.DATE,
        "source_updated_at": FieldType.DATETIME,
        "facility_keys": FieldType.TEXT,
    }
    REFERENCE_FIELDS: ClassVar[tuple[str, ...]] = ("facility_keys",)

    first_name: str | None = None
    last_name: str | None = None
    credential: str | None = None
    gender: str | None = None
    email: str | None = None
    phone: str | None = None
    accepts_new_patients: bool | None = None
    years_in_practice: int | None = None
    license_expires_on: date | None = None
    source_updated_at: datetime | None = None
    facility_keys: str | None = None

    def affiliation_keys(self) -> set[str]:
        return split_affiliation_keys(self.facility_keys)

    def set_affiliation_keys(self, keys: Iterable[str]) -> None:
        self.facility_keys = join_affiliation_keys(keys)


def split_affiliation_keys(value: str | None) -> set[str]:
    if not value:
        return set()
    return {part.strip() for part in value.split(AFFILIATION_SEPARATOR) if part.strip()}


def join_affiliation_keys(keys: Iterable[str]) -> str | None:
    cleaned = sorted({key.strip() for key in keys if key and key.strip()})
    return AFFILIATION_SEPARATOR.join(cleaned) or None


RECORD_CLASS_BY_KIND: dict[EntityKind, type[DomainRecord]] = {
    EntityKind.COMPANY: Company,
    EntityKind.SUBSIDIARY: Subsidiary,
    EntityKind.PRACTICE_LOCATION: PracticeLocation,
    EntityKind.PRACTITIONER: Practitioner,
}
