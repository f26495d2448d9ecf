"""Built-in configuration rows written by ``seed-config``."""

from __future__ import annotations

from typing import Final

from orgsync.config.sync import DEFAULT_CHUNK_SIZE, DEFAULT_RESOLUTION_BATCH_SIZE
from orgsync.domain.model import (
    EntityKind,
    ExtractionSetting,
    FieldMapping,
    ResolutionMode,
    ResolutionSetting,
)

_ADDRESS_COLUMNS: Final[dict[str, str]] = {
    "phone": "PHONE",
    "street": "ADDRESS_LINE_1+ADDRESS_LINE_2",
    "city": "CITY",
    "state": "STATE",
    "postal_code": "ZIP",
}

DEFAULT_COLUMNS: Final[dict[EntityKind, dict[str, str]]] = {
    EntityKind.COMPANY: {
        "external_id": "COMPANY_ID",
        "name": "COMPANY_NAME",
        "email": "EMAIL",
        "website": "WEBSITE",
        "is_active": "IS_ACTIVE",
        "founded_on": "FOUNDED_DATE",
        "employee_count": "EMPLOYEE_COUNT",
        **_ADDRESS_COLUMNS,
    },
    EntityKind.SUBSIDIARY: {
        "external_id": "SUBSIDIARY_ID",
        "name": "SUBSIDIARY_NAME",
        "company_external_id": "COMPANY_ID",
        "is_active": "IS_ACTIVE",
        **_ADDRESS_COLUMNS,
    },
    EntityKind.PRACTICE_LOCATION: {
        "external_id": "PRACTICE_LOCATION_ID",
        "name": "PRACTICE_NAME",
        "subsidiary_external_id": "SUBSIDIARY_ID",
        "company_external_id": "COMPANY_ID",
        "email": "EMAIL",
        "latitude": "LATITUDE",
        "longitude": "LONGITUDE",
        "opened_on": "OPEN_DATE",
        "is_active": "IS_ACTIVE",
        **_ADDRESS_COLUMNS,
    },
    EntityKind.PRACTITIONER: {
        "external_id": "NPI",
        "name": "FIRST_NAME+LAST_NAME",
        "first_name": "FIRST_NAME",
        "last_name": "LAST_NAME",
        "credential": "CREDENTIAL",
        "gender": "GENDER",
        "email": "EMAIL",
        "phone": "PHONE",
        "accepts_new_patients": "ACCEPTING_NEW_PATIENTS",
        "years_in_practice": "YEARS_IN_PRACTICE",
        "license_expires_on": "LICENSE_EXPIRATION_DATE",
        "source_updated_at": "LAST_UPDATED_AT",
        "facility_keys": "PRACTICE_LOCATION_ID",
    },
}

DEFAULT_PROCEDURES: Final[tuple[tuple[str, EntityKind], ...]] = (
    ("SP_EXTRACT_COMPANIES", EntityKind.COMPANY),
    ("SP_EXTRACT_SUBSIDIARIES", EntityKind.SUBSIDIARY),
    ("SP_EXTRACT_PRACTICE_LOCATIONS", EntityKind.PRACTICE_LOCATION),
    ("SP_EXTRACT_PRACTITIONERS", EntityKind.PRACTITIONER),
)


def default_field_mappings(kind: EntityKind | None = None) -> list[FieldMapping]:
    kinds = [kind] if kind is not None else list(DEFAULT_COLUMNS)
    return [
        FieldMapping(entity_kind=entity_kind, target_field=target, source_column=source)
        for entity_kind in kinds
        for target, source in DEFAULT_COLUMNS[entity_kind].items()
    ]


def default_extraction_settings() -> list[ExtractionSetting]:
    return [
        ExtractionSetting(
            procedure_name=procedure,
            entity_kind=kind,
            chunk_size=DEFAULT_CHUNK_SIZE,
            run_order=order,
        )
        for order, (procedure, kind) in enumerate(DEFAULT_PROCEDURES, start=1)
    ]


def default_resolution_settings() -> list[ResolutionSetting]:
    # parents before leaves, junctions last
    modes = (
        ResolutionMode.SUBSIDIARY,
        ResolutionMode.PRACTICE_LOCATION,
        ResolutionMode.PRACTITIONER_FACILITY,
    )
    return [
        ResolutionSetting(mode=mode, batch_size=DEFAULT_RESOLUTION_BATCH_SIZE, run_order=order)
        for order, mode in enumerate(modes, start=1)
    ]


__all__ = [
    "DEFAULT_COLUMNS",
    "DEFAULT_PROCEDURES",
    "default_extraction_settings",
    "default_field_mappings",
    "default_resolution_settings",
]
