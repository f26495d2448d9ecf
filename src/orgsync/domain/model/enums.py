"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class EntityKind(StrEnum):
    COMPANY = "company"
    SUBSIDIARY = "subsidiary"
    PRACTICE_LOCATION = "practice_location"
    PRACTITIONER = "practitioner"


class FieldType(StrEnum):
    """Declared type of a record field; drives coercion of raw warehouse values."""

    TEXT = "text"
    INTEGER = "integer"
    DECIMAL = "decimal"
    BOOLEAN = "boolean"
    DATE = "date"
    DATETIME = "datetime"
    EMAIL = "email"
    CODE = "code"


class ResolutionMode(StrEnum):
    SUBSIDIARY = "subsidiary"
    PRACTICE_LOCATION = "practice_location"
    PRACTITIONER_FACILITY = "practitioner_facility"


class ErrorCode(StrEnum):
    TRANSPORT = "TRANSPORT"
    MISSING_EXTERNAL_KEY = "MISSING_EXTERNAL_KEY"
    FIELD_COERCION = "FIELD_COERCION"
    VALIDATION = "VALIDATION"
    PERSISTENCE = "PERSISTENCE"
    CONFIGURATION = "CONFIGURATION"
    UNEXPECTED = "UNEXPECTED"
