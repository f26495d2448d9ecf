"""SQLAlchemy mapping metadata for the record store and configuration store."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from functools import cache
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Dialect,
    Enum,
    Index,
    Integer,
    Numeric,
    String,
    Table,
    Text,
    TypeDecorator,
    UniqueConstraint,
    orm,
)
from sqlalchemy.orm import configure_mappers

from orgsync.domain.model import (
    Company,
    DomainRecord,
    EntityKind,
    ErrorCode,
    ErrorLogEntry,
    ExtractionSetting,
    FieldMapping,
    PracticeLocation,
    Practitioner,
    PractitionerFacility,
    ResolutionMode,
    ResolutionSetting,
    Subsidiary,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


def _record_columns() -> list[Column[Any]]:
    return [
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("external_id", String(64), nullable=False, unique=True),
        Column("name", String, nullable=True),
        Column("relationship_established", Boolean, nullable=False, default=False),
        Column("validation_log", Text, nullable=True),
    ]


def _address_columns() -> list[Column[Any]]:
    return [
        Column("phone", String(32), nullable=True),
        Column("street", String, nullable=True),
        Column("city", String, nullable=True),
        Column("state", String(32), nullable=True),
        Column("postal_code", String(16), nullable=True),
    ]


def _parent_columns() -> list[Column[Any]]:
    # parent_id points at company or subsidiary depending on parent_kind
    return [
        Column("parent_id", Integer, nullable=True),
        Column("parent_kind", Enum(EntityKind, native_enum=False), nullable=True),
    ]


# Record store ----------------------------------------------------------------

company_table = Table(
    "company",
    mapper_registry.metadata,
    *_record_columns(),
    Column("email", String, nullable=True),
    Column("website", String, nullable=True),
    *_address_columns(),
    Column("is_active", Boolean, nullable=True),
    Column("founded_on", Date, nullable=True),
    Column("employee_count", Integer, nullable=True),
)

subsidiary_table = Table(
    "subsidiary",
    mapper_registry.metadata,
    *_record_columns(),
    *_parent_columns(),
    Column("company_external_id", String(64), nullable=True),
    *_address_columns(),
    Column("is_active", Boolean, nullable=True),
    Index("ix_subsidiary_pending", "relationship_established", "id"),
)

practice_location_table = Table(
    "practice_location",
    mapper_registry.metadata,
    *_record_columns(),
    *_parent_columns(),
    Column("subsidiary_external_id", String(64), nullable=True),
    Column("company_external_id", String(64), nullable=True),
    Column("email", String, nullable=True),
    *_address_columns(),
    Column("latitude", Numeric(10, 7), nullable=True),
    Column("longitude", Numeric(10, 7), nullable=True),
    Column("opened_on", Date, nullable=True),
    Column("is_active", Boolean, nullable=True),
    Index("ix_practice_location_pending", "relationship_established", "id"),
)

practitioner_table = Table(
    "practitioner",
    mapper_registry.metadata,
    *_record_columns(),
    Column("first_name", String, nullable=True),
    Column("last_name", String, nullable=True),
    Column("credential", String(32), nullable=True),
    Column("gender", String(16), nullable=True),
    Column("email", String, nullable=True),
    Column("phone", String(32), nullable=True),
    Column("accepts_new_patients", Boolean, nullable=True),
    Column("years_in_practice", Integer, nullable=True),
    Column("license_expires_on", Date, nullable=True),
    Column("source_updated_at", UTCDateTime(), nullable=True),
    Column("facility_keys", Text, nullable=True),
    Index("ix_practitioner_pending", "relationship_established", "id"),
)

practitioner_facility_table = Table(
    "practitioner_facility",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("practitioner_id", Integer, nullable=False),
    Column("facility_id", Integer, nullable=False),
    Column("is_active", Boolean, nullable=False, default=True),
    UniqueConstraint("practitioner_id", "facility_id", name="uq_practitioner_facility_pair"),
)

error_log_table = Table(
    "error_log",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("operation", String(64), nullable=False),
    Column("message", Text, nullable=False),
    Column("error_code", Enum(ErrorCode, native_enum=False), nullable=False),
    Column("record_id", String(128), nullable=True),
    Column("row_snapshot", Text, nullable=True),
    Column("partition_id", String(128), nullable=True),
    Column("created_at", UTCDateTime(), nullable=False),
)

# Configuration store ---------------------------------------------------------

field_mapping_table = Table(
    "field_mapping",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("entity_kind", Enum(EntityKind, native_enum=False), nullable=False),
    Column("target_field", String(64), nullable=False),
    Column("source_column", String(255), nullable=False),
    Column("is_active", Boolean, nullable=False, default=True),
    UniqueConstraint("entity_kind", "target_field", name="uq_field_mapping_target"),
)

extraction_setting_table = Table(
    "extraction_setting",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("procedure_name", String(128), nullable=False, unique=True),
    Column("entity_kind", Enum(EntityKind, native_enum=False), nullable=False),
    Column("chunk_size", Integer, nullable=False),
    Column("run_order", Integer, nullable=False, default=0),
    Column("start_date_override", String(32), nullable=True),
    Column("end_date_override", String(32), nullable=True),
    Column("is_active", Boolean, nullable=False, default=True),
)

resolution_setting_table = Table(
    "resolution_setting",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("mode", Enum(ResolutionMode, native_enum=False), nullable=False, unique=True),
    Column("batch_size", Integer, nullable=False),
    Column("run_order", Integer, nullable=False, default=0),
    Column("is_active", Boolean, nullable=False, default=True),
)

TABLE_BY_RECORD_CLASS: dict[type[DomainRecord], Table] = {
    Company: company_table,
    Subsidiary: subsidiary_table,
    PracticeLocation: practice_location_table,
    Practitioner: practitioner_table,
}


@cache
def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers for the domain model."""

    log.info("Starting SQLAlchemy mappers")

    for record_cls, table in TABLE_BY_RECORD_CLASS.items():
        mapper_registry.map_imperatively(record_cls, table)

    mapper_registry.map_imperatively(PractitionerFacility, practitioner_facility_table)
    mapper_registry.map_imperatively(ErrorLogEntry, error_log_table)
    mapper_registry.map_imperatively(FieldMapping, field_mapping_table)
    mapper_registry.map_imperatively(ExtractionSetting, extraction_setting_table)
    mapper_registry.map_imperatively(ResolutionSetting, resolution_setting_table)

    configure_mappers()
    return mapper_registry


def create_all_tables(engine: Engine) -> None:
    """Create database tables for the mapped metadata."""

    log.info("Creating all tables")
    mapper_registry.metadata.create_all(engine)
