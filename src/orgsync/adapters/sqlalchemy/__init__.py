"""SQLAlchemy adapter package for orgsync."""

from __future__ import annotations

from .error_sink import SqlAlchemyErrorSink
from .mappings import create_all_tables, mapper_registry, start_mappers
from .repositories import (
    SqlAlchemyCompanyRepository,
    SqlAlchemyJunctionRepository,
    SqlAlchemyPracticeLocationRepository,
    SqlAlchemyPractitionerRepository,
    SqlAlchemyRecordRepository,
    SqlAlchemySettingsRepository,
    SqlAlchemySubsidiaryRepository,
)
from .unit_of_work import SqlAlchemyUnitOfWork, is_started, shutdown, startup

__all__ = [
    "SqlAlchemyCompanyRepository",
    "SqlAlchemyErrorSink",
    "SqlAlchemyJunctionRepository",
    "SqlAlchemyPracticeLocationRepository",
    "SqlAlchemyPractitionerRepository",
    "SqlAlchemyRecordRepository",
    "SqlAlchemySettingsRepository",
    "SqlAlchemySubsidiaryRepository",
    "SqlAlchemyUnitOfWork",
    "create_all_tables",
    "is_started",
    "mapper_registry",
    "shutdown",
    "start_mappers",
    "startup",
]
