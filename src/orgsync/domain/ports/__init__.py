"""Domain port definitions for adapters."""

from __future__ import annotations

from .fetching import WarehouseSource
from .persistence import (
    ErrorSink,
    HierarchyRepository,
    JunctionRepository,
    PractitionerRepository,
    RecordRepository,
    SettingsRepository,
)
from .unit_of_work import RepositoryCollection, StoreRepositories, StoreUnitOfWork, UnitOfWork

__all__ = [
    "ErrorSink",
    "HierarchyRepository",
    "JunctionRepository",
    "PractitionerRepository",
    "RecordRepository",
    "RepositoryCollection",
    "SettingsRepository",
    "StoreRepositories",
    "StoreUnitOfWork",
    "UnitOfWork",
    "WarehouseSource",
]
