"""Unit-of-work abstractions for coordinating repositories."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from orgsync.domain.model import EntityKind

if TYPE_CHECKING:
    from types import TracebackType

    from orgsync.domain.model import Company, PracticeLocation, Subsidiary
    from orgsync.domain.ports.persistence import (
        HierarchyRepository,
        JunctionRepository,
        PractitionerRepository,
        RecordRepository,
        SettingsRepository,
    )


@runtime_checkable
class RepositoryCollection(Protocol):
    """Marker protocol for groups of repositories managed together."""


@runtime_checkable
class UnitOfWork[TRepositories: RepositoryCollection](Protocol):
    """Generic unit-of-work boundary around a repository collection."""

    @property
    def repositories(self) -> TRepositories: ...

    def __enter__(self) -> UnitOfWork[TRepositories]: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


@dataclass(slots=True)
class StoreRepositories(RepositoryCollection):
    """Repositories over the operational record store."""

    companies: RecordRepository[Company]
    subsidiaries: HierarchyRepository[Subsidiary]
    practice_locations: HierarchyRepository[PracticeLocation]
    practitioners: PractitionerRepository
    junctions: JunctionRepository
    settings: SettingsRepository

    def records_for(self, kind: EntityKind) -> RecordRepository[Any]:
        match kind:
            case EntityKind.COMPANY:
                return self.companies
            case EntityKind.SUBSIDIARY:
                return self.subsidiaries
            case EntityKind.PRACTICE_LOCATION:
                return self.practice_locations
            case EntityKind.PRACTITIONER:
                return self.practitioners

    def hierarchy_for(self, kind: EntityKind) -> HierarchyRepository[Any]:
        match kind:
            case EntityKind.SUBSIDIARY:
                return self.subsidiaries
            case EntityKind.PRACTICE_LOCATION:
                return self.practice_locations
            case _:
                raise ValueError(f"{kind} records have no parent assignment")


type StoreUnitOfWork = UnitOfWork[StoreRepositories]
