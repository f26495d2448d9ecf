"""Domain model package (dataclasses only, no persistence concerns)."""

from __future__ import annotations

from .enums import EntityKind, ErrorCode, FieldType, ResolutionMode
from .links import ErrorLogEntry, PractitionerFacility, RelationshipLink
from .partitions import PartitionDescriptor, RawRow, RawValue, SubmittedQuery
from .records import (
    RECORD_CLASS_BY_KIND,
    Company,
    DomainRecord,
    HierarchyMember,
    PracticeLocation,
    Practitioner,
    Subsidiary,
    join_affiliation_keys,
    split_affiliation_keys,
)
from .results import BatchResult, RecordFailure, RunSummary
from .settings import COMPOSITE_JOIN_OPERATOR, ExtractionSetting, FieldMapping, ResolutionSetting

__all__ = [
    "COMPOSITE_JOIN_OPERATOR",
    "RECORD_CLASS_BY_KIND",
    "BatchResult",
    "Company",
    "DomainRecord",
    "EntityKind",
    "ErrorCode",
    "ErrorLogEntry",
    "ExtractionSetting",
    "FieldMapping",
    "FieldType",
    "HierarchyMember",
    "PartitionDescriptor",
    "PracticeLocation",
    "Practitioner",
    "PractitionerFacility",
    "RawRow",
    "RawValue",
    "RecordFailure",
    "RelationshipLink",
    "ResolutionMode",
    "ResolutionSetting",
    "RunSummary",
    "Subsidiary",
    "SubmittedQuery",
    "join_affiliation_keys",
    "split_affiliation_keys",
]
