"""Public interface for the warehouse statement API adapter."""

from __future__ import annotations

from .client import STATEMENTS_PATH, WarehouseClient, build_statement
from .schema import PartitionResponse, SubmitResponse

__all__ = [
    "STATEMENTS_PATH",
    "PartitionResponse",
    "SubmitResponse",
    "WarehouseClient",
    "build_statement",
]
