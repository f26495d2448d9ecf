"""Synchronization defaults for extraction and resolution runs."""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_CHUNK_SIZE = 1000
DEFAULT_RESOLUTION_BATCH_SIZE = 200
AFFILIATION_SEPARATOR = ";"


@dataclass(frozen=True, slots=True)
class SyncConfig:
    resolution_batch_size: int = DEFAULT_RESOLUTION_BATCH_SIZE


def get_sync_config() -> SyncConfig:
    return SyncConfig()
