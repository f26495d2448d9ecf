"""Outcome types for bulk writes and runs."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(slots=True, frozen=True)
class RecordFailure:
    """One record a bulk write could not persist."""

    key: str
    message: str


@dataclass(slots=True)
class BatchResult:
    """Per-record outcome of a bulk write with partial-failure semantics."""

    succeeded: int = 0
    failures: list[RecordFailure] = field(default_factory=list[RecordFailure])

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def processed(self) -> int:
        return self.succeeded + self.failed

    def add_failure(self, key: str, message: str) -> None:
        self.failures.append(RecordFailure(key=key, message=message))

    def extend(self, other: BatchResult) -> None:
        self.succeeded += other.succeeded
        self.failures.extend(other.failures)


@dataclass(slots=True)
class RunSummary:
    """Counters recorded at the end of an extraction or resolution run."""

    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0

    def record(self, result: BatchResult) -> None:
        self.processed += result.processed
        self.succeeded += result.succeeded
        self.failed += result.failed

    def merge(self, other: RunSummary) -> None:
        self.processed += other.processed
        self.succeeded += other.succeeded
        self.failed += other.failed
        self.skipped += other.skipped

    def __str__(self) -> str:
        return (
            f"processed={self.processed}, succeeded={self.succeeded}, "
            f"failed={self.failed}, skipped={self.skipped}"
        )
