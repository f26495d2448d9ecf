"""Practitioner to practice-location junction building."""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from orgsync.domain.model import (
    BatchResult,
    ErrorCode,
    ErrorLogEntry,
    PractitionerFacility,
    RunSummary,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from orgsync.domain.model import Practitioner
    from orgsync.domain.ports import ErrorSink, StoreRepositories, StoreUnitOfWork

log = getLogger(__name__)

JUNCTION_OPERATION = "resolve.junction"


def junction_failure_key(practitioner_id: int, facility_id: int) -> str:
    return f"{practitioner_id}:{facility_id}"


@dataclass(slots=True)
class JunctionOutcome:
    created: BatchResult = field(default_factory=BatchResult)
    established: BatchResult = field(default_factory=BatchResult)
    # practitioner id -> affiliation keys with no matching practice location
    unresolved: dict[int, set[str]] = field(default_factory=dict[int, set[str]])
    practitioners: int = 0


def build_junctions(
    practitioners: Sequence[Practitioner], repositories: StoreRepositories
) -> JunctionOutcome:
    """Create missing junctions for ``practitioners`` and mark fully resolved ones.

    Facility keys are resolved with one bulk lookup and existing pairs are loaded
    once for the whole batch. A practitioner is marked established only when every
    key resolved and none of its new junctions failed to persist.
    """

    outcome = JunctionOutcome()
    keys_by_practitioner = {
        practitioner.id: practitioner.affiliation_keys()
        for practitioner in practitioners
        if practitioner.id is not None
    }
    outcome.practitioners = len(keys_by_practitioner)
    if not keys_by_practitioner:
        return outcome

    wanted = set().union(*keys_by_practitioner.values())
    facility_ids = repositories.practice_locations.ids_by_external_id(wanted) if wanted else {}
    existing = (
        repositories.junctions.existing_pairs(
            list(keys_by_practitioner), set(facility_ids.values())
        )
        if facility_ids
        else set()
    )

    seen = set(existing)
    pending: list[PractitionerFacility] = []
    complete: list[int] = []
    for practitioner_id, keys in keys_by_practitioner.items():
        missing = {key for key in keys if key not in facility_ids}
        for key in sorted(keys - missing):
            pair = (practitioner_id, facility_ids[key])
            if pair in seen:
                continue
            seen.add(pair)
            pending.append(
                PractitionerFacility(practitioner_id=practitioner_id, facility_id=pair[1])
            )
        if missing:
            outcome.unresolved[practitioner_id] = missing
        else:
            complete.append(practitioner_id)

    if pending:
        outcome.created = repositories.junctions.add_all(pending)

    failed_practitioners = {
        int(failure.key.split(":", 1)[0]) for failure in outcome.created.failures
    }
    ready = [pid for pid in complete if pid not in failed_practitioners]
    if ready:
        outcome.established = repositories.practitioners.mark_established(ready)
    return outcome


def run_junction_build(
    unit_of_work_factory: Callable[[], StoreUnitOfWork],
    *,
    batch_size: int,
    error_sink: ErrorSink,
) -> RunSummary:
    if batch_size < 1:
        raise ValueError("Batch size must be positive")

    summary = RunSummary()
    after_id: int | None = None
    while True:
        with unit_of_work_factory() as uow:
            page = uow.repositories.practitioners.pending_affiliations(
                after_id=after_id, limit=batch_size
            )
            if not page:
                break
            outcome = build_junctions(page, uow.repositories)
            uow.commit()

        failures = [*outcome.created.failures, *outcome.established.failures]
        summary.processed += outcome.practitioners
        summary.succeeded += outcome.established.succeeded
        summary.failed += len({failure.key.split(":", 1)[0] for failure in failures})
        summary.skipped += len(outcome.unresolved)
        error_sink.append(
            [
                ErrorLogEntry(
                    operation=JUNCTION_OPERATION,
                    message=failure.message,
                    error_code=ErrorCode.PERSISTENCE,
                    record_id=failure.key,
                )
                for failure in failures
            ]
        )
        for practitioner_id, missing in outcome.unresolved.items():
            log.debug(
                "Practitioner %d has unresolved facility keys: %s",
                practitioner_id,
                ", ".join(sorted(missing)),
            )
        log.debug(
            "Junction page after id %s: created=%d established=%d",
            after_id,
            outcome.created.succeeded,
            outcome.established.succeeded,
        )
        after_id = page[-1].id
        if len(page) < batch_size:
            break

    log.info("Junction build finished: %s", summary)
    return summary


__all__ = ["JunctionOutcome", "build_junctions", "junction_failure_key", "run_junction_build"]
