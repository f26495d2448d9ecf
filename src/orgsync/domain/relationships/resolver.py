"""Priority-ordered parent resolution for hierarchy members.

Children are read in id-ordered pages. For each page the distinct parent keys are
collected once, every parent kind is loaded with one bulk lookup, and the chosen
parent for each child is written back in a single bulk update.
"""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Final

from orgsync.domain.model import (
    BatchResult,
    EntityKind,
    ErrorCode,
    ErrorLogEntry,
    RelationshipLink,
    ResolutionMode,
    RunSummary,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    from orgsync.domain.model import HierarchyMember
    from orgsync.domain.ports import ErrorSink, StoreRepositories, StoreUnitOfWork

log = getLogger(__name__)

RESOLVE_OPERATION = "resolve.parent"


@dataclass(slots=True, frozen=True)
class ParentCandidate:
    kind: EntityKind
    key_field: str


@dataclass(slots=True, frozen=True)
class ResolutionRule:
    """Child kind plus its parent candidates in priority order (first match wins)."""

    mode: ResolutionMode
    child_kind: EntityKind
    candidates: tuple[ParentCandidate, ...]


RULES: Final[Mapping[ResolutionMode, ResolutionRule]] = {
    ResolutionMode.SUBSIDIARY: ResolutionRule(
        mode=ResolutionMode.SUBSIDIARY,
        child_kind=EntityKind.SUBSIDIARY,
        candidates=(ParentCandidate(EntityKind.COMPANY, "company_external_id"),),
    ),
    ResolutionMode.PRACTICE_LOCATION: ResolutionRule(
        mode=ResolutionMode.PRACTICE_LOCATION,
        child_kind=EntityKind.PRACTICE_LOCATION,
        candidates=(
            ParentCandidate(EntityKind.SUBSIDIARY, "subsidiary_external_id"),
            ParentCandidate(EntityKind.COMPANY, "company_external_id"),
        ),
    ),
}

type ParentIds = Mapping[EntityKind, Mapping[str, int]]


@dataclass(slots=True)
class LinkPlan:
    links: list[RelationshipLink]
    unresolved: int = 0
    unchanged: int = 0


def rule_for(mode: ResolutionMode) -> ResolutionRule:
    try:
        return RULES[mode]
    except KeyError:
        raise ValueError(f"{mode} is not a parent-resolution mode") from None


def collect_parent_keys(
    children: Sequence[HierarchyMember], rule: ResolutionRule
) -> dict[EntityKind, set[str]]:
    """Return the distinct external keys referenced per parent kind."""

    keys: dict[EntityKind, set[str]] = {candidate.kind: set() for candidate in rule.candidates}
    for child in children:
        for candidate in rule.candidates:
            value = getattr(child, candidate.key_field, None)
            if value:
                keys[candidate.kind].add(value)
    return keys


def load_parent_ids(
    repositories: StoreRepositories, keys: Mapping[EntityKind, set[str]]
) -> dict[EntityKind, dict[str, int]]:
    return {
        kind: repositories.records_for(kind).ids_by_external_id(wanted) if wanted else {}
        for kind, wanted in keys.items()
    }


def choose_parent(
    child: HierarchyMember, rule: ResolutionRule, parent_ids: ParentIds
) -> tuple[int, EntityKind] | None:
    for candidate in rule.candidates:
        value = getattr(child, candidate.key_field, None)
        if not value:
            continue
        parent_id = parent_ids.get(candidate.kind, {}).get(value)
        if parent_id is not None:
            return parent_id, candidate.kind
    return None


def plan_links(
    children: Sequence[HierarchyMember], rule: ResolutionRule, parent_ids: ParentIds
) -> LinkPlan:
    plan = LinkPlan(links=[])
    for child in children:
        if child.id is None:
            continue
        choice = choose_parent(child, rule, parent_ids)
        if choice is None:
            plan.unresolved += 1
            continue
        parent_id, parent_kind = choice
        same_parent = child.parent_id == parent_id and child.parent_kind == parent_kind
        if same_parent and child.relationship_established:
            plan.unchanged += 1
            continue
        plan.links.append(
            RelationshipLink(child_id=child.id, parent_id=parent_id, parent_kind=parent_kind)
        )
    return plan


def resolve_children(
    children: Sequence[HierarchyMember],
    rule: ResolutionRule,
    repositories: StoreRepositories,
) -> tuple[LinkPlan, BatchResult]:
    parent_ids = load_parent_ids(repositories, collect_parent_keys(children, rule))
    plan = plan_links(children, rule, parent_ids)
    if not plan.links:
        return plan, BatchResult()
    return plan, repositories.hierarchy_for(rule.child_kind).apply_links(plan.links)


def run_parent_resolution(
    mode: ResolutionMode,
    unit_of_work_factory: Callable[[], StoreUnitOfWork],
    *,
    batch_size: int,
    error_sink: ErrorSink,
) -> RunSummary:
    rule = rule_for(mode)
    if batch_size < 1:
        raise ValueError("Batch size must be positive")

    summary = RunSummary()
    after_id: int | None = None
    while True:
        with unit_of_work_factory() as uow:
            repository = uow.repositories.hierarchy_for(rule.child_kind)
            page = repository.resolution_candidates(after_id=after_id, limit=batch_size)
            if not page:
                break
            plan, result = resolve_children(page, rule, uow.repositories)
            uow.commit()

        summary.record(result)
        summary.processed += plan.unresolved + plan.unchanged
        summary.succeeded += plan.unchanged
        summary.skipped += plan.unresolved
        error_sink.append(
            [
                ErrorLogEntry(
                    operation=RESOLVE_OPERATION,
                    message=failure.message,
                    error_code=ErrorCode.PERSISTENCE,
                    record_id=failure.key,
                )
                for failure in result.failures
            ]
        )
        log.debug(
            "%s page after id %s: linked=%d unresolved=%d",
            mode,
            after_id,
            result.succeeded,
            plan.unresolved,
        )
        after_id = page[-1].id
        if len(page) < batch_size:
            break

    log.info("Parent resolution for %s finished: %s", mode, summary)
    return summary


__all__ = [
    "RULES",
    "LinkPlan",
    "ParentCandidate",
    "ResolutionRule",
    "choose_parent",
    "collect_parent_keys",
    "load_parent_ids",
    "plan_links",
    "resolve_children",
    "rule_for",
    "run_parent_resolution",
]
