from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from orgsync.domain.model import (
    EntityKind,
    PracticeLocation,
    ResolutionMode,
    RunSummary,
    Subsidiary,
)
from orgsync.domain.relationships.resolver import (
    RULES,
    choose_parent,
    collect_parent_keys,
    plan_links,
    rule_for,
    run_parent_resolution,
)
from tests.helpers.store import (
    load_record,
    make_company,
    make_location,
    make_subsidiary,
    store_records,
)

if TYPE_CHECKING:
    from tests.helpers.store import CountingUnitOfWorkFactory
    from tests.helpers.warehouse import RecordingErrorSink


def test_collect_parent_keys_returns_distinct_keys_per_kind() -> None:
    children = [
        make_location("L1", subsidiary="S1", company="C1"),
        make_location("L2", subsidiary="S1", company="C2"),
        make_location("L3"),
    ]

    keys = collect_parent_keys(children, RULES[ResolutionMode.PRACTICE_LOCATION])

    assert keys == {EntityKind.SUBSIDIARY: {"S1"}, EntityKind.COMPANY: {"C1", "C2"}}


def test_subsidiary_wins_over_company_when_both_resolve() -> None:
    location = make_location("L1", subsidiary="S1", company="C1")
    parent_ids = {EntityKind.SUBSIDIARY: {"S1": 7}, EntityKind.COMPANY: {"C1": 3}}

    choice = choose_parent(location, RULES[ResolutionMode.PRACTICE_LOCATION], parent_ids)

    assert choice == (7, EntityKind.SUBSIDIARY)


def test_company_is_used_when_subsidiary_key_does_not_resolve() -> None:
    location = make_location("L1", subsidiary="S404", company="C1")
    parent_ids = {EntityKind.SUBSIDIARY: {}, EntityKind.COMPANY: {"C1": 3}}

    choice = choose_parent(location, RULES[ResolutionMode.PRACTICE_LOCATION], parent_ids)

    assert choice == (3, EntityKind.COMPANY)


def test_plan_skips_established_children_with_unchanged_parent() -> None:
    settled = Subsidiary(
        external_id="S1",
        id=1,
        company_external_id="C1",
        parent_id=3,
        parent_kind=EntityKind.COMPANY,
        relationship_established=True,
    )
    correct_but_unflagged = Subsidiary(
        external_id="S2",
        id=2,
        company_external_id="C1",
        parent_id=3,
        parent_kind=EntityKind.COMPANY,
    )
    orphan = Subsidiary(external_id="S3", id=3, company_external_id="C404")

    plan = plan_links(
        [settled, correct_but_unflagged, orphan],
        RULES[ResolutionMode.SUBSIDIARY],
        {EntityKind.COMPANY: {"C1": 3}},
    )

    assert [link.child_id for link in plan.links] == [2]
    assert plan.links[0].established is True
    assert plan.unchanged == 1
    assert plan.unresolved == 1


def test_rule_for_rejects_junction_mode() -> None:
    with pytest.raises(ValueError, match="not a parent-resolution mode"):
        rule_for(ResolutionMode.PRACTITIONER_FACILITY)


def test_practice_locations_resolve_against_store(
    counting_unit_of_work: CountingUnitOfWorkFactory,
    error_sink: RecordingErrorSink,
) -> None:
    ids = store_records(
        counting_unit_of_work,
        make_company("C1"),
        make_subsidiary("S1", company="C1"),
        make_location("L1", subsidiary="S1", company="C1"),
        make_location("L2", subsidiary="S404", company="C1"),
        make_location("L3", subsidiary="S404"),
    )

    summary = run_parent_resolution(
        ResolutionMode.PRACTICE_LOCATION,
        counting_unit_of_work,
        batch_size=2,
        error_sink=error_sink,
    )

    leaf = load_record(counting_unit_of_work, PracticeLocation, "L1")
    fallback = load_record(counting_unit_of_work, PracticeLocation, "L2")
    orphan = load_record(counting_unit_of_work, PracticeLocation, "L3")
    assert leaf is not None
    assert fallback is not None
    assert orphan is not None
    assert (leaf.parent_id, leaf.parent_kind) == (ids["S1"], EntityKind.SUBSIDIARY)
    assert leaf.relationship_established is True
    assert (fallback.parent_id, fallback.parent_kind) == (ids["C1"], EntityKind.COMPANY)
    assert orphan.parent_id is None
    assert orphan.relationship_established is False
    assert (summary.processed, summary.succeeded, summary.skipped) == (3, 2, 1)
    assert error_sink.entries == []


def test_resolution_rerun_is_a_no_op(
    counting_unit_of_work: CountingUnitOfWorkFactory,
    error_sink: RecordingErrorSink,
) -> None:
    store_records(counting_unit_of_work, make_company("C1"), make_subsidiary("S1", company="C1"))

    first = run_parent_resolution(
        ResolutionMode.SUBSIDIARY, counting_unit_of_work, batch_size=10, error_sink=error_sink
    )
    second = run_parent_resolution(
        ResolutionMode.SUBSIDIARY, counting_unit_of_work, batch_size=10, error_sink=error_sink
    )

    assert first.succeeded == 1
    assert second == RunSummary(processed=1, succeeded=1)


def test_changed_parent_key_reopens_resolution(
    counting_unit_of_work: CountingUnitOfWorkFactory,
    error_sink: RecordingErrorSink,
) -> None:
    ids = store_records(
        counting_unit_of_work,
        make_company("C1"),
        make_company("C2"),
        make_subsidiary("S1", company="C1"),
    )
    run_parent_resolution(
        ResolutionMode.SUBSIDIARY, counting_unit_of_work, batch_size=10, error_sink=error_sink
    )

    store_records(counting_unit_of_work, make_subsidiary("S1", company="C2"))
    reopened = load_record(counting_unit_of_work, Subsidiary, "S1")
    assert reopened is not None
    assert reopened.relationship_established is False

    run_parent_resolution(
        ResolutionMode.SUBSIDIARY, counting_unit_of_work, batch_size=10, error_sink=error_sink
    )
    moved = load_record(counting_unit_of_work, Subsidiary, "S1")
    assert moved is not None
    assert moved.parent_id == ids["C2"]
    assert moved.relationship_established is True


def test_late_subsidiary_takes_over_a_company_link(
    counting_unit_of_work: CountingUnitOfWorkFactory,
    error_sink: RecordingErrorSink,
) -> None:
    ids = store_records(
        counting_unit_of_work,
        make_company("C1"),
        make_location("L1", subsidiary="S1", company="C1"),
    )
    run_parent_resolution(
        ResolutionMode.PRACTICE_LOCATION,
        counting_unit_of_work,
        batch_size=10,
        error_sink=error_sink,
    )
    interim = load_record(counting_unit_of_work, PracticeLocation, "L1")
    assert interim is not None
    assert (interim.parent_id, interim.parent_kind) == (ids["C1"], EntityKind.COMPANY)
    assert interim.relationship_established is True

    ids |= store_records(counting_unit_of_work, make_subsidiary("S1", company="C1"))
    summary = run_parent_resolution(
        ResolutionMode.PRACTICE_LOCATION,
        counting_unit_of_work,
        batch_size=10,
        error_sink=error_sink,
    )

    final = load_record(counting_unit_of_work, PracticeLocation, "L1")
    assert final is not None
    assert (final.parent_id, final.parent_kind) == (ids["S1"], EntityKind.SUBSIDIARY)
    assert final.relationship_established is True
    assert summary == RunSummary(processed=1, succeeded=1)
    assert error_sink.entries == []
