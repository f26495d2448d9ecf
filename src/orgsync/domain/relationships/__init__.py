"""Relationship resolution over records already at rest."""

from __future__ import annotations

from .junctions import JunctionOutcome, build_junctions, junction_failure_key, run_junction_build
from .resolver import (
    RULES,
    LinkPlan,
    ParentCandidate,
    ResolutionRule,
    choose_parent,
    collect_parent_keys,
    plan_links,
    resolve_children,
    rule_for,
    run_parent_resolution,
)

__all__ = [
    "RULES",
    "JunctionOutcome",
    "LinkPlan",
    "ParentCandidate",
    "ResolutionRule",
    "build_junctions",
    "choose_parent",
    "collect_parent_keys",
    "junction_failure_key",
    "plan_links",
    "resolve_children",
    "rule_for",
    "run_junction_build",
    "run_parent_resolution",
]
