"""Roster-level views over compliance snapshots."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from ..schemas import ALL_ROLES, ComplianceClassification
from .compliance import ComplianceSnapshot


@dataclass(slots=True)
class RosterSummary:
    total_employees: int
    on_track: int
    behind: int
    at_risk: int
    non_compliant: int
    total_hours_completed: float
    average_completion: float


def summarize(snapshots: Iterable[ComplianceSnapshot]) -> RosterSummary:
    items = list(snapshots)
    counts = {classification: 0 for classification in ComplianceClassification}
    for snapshot in items:
        counts[snapshot.classification] += 1

    ratios = [
        snapshot.completed_hours / snapshot.annual_requirement_hours * 100
        if snapshot.annual_requirement_hours > 0
        else 100.0
        for snapshot in items
    ]
    average = round(sum(ratios) / len(ratios), 1) if ratios else 0.0

    return RosterSummary(
        total_employees=len(items),
        on_track=counts[ComplianceClassification.ON_TRACK],
        behind=counts[ComplianceClassification.BEHIND],
        at_risk=counts[ComplianceClassification.AT_RISK],
        non_compliant=counts[ComplianceClassification.NON_COMPLIANT],
        total_hours_completed=sum(snapshot.completed_hours for snapshot in items),
        average_completion=average,
    )


def filter_snapshots(
    snapshots: Iterable[ComplianceSnapshot],
    *,
    role: str | None = None,
    classification: ComplianceClassification | str | None = None,
) -> list[ComplianceSnapshot]:
    """Filter by role and classification; ``None`` or ``"all"`` disables a filter."""
    selected = list(snapshots)
    if role and role != ALL_ROLES:
        wanted = role.casefold()
        selected = [s for s in selected if s.role is not None and s.role.casefold() == wanted]
    if classification and classification != "all":
        wanted_class = ComplianceClassification(classification)
        selected = [s for s in selected if s.classification == wanted_class]
    return selected
