"""Continuing-education compliance engine."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable, Mapping, Sequence

import pendulum
import structlog

from ..errors import InvalidInput
from ..schemas import (
    Assignment,
    AssignmentRequest,
    Cohort,
    ComplianceClassification,
    Employee,
    Priority,
    ProgressRecord,
    ProgressState,
    TargetType,
    TrainingDefinition,
    TrainingStatus,
)
from ..schemas.common import ensure_aware

# Any existing record in these states blocks a second assignment of the same training.
BLOCKING_STATES: frozenset[ProgressState] = frozenset(
    {ProgressState.ASSIGNED, ProgressState.IN_PROGRESS, ProgressState.COMPLETED}
)

ProgressIndex = Mapping[tuple[str, str], ProgressRecord]
Catalog = Mapping[str, TrainingDefinition] | Iterable[TrainingDefinition]


@dataclass
class ComplianceConfig:
    """Classification thresholds and deadline settings."""

    on_track_ratio: float = 0.75
    behind_ratio: float = 0.50
    at_risk_ratio: float = 0.25
    deadline_window_days: int = 7
    default_requirement_hours: float = 20.0
    work_restrictions: tuple[str, ...] = ("scheduling", "payroll", "patient_assignments")

    def __post_init__(self) -> None:
        if not (1.0 >= self.on_track_ratio > self.behind_ratio > self.at_risk_ratio > 0.0):
            raise InvalidInput(
                "Compliance thresholds must satisfy 1 >= on_track > behind > at_risk > 0"
            )
        if self.deadline_window_days < 0:
            raise InvalidInput("deadline_window_days must be non-negative")
        if self.default_requirement_hours < 0:
            raise InvalidInput("default_requirement_hours must be non-negative")
        self.work_restrictions = tuple(self.work_restrictions)


@dataclass(slots=True)
class BlockedTarget:
    """Employee left out of an assignment because they already hold the training."""

    employee_id: str
    reason: str


@dataclass(slots=True)
class TargetResolution:
    training_id: str
    assignable: list[str] = field(default_factory=list)
    blocked: list[BlockedTarget] = field(default_factory=list)

    @property
    def cohort_size(self) -> int:
        return len(self.assignable) + len(self.blocked)


@dataclass(slots=True)
class UpcomingDeadline:
    assignment_id: str
    training_id: str
    title: str
    due_date: datetime
    priority: Priority
    mandatory: bool
    days_until_due: int


@dataclass(slots=True)
class ComplianceSnapshot:
    """Derived compliance standing for one employee."""

    employee_id: str
    role: str | None
    annual_requirement_hours: float
    completed_hours: float
    in_progress_hours: float
    remaining_hours: float
    classification: ComplianceClassification
    compliance_percentage: int
    upcoming_deadlines: list[UpcomingDeadline] = field(default_factory=list)
    overdue_mandatory: list[str] = field(default_factory=list)
    work_restrictions: list[str] = field(default_factory=list)
    next_action: str = ""


def build_progress_index(records: Iterable[ProgressRecord]) -> dict[tuple[str, str], ProgressRecord]:
    """Index records by ``(employee_id, training_id)``.

    Two records for the same pair means storage already broke the uniqueness
    invariant, which is reported rather than silently resolved.
    """
    index: dict[tuple[str, str], ProgressRecord] = {}
    for record in records:
        if record.key in index:
            raise InvalidInput(
                f"Duplicate progress records for employee {record.employee_id} "
                f"and training {record.training_id}"
            )
        index[record.key] = record
    return index


class ComplianceEngine:
    """Cohort resolution, hour aggregation and risk classification."""

    def __init__(
        self,
        *,
        config: ComplianceConfig | None = None,
        now_provider: Callable[[], datetime] | None = None,
    ) -> None:
        self._config = config or ComplianceConfig()
        self._now_provider = now_provider or pendulum.now
        self._logger = structlog.get_logger(__name__)

    @property
    def config(self) -> ComplianceConfig:
        return self._config

    def resolve_targets(
        self,
        request: AssignmentRequest,
        employees: Iterable[Employee],
        progress_index: ProgressIndex,
        *,
        catalog: Catalog,
    ) -> TargetResolution:
        """Split the requested cohort into assignable and blocked employees.

        Every employee of the expanded cohort appears exactly once in the
        result, in cohort order.
        """
        training = self._lookup_training(request.training_id, _as_catalog(catalog))
        if training.status == TrainingStatus.ARCHIVED:
            raise InvalidInput(f"Training {training.id} is archived and cannot be assigned")
        untargeted = [
            str(cohort.target_value)
            for cohort in request.cohorts
            if cohort.target_type == TargetType.ROLE and not training.applies_to(str(cohort.target_value))
        ]
        if untargeted:
            raise InvalidInput(f"Training {training.id} does not target roles {untargeted}")

        roster = {employee.id: employee for employee in employees}
        resolution = TargetResolution(training_id=training.id)

        for employee_id in self._expand(request.cohorts, roster):
            record = progress_index.get((employee_id, training.id))
            if record is not None and record.state in BLOCKING_STATES:
                resolution.blocked.append(
                    BlockedTarget(employee_id=employee_id, reason=record.state.value)
                )
            else:
                resolution.assignable.append(employee_id)

        self._logger.info(
            "assignment.targets_resolved",
            training_id=training.id,
            cohort_size=resolution.cohort_size,
            assignable=len(resolution.assignable),
            blocked=len(resolution.blocked),
        )
        return resolution

    def recompute_progress(
        self,
        employee: Employee | str,
        records: Iterable[ProgressRecord],
        requirement_hours: float | None = None,
        *,
        catalog: Catalog,
        assignments: Iterable[Assignment] = (),
        now: datetime | None = None,
    ) -> ComplianceSnapshot:
        if isinstance(employee, Employee):
            employee_id, role = employee.id, employee.role
            if requirement_hours is None:
                requirement_hours = employee.annual_requirement_hours
        else:
            employee_id, role = employee, None
        if requirement_hours is None:
            requirement_hours = self._config.default_requirement_hours
        if requirement_hours < 0:
            raise InvalidInput(f"requirement_hours must be non-negative, got {requirement_hours}")

        trainings = _as_catalog(catalog)
        current = ensure_aware(now if now is not None else self._now_provider())
        own = [record for record in records if record.employee_id == employee_id]

        completed_hours = 0.0
        in_progress_hours = 0.0
        completed_trainings: set[str] = set()
        for record in own:
            training = self._lookup_training(record.training_id, trainings)
            if record.state == ProgressState.COMPLETED:
                completed_hours += record.ceu_hours_earned
                completed_trainings.add(record.training_id)
            elif record.state == ProgressState.IN_PROGRESS:
                in_progress_hours += training.ceu_hours * (record.progress_percent / 100.0)

        referenced = {record.assignment_id for record in own if record.assignment_id}
        relevant = [
            assignment
            for assignment in assignments
            if assignment.is_active
            and _targets(assignment, employee_id, role, referenced)
            and assignment.training_id not in completed_trainings
        ]

        overdue: list[str] = []
        upcoming: list[UpcomingDeadline] = []
        window_end = current.add(days=self._config.deadline_window_days)
        for assignment in relevant:
            training = self._lookup_training(assignment.training_id, trainings)
            if assignment.due_date < current:
                if training.mandatory:
                    overdue.append(assignment.id)
                continue
            if assignment.due_date <= window_end:
                upcoming.append(
                    UpcomingDeadline(
                        assignment_id=assignment.id,
                        training_id=training.id,
                        title=training.title,
                        due_date=assignment.due_date,
                        priority=assignment.priority,
                        mandatory=training.mandatory,
                        days_until_due=days_until(assignment.due_date, current),
                    )
                )
        upcoming.sort(key=lambda item: (item.due_date, item.assignment_id))

        classification = self.classify(
            completed_hours, requirement_hours, overdue_mandatory=bool(overdue)
        )
        remaining = max(0.0, requirement_hours - completed_hours)
        snapshot = ComplianceSnapshot(
            employee_id=employee_id,
            role=role,
            annual_requirement_hours=float(requirement_hours),
            completed_hours=completed_hours,
            in_progress_hours=in_progress_hours,
            remaining_hours=remaining,
            classification=classification,
            compliance_percentage=_percentage(completed_hours, requirement_hours),
            upcoming_deadlines=upcoming,
            overdue_mandatory=overdue,
            work_restrictions=(
                list(self._config.work_restrictions)
                if classification == ComplianceClassification.NON_COMPLIANT
                else []
            ),
            next_action=_next_action(classification, remaining, overdue, upcoming),
        )

        self._logger.info(
            "compliance.recomputed",
            employee_id=employee_id,
            classification=classification.value,
            completed_hours=completed_hours,
            requirement_hours=requirement_hours,
            overdue_mandatory=overdue,
            upcoming=len(upcoming),
        )
        return snapshot

    def classify(
        self,
        completed_hours: float,
        requirement_hours: float,
        *,
        overdue_mandatory: bool = False,
    ) -> ComplianceClassification:
        if requirement_hours < 0:
            raise InvalidInput(f"requirement_hours must be non-negative, got {requirement_hours}")
        if overdue_mandatory:
            return ComplianceClassification.NON_COMPLIANT

        ratio = completed_hours / requirement_hours if requirement_hours > 0 else 1.0
        if ratio >= self._config.on_track_ratio:
            return ComplianceClassification.ON_TRACK
        if ratio >= self._config.behind_ratio:
            return ComplianceClassification.BEHIND
        if ratio >= self._config.at_risk_ratio:
            return ComplianceClassification.AT_RISK
        return ComplianceClassification.NON_COMPLIANT

    @staticmethod
    def _expand(cohorts: Sequence[Cohort], roster: Mapping[str, Employee]) -> list[str]:
        seen: dict[str, None] = {}
        for cohort in cohorts:
            if cohort.target_type == TargetType.ALL:
                members = list(roster)
            elif cohort.target_type == TargetType.ROLE:
                wanted = str(cohort.target_value).casefold()
                members = [
                    employee.id
                    for employee in roster.values()
                    if employee.role.casefold() == wanted
                ]
            else:
                members = list(cohort.target_value or [])
                unknown = [employee_id for employee_id in members if employee_id not in roster]
                if unknown:
                    raise InvalidInput(f"Unknown employee ids: {unknown}")
            for employee_id in members:
                seen.setdefault(employee_id, None)
        return list(seen)

    @staticmethod
    def _lookup_training(
        training_id: str,
        catalog: Mapping[str, TrainingDefinition],
    ) -> TrainingDefinition:
        try:
            return catalog[training_id]
        except KeyError as exc:
            raise InvalidInput(f"Unknown training id: {training_id!r}") from exc


def days_until(due: datetime, now: datetime) -> int:
    """Whole days until ``due``, rounded up."""
    return math.ceil((due - now).total_seconds() / 86400)


def _as_catalog(catalog: Catalog) -> Mapping[str, TrainingDefinition]:
    if isinstance(catalog, Mapping):
        return catalog
    return {training.id: training for training in catalog}


def _targets(
    assignment: Assignment,
    employee_id: str,
    role: str | None,
    referenced: set[str],
) -> bool:
    if assignment.id in referenced:
        return True
    if assignment.target_type == TargetType.ALL:
        return True
    if assignment.target_type == TargetType.ROLE:
        return role is not None and role.casefold() == str(assignment.target_value).casefold()
    return employee_id in (assignment.target_value or [])


def _percentage(completed: float, requirement: float) -> int:
    if requirement <= 0:
        return 100
    return int(math.floor(completed / requirement * 100 + 0.5))


def _next_action(
    classification: ComplianceClassification,
    remaining: float,
    overdue: list[str],
    upcoming: list[UpcomingDeadline],
) -> str:
    if overdue:
        return "Complete overdue mandatory training immediately to restore work eligibility"
    if classification == ComplianceClassification.NON_COMPLIANT:
        return f"Complete {remaining:g} CEU hours immediately to restore work eligibility"
    if classification in (ComplianceClassification.AT_RISK, ComplianceClassification.BEHIND):
        return f"Plan to complete {remaining:g} hours before the deadline"
    if upcoming:
        first = upcoming[0]
        return f"Complete {first.title} within {first.days_until_due} days"
    return "Continue maintaining compliance"
