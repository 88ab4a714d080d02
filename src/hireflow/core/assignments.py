"""Assignment administration helpers."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from ..errors import IllegalTransition, InvalidInput
from ..schemas import (
    Assignment,
    AssignmentRequest,
    AssignmentStatus,
    ProgressRecord,
    ProgressState,
    TargetType,
)
from ..schemas.common import ensure_aware
from .compliance import TargetResolution


@dataclass(slots=True)
class AssignmentStats:
    total: int
    completed: int
    in_progress: int
    not_started: int

    @property
    def completion_rate(self) -> float:
        return self.completed / self.total if self.total else 0.0


def assignment_from_request(
    request: AssignmentRequest,
    resolution: TargetResolution,
    *,
    assignment_id: str,
    assigned_date: datetime,
    assigned_by: str | None = None,
) -> Assignment:
    """Build the Assignment record for a resolved request.

    A single cohort is kept as requested. Several cohorts collapse into an
    individual list of the whole resolved cohort.
    """
    if resolution.training_id != request.training_id:
        raise InvalidInput("Resolution does not belong to this request")
    if len(request.cohorts) == 1:
        cohort = request.cohorts[0]
        target_type, target_value = cohort.target_type, cohort.target_value
    else:
        target_type = TargetType.INDIVIDUAL
        target_value = resolution.assignable + [item.employee_id for item in resolution.blocked]
        if not target_value:
            raise InvalidInput("Cannot create an assignment for an empty cohort")
    return Assignment(
        id=assignment_id,
        training_id=request.training_id,
        target_type=target_type,
        target_value=target_value,
        due_date=request.due_date,
        priority=request.priority,
        assigned_date=assigned_date,
        assigned_by=assigned_by,
        notes=request.notes,
    )


def materialize_records(resolution: TargetResolution, assignment: Assignment) -> list[ProgressRecord]:
    """Create ``assigned`` records for the assignable employees only."""
    if resolution.training_id != assignment.training_id:
        raise InvalidInput("Resolution and assignment reference different trainings")
    return [
        ProgressRecord(
            employee_id=employee_id,
            training_id=assignment.training_id,
            assignment_id=assignment.id,
            state=ProgressState.ASSIGNED,
        )
        for employee_id in resolution.assignable
    ]


def cancel(assignment: Assignment) -> Assignment:
    if not assignment.is_active:
        raise IllegalTransition("cancel", assignment.assignment_status)
    return assignment.model_copy(update={"assignment_status": AssignmentStatus.CANCELLED})


def extend_deadline(assignment: Assignment, due_date: datetime) -> Assignment:
    if not assignment.is_active:
        raise IllegalTransition("extend_deadline", assignment.assignment_status)
    due = ensure_aware(due_date)
    if assignment.assigned_date is not None and due < assignment.assigned_date:
        raise InvalidInput("New due date precedes the assignment date")
    return assignment.model_copy(update={"due_date": due})


def completion_stats(assignment: Assignment, records: Iterable[ProgressRecord]) -> AssignmentStats:
    states = [
        record.state
        for record in records
        if record.assignment_id == assignment.id and record.training_id == assignment.training_id
    ]
    completed = sum(1 for state in states if state == ProgressState.COMPLETED)
    in_progress = sum(1 for state in states if state == ProgressState.IN_PROGRESS)
    return AssignmentStats(
        total=len(states),
        completed=completed,
        in_progress=in_progress,
        not_started=len(states) - completed - in_progress,
    )
