from __future__ import annotations

import pendulum
import pytest

from hireflow.core import BlockedTarget, TargetResolution
from hireflow.core.assignments import (
    assignment_from_request,
    cancel,
    completion_stats,
    extend_deadline,
    materialize_records,
)
from hireflow.errors import IllegalTransition, InvalidInput
from hireflow.schemas import (
    Assignment,
    AssignmentRequest,
    AssignmentStatus,
    ProgressRecord,
    ProgressState,
    TargetType,
)

NOW = pendulum.datetime(2025, 3, 10, 12, 0, tz="UTC")


def build_assignment(**kwargs) -> Assignment:
    defaults = {
        "id": "ASSIGN-001",
        "training_id": "IS-002",
        "target_type": "role",
        "target_value": "RN",
        "due_date": NOW.add(days=30),
        "assigned_date": NOW,
    }
    defaults.update(kwargs)
    return Assignment(**defaults)


def test_single_cohort_assignment_keeps_target():
    request = AssignmentRequest(
        training_id="IS-002", target_type="role", target_value="RN", due_date=NOW.add(days=30)
    )
    resolution = TargetResolution(training_id="IS-002", assignable=["A", "B"])

    assignment = assignment_from_request(
        request, resolution, assignment_id="ASSIGN-9", assigned_date=NOW, assigned_by="admin"
    )

    assert assignment.target_type == TargetType.ROLE
    assert assignment.target_value == "RN"
    assert assignment.assigned_by == "admin"
    assert assignment.is_active


def test_multi_cohort_assignment_lists_resolved_employees():
    request = AssignmentRequest(
        training_id="IS-002",
        cohorts=[
            {"target_type": "role", "target_value": "RN"},
            {"target_type": "individual", "target_value": "D"},
        ],
        due_date=NOW.add(days=30),
    )
    resolution = TargetResolution(
        training_id="IS-002",
        assignable=["B", "D"],
        blocked=[BlockedTarget(employee_id="A", reason="completed")],
    )

    assignment = assignment_from_request(
        request, resolution, assignment_id="ASSIGN-9", assigned_date=NOW
    )

    assert assignment.target_type == TargetType.INDIVIDUAL
    assert assignment.target_value == ["B", "D", "A"]


def test_materialize_records_only_for_assignable():
    resolution = TargetResolution(
        training_id="IS-002",
        assignable=["B", "C"],
        blocked=[BlockedTarget(employee_id="A", reason="in_progress")],
    )

    records = materialize_records(resolution, build_assignment())

    assert [record.employee_id for record in records] == ["B", "C"]
    assert all(record.state == ProgressState.ASSIGNED for record in records)
    assert all(record.assignment_id == "ASSIGN-001" for record in records)


def test_materialize_records_rejects_mismatched_training():
    with pytest.raises(InvalidInput):
        materialize_records(TargetResolution(training_id="IS-001"), build_assignment())


def test_cancel_is_status_change_and_not_repeatable():
    cancelled = cancel(build_assignment())

    assert cancelled.assignment_status == AssignmentStatus.CANCELLED
    assert cancelled.id == "ASSIGN-001"
    with pytest.raises(IllegalTransition):
        cancel(cancelled)


def test_extend_deadline():
    extended = extend_deadline(build_assignment(), NOW.add(days=60))

    assert extended.due_date == NOW.add(days=60)

    with pytest.raises(InvalidInput):
        extend_deadline(build_assignment(), NOW.subtract(days=1))
    with pytest.raises(IllegalTransition):
        extend_deadline(cancel(build_assignment()), NOW.add(days=60))


def test_completion_stats_counts_assignment_records():
    assignment = build_assignment()
    records = [
        ProgressRecord(employee_id="A", training_id="IS-002", assignment_id="ASSIGN-001", state="completed"),
        ProgressRecord(employee_id="B", training_id="IS-002", assignment_id="ASSIGN-001", state="in_progress"),
        ProgressRecord(employee_id="C", training_id="IS-002", assignment_id="ASSIGN-001"),
        ProgressRecord(employee_id="D", training_id="IS-002", assignment_id="ASSIGN-002", state="completed"),
    ]

    stats = completion_stats(assignment, records)

    assert (stats.total, stats.completed, stats.in_progress, stats.not_started) == (3, 1, 1, 1)
    assert stats.completion_rate == pytest.approx(1 / 3)
