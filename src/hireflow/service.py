"""Check-then-act orchestration over a WorkflowRepository."""

from __future__ import annotations

import threading
import weakref
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable
from uuid import uuid4

import pendulum
import structlog

from .core import (
    ApplicationLifecycle,
    ComplianceEngine,
    ComplianceSnapshot,
    TargetResolution,
    TransitionResult,
)
from .core.assignments import assignment_from_request, materialize_records
from .core.compliance import BlockedTarget, Catalog
from .errors import WriteConflict
from .schemas import Action, Assignment, AssignmentRequest, Employee, ProgressRecord, ProgressState
from .schemas.common import ensure_aware
from .storage import AuditLogger, WorkflowRepository


class HiringService:
    """Serializes actions per application and commits them with a version check."""

    def __init__(
        self,
        *,
        lifecycle: ApplicationLifecycle,
        repository: WorkflowRepository,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self._lifecycle = lifecycle
        self._repository = repository
        self._audit = audit_logger
        # Entries vanish once no caller holds the lock.
        self._locks: weakref.WeakValueDictionary[str, threading.Lock] = (
            weakref.WeakValueDictionary()
        )
        self._locks_guard = threading.Lock()
        self._logger = structlog.get_logger(__name__)

    def available_actions(
        self, application_id: str, *, now: datetime | None = None
    ) -> frozenset[Action]:
        application = self._repository.load_application(application_id)
        interview = self._repository.load_interview(application_id)
        return self._lifecycle.evaluate_actions(application, interview, now=now)

    def perform(
        self,
        application_id: str,
        action: Action | str,
        *,
        schedule_at: datetime | None = None,
        now: datetime | None = None,
        actor: str | None = None,
    ) -> TransitionResult:
        """Apply ``action`` to the latest stored snapshot and persist it."""
        with self._lock_for(application_id), structlog.contextvars.bound_contextvars(actor=actor):
            application = self._repository.load_application(application_id)
            interview = self._repository.load_interview(application_id)
            result = self._lifecycle.apply(
                application,
                action,
                interview=interview,
                schedule_at=schedule_at,
                now=now,
            )
            self._repository.save_application(
                result.application, expected_version=application.version
            )
            if result.interview is not None and result.interview is not interview:
                self._repository.save_interview(result.interview)

        if self._audit:
            self._audit.append(
                {
                    "event": "application.transition",
                    "application_id": application_id,
                    "action": result.action.value,
                    "from_status": result.previous_status.value,
                    "to_status": result.application.status.value,
                    "accepted": result.application.accepted,
                    "version": result.application.version,
                    "actor": actor,
                    "at": result.application.updated_at,
                }
            )
        return result

    def _lock_for(self, application_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(application_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[application_id] = lock
            return lock


@dataclass(slots=True)
class AssignmentOutcome:
    resolution: TargetResolution
    assignment: Assignment | None = None
    records: list[ProgressRecord] = field(default_factory=list)


class TrainingService:
    """Distributes trainings and refreshes compliance snapshots."""

    def __init__(
        self,
        *,
        engine: ComplianceEngine,
        repository: WorkflowRepository,
        now_provider: Callable[[], datetime] | None = None,
        id_factory: Callable[[], str] | None = None,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self._engine = engine
        self._repository = repository
        self._now_provider = now_provider or pendulum.now
        self._id_factory = id_factory or (lambda: f"ASSIGN-{uuid4().hex[:12]}")
        self._audit = audit_logger
        self._logger = structlog.get_logger(__name__)

    def assign(
        self,
        request: AssignmentRequest,
        employees: Iterable[Employee],
        *,
        catalog: Catalog,
        assigned_by: str | None = None,
        now: datetime | None = None,
    ) -> AssignmentOutcome:
        roster = list(employees)
        index = self._repository.load_progress_index(
            [employee.id for employee in roster], request.training_id
        )
        resolution = self._engine.resolve_targets(request, roster, index, catalog=catalog)
        if not resolution.assignable:
            self._logger.info(
                "assignment.skipped",
                training_id=request.training_id,
                blocked=len(resolution.blocked),
            )
            return AssignmentOutcome(resolution=resolution)

        current = ensure_aware(now if now is not None else self._now_provider())
        assignment = assignment_from_request(
            request,
            resolution,
            assignment_id=self._id_factory(),
            assigned_date=current,
            assigned_by=assigned_by,
        )

        saved: list[ProgressRecord] = []
        conflicts: list[BlockedTarget] = []
        for record in materialize_records(resolution, assignment):
            try:
                self._repository.save_progress_record(record, create=True)
            except WriteConflict:
                # Lost a race with a concurrent assignment; storage wins.
                existing = self._repository.load_progress_index(
                    [record.employee_id], record.training_id
                ).get(record.key)
                reason = existing.state.value if existing else ProgressState.ASSIGNED.value
                conflicts.append(BlockedTarget(employee_id=record.employee_id, reason=reason))
                continue
            saved.append(record)

        if conflicts:
            conflicted = {item.employee_id for item in conflicts}
            resolution = TargetResolution(
                training_id=resolution.training_id,
                assignable=[eid for eid in resolution.assignable if eid not in conflicted],
                blocked=resolution.blocked + conflicts,
            )
            self._logger.warning(
                "assignment.storage_conflicts",
                training_id=request.training_id,
                employees=sorted(conflicted),
            )

        if not saved:
            self._logger.info(
                "assignment.skipped",
                training_id=request.training_id,
                blocked=len(resolution.blocked),
            )
            return AssignmentOutcome(resolution=resolution)

        if self._audit:
            self._audit.append(
                {
                    "event": "assignment.created",
                    "assignment_id": assignment.id,
                    "training_id": assignment.training_id,
                    "assigned": [record.employee_id for record in saved],
                    "blocked": [
                        {"employee_id": item.employee_id, "reason": item.reason}
                        for item in resolution.blocked
                    ],
                    "assigned_by": assigned_by,
                    "at": current,
                }
            )
        return AssignmentOutcome(resolution=resolution, assignment=assignment, records=saved)

    def snapshot(
        self,
        employee: Employee,
        *,
        catalog: Catalog,
        assignments: Iterable[Assignment] = (),
        requirement_hours: float | None = None,
        now: datetime | None = None,
    ) -> ComplianceSnapshot:
        records = self._repository.load_progress_records(employee.id)
        return self._engine.recompute_progress(
            employee,
            records,
            requirement_hours,
            catalog=catalog,
            assignments=assignments,
            now=now,
        )
