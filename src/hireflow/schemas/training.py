"""Continuing-education catalog, assignment and progress records."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .common import ensure_aware

ALL_ROLES = "all"


class TrainingStatus(str, Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"


class TargetType(str, Enum):
    ALL = "all"
    ROLE = "role"
    INDIVIDUAL = "individual"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class AssignmentStatus(str, Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"


class ProgressState(str, Enum):
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class ComplianceClassification(str, Enum):
    """Risk buckets, best first."""

    ON_TRACK = "on_track"
    BEHIND = "behind"
    AT_RISK = "at_risk"
    NON_COMPLIANT = "non_compliant"


def _normalize_target(target_type: TargetType, target_value: Any) -> str | list[str] | None:
    if target_type == TargetType.ALL:
        return None
    if target_type == TargetType.ROLE:
        if not isinstance(target_value, str) or not target_value.strip():
            raise ValueError("role cohorts require a role tag as target_value")
        return target_value.strip()
    if isinstance(target_value, str):
        target_value = [target_value]
    if not target_value:
        raise ValueError("individual cohorts require at least one employee id")
    return [str(item) for item in target_value]


class Employee(BaseModel):
    """Employee reference used for cohort expansion."""

    id: str
    role: str
    name: str | None = None
    department: str | None = None
    annual_requirement_hours: float | None = Field(default=None, ge=0)

    model_config = ConfigDict(extra="allow")


class TrainingDefinition(BaseModel):
    """Catalog entry for an in-service training."""

    id: str
    title: str
    ceu_hours: float = Field(default=0.0, ge=0)
    duration_minutes: int = Field(default=0, ge=0)
    target_roles: list[str] = Field(default_factory=lambda: [ALL_ROLES])
    mandatory: bool = False
    status: TrainingStatus = TrainingStatus.ACTIVE

    model_config = ConfigDict(extra="allow")

    def applies_to(self, role: str) -> bool:
        roles = {item.casefold() for item in self.target_roles}
        return ALL_ROLES in roles or role.casefold() in roles


class Cohort(BaseModel):
    """Employees targeted by an assignment."""

    target_type: TargetType
    target_value: str | list[str] | None = None

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def _check_target(self) -> "Cohort":
        self.target_value = _normalize_target(self.target_type, self.target_value)
        return self


class Assignment(BaseModel):
    """One distribution event of a training to a cohort."""

    id: str
    training_id: str
    target_type: TargetType
    target_value: str | list[str] | None = None
    due_date: datetime
    priority: Priority = Priority.MEDIUM
    assigned_date: datetime | None = None
    assignment_status: AssignmentStatus = AssignmentStatus.ACTIVE
    assigned_by: str | None = None
    notes: str = ""

    model_config = ConfigDict(extra="allow")

    @model_validator(mode="after")
    def _check_target(self) -> "Assignment":
        self.target_value = _normalize_target(self.target_type, self.target_value)
        return self

    @field_validator("due_date", "assigned_date")
    @classmethod
    def _aware_dates(cls, value: datetime | None) -> datetime | None:
        return ensure_aware(value)

    @property
    def is_active(self) -> bool:
        return self.assignment_status == AssignmentStatus.ACTIVE


class AssignmentRequest(BaseModel):
    """Request to distribute a training to one or more cohorts.

    ``target_type``/``target_value`` may be given instead of ``cohorts`` for
    the common single-cohort case.
    """

    training_id: str
    cohorts: list[Cohort] = Field(min_length=1)
    due_date: datetime
    priority: Priority = Priority.MEDIUM
    notes: str = ""

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="before")
    @classmethod
    def _single_cohort_shorthand(cls, data: Any) -> Any:
        if isinstance(data, dict) and "cohorts" not in data and "target_type" in data:
            data = dict(data)
            data["cohorts"] = [
                {
                    "target_type": data.pop("target_type"),
                    "target_value": data.pop("target_value", None),
                }
            ]
        return data

    @field_validator("due_date")
    @classmethod
    def _aware_due(cls, value: datetime) -> datetime:
        return ensure_aware(value)


class ProgressRecord(BaseModel):
    """State of one (employee, training) pair."""

    employee_id: str
    training_id: str
    assignment_id: str | None = None
    state: ProgressState = ProgressState.ASSIGNED
    progress_percent: float = Field(default=0.0, ge=0, le=100)
    start_date: datetime | None = None
    completion_date: datetime | None = None
    score: float | None = None
    ceu_hours_earned: float = Field(default=0.0, ge=0)
    certificate_id: str | None = None

    model_config = ConfigDict(extra="allow")

    @field_validator("start_date", "completion_date")
    @classmethod
    def _aware_dates(cls, value: datetime | None) -> datetime | None:
        return ensure_aware(value)

    @property
    def key(self) -> tuple[str, str]:
        return self.employee_id, self.training_id
