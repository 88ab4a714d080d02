"""Pydantic schema definitions for workflow records."""

from __future__ import annotations

from .application import (
    Action,
    Application,
    ApplicationStatus,
    Interview,
    InterviewStatus,
    TERMINAL_STATUSES,
    normalize_action,
    normalize_status,
)
from .training import (
    ALL_ROLES,
    Assignment,
    AssignmentRequest,
    AssignmentStatus,
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

__all__ = [
    "Action",
    "Application",
    "ApplicationStatus",
    "Interview",
    "InterviewStatus",
    "TERMINAL_STATUSES",
    "normalize_action",
    "normalize_status",
    "ALL_ROLES",
    "Assignment",
    "AssignmentRequest",
    "AssignmentStatus",
    "Cohort",
    "ComplianceClassification",
    "Employee",
    "Priority",
    "ProgressRecord",
    "ProgressState",
    "TargetType",
    "TrainingDefinition",
    "TrainingStatus",
]
