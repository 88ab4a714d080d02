"""Core workflow engine components."""

from __future__ import annotations

# NOTE: keep imports explicit for export clarity.
from .lifecycle import (
    EFFECTS,
    GUARDS,
    ApplicationLifecycle,
    GuardContext,
    TransitionResult,
    pipeline_stage,
)
from .compliance import (
    BLOCKING_STATES,
    BlockedTarget,
    ComplianceConfig,
    ComplianceEngine,
    ComplianceSnapshot,
    TargetResolution,
    UpcomingDeadline,
    build_progress_index,
)
from .progress import ProgressTracker
from .roster import RosterSummary, filter_snapshots, summarize


__all__ = [
    "ApplicationLifecycle",
    "GuardContext",
    "TransitionResult",
    "GUARDS",
    "EFFECTS",
    "pipeline_stage",
    "ComplianceEngine",
    "ComplianceConfig",
    "ComplianceSnapshot",
    "TargetResolution",
    "BlockedTarget",
    "UpcomingDeadline",
    "BLOCKING_STATES",
    "build_progress_index",
    "ProgressTracker",
    "RosterSummary",
    "summarize",
    "filter_snapshots",
]
