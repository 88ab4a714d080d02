"""Job application and interview records."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..errors import InvalidInput
from .common import ensure_aware


class ApplicationStatus(str, Enum):
    """Canonical application statuses."""

    PENDING = "pending"
    INTERVIEW_SCHEDULED = "interview_scheduled"
    OFFER_RECEIVED = "offer_received"
    OFFER_ACCEPTED = "offer_accepted"
    OFFER_DECLINED = "offer_declined"
    REJECTED = "rejected"
    HIRED = "hired"


class Action(str, Enum):
    """Employer-triggered actions on an application."""

    ACCEPT = "accept"
    REJECT = "reject"
    SCHEDULE_INTERVIEW = "schedule_interview"
    SEND_OFFER = "send_offer"
    HIRE_NOW = "hire_now"
    REJECT_POST_INTERVIEW = "reject_post_interview"
    MARK_HIRED = "mark_hired"


class InterviewStatus(str, Enum):
    SCHEDULED = "scheduled"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


TERMINAL_STATUSES: frozenset[ApplicationStatus] = frozenset(
    {ApplicationStatus.REJECTED, ApplicationStatus.HIRED}
)

# Legacy values written by older clients.
STATUS_ALIASES: dict[str, ApplicationStatus] = {
    "accepted": ApplicationStatus.HIRED,
}


def normalize_status(raw: Any) -> ApplicationStatus:
    """Map a stored status value onto its canonical ``ApplicationStatus``."""
    if isinstance(raw, ApplicationStatus):
        return raw
    if not isinstance(raw, str):
        raise InvalidInput(f"Application status must be a string, got {type(raw).__name__}")
    key = raw.strip().lower()
    if key in STATUS_ALIASES:
        return STATUS_ALIASES[key]
    try:
        return ApplicationStatus(key)
    except ValueError as exc:
        raise InvalidInput(f"Unknown application status: {raw!r}") from exc


def normalize_action(raw: Any) -> Action:
    if isinstance(raw, Action):
        return raw
    try:
        return Action(str(raw).strip().lower())
    except ValueError as exc:
        raise InvalidInput(f"Unknown action: {raw!r}") from exc


class Interview(BaseModel):
    """Interview linked to a single application."""

    id: str
    application_id: str
    interview_datetime: datetime
    interview_status: InterviewStatus = InterviewStatus.SCHEDULED
    location: str | None = None
    notes: str | None = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("interview_datetime")
    @classmethod
    def _aware_datetime(cls, value: datetime) -> datetime:
        return ensure_aware(value)

    @property
    def is_active(self) -> bool:
        return self.interview_status == InterviewStatus.SCHEDULED


class Application(BaseModel):
    """One candidate's pursuit of one job posting."""

    id: str
    applicant_id: str
    job_posting_id: str
    status: ApplicationStatus = ApplicationStatus.PENDING
    accepted: bool = False
    applied_date: datetime | None = None
    updated_at: datetime | None = None
    version: int = Field(default=0, ge=0)
    notes: str | None = None

    model_config = ConfigDict(extra="allow")

    @field_validator("status", mode="before")
    @classmethod
    def _canonical_status(cls, value: Any) -> ApplicationStatus:
        return normalize_status(value)

    @field_validator("applied_date", "updated_at")
    @classmethod
    def _aware_timestamps(cls, value: datetime | None) -> datetime | None:
        return ensure_aware(value)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
