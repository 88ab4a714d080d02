"""Job-application lifecycle state machine."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable
from uuid import uuid4

import pendulum
import structlog

from ..errors import IllegalTransition, InvalidInput
from ..schemas import (
    Action,
    Application,
    ApplicationStatus,
    Interview,
    InterviewStatus,
    TERMINAL_STATUSES,
    normalize_action,
)
from ..schemas.common import ensure_aware


@dataclass(frozen=True, slots=True)
class GuardContext:
    """Inputs every guard predicate is evaluated against."""

    status: ApplicationStatus
    accepted: bool
    interview_past: bool

    @property
    def awaiting_approval(self) -> bool:
        return self.status == ApplicationStatus.PENDING and not self.accepted


Guard = Callable[[GuardContext], bool]

_INTERVIEW_BLOCKED = frozenset(
    {
        ApplicationStatus.INTERVIEW_SCHEDULED,
        ApplicationStatus.OFFER_RECEIVED,
        ApplicationStatus.OFFER_ACCEPTED,
        ApplicationStatus.HIRED,
    }
)
_OFFER_BLOCKED = frozenset(
    {
        ApplicationStatus.OFFER_RECEIVED,
        ApplicationStatus.OFFER_ACCEPTED,
        ApplicationStatus.OFFER_DECLINED,
        ApplicationStatus.HIRED,
    }
)


def _interview_elapsed(ctx: GuardContext) -> bool:
    return ctx.status == ApplicationStatus.INTERVIEW_SCHEDULED and ctx.interview_past


# Single source of truth for both the "what can I show" query and apply().
GUARDS: dict[Action, Guard] = {
    Action.ACCEPT: lambda ctx: ctx.status == ApplicationStatus.PENDING and not ctx.accepted,
    Action.REJECT: lambda ctx: not ctx.accepted and ctx.status not in TERMINAL_STATUSES,
    Action.SCHEDULE_INTERVIEW: lambda ctx: not (
        ctx.awaiting_approval or ctx.status in _INTERVIEW_BLOCKED
    ),
    Action.SEND_OFFER: lambda ctx: not (ctx.awaiting_approval or ctx.status in _OFFER_BLOCKED),
    Action.HIRE_NOW: _interview_elapsed,
    Action.REJECT_POST_INTERVIEW: _interview_elapsed,
    Action.MARK_HIRED: lambda ctx: ctx.status == ApplicationStatus.OFFER_ACCEPTED,
}

EFFECTS: dict[Action, dict[str, Any]] = {
    Action.ACCEPT: {"accepted": True},
    Action.REJECT: {"status": ApplicationStatus.REJECTED},
    Action.SCHEDULE_INTERVIEW: {"status": ApplicationStatus.INTERVIEW_SCHEDULED},
    Action.SEND_OFFER: {"status": ApplicationStatus.OFFER_RECEIVED},
    Action.HIRE_NOW: {"status": ApplicationStatus.HIRED},
    Action.REJECT_POST_INTERVIEW: {"status": ApplicationStatus.REJECTED},
    Action.MARK_HIRED: {"status": ApplicationStatus.HIRED},
}

_PIPELINE_STAGES: dict[ApplicationStatus, str] = {
    ApplicationStatus.PENDING: "new",
    ApplicationStatus.INTERVIEW_SCHEDULED: "interview",
    ApplicationStatus.OFFER_RECEIVED: "background",
    ApplicationStatus.OFFER_ACCEPTED: "background",
    ApplicationStatus.HIRED: "hired",
    ApplicationStatus.REJECTED: "rejected",
    ApplicationStatus.OFFER_DECLINED: "rejected",
}


def pipeline_stage(status: ApplicationStatus) -> str:
    """Board column an application status is displayed under."""
    return _PIPELINE_STAGES[status]


@dataclass(slots=True)
class TransitionResult:
    """Outcome of applying one action."""

    action: Action
    previous_status: ApplicationStatus
    application: Application
    interview: Interview | None


class ApplicationLifecycle:
    """Decides which employer actions are legal and computes their effects.

    The lifecycle holds no state of its own. Terminal applications (rejected or
    hired) expose no actions at all, whatever the individual guards say.
    """

    def __init__(
        self,
        *,
        now_provider: Callable[[], datetime] | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._now_provider = now_provider or pendulum.now
        self._id_factory = id_factory or (lambda: uuid4().hex)
        self._logger = structlog.get_logger(__name__)

    def evaluate_actions(
        self,
        application: Application,
        interview: Interview | None = None,
        *,
        now: datetime | None = None,
    ) -> frozenset[Action]:
        ctx = self._context(application, interview, self._resolve_now(now))
        return self._legal(ctx)

    def can_apply(
        self,
        application: Application,
        action: Action | str,
        interview: Interview | None = None,
        *,
        now: datetime | None = None,
    ) -> bool:
        return normalize_action(action) in self.evaluate_actions(application, interview, now=now)

    def apply(
        self,
        application: Application,
        action: Action | str,
        *,
        interview: Interview | None = None,
        schedule_at: datetime | None = None,
        now: datetime | None = None,
    ) -> TransitionResult:
        """Apply ``action`` and return the next snapshot.

        Guards are re-checked here against the snapshot given, so a stale
        offer of actions can never commit. The input records are not mutated.
        """
        action = normalize_action(action)
        current = self._resolve_now(now)
        ctx = self._context(application, interview, current)
        legal = self._legal(ctx)

        if action not in legal:
            self._logger.warning(
                "application.transition_rejected",
                application_id=application.id,
                action=action.value,
                status=application.status.value,
                accepted=application.accepted,
                legal_actions=sorted(item.value for item in legal),
            )
            raise IllegalTransition(
                action,
                application.status,
                accepted=application.accepted,
                legal_actions=legal,
            )

        next_interview = interview
        if action == Action.SCHEDULE_INTERVIEW:
            next_interview = self._schedule(application, interview, schedule_at)

        updates = dict(EFFECTS[action])
        updates["updated_at"] = current
        updates["version"] = application.version + 1
        next_application = application.model_copy(update=updates)

        self._logger.info(
            "application.transition",
            application_id=application.id,
            action=action.value,
            from_status=application.status.value,
            to_status=next_application.status.value,
            accepted=next_application.accepted,
            version=next_application.version,
        )
        return TransitionResult(
            action=action,
            previous_status=application.status,
            application=next_application,
            interview=next_interview,
        )

    @staticmethod
    def _legal(ctx: GuardContext) -> frozenset[Action]:
        if ctx.status in TERMINAL_STATUSES:
            return frozenset()
        return frozenset(action for action, guard in GUARDS.items() if guard(ctx))

    @staticmethod
    def _context(
        application: Application,
        interview: Interview | None,
        now: datetime,
    ) -> GuardContext:
        interview_past = False
        if interview is not None:
            if interview.application_id != application.id:
                raise InvalidInput(
                    f"Interview {interview.id} belongs to application "
                    f"{interview.application_id}, not {application.id}"
                )
            interview_past = (
                interview.interview_status != InterviewStatus.CANCELLED
                and interview.interview_datetime < now
            )
        return GuardContext(
            status=application.status,
            accepted=application.accepted,
            interview_past=interview_past,
        )

    def _schedule(
        self,
        application: Application,
        interview: Interview | None,
        schedule_at: datetime | None,
    ) -> Interview:
        if schedule_at is None:
            raise InvalidInput("schedule_interview requires schedule_at")
        when = ensure_aware(schedule_at)
        if interview is not None and interview.is_active:
            return interview.model_copy(update={"interview_datetime": when})
        return Interview(
            id=self._id_factory(),
            application_id=application.id,
            interview_datetime=when,
        )

    def _resolve_now(self, now: datetime | None) -> datetime:
        return ensure_aware(now if now is not None else self._now_provider())
