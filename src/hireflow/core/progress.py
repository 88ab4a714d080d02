"""Employee progress through an assigned training."""

from __future__ import annotations

from datetime import datetime
from typing import Callable
from uuid import uuid4

import pendulum
import structlog

from ..errors import IllegalTransition, InvalidInput
from ..schemas import ProgressRecord, ProgressState, TrainingDefinition
from ..schemas.common import ensure_aware


class ProgressTracker:
    """Advances a ProgressRecord through assigned -> in_progress -> completed.

    Completed records are final; every method returns a new record.
    """

    def __init__(
        self,
        *,
        now_provider: Callable[[], datetime] | None = None,
        certificate_factory: Callable[[ProgressRecord, datetime], str] | None = None,
    ) -> None:
        self._now_provider = now_provider or pendulum.now
        self._certificate_factory = certificate_factory or _certificate_id
        self._logger = structlog.get_logger(__name__)

    def start(self, record: ProgressRecord, *, now: datetime | None = None) -> ProgressRecord:
        if record.state != ProgressState.ASSIGNED:
            raise IllegalTransition("start", record.state)
        started = record.model_copy(
            update={
                "state": ProgressState.IN_PROGRESS,
                "start_date": self._now(now),
                "progress_percent": 0.0,
            }
        )
        self._logger.info(
            "progress.started",
            employee_id=record.employee_id,
            training_id=record.training_id,
        )
        return started

    def record_progress(
        self,
        record: ProgressRecord,
        percent: float,
        *,
        training: TrainingDefinition,
        now: datetime | None = None,
    ) -> ProgressRecord:
        """Report progress; reaching 100 percent completes the training."""
        if not 0 <= percent <= 100:
            raise InvalidInput(f"progress percent must be within 0-100, got {percent}")
        if record.state == ProgressState.COMPLETED:
            raise IllegalTransition("progress", record.state)

        current = self._now(now)
        if record.state == ProgressState.ASSIGNED:
            record = self.start(record, now=current)
        if percent >= 100:
            return self.complete(record, training=training, now=current)

        updated = record.model_copy(update={"progress_percent": float(percent)})
        self._logger.info(
            "progress.updated",
            employee_id=record.employee_id,
            training_id=record.training_id,
            progress_percent=percent,
        )
        return updated

    def complete(
        self,
        record: ProgressRecord,
        *,
        training: TrainingDefinition,
        score: float | None = None,
        ceu_hours: float | None = None,
        now: datetime | None = None,
    ) -> ProgressRecord:
        if record.state == ProgressState.COMPLETED:
            raise IllegalTransition("complete", record.state)
        if training.id != record.training_id:
            raise InvalidInput(
                f"Record is for training {record.training_id}, not {training.id}"
            )
        if ceu_hours is not None and ceu_hours < 0:
            raise InvalidInput(f"ceu_hours must be non-negative, got {ceu_hours}")
        if score is not None and not 0 <= score <= 100:
            raise InvalidInput(f"score must be within 0-100, got {score}")

        current = self._now(now)
        completed = record.model_copy(
            update={
                "state": ProgressState.COMPLETED,
                "progress_percent": 100.0,
                "start_date": record.start_date or current,
                "completion_date": current,
                "score": score,
                "ceu_hours_earned": training.ceu_hours if ceu_hours is None else float(ceu_hours),
            }
        )
        completed.certificate_id = self._certificate_factory(completed, current)
        self._logger.info(
            "progress.completed",
            employee_id=record.employee_id,
            training_id=record.training_id,
            ceu_hours_earned=completed.ceu_hours_earned,
            certificate_id=completed.certificate_id,
        )
        return completed

    def _now(self, now: datetime | None) -> datetime:
        return ensure_aware(now if now is not None else self._now_provider())


def _certificate_id(record: ProgressRecord, issued_at: datetime) -> str:
    return f"CERT-{issued_at.year}-{uuid4().hex[:8].upper()}"
