"""Record loading, output and reference persistence."""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Any, Iterable, Protocol, TypeVar, runtime_checkable

import pendulum
from pydantic import BaseModel, ValidationError

from .errors import WriteConflict
from .schemas import Application, Interview, ProgressRecord

ModelT = TypeVar("ModelT", bound=BaseModel)


class RecordLoadError(ValueError):
    """Raised when loading encounters invalid records."""

    def __init__(self, errors: list[str], partial: list[Any]):
        super().__init__("Record loading failed")
        self.errors = errors
        self.partial = partial

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"Record loading failed: {self.errors}"


class RecordLoader:
    """Load pydantic records from JSON documents or JSON lines."""

    def load_one(self, path: Path, model: type[ModelT]) -> ModelT:
        with path.open("r", encoding="utf-8") as handle:
            try:
                data = json.load(handle)
            except json.JSONDecodeError as exc:
                raise ValueError(f"Invalid JSON in {path.name}: {exc}") from exc
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            raise ValueError(f"Invalid {model.__name__} in {path.name}: {exc}") from exc

    def load_many(self, path: Path, model: type[ModelT]) -> list[ModelT]:
        """Load a JSON array, or JSON lines when the file ends in ``.jsonl``."""
        if path.suffix == ".jsonl":
            return self._load_lines(path, model)

        with path.open("r", encoding="utf-8") as handle:
            try:
                data = json.load(handle)
            except json.JSONDecodeError as exc:
                raise ValueError(f"Invalid JSON in {path.name}: {exc}") from exc
        if not isinstance(data, list):
            raise ValueError(f"{path.name} must contain a JSON array")

        records: list[ModelT] = []
        errors: list[str] = []
        for idx, item in enumerate(data):
            try:
                records.append(model.model_validate(item))
            except ValidationError as exc:
                errors.append(f"item {idx}: {exc}")
        if errors:
            raise RecordLoadError(errors, records)
        return records

    @staticmethod
    def _load_lines(path: Path, model: type[ModelT]) -> list[ModelT]:
        records: list[ModelT] = []
        errors: list[str] = []
        with path.open("r", encoding="utf-8") as handle:
            for idx, line in enumerate(handle, start=1):
                raw = line.strip()
                if not raw:
                    continue
                try:
                    payload = json.loads(raw)
                except json.JSONDecodeError as exc:
                    errors.append(f"line {idx}: invalid JSON ({exc})")
                    continue
                try:
                    records.append(model.model_validate(payload))
                except ValidationError as exc:
                    errors.append(f"line {idx}: {exc}")
        if errors:
            raise RecordLoadError(errors, records)
        return records


class OutputWriter:
    """Persist engine results as JSON."""

    def write(self, path: Path, payload: Any) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            json.dumps(payload, default=json_default, ensure_ascii=False, indent=2),
            encoding="utf-8",
        )


class AuditLogger:
    """Append-only audit logger writing JSON lines."""

    def __init__(self, path: Path):
        self._path = path
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def append(self, record: dict) -> None:
        line = json.dumps(record, default=json_default, ensure_ascii=False)
        with self._lock, self._path.open("a", encoding="utf-8") as handle:
            handle.write(line)
            handle.write("\n")


def json_default(value):  # type: ignore[override]
    if isinstance(value, pendulum.DateTime):
        return value.to_iso8601_string()
    if hasattr(value, "isoformat"):
        return value.isoformat()
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


@runtime_checkable
class WorkflowRepository(Protocol):
    """Persistence contract the services rely on."""

    def load_application(self, application_id: str) -> Application:
        """Return the latest stored application snapshot."""

    def load_interview(self, application_id: str) -> Interview | None:
        """Return the current interview for an application, if any."""

    def save_application(self, application: Application, *, expected_version: int) -> None:
        """Store ``application`` if the stored version still equals ``expected_version``."""

    def save_interview(self, interview: Interview) -> None:
        """Store the interview, replacing any earlier one for the application."""

    def load_progress_index(
        self, employee_ids: Iterable[str], training_id: str
    ) -> dict[tuple[str, str], ProgressRecord]:
        """Return existing records for the given employees and training."""

    def load_progress_records(self, employee_id: str) -> list[ProgressRecord]:
        """Return every record held by one employee."""

    def save_progress_record(self, record: ProgressRecord, *, create: bool = False) -> None:
        """Store a record; ``create`` must fail when the pair already exists."""


class InMemoryRepository:
    """Thread-safe in-memory implementation of ``WorkflowRepository``."""

    def __init__(
        self,
        *,
        applications: Iterable[Application] = (),
        interviews: Iterable[Interview] = (),
        progress: Iterable[ProgressRecord] = (),
    ) -> None:
        self._lock = threading.Lock()
        self._applications = {app.id: app for app in applications}
        self._interviews = {interview.application_id: interview for interview in interviews}
        self._progress: dict[tuple[str, str], ProgressRecord] = {}
        for record in progress:
            self.save_progress_record(record, create=True)

    def load_application(self, application_id: str) -> Application:
        with self._lock:
            try:
                return self._applications[application_id]
            except KeyError as exc:
                raise KeyError(f"Unknown application: {application_id!r}") from exc

    def load_interview(self, application_id: str) -> Interview | None:
        with self._lock:
            return self._interviews.get(application_id)

    def add_application(self, application: Application) -> None:
        with self._lock:
            if application.id in self._applications:
                raise WriteConflict(f"Application {application.id} already exists")
            self._applications[application.id] = application

    def save_application(self, application: Application, *, expected_version: int) -> None:
        with self._lock:
            stored = self._applications.get(application.id)
            if stored is None:
                raise KeyError(f"Unknown application: {application.id!r}")
            if stored.version != expected_version:
                raise WriteConflict(
                    f"Application {application.id} changed: stored version "
                    f"{stored.version}, expected {expected_version}"
                )
            self._applications[application.id] = application

    def save_interview(self, interview: Interview) -> None:
        with self._lock:
            self._interviews[interview.application_id] = interview

    def load_progress_index(
        self, employee_ids: Iterable[str], training_id: str
    ) -> dict[tuple[str, str], ProgressRecord]:
        with self._lock:
            return {
                (employee_id, training_id): self._progress[(employee_id, training_id)]
                for employee_id in employee_ids
                if (employee_id, training_id) in self._progress
            }

    def load_progress_records(self, employee_id: str) -> list[ProgressRecord]:
        with self._lock:
            return [record for key, record in self._progress.items() if key[0] == employee_id]

    def save_progress_record(self, record: ProgressRecord, *, create: bool = False) -> None:
        with self._lock:
            if create and record.key in self._progress:
                raise WriteConflict(
                    f"Employee {record.employee_id} already holds training {record.training_id}"
                )
            self._progress[record.key] = record

    def progress_records(self) -> list[ProgressRecord]:
        with self._lock:
            return list(self._progress.values())
