from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from hireflow.cli import app
from hireflow.errors import WriteConflict
from hireflow.storage import InMemoryRepository

NOW = "2025-03-10T12:00:00+00:00"


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


def write_json(path: Path, payload: object) -> Path:
    path.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
    return path


def read_json(path: Path) -> dict:
    return json.loads(path.read_text(encoding="utf-8"))


@pytest.fixture
def application_path(tmp_path: Path) -> Path:
    return write_json(
        tmp_path / "application.json",
        {
            "id": "APP-001",
            "applicant_id": "APL-001",
            "job_posting_id": "JOB-001",
            "status": "interview_scheduled",
            "accepted": True,
        },
    )


@pytest.fixture
def interview_path(tmp_path: Path) -> Path:
    return write_json(
        tmp_path / "interview.json",
        {
            "id": "INT-001",
            "application_id": "APP-001",
            "interview_datetime": "2025-03-10T09:00:00Z",
        },
    )


def test_cli_lists_actions(tmp_path: Path, runner: CliRunner, application_path, interview_path):
    output = tmp_path / "actions.json"

    result = runner.invoke(
        app,
        [
            "actions",
            "--application", str(application_path),
            "--interview", str(interview_path),
            "--output", str(output),
            "--now", NOW,
        ],
    )

    assert result.exit_code == 0, result.output
    rendered = read_json(output)
    assert rendered["stage"] == "interview"
    assert rendered["actions"] == ["hire_now", "reject_post_interview", "send_offer"]


def test_cli_transition_writes_snapshot_and_audit(
    tmp_path: Path, runner: CliRunner, application_path, interview_path
):
    output = tmp_path / "next.json"
    audit = tmp_path / "audit.jsonl"

    result = runner.invoke(
        app,
        [
            "transition",
            "--application", str(application_path),
            "--interview", str(interview_path),
            "--action", "hire_now",
            "--output", str(output),
            "--audit-log", str(audit),
            "--now", NOW,
        ],
    )

    assert result.exit_code == 0, result.output
    rendered = read_json(output)
    assert rendered["previous_status"] == "interview_scheduled"
    assert rendered["application"]["status"] == "hired"
    assert rendered["application"]["version"] == 1
    assert json.loads(audit.read_text(encoding="utf-8").splitlines()[0])["to_status"] == "hired"


def test_cli_transition_illegal_action_exits_nonzero(
    tmp_path: Path, runner: CliRunner, application_path
):
    output = tmp_path / "next.json"

    result = runner.invoke(
        app,
        [
            "transition",
            "--application", str(application_path),
            "--action", "mark_hired",
            "--output", str(output),
            "--now", NOW,
        ],
    )

    assert result.exit_code == 2
    assert not output.exists()


def test_cli_assign_and_compliance(tmp_path: Path, runner: CliRunner):
    employees = write_json(
        tmp_path / "employees.json",
        [
            {"id": "A", "role": "RN", "annual_requirement_hours": 20},
            {"id": "B", "role": "RN", "annual_requirement_hours": 20},
            {"id": "C", "role": "RN", "annual_requirement_hours": 20},
        ],
    )
    catalog = write_json(
        tmp_path / "catalog.json",
        [
            {"id": "IS-002", "title": "Medication Safety", "ceu_hours": 1.5, "mandatory": True},
            {"id": "IS-003", "title": "Infection Control", "ceu_hours": 1.25},
        ],
    )
    progress = tmp_path / "progress.jsonl"
    progress.write_text(
        "\n".join(
            json.dumps(item)
            for item in [
                {"employee_id": "A", "training_id": "IS-003", "state": "completed", "ceu_hours_earned": 16},
                {"employee_id": "B", "training_id": "IS-003", "state": "in_progress", "progress_percent": 50},
            ]
        ),
        encoding="utf-8",
    )
    request = write_json(
        tmp_path / "request.json",
        {
            "training_id": "IS-003",
            "target_type": "role",
            "target_value": "RN",
            "due_date": "2025-03-14T12:00:00Z",
        },
    )
    assigned = tmp_path / "assigned.json"

    result = runner.invoke(
        app,
        [
            "assign",
            "--request", str(request),
            "--employees", str(employees),
            "--catalog", str(catalog),
            "--progress", str(progress),
            "--output", str(assigned),
            "--now", NOW,
        ],
    )

    assert result.exit_code == 0, result.output
    rendered = read_json(assigned)
    assert rendered["assignable"] == ["C"]
    assert rendered["blocked"] == [
        {"employee_id": "A", "reason": "completed"},
        {"employee_id": "B", "reason": "in_progress"},
    ]
    assert [record["employee_id"] for record in rendered["records"]] == ["C"]

    assignments = write_json(
        tmp_path / "assignments.json",
        [
            {
                "id": "ASSIGN-OLD",
                "training_id": "IS-002",
                "target_type": "role",
                "target_value": "RN",
                "due_date": "2025-03-01T00:00:00Z",
            },
            rendered["assignment"],
        ],
    )
    config = tmp_path / "engine.yaml"
    config.write_text("logging:\n  level: WARNING\n", encoding="utf-8")
    report = tmp_path / "compliance.json"

    result = runner.invoke(
        app,
        [
            "compliance",
            "--employees", str(employees),
            "--progress", str(progress),
            "--catalog", str(catalog),
            "--assignments", str(assignments),
            "--output", str(report),
            "--config", str(config),
            "--now", NOW,
        ],
    )

    assert result.exit_code == 0, result.output
    rendered = read_json(report)
    by_id = {item["employee_id"]: item for item in rendered["employees"]}
    assert by_id["A"]["classification"] == "non_compliant"
    assert by_id["A"]["overdue_mandatory"] == ["ASSIGN-OLD"]
    assert by_id["B"]["in_progress_hours"] == pytest.approx(0.625)
    assert [d["days_until_due"] for d in by_id["C"]["upcoming_deadlines"]] == [4]
    assert rendered["summary"]["non_compliant"] == 3


def test_cli_transition_write_conflict_exits_three(
    tmp_path: Path, runner: CliRunner, application_path, interview_path, monkeypatch
):
    def conflicting_save(self, application, *, expected_version):
        raise WriteConflict(f"Application {application.id} changed")

    monkeypatch.setattr(InMemoryRepository, "save_application", conflicting_save)
    output = tmp_path / "next.json"

    result = runner.invoke(
        app,
        [
            "transition",
            "--application", str(application_path),
            "--interview", str(interview_path),
            "--action", "hire_now",
            "--output", str(output),
            "--now", NOW,
        ],
    )

    assert result.exit_code == 3
    assert not output.exists()


def test_cli_rejects_duration_as_now(tmp_path: Path, runner: CliRunner, application_path):
    output = tmp_path / "actions.json"

    result = runner.invoke(
        app,
        [
            "actions",
            "--application", str(application_path),
            "--output", str(output),
            "--now", "P1D",
        ],
    )

    assert result.exit_code == 2
    assert isinstance(result.exception, SystemExit)
    assert not output.exists()
