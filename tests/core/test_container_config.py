from __future__ import annotations

from pathlib import Path

import pendulum
import pytest
from pydantic import ValidationError

from hireflow.config import ConfigManager
from hireflow.container import create_container
from hireflow.errors import InvalidInput
from hireflow.logging import configure_logging
from hireflow.schemas import ComplianceClassification, ProgressRecord
from hireflow.schemas.config import AppConfig, load_config


def test_create_container_with_overrides():
    fixed = pendulum.datetime(2025, 1, 1, tz="UTC")
    container = create_container(
        settings={
            "compliance": {
                "on_track_ratio": 0.9,
                "behind_ratio": 0.6,
                "at_risk_ratio": 0.3,
                "deadline_window_days": 14,
            }
        },
        now_provider=lambda: fixed,
    )

    engine = container.compliance_engine()
    tracker = container.progress_tracker()

    assert engine.config.on_track_ratio == 0.9
    assert engine.config.deadline_window_days == 14
    assert engine.classify(16, 20) == ComplianceClassification.BEHIND
    started = tracker.start(ProgressRecord(employee_id="E", training_id="T"))
    assert started.start_date == fixed


def test_default_container_shares_repository():
    container = create_container()

    assert container.hiring_service()._repository is container.training_service()._repository
    assert container.compliance_engine().config.on_track_ratio == 0.75


def test_container_rejects_bad_thresholds():
    with pytest.raises(InvalidInput):
        create_container(settings={"compliance": {"on_track_ratio": 0.2}})


def test_load_config_validation():
    data = {
        "compliance": {"deadline_window_days": 10, "work_restrictions": ["scheduling"]},
        "logging": {"level": "DEBUG"},
    }
    app_config = load_config(data)
    assert isinstance(app_config, AppConfig)
    settings = app_config.to_settings()
    assert settings["compliance"] == {
        "deadline_window_days": 10,
        "work_restrictions": ["scheduling"],
    }
    assert app_config.logging.level == "DEBUG"


def test_load_config_rejects_non_mapping():
    with pytest.raises(ValidationError):
        load_config(["not", "a", "mapping"])


def test_config_manager_loads_yaml(tmp_path: Path):
    (tmp_path / "engine.yaml").write_text(
        "compliance:\n  deadline_window_days: 3\n", encoding="utf-8"
    )
    (tmp_path / "empty.yml").write_text("", encoding="utf-8")

    manager = ConfigManager(tmp_path)

    assert manager.load("engine") == {"compliance": {"deadline_window_days": 3}}
    assert manager.load("empty") == {}
    assert ConfigManager.from_file(tmp_path / "engine.yaml")["compliance"]["deadline_window_days"] == 3
    with pytest.raises(FileNotFoundError):
        manager.load("missing")


def test_configure_logging_rejects_unknown_level():
    with pytest.raises(ValueError):
        configure_logging("chatty")
