"""Pydantic configuration schema for YAML input."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError


class ComplianceSettings(BaseModel):
    on_track_ratio: float | None = Field(default=None, gt=0, le=1)
    behind_ratio: float | None = Field(default=None, gt=0, le=1)
    at_risk_ratio: float | None = Field(default=None, gt=0, le=1)
    deadline_window_days: int | None = Field(default=None, ge=0)
    default_requirement_hours: float | None = Field(default=None, ge=0)
    work_restrictions: list[str] | None = None

    model_config = ConfigDict(extra="forbid")


class LoggingSettings(BaseModel):
    level: str = "INFO"


class AppConfig(BaseModel):
    compliance: ComplianceSettings = Field(default_factory=ComplianceSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    def to_settings(self) -> dict[str, Any]:
        settings: dict[str, Any] = {}
        compliance = self.compliance.model_dump(exclude_none=True)
        if compliance:
            settings["compliance"] = compliance
        return settings


def load_config(raw: Any) -> AppConfig:
    if not isinstance(raw, dict):
        raise ValidationError.from_exception_data(
            "AppConfig",
            [{"type": "dict_type", "loc": ("config",), "input": raw}],
        )
    return AppConfig.model_validate(raw)
