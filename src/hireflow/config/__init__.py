"""Configuration file loading."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml


class ConfigManager:
    """YAML-backed configuration loader rooted at a directory."""

    SUFFIXES: tuple[str, ...] = (".yaml", ".yml")

    def __init__(self, base_path: str | Path):
        self._base_path = Path(base_path)

    def load(self, name: str) -> dict[str, Any]:
        """Load a YAML configuration by name without file extension.

        An empty file yields an empty mapping; a document that is not a
        mapping raises ``ValueError``.
        """
        path = self._resolve(name)
        with path.open("r", encoding="utf-8") as handle:
            loaded = yaml.safe_load(handle)
        if loaded is None:
            return {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Config {path.name} must be a YAML mapping")
        return loaded

    @classmethod
    def from_file(cls, path: str | Path) -> dict[str, Any]:
        path = Path(path)
        return cls(path.parent).load(path.stem)

    def _resolve(self, name: str) -> Path:
        for suffix in self.SUFFIXES:
            candidate = self._base_path / f"{name}{suffix}"
            if candidate.exists():
                return candidate
        raise FileNotFoundError(f"No config named {name!r} under {self._base_path}")


__all__ = ["ConfigManager"]
