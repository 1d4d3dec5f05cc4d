"""Configuration management utilities."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml


class ConfigManager:
    """Simple YAML-backed configuration loader."""

    def __init__(self, base_path: str | Path):
        self._base_path = Path(base_path)

    def load(self, name: str) -> dict[str, Any]:
        """Load a YAML configuration by name without file extension."""
        path = self._base_path / f"{name}.yaml"
        if not path.exists():
            path = self._base_path / f"{name}.yml"
        with path.open("r", encoding="utf-8") as handle:
            loaded = yaml.safe_load(handle) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Config {path} must be a YAML mapping")
        return loaded

    @classmethod
    def load_path(cls, path: str | Path) -> dict[str, Any]:
        """Load a YAML configuration from an explicit file path."""
        path = Path(path)
        return cls(path.parent).load(path.stem)


__all__ = ["ConfigManager"]
