"""Settings files supplying process properties.

Philosophy: the launcher reads settings, it never writes them.

Scope priority (most specific wins):
1. project (.thin/settings.yaml)
2. global (~/.thin/settings.yaml)

Only the ``properties`` section is used; its keys are the same property
keys accepted on the command line (``thin.root``, ``thin.profile``, ...).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)


@dataclass
class SettingsPaths:
    """Standard paths for settings files."""

    global_settings: Path
    project_settings: Path

    @classmethod
    def default(cls) -> SettingsPaths:
        return cls(
            global_settings=Path.home() / ".thin" / "settings.yaml",
            project_settings=Path.cwd() / ".thin" / "settings.yaml",
        )


class LauncherSettings:
    """Scope-aware reader for launcher settings.

    Usage:
        settings = LauncherSettings()
        properties = settings.get_properties()  # {"thin.root": "/opt/cache", ...}
    """

    def __init__(self, paths: SettingsPaths | None = None) -> None:
        self.paths = paths or SettingsPaths.default()

    def get_merged_settings(self) -> dict[str, Any]:
        """Load and merge settings from all scopes."""
        result: dict[str, Any] = {}
        for path in [self.paths.global_settings, self.paths.project_settings]:
            if not path.exists():
                continue
            try:
                with open(path, encoding="utf-8") as f:
                    content = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as e:
                logger.warning(f"Skipping unreadable settings file {path}: {e}")
                continue
            if not isinstance(content, dict):
                logger.warning(f"Skipping settings file {path}: expected a mapping")
                continue
            result = self._deep_merge(result, content)
        return result

    def get_properties(self) -> dict[str, str]:
        """Flattened ``properties`` section, values as strings."""
        properties = self.get_merged_settings().get("properties") or {}
        if not isinstance(properties, dict):
            return {}
        return {str(k): _stringify(v) for k, v in properties.items() if v is not None}

    def _deep_merge(self, base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
        result = base.copy()
        for key, value in overlay.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value
        return result


def _stringify(value: Any) -> str:
    # YAML booleans come back as Python bools
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, list):
        return ",".join(str(v) for v in value)
    return str(value)


__all__ = ["LauncherSettings", "SettingsPaths"]
