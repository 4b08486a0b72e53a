"""Three-tier configuration loader for buildloop.

Configuration priority (highest to lowest):
1. CLI overrides
2. Project config (.buildloop/config.json in workspace)
3. User config (~/.buildloop/config.json)
4. System defaults (config/defaults/builder.json)
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from config.schema import BuilderSettings

logger = logging.getLogger(__name__)

CONFIG_DIR_NAME = ".buildloop"
CONFIG_FILE_NAME = "config.json"

# Groups merged key-by-key; everything else is "first found wins"
MERGED_GROUPS = ("api", "loop", "stream", "history")


class ConfigLoader:
    """Loads BuilderSettings from system defaults, user and project config files."""

    def __init__(self, workspace_root: str | Path | None = None):
        self.workspace_root = Path(workspace_root).resolve() if workspace_root else None
        self._system_defaults_dir = Path(__file__).parent / "defaults"

    def load(self, cli_overrides: dict[str, Any] | None = None) -> BuilderSettings:
        """Load configuration with three-tier merge."""
        system_config = self._load_system_defaults()
        user_config = self._load_user_config()
        project_config = self._load_project_config()

        final_config: dict[str, Any] = {}
        for group in MERGED_GROUPS:
            final_config[group] = self._deep_merge(
                system_config.get(group, {}),
                user_config.get(group, {}),
                project_config.get(group, {}),
            )

        # Lookup strategy for the mapping (first found wins, whole table replaced)
        model_mapping = self._lookup_merge("model_mapping", project_config, user_config, system_config)
        if model_mapping:
            final_config["model_mapping"] = model_mapping

        final_config["system_prompt"] = (
            project_config.get("system_prompt")
            or user_config.get("system_prompt")
            or system_config.get("system_prompt")
        )

        if cli_overrides:
            final_config = self._deep_merge(final_config, cli_overrides)

        final_config = self._expand_env_vars(final_config)
        final_config = self._remove_none_values(final_config)

        return BuilderSettings(**final_config)

    # ── Internal helpers ──

    def _load_system_defaults(self) -> dict[str, Any]:
        """Load system defaults from builder.json."""
        return self._load_json(self._system_defaults_dir / "builder.json")

    def _load_user_config(self) -> dict[str, Any]:
        """Load user config from ~/.buildloop/config.json."""
        return self._load_json(Path.home() / CONFIG_DIR_NAME / CONFIG_FILE_NAME)

    def _load_project_config(self) -> dict[str, Any]:
        """Load project config from .buildloop/config.json."""
        if not self.workspace_root:
            return {}
        return self._load_json(self.workspace_root / CONFIG_DIR_NAME / CONFIG_FILE_NAME)

    @staticmethod
    def _load_json(path: Path) -> dict[str, Any]:
        if not path.exists():
            return {}
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Ignoring unreadable config %s: %s", path, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring config %s: top level is not an object", path)
            return {}
        return data

    def _deep_merge(self, *dicts: dict[str, Any]) -> dict[str, Any]:
        """Deep merge multiple dictionaries. Later dicts override earlier ones."""
        result: dict[str, Any] = {}
        for d in dicts:
            for key, value in d.items():
                if key not in result:
                    result[key] = value
                elif value is None:
                    continue
                elif isinstance(value, dict) and isinstance(result[key], dict):
                    result[key] = self._deep_merge(result[key], value)
                else:
                    result[key] = value
        return result

    def _lookup_merge(self, key: str, *configs: dict[str, Any]) -> Any:
        """Lookup strategy: first found wins."""
        for config in configs:
            if key in config and config[key] is not None:
                return config[key]
        return {}

    def _expand_env_vars(self, obj: Any) -> Any:
        """Recursively expand ${VAR} and ~ in string values."""
        if isinstance(obj, dict):
            return {k: self._expand_env_vars(v) for k, v in obj.items()}
        if isinstance(obj, list):
            return [self._expand_env_vars(v) for v in obj]
        if isinstance(obj, str):
            return os.path.expandvars(os.path.expanduser(obj))
        return obj

    def _remove_none_values(self, obj: Any) -> Any:
        """Recursively remove None values to allow Pydantic defaults."""
        if isinstance(obj, dict):
            return {k: self._remove_none_values(v) for k, v in obj.items() if v is not None}
        if isinstance(obj, list):
            return [self._remove_none_values(v) for v in obj if v is not None]
        return obj


def load_config(
    workspace_root: str | None = None,
    cli_overrides: dict[str, Any] | None = None,
) -> BuilderSettings:
    """Convenience function to load configuration."""
    return ConfigLoader(workspace_root=workspace_root).load(cli_overrides=cli_overrides)
