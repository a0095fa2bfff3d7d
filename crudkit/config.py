"""Configuration management.

Settings are read from YAML files and environment variables, later
sources overriding earlier ones:

1. ``$XDG_CONFIG_HOME/crudkit/config.yaml`` (``~/.config`` by default)
2. ``./crudkit.yaml``
3. an explicit config file
4. ``CRUDKIT_DATABASE_PATH``, ``CRUDKIT_FORMAT``, ``CRUDKIT_BASE_URL``
5. explicit overrides (command-line flags)
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import msgspec
import yaml

from crudkit.adapters.files import FileCRUD
from crudkit.adapters.http import HttpCRUD
from crudkit.codecs import CODECS
from crudkit.core import CRUD
from crudkit.exceptions import ConfigError

ENV_VARS = {
    "CRUDKIT_DATABASE_PATH": "database_path",
    "CRUDKIT_FORMAT": "format",
    "CRUDKIT_BASE_URL": "base_url",
}


class Settings(msgspec.Struct, kw_only=True, forbid_unknown_fields=True):
    """Resolved crudkit settings."""

    database_path: str | None = None
    format: str = "yaml"
    base_url: str | None = None
    headers: dict[str, str] = {}

    def __post_init__(self):
        if self.format not in CODECS:
            raise ValueError(
                f"Unknown record format: {self.format} "
                f"(choose from {', '.join(CODECS)})"
            )

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> Settings:
        """Validate a configuration mapping."""
        try:
            return msgspec.convert(data, cls)
        except msgspec.ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

    def create_crud(self) -> CRUD:
        """Create the adapter these settings describe."""
        if self.base_url:
            return HttpCRUD(self.base_url, headers=self.headers)
        database_path = Path(self.database_path) if self.database_path else None
        return FileCRUD(database_path, codec=self.format)


def from_file(path: Path) -> dict[str, Any]:
    """Load configuration from a YAML file."""
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Error reading config file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return data


def get_config_paths() -> list[Path]:
    """Get the default configuration file paths in precedence order."""
    xdg_config_home = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return [xdg_config_home / "crudkit" / "config.yaml", Path("crudkit.yaml")]


def env_overrides() -> dict[str, Any]:
    """Settings taken from environment variables."""
    return {
        key: os.environ[var] for var, key in ENV_VARS.items() if os.environ.get(var)
    }


def load_settings(
    config_file: Path | None = None, overrides: dict[str, Any] | None = None
) -> Settings:
    """Load settings from files, environment and explicit overrides.

    Raises:
        ConfigError: If a config file is unreadable or a value is invalid.
    """
    config: dict[str, Any] = {}
    for path in get_config_paths():
        if path.exists():
            config = merge_configs(config, from_file(path))

    if config_file is not None:
        config = merge_configs(config, from_file(config_file))

    config = merge_configs(config, env_overrides())
    config = merge_configs(
        config, {k: v for k, v in (overrides or {}).items() if v is not None}
    )
    return Settings.from_mapping(config)


def merge_configs(*configs: dict[str, Any]) -> dict[str, Any]:
    """Merge multiple configuration dictionaries."""
    result: dict[str, Any] = {}
    for config in configs:
        result = _deep_merge(result, config)
    return result


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries."""
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result
