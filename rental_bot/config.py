"""Configuration management for config/settings.yaml.

The file path comes from the caller, the CONFIG_PATH environment variable or
the default ./config/settings.yaml, in that order. Sections left out of the
file fall back to the defaults in rental_bot.models.config.
"""

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from rental_bot.models.config import AppConfig, PlanDefinition

DEFAULT_CONFIG_PATH = Path("config/settings.yaml")


class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing."""

    pass


def resolve_config_path(config_path: Optional[str] = None) -> Path:
    return Path(config_path or os.getenv("CONFIG_PATH") or DEFAULT_CONFIG_PATH)


def read_settings_file(path: Path) -> dict[str, Any]:
    """Parse a settings file into a mapping.

    Raises:
        ConfigurationError: If the file is missing, unreadable, not YAML,
            empty, or its top level is not a mapping
    """
    if not path.exists():
        raise ConfigurationError(
            f"Configuration file not found: {path}\n"
            f"Create config/settings.yaml or point CONFIG_PATH at a settings file"
        )

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse YAML configuration: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Failed to read configuration file: {e}") from e

    if not raw:
        raise ConfigurationError(f"Configuration file is empty: {path}")
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Configuration root must be a mapping: {path}")
    return raw


class Config:
    """Validated view of settings.yaml.

    Args:
        config_path: Path to settings.yaml; CONFIG_PATH or ./config/settings.yaml if omitted

    Raises:
        ConfigurationError: If the file cannot be loaded or fails validation
    """

    def __init__(self, config_path: Optional[str] = None):
        self._config_path = resolve_config_path(config_path)
        self._settings: Optional[AppConfig] = None
        self.reload()

    @property
    def settings(self) -> AppConfig:
        if self._settings is None:
            raise ConfigurationError("Configuration not loaded")
        return self._settings

    @property
    def config_path(self) -> Path:
        return self._config_path

    def get_plan(self, plan_key: str) -> Optional[PlanDefinition]:
        """Rental plan by key (e.g. "basic"), or None if not configured."""
        return self.settings.rental.plans.get(plan_key)

    def get_plan_keys(self) -> list[str]:
        return list(self.settings.rental.plans)

    def reload(self) -> None:
        """Read and validate the file again; the previous settings stay on failure."""
        raw = read_settings_file(self._config_path)
        try:
            self._settings = AppConfig.model_validate(raw)
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e


def load_config(config_path: Optional[str] = None) -> AppConfig:
    """Load and validate configuration in one step.

    Raises:
        ConfigurationError: If the file is missing, unparsable or invalid
    """
    return Config(config_path).settings
