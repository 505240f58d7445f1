"""Configuration: reprocessing.yaml validated into ReprocessorSettings.

The file is located from an explicit path, then CONFIG_PATH, then
config/reprocessing.yaml relative to the working directory.
"""

import os
from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import ValidationError

from installment_reprocessor.models import (
    EventsConfig,
    ReprocessingConfig,
    ReprocessorSettings,
)

DEFAULT_CONFIG_PATH = "config/reprocessing.yaml"


class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing."""

    pass


def resolve_config_path(config_path: Optional[str] = None) -> Path:
    return Path(config_path or os.getenv("CONFIG_PATH") or DEFAULT_CONFIG_PATH)


def load_settings(path: Union[str, Path]) -> ReprocessorSettings:
    """Read and validate a reprocessing.yaml file.

    Raises:
        ConfigurationError: If the file is missing, unreadable YAML, empty,
            not a mapping, or fails validation
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(
            f"Configuration file not found: {path}\n"
            f"Create {DEFAULT_CONFIG_PATH} or point CONFIG_PATH at a reprocessing.yaml"
        )

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse YAML configuration {path}: {e}") from e

    if raw is None:
        raise ConfigurationError(f"Configuration file is empty: {path}")
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Configuration root must be a mapping, got {type(raw).__name__}")

    try:
        return ReprocessorSettings.model_validate(raw)
    except ValidationError as e:
        raise ConfigurationError(f"Configuration validation failed for {path}:\n{e}") from e


class Config:
    """Loaded configuration with shortcuts for the values services read.

    Args:
        config_path: Path to reprocessing.yaml; see resolve_config_path()
    """

    def __init__(self, config_path: Optional[str] = None):
        self._config_path = resolve_config_path(config_path)
        self._settings = load_settings(self._config_path)

    def reload(self) -> None:
        """Re-read the same file; the old settings stay if the new ones are invalid."""
        self._settings = load_settings(self._config_path)

    @property
    def config_path(self) -> Path:
        return self._config_path

    @property
    def settings(self) -> ReprocessorSettings:
        return self._settings

    @property
    def reprocessing(self) -> ReprocessingConfig:
        """Reprocessing policy handed to the installment processor."""
        return self._settings.reprocessing

    @property
    def locale(self) -> str:
        return self._settings.locale

    @property
    def events(self) -> EventsConfig:
        return self._settings.events

    @property
    def events_enabled(self) -> bool:
        return self._settings.events.enabled

    @property
    def pubsub_project_id(self) -> str:
        return self._settings.pubsub.project_id

    @property
    def pubsub_topic(self) -> str:
        return self._settings.pubsub.topic


_config_instance: Optional[Config] = None


def get_config(config_path: Optional[str] = None) -> Config:
    """Process-wide configuration, loaded on first use.

    Args:
        config_path: Only honoured by the call that loads it
    """
    global _config_instance
    if _config_instance is None:
        _config_instance = Config(config_path)
    return _config_instance


def reset_config() -> None:
    """Forget the process-wide configuration (tests, config changes)."""
    global _config_instance
    _config_instance = None
