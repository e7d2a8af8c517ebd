"""Config loading/saving, merging, paths.

Global defaults live in ``~/.config/navhistory/config.json``. A project can
override any field with a ``.navhistory.json`` in its root directory.
"""

from __future__ import annotations

import copy
import json
import logging
import os
from enum import Enum
from pathlib import Path
from typing import Any

import dacite

from .exceptions import (
    ConfigLoadError,
    ConfigSaveError,
    ConfigValidationError,
    record_error,
)
from .models import BackendKind, HistoryConfig, model_to_dict
from .paths import MAX_KEY_LENGTH

logger = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".config" / "navhistory"
GLOBAL_CONFIG_PATH = CONFIG_DIR / "config.json"
PROJECT_CONFIG_FILENAME = ".navhistory.json"


def merge_configs(global_config: dict, project_config: dict) -> dict:
    """Overlay project settings on global ones.

    A ``None`` in the project removes the key, nested dicts merge key by
    key, and any other value (lists included) replaces the global one.
    Neither argument is modified.
    """
    merged = copy.deepcopy(global_config)
    for key, override in project_config.items():
        current = merged.get(key)
        if override is None:
            merged.pop(key, None)
        elif isinstance(override, dict) and isinstance(current, dict):
            merged[key] = merge_configs(current, override)
        else:
            merged[key] = copy.deepcopy(override)
    return merged


# =============================================================================
# Validation
# =============================================================================


def validate_config(config: HistoryConfig) -> HistoryConfig:
    """Check value ranges dacite cannot express.

    Raises:
        ConfigValidationError: If a field is out of range.
    """
    if not 1 <= config.key_length <= MAX_KEY_LENGTH:
        raise ConfigValidationError(
            f"key_length must be between 1 and {MAX_KEY_LENGTH}",
            field="key_length",
            value=config.key_length,
        )
    if config.max_writes is not None and config.max_writes < 0:
        raise ConfigValidationError(
            "max_writes must not be negative",
            field="max_writes",
            value=config.max_writes,
        )
    if config.backend is BackendKind.MEMORY and not config.initial_entries:
        raise ConfigValidationError(
            "initial_entries must not be empty for the memory backend",
            field="initial_entries",
        )
    return config


def config_from_dict(data: dict, *, source: str | None = None) -> HistoryConfig:
    """Build a validated HistoryConfig from parsed JSON.

    Unknown keys are rejected so that typos do not pass silently.

    Raises:
        ConfigValidationError: If the data does not match the schema.
    """
    try:
        config = dacite.from_dict(
            data_class=HistoryConfig,
            data=data,
            config=dacite.Config(cast=[Enum], strict=True),
        )
    except (dacite.DaciteError, ValueError) as e:
        logger.error("Config schema validation failed: %s", e)
        record_error(e)
        raise ConfigValidationError(
            f"Invalid configuration: {e}",
            context={"file_path": source} if source else None,
            cause=e,
        ) from e
    return validate_config(config)


# =============================================================================
# File I/O
# =============================================================================


def _read_json(path: Path, label: str) -> dict:
    """Read a JSON object, or ``{}`` when the file does not exist."""
    if not path.exists():
        logger.debug("No %s at %s", label, path)
        return {}
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        logger.error("Invalid JSON in %s: %s", label, e)
        record_error(e)
        raise ConfigLoadError(
            f"Invalid JSON in {label} at line {e.lineno}",
            file_path=str(path),
            context={"line": e.lineno, "column": e.colno},
            cause=e,
        ) from e
    except OSError as e:
        logger.error("Failed to read %s: %s", label, e)
        record_error(e)
        raise ConfigLoadError(f"Failed to read {label}", file_path=str(path), cause=e) from e

    if not isinstance(data, dict):
        raise ConfigLoadError(
            f"{label.capitalize()} must contain a JSON object", file_path=str(path)
        )
    logger.debug("Loaded %s from %s", label, path)
    return data


def _write_json(path: Path, data: dict[str, Any], label: str) -> None:
    """Write ``data`` through a temporary file so readers never see half a file."""
    tmp_path = path.with_name(path.name + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_path, path)
    except OSError as e:
        logger.error("Failed to write %s: %s", label, e)
        record_error(e)
        raise ConfigSaveError(f"Failed to write {label}", file_path=str(path), cause=e) from e
    logger.debug("Saved %s to %s", label, path)


# =============================================================================
# Global and Project Config
# =============================================================================


def load_global_config() -> HistoryConfig:
    """Load ~/.config/navhistory/config.json, or defaults if it is missing.

    Raises:
        ConfigLoadError: If the file exists but cannot be parsed.
        ConfigValidationError: If the config does not match the schema.
    """
    data = _read_json(GLOBAL_CONFIG_PATH, "global config")
    return config_from_dict(data, source=str(GLOBAL_CONFIG_PATH))


def save_global_config(config: HistoryConfig) -> None:
    """Write ``config`` as the global config.

    Raises:
        ConfigSaveError: If the file cannot be written.
    """
    _write_json(GLOBAL_CONFIG_PATH, model_to_dict(config), "global config")


def load_project_config(project_path: str | Path) -> dict:
    """Load a project's raw overrides (``{}`` when it has none).

    Raises:
        ConfigLoadError: If the file exists but cannot be parsed.
    """
    return _read_json(get_project_config_path(project_path), "project config")


def save_project_config(project_path: str | Path, overrides: dict[str, Any]) -> None:
    """Write a project's overrides after checking they merge into a valid config.

    Raises:
        ConfigValidationError: If the merged config would be invalid.
        ConfigSaveError: If the file cannot be written.
    """
    path = get_project_config_path(project_path)
    global_data = _read_json(GLOBAL_CONFIG_PATH, "global config")
    config_from_dict(merge_configs(global_data, overrides), source=str(path))
    _write_json(path, overrides, "project config")


def load_merged_config(project_path: str | Path | None = None) -> HistoryConfig:
    """Load the global config with a project's overrides applied.

    Args:
        project_path: Project root to read ``.navhistory.json`` from, if any.

    Raises:
        ConfigLoadError: If a config file cannot be read.
        ConfigValidationError: If the merged config is invalid.
    """
    data = _read_json(GLOBAL_CONFIG_PATH, "global config")
    source = str(GLOBAL_CONFIG_PATH)
    if project_path is not None:
        overrides = load_project_config(project_path)
        if overrides:
            data = merge_configs(data, overrides)
            source = str(get_project_config_path(project_path))
    return config_from_dict(data, source=source)


def get_global_config_path() -> Path:
    return GLOBAL_CONFIG_PATH


def get_project_config_path(project_path: str | Path) -> Path:
    return Path(project_path) / PROJECT_CONFIG_FILENAME
