"""Configuration records and loading for buildstamp tasks.

Settings come from an optional YAML file (``buildstamp.yaml`` by default)
and from command-line overrides.  Top-level keys apply to every task; the
``tasks`` mapping carries per-task overrides, and keys a task section does
not recognise as a setting are collected into that task's ``options``.

The merged values are validated into a frozen :class:`TaskConfig`.
:func:`resolve_parameters` then performs the single normalisation the
execution lifecycle relies on: disabling the dirty flag when it is set to
``"false"`` or ``"null"``.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .tools.properties import DEFAULT_PROPERTY_PREFIXES

DEFAULT_CONFIG_NAME = "buildstamp.yaml"
DEFAULT_DATE_FORMAT = "%m/%d/%Y %I:%M %p %z"
DEFAULT_DIRTY_FLAG = "-dirty"
DEFAULT_FOOTER = "\\nGenerated by buildstamp %s at %s"
DISABLED_DIRTY_FLAGS = frozenset({"false", "null"})

_PATH_KEYS = ("base_dir", "git_dir", "output_file")

DEFAULT_CONFIG_TEMPLATE: Dict[str, Any] = {
    "base_dir": ".",
    "head": "HEAD",
    "dirty_flag": DEFAULT_DIRTY_FLAG,
    "dirty_ignore_untracked": False,
    "fail_gracefully": False,
    "skip_no_git": False,
    "date_format": DEFAULT_DATE_FORMAT,
    "property_prefixes": list(DEFAULT_PROPERTY_PREFIXES),
    "encoding": "utf-8",
    "footer": DEFAULT_FOOTER,
    "tasks": {
        "changelog": {"output_file": "build/CHANGELOG.txt"},
        "contributors": {"output_file": "build/CONTRIBUTORS.txt"},
        "info-module": {"output_file": "build/git_info.py"},
    },
}


class ConfigurationError(ValueError):
    """Raised when configuration is malformed or a setting is invalid."""


class TaskConfig(BaseModel):
    """Settings shared by every metadata task."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    date_format: str = DEFAULT_DATE_FORMAT
    base_dir: Path = Path(".")
    git_dir: Optional[Path] = None
    dirty_flag: Optional[str] = DEFAULT_DIRTY_FLAG
    dirty_ignore_untracked: bool = False
    fail_gracefully: bool = False
    head: str = "HEAD"
    skip: bool = False
    skip_no_git: bool = False
    property_prefixes: Tuple[str, ...] = DEFAULT_PROPERTY_PREFIXES
    encoding: str = "utf-8"
    footer: str = DEFAULT_FOOTER
    output_file: Optional[Path] = None
    options: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("dirty_flag", mode="before")
    @classmethod
    def _coerce_dirty_flag(cls, value: Any) -> Any:
        # YAML reads a bare ``false`` as a boolean.
        if isinstance(value, bool):
            return str(value).lower()
        return value

    @field_validator("property_prefixes", mode="before")
    @classmethod
    def _unique_prefixes(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, (list, tuple)):
            return value
        ordered: list[str] = []
        for item in value:
            text = str(item)
            if text not in ordered:
                ordered.append(text)
        return tuple(ordered)

    def option(self, name: str, default: Any = None) -> Any:
        """Return a task-specific option, falling back to ``default``."""
        value = self.options.get(name)
        return default if value is None else value


def resolve_parameters(config: TaskConfig) -> TaskConfig:
    """Return ``config`` with the dirty flag normalised.

    ``"false"``, ``"null"`` and the empty string disable the flag; any other
    value is kept verbatim.  No other field is touched.
    """
    dirty_flag = config.dirty_flag
    if dirty_flag is not None and (not dirty_flag or dirty_flag in DISABLED_DIRTY_FLAGS):
        dirty_flag = None
    if dirty_flag == config.dirty_flag:
        return config
    return config.model_copy(update={"dirty_flag": dirty_flag})


def load_config(config_path: Path, *, required: bool = True) -> Dict[str, Any]:
    """Load YAML configuration from disk and return it as a dictionary."""
    if not config_path.exists():
        if required:
            raise ConfigurationError(f"Config file not found: {config_path}")
        return {}

    try:
        with config_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except yaml.YAMLError as error:
        raise ConfigurationError(f"Failed to parse config {config_path}: {error}") from error
    except OSError as error:
        raise ConfigurationError(f"Failed to read config {config_path}: {error}") from error

    if not isinstance(data, dict):
        raise ConfigurationError("Configuration must be a mapping at the top level.")

    return data


def write_config(config_path: Path, config_data: Mapping[str, Any]) -> None:
    """Persist configuration data to disk with stable formatting."""
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with config_path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(dict(config_data), handle, sort_keys=False)


def copy_config_template() -> Dict[str, Any]:
    """Return a deep copy of the default configuration template."""
    return copy.deepcopy(DEFAULT_CONFIG_TEMPLATE)


def _resolve_relative_paths(values: Dict[str, Any], config_root: Path) -> None:
    for key in _PATH_KEYS:
        value = values.get(key)
        if not isinstance(value, (str, Path)) or str(value) == "":
            continue
        candidate = Path(value)
        if not candidate.is_absolute():
            values[key] = (config_root / candidate).resolve()


def build_task_config(
    data: Mapping[str, Any],
    task_name: str,
    *,
    config_root: Path | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> TaskConfig:
    """Merge file settings, the task's section and overrides into a :class:`TaskConfig`.

    Relative paths read from the file are anchored at ``config_root``;
    overrides whose value is ``None`` are ignored.
    """
    fields = set(TaskConfig.model_fields) - {"options"}
    merged: Dict[str, Any] = {key: value for key, value in data.items() if key != "tasks"}

    options_value = merged.get("options") or {}
    if not isinstance(options_value, Mapping):
        raise ConfigurationError("'options' must be a mapping.")
    options: Dict[str, Any] = dict(options_value)

    tasks_cfg = data.get("tasks") or {}
    if not isinstance(tasks_cfg, Mapping):
        raise ConfigurationError("'tasks' must be a mapping of task names to settings.")
    section = tasks_cfg.get(task_name) or {}
    if not isinstance(section, Mapping):
        raise ConfigurationError(f"Settings for task {task_name!r} must be a mapping.")

    for key, value in section.items():
        if key == "options":
            if not isinstance(value, Mapping):
                raise ConfigurationError(f"'tasks.{task_name}.options' must be a mapping.")
            options.update(value)
        elif key in fields:
            merged[key] = value
        else:
            options[key] = value
    merged["options"] = options

    if config_root is not None:
        merged.setdefault("base_dir", ".")
        _resolve_relative_paths(merged, config_root)

    for key, value in (overrides or {}).items():
        if value is not None:
            merged[key] = value

    try:
        return TaskConfig.model_validate(merged)
    except ValidationError as error:
        raise ConfigurationError(f"Invalid configuration for task {task_name!r}: {error}") from error


__all__ = [
    "ConfigurationError",
    "DEFAULT_CONFIG_NAME",
    "DEFAULT_CONFIG_TEMPLATE",
    "DEFAULT_DATE_FORMAT",
    "DEFAULT_DIRTY_FLAG",
    "DEFAULT_FOOTER",
    "DISABLED_DIRTY_FLAGS",
    "TaskConfig",
    "build_task_config",
    "copy_config_template",
    "load_config",
    "resolve_parameters",
    "write_config",
]
