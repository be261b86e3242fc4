"""Configuration loading and validation for the replay harness."""

from __future__ import annotations

import dataclasses
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml


class ConfigValidationError(ValueError):
    """Raised when a harness config file or mapping fails validation."""


_FLOAT_KEYS: tuple[str, ...] = (
    "poll_interval",
    "start_timeout",
    "checkpoint_timeout",
    "finish_timeout",
    "join_timeout",
)


@dataclass(frozen=True)
class HarnessConfig:
    """Validated harness configuration container.

    Typed fields cover everything the harness and the reference host read;
    unknown keys are kept in ``extras`` for scenario-specific settings.
    """

    recordings_dir: Path = Path("recordings")
    headless: bool = True
    poll_interval: float = 0.05
    start_timeout: float = 60.0
    checkpoint_timeout: float = 60.0
    finish_timeout: float = 300.0
    join_timeout: float = 30.0
    test_timeout: float | None = None
    tick_interval: float = 0.0
    view_distance: int = 1
    chunk_load_rate: int = 4
    extras: dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        """Return a configuration value by key.

        Args:
            key: Configuration key name.
            default: Value to return if key does not exist.

        Returns:
            Value associated with ``key`` or ``default``.
        """
        if key != "extras" and hasattr(self, key):
            return getattr(self, key)
        return self.extras.get(key, default)

    def to_dict(self) -> dict[str, Any]:
        """Return a full dictionary view of the configuration."""
        payload = {f.name: getattr(self, f.name) for f in dataclasses.fields(self) if f.name != "extras"}
        payload["recordings_dir"] = str(self.recordings_dir)
        payload.update(self.extras)
        return payload

    def with_overrides(self, **changes: Any) -> HarnessConfig:
        """Return a validated copy with ``changes`` applied."""
        payload = self.to_dict()
        payload.update(changes)
        return _validate_and_build(payload)


class ConfigLoader:
    """Load and validate harness configuration files (YAML or JSON)."""

    @staticmethod
    def load(path: str | Path) -> HarnessConfig:
        """Load a harness config from ``path``.

        Accepts either a bare mapping or a mapping nested under ``harness:``.
        Relative ``recordings_dir`` values resolve against the config file.
        """
        config_path = Path(path)
        payload = _read_config_payload(config_path)
        if isinstance(payload, Mapping) and isinstance(payload.get("harness"), Mapping):
            payload = payload["harness"]
        if not isinstance(payload, Mapping):
            raise ConfigValidationError("Harness config file must contain a mapping object.")

        payload = dict(payload)
        if "recordings_dir" in payload:
            recordings = Path(str(payload["recordings_dir"]))
            if not recordings.is_absolute():
                payload["recordings_dir"] = config_path.parent / recordings
        return _validate_and_build(payload)

    @staticmethod
    def from_mapping(payload: Mapping[str, Any]) -> HarnessConfig:
        return _validate_and_build(payload)


def _read_config_payload(config_path: Path) -> Any:
    """Read raw config payload from JSON or YAML file."""
    if not config_path.exists():
        raise ConfigValidationError(f"Config file not found: {config_path}")
    suffix = config_path.suffix.lower()
    content = config_path.read_text(encoding="utf-8")

    try:
        if suffix == ".json":
            return json.loads(content)
        if suffix in {".yaml", ".yml"}:
            return yaml.safe_load(content)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigValidationError(f"Failed to parse config '{config_path}': {exc}") from exc

    raise ConfigValidationError(f"Unsupported config extension: {suffix}")


def _as_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in {"true", "false"}:
        return value.lower() == "true"
    raise ConfigValidationError(f"Field '{key}' expected bool, got {type(value).__name__}.")


def _as_number(key: str, value: Any, kind: type) -> Any:
    if isinstance(value, bool):
        raise ConfigValidationError(f"Field '{key}' expected {kind.__name__}, got bool.")
    try:
        return kind(value)
    except (TypeError, ValueError) as exc:
        raise ConfigValidationError(f"Field '{key}' expected {kind.__name__}, got {type(value).__name__}.") from exc


def _validate_and_build(payload: Mapping[str, Any]) -> HarnessConfig:
    """Validate raw mapping and build ``HarnessConfig``."""
    known = {f.name for f in dataclasses.fields(HarnessConfig)} - {"extras"}
    values: dict[str, Any] = {}

    if "recordings_dir" in payload:
        values["recordings_dir"] = Path(str(payload["recordings_dir"]))
    if "headless" in payload:
        values["headless"] = _as_bool("headless", payload["headless"])

    for key in _FLOAT_KEYS:
        if key in payload:
            values[key] = _as_number(key, payload[key], float)
            if values[key] <= 0:
                raise ConfigValidationError(f"{key} must be > 0")

    if payload.get("test_timeout") is not None:
        values["test_timeout"] = _as_number("test_timeout", payload["test_timeout"], float)
        if values["test_timeout"] <= 0:
            raise ConfigValidationError("test_timeout must be > 0 when set")

    if "tick_interval" in payload:
        values["tick_interval"] = _as_number("tick_interval", payload["tick_interval"], float)
        if values["tick_interval"] < 0:
            raise ConfigValidationError("tick_interval must be >= 0")
    if "view_distance" in payload:
        values["view_distance"] = _as_number("view_distance", payload["view_distance"], int)
        if values["view_distance"] < 0:
            raise ConfigValidationError("view_distance must be >= 0")
    if "chunk_load_rate" in payload:
        values["chunk_load_rate"] = _as_number("chunk_load_rate", payload["chunk_load_rate"], int)
        if values["chunk_load_rate"] <= 0:
            raise ConfigValidationError("chunk_load_rate must be > 0")

    extras = {str(k): v for k, v in payload.items() if k not in known}
    return HarnessConfig(extras=extras, **values)
