"""Engine settings (pydantic BaseModel) and YAML loading."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from .exceptions import ScopedConfigError, ScopedConfigErrorCodes

DEFAULT_CACHE_TTL_SECONDS = 300.0


class CacheSection(BaseModel):
    """Result cache settings."""

    enabled: bool = True
    ttl_seconds: float = Field(default=DEFAULT_CACHE_TTL_SECONDS, gt=0)
    # Per-key caching shares a cached value across tenants within the TTL.
    per_context_keys: bool = False


class LogSection(BaseModel):
    """Log settings."""

    level: str = "INFO"
    format: Literal["json", "text"] = "json"


class EngineSettings(BaseModel):
    """Settings for a resolution engine instance."""

    environment: str = "development"
    region: str | None = None
    cache: CacheSection = Field(default_factory=CacheSection)
    log: LogSection = Field(default_factory=LogSection)


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep-merge override into a copy of base. Lists are replaced, not merged."""
    result: dict[str, Any] = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ScopedConfigError(
            code=ScopedConfigErrorCodes.SETTINGS_READ_ERROR,
            message=f"Failed to read settings file: {path}",
            cause=e,
        ) from e
    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise ScopedConfigError(
            code=ScopedConfigErrorCodes.SETTINGS_PARSE_ERROR,
            message=f"Failed to parse YAML: {path}",
            cause=e,
        ) from e
    if not isinstance(data, dict):
        raise ScopedConfigError(
            code=ScopedConfigErrorCodes.SETTINGS_PARSE_ERROR,
            message=f"Settings file must contain a mapping: {path}",
        )
    return data


def load_settings(base_path: Path, env_path: Path | None = None) -> EngineSettings:
    """Load EngineSettings from YAML.

    base_path: base settings file (required)
    env_path: per-environment override file (optional); merged over the base
        when it exists.
    """
    data = _read_yaml(base_path)
    if env_path is not None and env_path.exists():
        data = deep_merge(data, _read_yaml(env_path))
    try:
        return EngineSettings.model_validate(data)
    except PydanticValidationError as e:
        raise ScopedConfigError(
            code=ScopedConfigErrorCodes.SETTINGS_VALIDATION_ERROR,
            message=f"Settings validation failed: {e}",
            cause=e,
        ) from e
