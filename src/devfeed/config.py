"""YAML configuration loader and typed provider-config parsing for devfeed."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ValidationError

from .errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent / "config" / "default.yaml"
USER_CONFIG_PATH = Path("~/.devfeed/config.yaml").expanduser()


def load_config(config_path: str | Path | None = None) -> dict[str, Any]:
    """Load config, merging user overrides on top of defaults."""
    defaults = _load_yaml(DEFAULT_CONFIG_PATH) if DEFAULT_CONFIG_PATH.exists() else {}

    user_path = Path(config_path) if config_path else USER_CONFIG_PATH
    if user_path.exists():
        user_cfg = _load_yaml(user_path)
        return _deep_merge(defaults, user_cfg)

    return defaults


def _load_yaml(path: Path) -> dict[str, Any]:
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def get_db_path(config: dict) -> Path:
    return Path(config.get("db_path", "~/.devfeed/devfeed.db")).expanduser()


def get_http_config(config: dict) -> dict[str, Any]:
    return config.get("http", {})


def get_daemon_config(config: dict) -> dict[str, Any]:
    return config.get("daemon", {})


def get_retention_days(config: dict) -> int:
    return int(config.get("retention", {}).get("default_days", 30))


def get_source_definitions(config: dict) -> list[dict[str, Any]]:
    return config.get("sources", []) or []


# ── Typed provider config ───────────────────────────────────────────


def parse_provider_config(cls: type[BaseModel], blob: dict[str, Any] | None) -> BaseModel:
    """Build a provider config model from a raw blob.

    Unknown keys are ignored. A known key holding a value of the wrong type,
    or a value outside its allowed range, raises ConfigError. Missing keys
    fall back to the model defaults.
    """
    blob = blob or {}
    if not isinstance(blob, dict):
        raise ConfigError(f"config must be a mapping, got {type(blob).__name__}")

    for key in blob:
        if key not in cls.model_fields:
            logger.debug("Ignoring unrecognized %s key: %s", cls.__name__, key)

    try:
        return cls.model_validate(blob)
    except ValidationError as e:
        raise ConfigError(_describe_errors(e)) from e


def _describe_errors(error: ValidationError) -> str:
    # "max_pages: Input should be greater than or equal to 1"
    return "; ".join(
        f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in error.errors()
    )
