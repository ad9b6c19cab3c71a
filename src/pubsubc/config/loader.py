"""Settings loader and discovery of numbered project configurations."""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any, cast

import structlog
import yaml
from pydantic import ValidationError

from pubsubc.config.models import ProvisionSettings

logger = structlog.get_logger()

DEFAULTS_DIR = Path(__file__).parent / "defaults"

# Matches ${VAR} or ${VAR:-default}
_ENV_PATTERN = re.compile(r"\$\{([^}:]+)(?::-((?:[^}\\]|\\.)*))?}")


def _resolve_env_str(value: str, environ: Mapping[str, str]) -> str:
    def _replace(match: re.Match[str]) -> str:
        var_name = match.group(1)
        default = match.group(2)
        env_val = environ.get(var_name)
        if env_val is not None:
            return env_val
        if default is not None:
            return default.replace("\\}", "}")
        msg = f"Environment variable '{var_name}' is not set and no default provided"
        raise ValueError(msg)

    return _ENV_PATTERN.sub(_replace, value)


def resolve_env_vars(data: Any, environ: Mapping[str, str] | None = None) -> Any:
    """Recursively resolve ${VAR} and ${VAR:-default} in parsed YAML data."""
    env = os.environ if environ is None else environ
    if isinstance(data, str):
        return _resolve_env_str(data, env)
    if isinstance(data, dict):
        return {k: resolve_env_vars(v, env) for k, v in data.items()}
    if isinstance(data, list):
        return [resolve_env_vars(item, env) for item in data]
    return data


def merge_configs(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Recursively deep-merge *overrides* into *base* without mutating either."""
    merged: dict[str, Any] = {**base}
    for key, value in overrides.items():
        if isinstance(merged.get(key), dict) and isinstance(value, dict):
            merged[key] = merge_configs(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_yaml(path: str | Path) -> dict[str, Any]:
    """Load a YAML mapping from *path*, resolving environment references."""
    p = Path(path)
    if not p.exists():
        msg = f"Settings file not found: {p}"
        raise FileNotFoundError(msg)
    try:
        with p.open() as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        msg = f"Failed to parse YAML in {p}"
        mark = getattr(exc, "problem_mark", None)
        if mark is not None:
            msg += f" at line {mark.line + 1}, column {mark.column + 1}"
        raise ValueError(f"{msg}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        msg = f"Expected a YAML mapping at top level in {p}, got {type(data).__name__}"
        raise TypeError(msg)
    return cast(dict[str, Any], resolve_env_vars(data))


def _load_settings_defaults() -> dict[str, Any]:
    with (DEFAULTS_DIR / "settings.yaml").open() as f:
        return cast(dict[str, Any], resolve_env_vars(yaml.safe_load(f)))


def load_settings(path: str | Path | None = None) -> ProvisionSettings:
    """Load settings from built-in defaults, optionally merged with a YAML file."""
    base = _load_settings_defaults()
    if path is not None:
        base = merge_configs(base, load_yaml(path))
    try:
        return ProvisionSettings.model_validate(base)
    except ValidationError as exc:
        source = path or "built-in defaults"
        msg = f"Invalid settings ({source}):\n{exc}"
        raise ValueError(msg) from exc


def discover_project_configs(
    prefix: str = "PUBSUB_PROJECT",
    environ: Mapping[str, str] | None = None,
) -> list[tuple[str, str]]:
    """Collect ``<prefix>1``, ``<prefix>2``, ... until the first unset or empty one.

    Returns ``(variable name, raw value)`` pairs in numeric order.
    """
    env = os.environ if environ is None else environ
    found: list[tuple[str, str]] = []
    index = 1
    while True:
        name = f"{prefix}{index}"
        value = env.get(name, "")
        if not value:
            break
        logger.debug("config.project_found", variable=name)
        found.append((name, value))
        index += 1
    return found
