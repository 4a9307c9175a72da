"""Environment variable loaders for configuration."""

from __future__ import annotations

import json
import os

from .errors import ConfigurationError


def optional_env_var(name: str) -> str | None:
    """Return the stripped value of ``name``; unset and blank both read as ``None``."""

    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def env_argument_list(name: str) -> list[str]:
    """Parse an environment variable holding a JSON list of strings."""

    raw = optional_env_var(name)
    if raw is None:
        return []
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"{name} must be a JSON list of strings: {exc}") from exc
    if not isinstance(parsed, list) or not all(isinstance(item, str) for item in parsed):
        raise ConfigurationError(f"{name} must be a JSON list of strings, got {raw!r}")
    return list(parsed)
