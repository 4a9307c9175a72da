"""Application configuration helpers."""

from __future__ import annotations

from .env import env_argument_list, optional_env_var
from .errors import ConfigurationError, MissingConfigurationError
from .policy import load_default_policy_tables, load_policy_tables
from .settings import DebianizeSettings, get_settings, maintainer_from_env

__all__ = [
    "ConfigurationError",
    "DebianizeSettings",
    "MissingConfigurationError",
    "env_argument_list",
    "get_settings",
    "load_default_policy_tables",
    "load_policy_tables",
    "maintainer_from_env",
    "optional_env_var",
]
