"""Configuration error definitions."""

from __future__ import annotations


class ConfigurationError(RuntimeError):
    """Raised when a policy file or an environment setting is invalid."""


class MissingConfigurationError(ConfigurationError):
    """Raised when a configured policy file does not exist."""
