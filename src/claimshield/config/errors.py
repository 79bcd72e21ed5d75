"""Configuration error definitions."""

from __future__ import annotations


class ConfigurationError(RuntimeError):
    """A policy threshold, storage location or service setting is unusable."""


class MissingConfigurationError(ConfigurationError):
    """A required environment variable is unset or blank."""
