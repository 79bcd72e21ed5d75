"""Application configuration helpers."""

from __future__ import annotations

from .env import optional_env_float, optional_env_int, require_env_var, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging, log_level_from_env
from .policy import DEFAULT_POLICY, PolicyConfig, get_policy_config
from .satellite import SatelliteConfig, get_satellite_config, satellite_configured
from .storage import (
    DatabaseConfig,
    StorageConfig,
    get_database_config,
    get_database_uri,
    get_http_cache_path,
    get_storage_config,
)

__all__ = [
    "DEFAULT_POLICY",
    "CacheConfig",
    "ConfigurationError",
    "DatabaseConfig",
    "MissingConfigurationError",
    "PolicyConfig",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "SatelliteConfig",
    "StorageConfig",
    "configure_logging",
    "get_database_config",
    "get_database_uri",
    "get_http_cache_path",
    "get_policy_config",
    "get_satellite_config",
    "get_storage_config",
    "log_level_from_env",
    "optional_env_float",
    "optional_env_int",
    "require_env_var",
    "require_env_vars",
    "satellite_configured",
]
