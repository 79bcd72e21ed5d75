"""Satellite verdict service configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass

from .env import optional_env_float, require_env_vars


@dataclass(frozen=True, slots=True)
class SatelliteConfig:
    """Holds the satellite geofence service settings."""

    base_url: str
    api_key: str | None = None
    timeout_seconds: float = 8.0
    cache_ttl_seconds: float = 3600.0
    max_calls_per_second: float = 5.0

    @classmethod
    def from_environment(cls) -> SatelliteConfig:
        values = require_env_vars(("SATELLITE_API_URL",))
        api_key = os.getenv("SATELLITE_API_KEY")
        return cls(
            base_url=values["SATELLITE_API_URL"],
            api_key=api_key.strip() if api_key and api_key.strip() else None,
            timeout_seconds=optional_env_float("SATELLITE_TIMEOUT_SECONDS", 8.0),
            cache_ttl_seconds=optional_env_float("SATELLITE_CACHE_TTL_SECONDS", 3600.0),
        )


def satellite_configured() -> bool:
    value = os.getenv("SATELLITE_API_URL")
    return value is not None and bool(value.strip())


def get_satellite_config() -> SatelliteConfig:
    return SatelliteConfig.from_environment()
