"""Satellite geofence adapter."""

from __future__ import annotations

from .client import GEOFENCE_PATH, SatelliteVerdictClient, resilience_for, to_domain
from .schema import SatelliteGeofencePayload

__all__ = [
    "GEOFENCE_PATH",
    "SatelliteGeofencePayload",
    "SatelliteVerdictClient",
    "resilience_for",
    "to_domain",
]
