"""Pydantic models describing the satellite geofence payload."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class SatelliteBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class SatelliteGeofencePayload(SatelliteBaseModel):
    is_valid: bool = Field(alias="isValid")
    land_exists: bool = Field(alias="landExists")
    confidence_score: float = Field(alias="confidenceScore", ge=0.0, le=1.0)
    water_body_detected: bool = Field(default=False, alias="waterBodyDetected")
    protected_area_detected: bool = Field(default=False, alias="protectedAreaDetected")
    existing_structures_detected: bool = Field(default=False, alias="existingStructuresDetected")
    land_cover_type: str | None = Field(default=None, alias="landCoverType")
    satellite_image_url: str | None = Field(default=None, alias="satelliteImageUrl")
    reasoning: str = ""
