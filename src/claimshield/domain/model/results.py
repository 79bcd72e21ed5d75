"""Derived verdicts produced by the engine. None of these are stored state."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import uuid4

from .enums import (
    AlertSeverity,
    AlertType,
    ConflictStatus,
    Recommendation,
    RiskLevel,
    Severity,
)

if TYPE_CHECKING:
    from .claim import ConflictingClaim


@dataclass(frozen=True, slots=True)
class IoUConflictResult:
    iou_score: float
    intersection_area_sqm: float
    union_area_sqm: float
    claim_area_sqm: float
    conflicting_claim_area_sqm: float
    severity: Severity
    alert_type: AlertType


@dataclass(frozen=True, slots=True)
class SpatialConflictResult:
    status: ConflictStatus
    requires_hitl: bool
    reasoning: tuple[str, ...]
    conflicting_claims: tuple[ConflictingClaim, ...] = ()

    @property
    def has_conflict(self) -> bool:
        return bool(self.conflicting_claims)

    @property
    def overlap_percentage(self) -> float:
        return max((claim.overlap_percentage for claim in self.conflicting_claims), default=0.0)


@dataclass(frozen=True, slots=True)
class GrantorHistoryResult:
    grantor_name: str
    total_claims: int
    disputed_claims: int
    rejected_claims: int
    dispute_rate: float
    risk_level: RiskLevel
    is_red_flag: bool
    reasoning: str


@dataclass(frozen=True, slots=True)
class SatelliteGeofenceResult:
    is_valid: bool
    land_exists: bool
    confidence_score: float
    water_body_detected: bool = False
    protected_area_detected: bool = False
    existing_structures_detected: bool = False
    land_cover_type: str | None = None
    satellite_image_url: str | None = None
    reasoning: str = ""


@dataclass(frozen=True, slots=True)
class SatelliteUnavailable:
    """Marker for a verdict that could not be obtained (timeout, outage, bad payload)."""

    reason: str


type SatelliteVerdict = SatelliteGeofenceResult | SatelliteUnavailable


@dataclass(frozen=True, slots=True)
class CriticalConflictAlert:
    alert_type: AlertType
    severity: AlertSeverity
    claim_id: str
    conflicting_claim_id: str
    iou_score: float
    message: str
    id: str = field(default_factory=lambda: str(uuid4()))
    detected_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))


@dataclass(frozen=True, slots=True)
class SpatialCheckResult:
    """Combined geometric, satellite and seller assessment for one claim."""

    conflict: SpatialConflictResult
    satellite: SatelliteVerdict | None
    grantor_history: GrantorHistoryResult | None
    overall_risk_score: int
    recommendation: Recommendation
    alerts: tuple[CriticalConflictAlert, ...] = ()
    checked_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
