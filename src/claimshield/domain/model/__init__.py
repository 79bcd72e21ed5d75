"""Public domain model surface."""

from __future__ import annotations

from claimshield.domain.model.claim import (
    Claim,
    ClaimImmutableError,
    ConflictingClaim,
    new_claim_id,
)
from claimshield.domain.model.enums import (
    AlertSeverity,
    AlertType,
    ConflictStatus,
    PipelineStatus,
    ProtectOutcome,
    Recommendation,
    RiskLevel,
    Severity,
    TriggeredBy,
)
from claimshield.domain.model.pipeline import ClaimPipelineState, PipelineStatusChange
from claimshield.domain.model.primitives import BoundingBox, Coordinate, Polygon
from claimshield.domain.model.priority import (
    PriorityOfSaleRecord,
    ProtectClaimRequest,
    ProtectClaimResult,
)
from claimshield.domain.model.results import (
    CriticalConflictAlert,
    GrantorHistoryResult,
    IoUConflictResult,
    SatelliteGeofenceResult,
    SatelliteUnavailable,
    SatelliteVerdict,
    SpatialCheckResult,
    SpatialConflictResult,
)
from claimshield.domain.model.review import ClaimReview, ReviewFlag, SpatialConflictRecord

__all__ = [  # noqa: RUF022
    # geography
    "BoundingBox",
    "Coordinate",
    "Polygon",
    # claims
    "Claim",
    "ClaimImmutableError",
    "ConflictingClaim",
    "new_claim_id",
    # verdicts
    "CriticalConflictAlert",
    "GrantorHistoryResult",
    "IoUConflictResult",
    "SatelliteGeofenceResult",
    "SatelliteUnavailable",
    "SatelliteVerdict",
    "SpatialCheckResult",
    "SpatialConflictResult",
    # priority of sale
    "PriorityOfSaleRecord",
    "ProtectClaimRequest",
    "ProtectClaimResult",
    # human review
    "ClaimReview",
    "ReviewFlag",
    "SpatialConflictRecord",
    # pipeline
    "ClaimPipelineState",
    "PipelineStatusChange",
    # enums
    "AlertSeverity",
    "AlertType",
    "ConflictStatus",
    "PipelineStatus",
    "ProtectOutcome",
    "Recommendation",
    "RiskLevel",
    "Severity",
    "TriggeredBy",
]
