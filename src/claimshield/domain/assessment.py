"""Overall risk score for a claim, combining geometry, satellite and seller signals."""

from __future__ import annotations

from typing import TYPE_CHECKING, Final

from claimshield.config.policy import DEFAULT_POLICY
from claimshield.domain.classification import build_conflict_alerts
from claimshield.domain.model import (
    ConflictStatus,
    Recommendation,
    RiskLevel,
    SatelliteGeofenceResult,
    SpatialCheckResult,
)

if TYPE_CHECKING:
    from claimshield.config.policy import PolicyConfig
    from claimshield.domain.model import (
        GrantorHistoryResult,
        SatelliteVerdict,
        SpatialConflictResult,
    )

CONFLICT_WEIGHTS: Final[dict[ConflictStatus, int]] = {
    ConflictStatus.HIGH_RISK: 40,
    ConflictStatus.POTENTIAL_DISPUTE: 25,
    ConflictStatus.CLEAR: 0,
}
SATELLITE_INVALID_WEIGHT: Final[int] = 30
SATELLITE_LOW_CONFIDENCE_WEIGHT: Final[int] = 15
GRANTOR_WEIGHTS: Final[dict[RiskLevel, int]] = {
    RiskLevel.HIGH: 30,
    RiskLevel.MEDIUM: 15,
    RiskLevel.LOW: 0,
}
REJECT_SCORE: Final[int] = 50
REVIEW_SCORE: Final[int] = 25


def risk_score(
    conflict: SpatialConflictResult,
    satellite: SatelliteVerdict | None,
    grantor_history: GrantorHistoryResult | None,
    *,
    policy: PolicyConfig = DEFAULT_POLICY,
) -> int:
    score = CONFLICT_WEIGHTS[conflict.status]
    if isinstance(satellite, SatelliteGeofenceResult):
        if not satellite.is_valid:
            score += SATELLITE_INVALID_WEIGHT
        elif satellite.confidence_score < policy.satellite_confidence_threshold:
            score += SATELLITE_LOW_CONFIDENCE_WEIGHT
    if grantor_history is not None:
        score += GRANTOR_WEIGHTS[grantor_history.risk_level]
    return min(score, 100)


def recommend(score: int, *, requires_hitl: bool) -> Recommendation:
    if score >= REJECT_SCORE:
        return Recommendation.REJECT
    if score >= REVIEW_SCORE or requires_hitl:
        return Recommendation.REVIEW
    return Recommendation.PROCEED


def assess_spatial_risk(
    claim_id: str,
    conflict: SpatialConflictResult,
    satellite: SatelliteVerdict | None = None,
    grantor_history: GrantorHistoryResult | None = None,
    *,
    policy: PolicyConfig = DEFAULT_POLICY,
) -> SpatialCheckResult:
    """Fold the three verdicts into a 0-100 score and a recommendation."""

    score = risk_score(conflict, satellite, grantor_history, policy=policy)
    return SpatialCheckResult(
        conflict=conflict,
        satellite=satellite,
        grantor_history=grantor_history,
        overall_risk_score=score,
        recommendation=recommend(score, requires_hitl=conflict.requires_hitl),
        alerts=build_conflict_alerts(claim_id, conflict, policy=policy),
    )
