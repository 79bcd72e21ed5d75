"""Conflict classification: turn pairwise overlaps into an actionable verdict.

The classifier never looks claims up itself. The host hands it a candidate set
(usually from a bounding-box or grid pre-filter) and the classifier grades every
candidate with the geometry kernel, then applies the status policy:

- no graded conflicts -> ``CLEAR``
- warnings only -> ``POTENTIAL_DISPUTE`` (human review only when the summed
  overlap exceeds ``overlap_warning_percent``)
- any critical conflict -> ``HIGH_RISK`` with mandatory human review

Satellite evidence can only add caution: it may lift ``CLEAR`` to
``POTENTIAL_DISPUTE`` and force review, but never lowers a geometric finding.
"""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from claimshield.config.policy import DEFAULT_POLICY
from claimshield.domain.geometry import GeometryError, OverlapContext, iou, validate_polygon
from claimshield.domain.model import (
    AlertSeverity,
    AlertType,
    ConflictingClaim,
    ConflictStatus,
    CriticalConflictAlert,
    SatelliteGeofenceResult,
    SatelliteUnavailable,
    Severity,
    SpatialConflictResult,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from claimshield.config.policy import PolicyConfig
    from claimshield.domain.model import Claim, SatelliteVerdict

log = getLogger(__name__)


def grade_candidate(
    claim: Claim,
    candidate: Claim,
    *,
    policy: PolicyConfig = DEFAULT_POLICY,
) -> ConflictingClaim:
    """Project ``candidate`` against ``claim``; both polygons must already be valid."""

    result = iou(
        claim.polygon,
        candidate.polygon,
        context=OverlapContext(
            subject_grantor=claim.grantor_name,
            other_grantor=candidate.grantor_name,
            subject_created_at=claim.created_at,
            other_created_at=candidate.created_at,
        ),
        policy=policy,
    )
    overlap_percentage = (
        result.intersection_area_sqm / result.claim_area_sqm * 100.0
        if result.claim_area_sqm > 0
        else 0.0
    )
    return ConflictingClaim(
        claim_id=candidate.claim_id,
        grantor_name=candidate.grantor_name,
        created_at=candidate.created_at,
        status=candidate.status,
        overlap_area_sqm=result.intersection_area_sqm,
        overlap_percentage=overlap_percentage,
        iou=result,
    )


def classify_conflict(
    claim: Claim,
    candidates: Iterable[Claim],
    satellite_verdict: SatelliteVerdict | None = None,
    *,
    policy: PolicyConfig = DEFAULT_POLICY,
) -> SpatialConflictResult:
    """Grade ``claim`` against host-supplied ``candidates``.

    Raises ``GeometryError`` if the subject polygon is malformed. Malformed
    candidates are skipped and noted in the reasoning trail.
    """

    validate_polygon(claim.polygon)
    subject_box = claim.polygon.bounding_box
    reasoning: list[str] = []
    conflicts: list[ConflictingClaim] = []

    for candidate in candidates:
        if candidate.claim_id == claim.claim_id:
            continue
        try:
            validate_polygon(candidate.polygon)
        except GeometryError as exc:
            log.warning("Skipping candidate %s with invalid geometry: %s", candidate.claim_id, exc)
            reasoning.append(f"Skipped candidate {candidate.claim_id}: invalid geometry ({exc})")
            continue
        if not subject_box.intersects(candidate.polygon.bounding_box):
            continue
        graded = grade_candidate(claim, candidate, policy=policy)
        if graded.iou.severity is not Severity.NONE:
            conflicts.append(graded)

    # first claimant listed first among equal overlaps
    conflicts.sort(key=lambda c: (-c.iou_score, c.created_at))

    status, requires_hitl = _status_from_conflicts(conflicts, reasoning, policy=policy)
    status, requires_hitl = _apply_satellite(
        status, requires_hitl, satellite_verdict, reasoning, policy=policy
    )

    return SpatialConflictResult(
        status=status,
        requires_hitl=requires_hitl,
        reasoning=tuple(reasoning),
        conflicting_claims=tuple(conflicts),
    )


def _status_from_conflicts(
    conflicts: list[ConflictingClaim],
    reasoning: list[str],
    *,
    policy: PolicyConfig,
) -> tuple[ConflictStatus, bool]:
    if not conflicts:
        reasoning.append("No overlapping claims found - land coordinates are unique")
        return ConflictStatus.CLEAR, False

    critical = [c for c in conflicts if c.iou.severity is Severity.CRITICAL]
    if critical:
        top = critical[0]
        reasoning.append(
            f"HIGH RISK: IoU {top.iou_score:.3f} with claim {top.claim_id} "
            f"({top.overlap_percentage:.1f}% of this parcel)"
        )
        if any(c.iou.alert_type is AlertType.DOUBLE_SALE_SUSPECTED for c in critical):
            reasoning.append(
                "Different grantor sold overlapping ground recently - double sale suspected"
            )
        reasoning.append("Immediate human review required")
        status, requires_hitl = ConflictStatus.HIGH_RISK, True
    else:
        summed = sum(c.overlap_percentage for c in conflicts)
        requires_hitl = summed > policy.overlap_warning_percent
        reasoning.append(f"POTENTIAL DISPUTE: {summed:.1f}% of this parcel overlaps other claims")
        if requires_hitl:
            reasoning.append("Flagged for Human-in-the-Loop (HITL) audit")
        else:
            reasoning.append(
                f"Summed overlap within {policy.overlap_warning_percent:.1f}% boundary tolerance"
            )
        status = ConflictStatus.POTENTIAL_DISPUTE

    reasoning.extend(
        f"Conflict with claim {c.claim_id} (IoU {c.iou_score:.3f}, "
        f"{c.overlap_percentage:.1f}% overlap, {c.overlap_area_sqm:.0f} sqm, {c.iou.alert_type})"
        for c in conflicts
    )
    return status, requires_hitl


def _apply_satellite(
    status: ConflictStatus,
    requires_hitl: bool,
    verdict: SatelliteVerdict | None,
    reasoning: list[str],
    *,
    policy: PolicyConfig,
) -> tuple[ConflictStatus, bool]:
    if verdict is None:
        return status, requires_hitl
    if isinstance(verdict, SatelliteUnavailable):
        reasoning.append(f"Satellite verdict absent: {verdict.reason}")
        return status, requires_hitl

    concerns = _satellite_concerns(verdict, policy=policy)
    if not concerns:
        reasoning.append(
            f"Satellite geofence consistent with claim (confidence {verdict.confidence_score:.2f})"
        )
        return status, requires_hitl

    reasoning.append("Satellite caution: " + "; ".join(concerns))
    if status is ConflictStatus.CLEAR:
        status = ConflictStatus.POTENTIAL_DISPUTE
    return status, True


def _satellite_concerns(verdict: SatelliteGeofenceResult, *, policy: PolicyConfig) -> list[str]:
    concerns: list[str] = []
    if not verdict.is_valid:
        concerns.append("geofence reported invalid location")
    if verdict.confidence_score < policy.satellite_confidence_threshold:
        concerns.append(
            f"confidence {verdict.confidence_score:.2f} below "
            f"{policy.satellite_confidence_threshold:.2f}"
        )
    if verdict.water_body_detected:
        concerns.append("water body detected")
    if verdict.protected_area_detected:
        concerns.append("protected area detected")
    return concerns


_ALERT_MESSAGES = {
    AlertType.CRITICAL_CONFLICT: (
        "CRITICAL: {pct}% IoU overlap detected. This land may already be claimed by another party."
    ),
    AlertType.DOUBLE_SALE_SUSPECTED: (
        "DOUBLE SALE SUSPECTED: {pct}% IoU overlap with an existing claim from a different "
        "grantor. Immediate investigation required."
    ),
    AlertType.OVERLAP_WARNING: "Overlap warning: {pct}% IoU overlap with an existing claim.",
}


def build_conflict_alerts(
    claim_id: str,
    result: SpatialConflictResult,
    *,
    policy: PolicyConfig = DEFAULT_POLICY,
) -> tuple[CriticalConflictAlert, ...]:
    """One alert per graded conflict, for the review queue."""

    alerts: list[CriticalConflictAlert] = []
    for conflict in result.conflicting_claims:
        alert_type = conflict.iou.alert_type
        if alert_type is AlertType.NONE:
            continue
        severity = (
            AlertSeverity.CRITICAL
            if conflict.iou_score >= policy.iou_critical_threshold
            else AlertSeverity.HIGH
        )
        pct = f"{conflict.iou_score * 100:.1f}"
        alerts.append(
            CriticalConflictAlert(
                alert_type=alert_type,
                severity=severity,
                claim_id=claim_id,
                conflicting_claim_id=conflict.claim_id,
                iou_score=conflict.iou_score,
                message=_ALERT_MESSAGES[alert_type].format(pct=pct),
            )
        )
    return tuple(alerts)
