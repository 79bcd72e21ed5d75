"""Human-in-the-loop review queue.

A claim is flagged when a spatial check says a person has to decide, or when
the registry refuses it because another claim already holds the ground. Each
overlapping claim behind the flag is kept as its own conflict record, so a
reviewer sees every party to the dispute. Like the pipeline functions, these
operate on an entered unit of work and leave the commit to the caller.
"""

from __future__ import annotations

from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from claimshield.domain.model import ConflictStatus, ReviewFlag, SpatialConflictRecord

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from claimshield.domain.model import ConflictingClaim, SpatialConflictResult
    from claimshield.domain.ports import ClaimUnitOfWork

log = getLogger(__name__)

SPATIAL_OVERLAP_REASON = "Spatial overlap detected"
REGION_CONFLICT_REASON = "Region already protected by another claim"


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _record_conflicts(
    uow: ClaimUnitOfWork,
    claim_id: str,
    conflicting_claims: Iterable[ConflictingClaim],
    detected_at: datetime,
) -> int:
    reviews = uow.repositories.conflict_reviews
    recorded = 0
    for other in conflicting_claims:
        recorded += reviews.record_conflict(
            SpatialConflictRecord(
                claim_id=claim_id,
                conflicting_claim_id=other.claim_id,
                overlap_area_sqm=other.overlap_area_sqm,
                overlap_percentage=other.overlap_percentage,
                iou_score=other.iou_score,
                detected_at=detected_at,
            )
        )
    return recorded


def flag_for_review(
    uow: ClaimUnitOfWork,
    claim_id: str,
    conflict: SpatialConflictResult,
    *,
    clock: Callable[[], datetime] = _utcnow,
) -> ReviewFlag:
    """Hold ``claim_id`` for review and record every overlap ``conflict`` found."""

    flagged_at = clock()
    review_flag = ReviewFlag(
        claim_id=claim_id,
        reason=SPATIAL_OVERLAP_REASON,
        conflict_status=conflict.status,
        is_litigation_flag=conflict.status is ConflictStatus.HIGH_RISK,
        flagged_at=flagged_at,
    )
    uow.repositories.conflict_reviews.flag(review_flag)
    recorded = _record_conflicts(uow, claim_id, conflict.conflicting_claims, flagged_at)
    log.warning(
        "Claim %s flagged for human review (%s, %s new conflict record(s))",
        claim_id,
        conflict.status,
        recorded,
    )
    return review_flag


def flag_as_disputed(
    uow: ClaimUnitOfWork,
    claim_id: str,
    holder: ConflictingClaim,
    *,
    clock: Callable[[], datetime] = _utcnow,
) -> ReviewFlag:
    """Hold ``claim_id`` for review after the registry gave its ground to ``holder``."""

    flagged_at = clock()
    review_flag = ReviewFlag(
        claim_id=claim_id,
        reason=f"{REGION_CONFLICT_REASON} ({holder.claim_id})",
        conflict_status=ConflictStatus.HIGH_RISK,
        is_litigation_flag=True,
        flagged_at=flagged_at,
    )
    uow.repositories.conflict_reviews.flag(review_flag)
    _record_conflicts(uow, claim_id, (holder,), flagged_at)
    log.warning(
        "Claim %s disputed: region held by %s (%.1f%% overlap)",
        claim_id,
        holder.claim_id,
        holder.overlap_percentage,
    )
    return review_flag
