"""Priority-of-Sale registry: first valid claim over a piece of land wins.

The check for an existing overlapping record and the write of the new record
happen inside one unit of work that first locks every region bucket the
parcel's bounding box touches. Two requests over the same neighbourhood share
at least one bucket and are serialised by the store; requests over disjoint
neighbourhoods touch disjoint buckets and proceed in parallel.

The grid is fixed: every writer must map a parcel to the same buckets, or two
requests over the same ground could lock disjoint cells. Existing records are
looked up by bounding box, so the lookup itself never depends on the grid.
"""

from __future__ import annotations

import hashlib
import math
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING, Final

from claimshield.config.policy import DEFAULT_POLICY
from claimshield.domain.geometry import GeometryError, canonical_ring, iou, validate_polygon
from claimshield.domain.model import (
    PriorityOfSaleRecord,
    ProtectClaimResult,
    ProtectOutcome,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from claimshield.config.policy import PolicyConfig
    from claimshield.domain.model import Claim, Polygon, ProtectClaimRequest
    from claimshield.domain.ports import ClaimUnitOfWork

log = getLogger(__name__)

COORDINATE_DECIMALS = 7
REGION_BUCKET_DEGREES: Final[float] = 0.01


def region_buckets(
    polygon: Polygon, bucket_degrees: float = REGION_BUCKET_DEGREES
) -> frozenset[str]:
    """Grid cells of ``bucket_degrees`` covering the polygon's bounding box."""

    box = polygon.bounding_box
    lat_range = range(
        math.floor(box.min_lat / bucket_degrees), math.floor(box.max_lat / bucket_degrees) + 1
    )
    lng_range = range(
        math.floor(box.min_lng / bucket_degrees), math.floor(box.max_lng / bucket_degrees) + 1
    )
    return frozenset(f"r{i}:{j}" for i in lat_range for j in lng_range)


def _format_timestamp(timestamp: datetime) -> str:
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=UTC)
    return timestamp.astimezone(UTC).isoformat()


def compute_priority_hash(request: ProtectClaimRequest) -> str:
    """Tamper-evident digest binding grantor, indenture, boundary and time.

    The boundary is canonicalised first, so the same parcel drawn from another
    start vertex or with the opposite winding yields the same digest.
    """

    coordinates = ";".join(
        f"{vertex.lat:.{COORDINATE_DECIMALS}f},{vertex.lng:.{COORDINATE_DECIMALS}f}"
        for vertex in canonical_ring(request.polygon)
    )
    payload = "|".join(
        (
            request.grantor_name,
            request.indenture_hash,
            coordinates,
            _format_timestamp(request.timestamp),
        )
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def record_covers_claim(record: PriorityOfSaleRecord, claim: Claim) -> bool:
    """Whether ``record`` was taken over the claim's current boundary and seller of record."""

    if record.grantor_name != claim.grantor_name:
        return False
    return canonical_ring(record.polygon) == canonical_ring(claim.polygon)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class PriorityOfSaleRegistry:
    """Atomically records the first valid claim over a region."""

    def __init__(
        self,
        unit_of_work_factory: Callable[[], ClaimUnitOfWork],
        *,
        policy: PolicyConfig = DEFAULT_POLICY,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._unit_of_work_factory = unit_of_work_factory
        self._policy = policy
        self._clock = clock

    def protect_claim(self, request: ProtectClaimRequest) -> ProtectClaimResult:
        try:
            validate_polygon(request.polygon)
        except GeometryError as exc:
            log.warning("Refusing to protect claim %s: %s", request.claim_id, exc)
            return ProtectClaimResult(
                outcome=ProtectOutcome.INVALID_POLYGON,
                message=f"Invalid polygon ({exc.kind}): {exc}",
            )

        buckets = region_buckets(request.polygon)
        with self._unit_of_work_factory() as uow:
            records = uow.repositories.priority_records
            records.lock_regions(buckets)

            existing = records.get_for_claim(request.claim_id)
            if existing is not None:
                log.info(
                    "Claim %s already protected (%s)", request.claim_id, existing.priority_hash
                )
                return ProtectClaimResult(
                    outcome=ProtectOutcome.ALREADY_PROTECTED,
                    message="Claim already holds a priority-of-sale record",
                    record=existing,
                )

            for other in records.overlapping(request.polygon.bounding_box):
                if other.claim_id == request.claim_id:
                    continue
                score = iou(request.polygon, other.polygon, policy=self._policy).iou_score
                if score >= self._policy.iou_critical_threshold:
                    log.warning(
                        "Region conflict protecting claim %s: IoU %.3f with %s",
                        request.claim_id,
                        score,
                        other.claim_id,
                    )
                    return ProtectClaimResult(
                        outcome=ProtectOutcome.REGION_CONFLICT,
                        message=(
                            f"Region already protected by claim {other.claim_id} "
                            f"(IoU {score:.3f})"
                        ),
                        conflicting_claim_id=other.claim_id,
                        iou_score=score,
                    )

            record = PriorityOfSaleRecord(
                claim_id=request.claim_id,
                priority_hash=compute_priority_hash(request),
                grantor_name=request.grantor_name,
                indenture_hash=request.indenture_hash,
                polygon=request.polygon,
                claimed_at=request.timestamp,
                locked_at=self._clock(),
            )
            records.add(record)
            uow.commit()

        log.info("Protected claim %s with priority hash %s", record.claim_id, record.priority_hash)
        return ProtectClaimResult(
            outcome=ProtectOutcome.PROTECTED,
            message="Priority-of-sale record created",
            record=record,
        )
