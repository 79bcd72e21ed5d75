from __future__ import annotations

from datetime import UTC, datetime

from claimshield.domain.model import (
    Polygon,
    PriorityOfSaleRecord,
    ProtectClaimRequest,
    ProtectOutcome,
)
from claimshield.domain.priority import (
    REGION_BUCKET_DEGREES,
    PriorityOfSaleRegistry,
    compute_priority_hash,
    region_buckets,
)
from tests.helpers.claims import BASE_LNG, SIDE_DEG, InMemoryClaimStore, square

_SOLD_AT = datetime(2025, 2, 14, 10, 30, tzinfo=UTC)
_LOCKED_AT = datetime(2025, 2, 14, 11, 0, tzinfo=UTC)


def _request(
    claim_id: str = "claim-1",
    *,
    polygon: Polygon | None = None,
    grantor: str = "Ravi Kumar",
    indenture: str = "deed-sha256",
    timestamp: datetime = _SOLD_AT,
) -> ProtectClaimRequest:
    return ProtectClaimRequest(
        claim_id=claim_id,
        grantor_name=grantor,
        indenture_hash=indenture,
        polygon=polygon or square(),
        timestamp=timestamp,
    )


def _registry(store: InMemoryClaimStore) -> PriorityOfSaleRegistry:
    return PriorityOfSaleRegistry(store.unit_of_work, clock=lambda: _LOCKED_AT)


def test_priority_hash_is_stable_across_ring_representations() -> None:
    polygon = square()
    reversed_polygon = Polygon(tuple(reversed(polygon.vertices)))
    rotated = Polygon(polygon.vertices[2:] + polygon.vertices[:2])

    expected = compute_priority_hash(_request())

    assert len(expected) == 64
    assert compute_priority_hash(_request(polygon=reversed_polygon)) == expected
    assert compute_priority_hash(_request(polygon=rotated)) == expected


def test_priority_hash_binds_every_input() -> None:
    expected = compute_priority_hash(_request())

    assert compute_priority_hash(_request(indenture="other-deed")) != expected
    assert compute_priority_hash(_request(grantor="Someone Else")) != expected
    assert compute_priority_hash(_request(polygon=square(lat=10.5))) != expected
    assert compute_priority_hash(_request(timestamp=datetime(2025, 2, 15, tzinfo=UTC))) != expected


def test_priority_hash_treats_naive_timestamps_as_utc() -> None:
    naive = _SOLD_AT.replace(tzinfo=None)

    assert compute_priority_hash(_request(timestamp=naive)) == compute_priority_hash(_request())


def test_region_buckets_cover_the_bounding_box() -> None:
    straddling = square(lat=10.0095, lng=76.0005)

    assert len(region_buckets(straddling, 0.01)) == 2


def test_distant_parcels_share_no_buckets() -> None:
    here = region_buckets(square(), 0.01)
    there = region_buckets(square(lat=12.0, lng=78.0), 0.01)

    assert here.isdisjoint(there)


def test_protect_creates_record(claim_store: InMemoryClaimStore) -> None:
    result = _registry(claim_store).protect_claim(_request())

    assert result.outcome is ProtectOutcome.PROTECTED
    assert result.success
    assert result.record is not None
    assert result.record.locked_at == _LOCKED_AT
    assert result.priority_hash == compute_priority_hash(_request())
    assert claim_store.records["claim-1"] == result.record
    assert claim_store.commits == 1


def test_protect_is_idempotent(claim_store: InMemoryClaimStore) -> None:
    registry = _registry(claim_store)

    first = registry.protect_claim(_request())
    second = registry.protect_claim(_request())

    assert second.outcome is ProtectOutcome.ALREADY_PROTECTED
    assert second.success
    assert second.priority_hash == first.priority_hash
    assert claim_store.commits == 1
    assert len(claim_store.records) == 1


def test_overlapping_claim_is_refused(claim_store: InMemoryClaimStore) -> None:
    registry = _registry(claim_store)
    registry.protect_claim(_request("first"))

    result = registry.protect_claim(
        _request("second", polygon=square(lng=BASE_LNG + SIDE_DEG / 2), grantor="Other Seller")
    )

    assert result.outcome is ProtectOutcome.REGION_CONFLICT
    assert not result.success
    assert result.conflicting_claim_id == "first"
    assert result.iou_score is not None
    assert result.iou_score >= 0.30
    assert "second" not in claim_store.records


def test_record_written_on_another_grid_still_blocks(claim_store: InMemoryClaimStore) -> None:
    first = _request("first")
    with claim_store.unit_of_work() as uow:
        records = uow.repositories.priority_records
        records.lock_regions(region_buckets(first.polygon, 0.02))
        records.add(
            PriorityOfSaleRecord(
                claim_id="first",
                priority_hash=compute_priority_hash(first),
                grantor_name=first.grantor_name,
                indenture_hash=first.indenture_hash,
                polygon=first.polygon,
                claimed_at=first.timestamp,
                locked_at=_LOCKED_AT,
            )
        )

    result = _registry(claim_store).protect_claim(_request("second", grantor="Other Seller"))

    assert result.outcome is ProtectOutcome.REGION_CONFLICT
    assert result.conflicting_claim_id == "first"


def test_registry_locks_the_fixed_grid() -> None:
    assert REGION_BUCKET_DEGREES == 0.01
    assert region_buckets(square()) == region_buckets(square(), 0.01)


def test_minor_overlap_does_not_block(claim_store: InMemoryClaimStore) -> None:
    registry = _registry(claim_store)
    registry.protect_claim(_request("first"))

    result = registry.protect_claim(_request("second", polygon=square(lng=BASE_LNG + 0.0008)))

    assert result.outcome is ProtectOutcome.PROTECTED


def test_invalid_polygon_is_reported(claim_store: InMemoryClaimStore) -> None:
    flat = Polygon.from_points([(10.0, 76.0), (10.001, 76.001)])

    result = _registry(claim_store).protect_claim(_request(polygon=flat))

    assert result.outcome is ProtectOutcome.INVALID_POLYGON
    assert result.record is None
    assert "TooFewVertices" in result.message
    assert claim_store.commits == 0
