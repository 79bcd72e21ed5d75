from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

import pytest

from claimshield.app import (
    advance_claim,
    check_claim,
    classify_conflict,
    get_claim_review,
    get_pipeline_state,
    intake_claim,
    profile_grantor,
    protect_claim,
)
from claimshield.domain.geometry import GeometryError, centroid
from claimshield.domain.model import (
    ClaimImmutableError,
    ConflictStatus,
    PipelineStatus,
    Polygon,
    ProtectOutcome,
    Recommendation,
    RiskLevel,
    TriggeredBy,
)
from claimshield.domain.pipeline import ClaimNotFoundError, InvalidTransitionError
from claimshield.domain.review import SPATIAL_OVERLAP_REASON
from tests.helpers.claims import BASE_LNG, SIDE_DEG, FakeSatellite, square, verdict

if TYPE_CHECKING:
    from collections.abc import Callable

    from claimshield.adapters.sqlalchemy.unit_of_work import SqlAlchemyClaimUnitOfWork

    UowFactory = Callable[[], SqlAlchemyClaimUnitOfWork]

_SOLD_AT = datetime(2025, 2, 14, 10, 30, tzinfo=UTC)


def _intake(
    factory: UowFactory, claim_id: str, polygon: Polygon, grantor: str = "Ravi Kumar"
) -> None:
    intake_claim(
        grantor_name=grantor,
        polygon=polygon,
        claim_id=claim_id,
        created_at=datetime(2025, 3, 1, 9, tzinfo=UTC),
        unit_of_work_factory=factory,
    )


def test_intake_stores_pending_claim_with_history(sqlite_unit_of_work: UowFactory) -> None:
    _intake(sqlite_unit_of_work, "claim-1", square())

    state = get_pipeline_state("claim-1", unit_of_work_factory=sqlite_unit_of_work)

    assert state.status is PipelineStatus.INTAKE_PENDING
    (entry,) = state.status_history
    assert entry.from_status is None
    assert entry.to_status is PipelineStatus.INTAKE_PENDING
    assert entry.triggered_by is TriggeredBy.USER
    assert not state.is_protected


def test_intake_rejects_invalid_polygon(sqlite_unit_of_work: UowFactory) -> None:
    flat = Polygon.from_points([(10.0, 76.0), (10.001, 76.001)])

    with pytest.raises(GeometryError):
        _intake(sqlite_unit_of_work, "claim-1", flat)

    with pytest.raises(ClaimNotFoundError):
        get_pipeline_state("claim-1", unit_of_work_factory=sqlite_unit_of_work)


def test_classify_conflict_uses_stored_neighbours(sqlite_unit_of_work: UowFactory) -> None:
    _intake(sqlite_unit_of_work, "first", square())
    _intake(sqlite_unit_of_work, "second", square(lng=BASE_LNG + SIDE_DEG / 2), "Other Seller")
    _intake(sqlite_unit_of_work, "distant", square(lat=12.0, lng=78.0))

    result = classify_conflict("second", unit_of_work_factory=sqlite_unit_of_work)

    assert result.status is ConflictStatus.HIGH_RISK
    assert [c.claim_id for c in result.conflicting_claims] == ["first"]


def test_check_claim_queries_satellite_at_centroid(sqlite_unit_of_work: UowFactory) -> None:
    polygon = square()
    _intake(sqlite_unit_of_work, "claim-1", polygon)
    satellite = FakeSatellite(verdict(water_body_detected=True))

    result = check_claim(
        "claim-1", satellite=satellite, unit_of_work_factory=sqlite_unit_of_work
    )

    point = centroid(polygon)
    assert satellite.calls == [(point.lat, point.lng)]
    assert result.conflict.status is ConflictStatus.POTENTIAL_DISPUTE
    assert result.grantor_history is not None
    assert result.grantor_history.risk_level is RiskLevel.LOW
    assert result.recommendation is Recommendation.REVIEW


def test_check_claim_for_unknown_claim(sqlite_unit_of_work: UowFactory) -> None:
    with pytest.raises(ClaimNotFoundError):
        check_claim("missing", unit_of_work_factory=sqlite_unit_of_work)


def test_profile_grantor_counts_disputes(sqlite_unit_of_work: UowFactory) -> None:
    _intake(sqlite_unit_of_work, "a", square())
    _intake(sqlite_unit_of_work, "b", square(lat=11.0))
    advance_claim(
        "b",
        PipelineStatus.DISPUTED,
        reason="Counter-claim filed",
        unit_of_work_factory=sqlite_unit_of_work,
    )

    history = profile_grantor("Ravi Kumar", unit_of_work_factory=sqlite_unit_of_work)

    assert history.total_claims == 2
    assert history.disputed_claims == 1
    assert history.risk_level is RiskLevel.HIGH
    assert not history.is_red_flag


def test_protect_verified_claim_locks_it(sqlite_unit_of_work: UowFactory) -> None:
    _intake(sqlite_unit_of_work, "claim-1", square())
    advance_claim(
        "claim-1",
        PipelineStatus.AI_VERIFIED,
        triggered_by=TriggeredBy.SYSTEM,
        unit_of_work_factory=sqlite_unit_of_work,
    )

    result = protect_claim(
        "claim-1",
        indenture_hash="deed-1",
        timestamp=_SOLD_AT,
        unit_of_work_factory=sqlite_unit_of_work,
    )

    assert result.outcome is ProtectOutcome.PROTECTED
    state = get_pipeline_state("claim-1", unit_of_work_factory=sqlite_unit_of_work)
    assert state.status is PipelineStatus.SPATIAL_LOCKED
    assert state.priority_hash == result.priority_hash
    assert state.spatial_lock_timestamp is not None
    assert [entry.to_status for entry in state.status_history] == [
        PipelineStatus.INTAKE_PENDING,
        PipelineStatus.AI_VERIFIED,
        PipelineStatus.SPATIAL_LOCKED,
    ]


def test_protect_pending_claim_keeps_status(sqlite_unit_of_work: UowFactory) -> None:
    _intake(sqlite_unit_of_work, "claim-1", square())

    result = protect_claim(
        "claim-1",
        indenture_hash="deed-1",
        timestamp=_SOLD_AT,
        unit_of_work_factory=sqlite_unit_of_work,
    )

    state = get_pipeline_state("claim-1", unit_of_work_factory=sqlite_unit_of_work)
    assert result.success
    assert state.status is PipelineStatus.INTAKE_PENDING
    assert state.is_protected


def test_second_overlapping_protection_is_refused(sqlite_unit_of_work: UowFactory) -> None:
    _intake(sqlite_unit_of_work, "first", square())
    _intake(sqlite_unit_of_work, "second", square(lng=BASE_LNG + SIDE_DEG / 2), "Other Seller")
    protect_claim("first", indenture_hash="deed-1", unit_of_work_factory=sqlite_unit_of_work)

    result = protect_claim(
        "second", indenture_hash="deed-2", unit_of_work_factory=sqlite_unit_of_work
    )

    assert result.outcome is ProtectOutcome.REGION_CONFLICT
    assert result.conflicting_claim_id == "first"


def test_spatial_lock_without_record_is_refused(sqlite_unit_of_work: UowFactory) -> None:
    _intake(sqlite_unit_of_work, "claim-1", square())
    advance_claim(
        "claim-1", PipelineStatus.AI_VERIFIED, unit_of_work_factory=sqlite_unit_of_work
    )

    with pytest.raises(InvalidTransitionError):
        advance_claim(
            "claim-1", PipelineStatus.SPATIAL_LOCKED, unit_of_work_factory=sqlite_unit_of_work
        )

    state = get_pipeline_state("claim-1", unit_of_work_factory=sqlite_unit_of_work)
    assert state.status is PipelineStatus.AI_VERIFIED


def test_protected_pending_claim_is_frozen(sqlite_unit_of_work: UowFactory) -> None:
    _intake(sqlite_unit_of_work, "claim-1", square())
    result = protect_claim(
        "claim-1",
        indenture_hash="deed-1",
        timestamp=_SOLD_AT,
        unit_of_work_factory=sqlite_unit_of_work,
    )

    with sqlite_unit_of_work() as uow:
        stored = uow.repositories.claims.get("claim-1")

    assert stored is not None
    assert stored.priority_hash == result.priority_hash
    assert not stored.is_amendable
    with pytest.raises(ClaimImmutableError):
        stored.amend_boundary(square(lat=11.0))


def test_check_claim_queues_overlap_for_review(sqlite_unit_of_work: UowFactory) -> None:
    _intake(sqlite_unit_of_work, "first", square())
    _intake(sqlite_unit_of_work, "second", square(lng=BASE_LNG + SIDE_DEG / 2), "Other Seller")

    result = check_claim("second", unit_of_work_factory=sqlite_unit_of_work)
    check_claim("second", unit_of_work_factory=sqlite_unit_of_work)

    assert result.conflict.requires_hitl
    queued = get_claim_review("second", unit_of_work_factory=sqlite_unit_of_work)
    assert queued.requires_review
    assert queued.flag is not None
    assert queued.flag.reason == SPATIAL_OVERLAP_REASON
    assert queued.flag.conflict_status is ConflictStatus.HIGH_RISK
    assert queued.flag.is_litigation_flag
    (conflict,) = queued.conflicts
    assert conflict.conflicting_claim_id == "first"
    assert conflict.overlap_percentage == pytest.approx(50.0, abs=1.0)


def test_clean_check_leaves_review_queue_empty(sqlite_unit_of_work: UowFactory) -> None:
    _intake(sqlite_unit_of_work, "claim-1", square())

    check_claim("claim-1", unit_of_work_factory=sqlite_unit_of_work)

    queued = get_claim_review("claim-1", unit_of_work_factory=sqlite_unit_of_work)
    assert not queued.requires_review
    assert queued.conflicts == ()


def test_refused_protection_marks_claim_disputed(sqlite_unit_of_work: UowFactory) -> None:
    _intake(sqlite_unit_of_work, "first", square())
    _intake(sqlite_unit_of_work, "second", square(lng=BASE_LNG + SIDE_DEG / 2), "Other Seller")
    protect_claim("first", indenture_hash="deed-1", unit_of_work_factory=sqlite_unit_of_work)

    protect_claim("second", indenture_hash="deed-2", unit_of_work_factory=sqlite_unit_of_work)

    queued = get_claim_review("second", unit_of_work_factory=sqlite_unit_of_work)
    assert queued.flag is not None
    assert queued.flag.is_litigation_flag
    assert "(first)" in queued.flag.reason
    assert [c.conflicting_claim_id for c in queued.conflicts] == ["first"]
    state = get_pipeline_state("second", unit_of_work_factory=sqlite_unit_of_work)
    assert not state.is_protected
