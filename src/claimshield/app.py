"""Application orchestration entry points."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from claimshield.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyClaimUnitOfWork,
    is_started,
    startup,
)
from claimshield.config.policy import DEFAULT_POLICY
from claimshield.domain import classification, grantor_risk, pipeline, review
from claimshield.domain.assessment import assess_spatial_risk
from claimshield.domain.geometry import centroid, validate_polygon
from claimshield.domain.model import (
    Claim,
    ClaimReview,
    PipelineStatus,
    ProtectClaimRequest,
    TriggeredBy,
)
from claimshield.domain.pipeline import ClaimNotFoundError
from claimshield.domain.ports.unit_of_work import ClaimUnitOfWork
from claimshield.domain.priority import PriorityOfSaleRegistry

if TYPE_CHECKING:
    from claimshield.config.policy import PolicyConfig
    from claimshield.domain.grantor_risk import GrantorProfiler
    from claimshield.domain.model import (
        ClaimPipelineState,
        GrantorHistoryResult,
        Polygon,
        PriorityOfSaleRecord,
        ProtectClaimResult,
        SatelliteVerdict,
        SpatialCheckResult,
        SpatialConflictResult,
    )
    from claimshield.domain.ports import SatelliteVerdictProvider

UnitOfWorkFactory = Callable[[], ClaimUnitOfWork]


log = getLogger(__name__)


def _resolve_uow(unit_of_work_factory: UnitOfWorkFactory | None) -> UnitOfWorkFactory:
    if unit_of_work_factory is not None:
        return unit_of_work_factory
    if not is_started():
        startup()
    return SqlAlchemyClaimUnitOfWork


def _load_claim(uow: ClaimUnitOfWork, claim_id: str) -> Claim:
    claim = uow.repositories.claims.get(claim_id)
    if claim is None:
        raise ClaimNotFoundError(claim_id)
    return claim


def intake_claim(
    *,
    grantor_name: str,
    polygon: Polygon,
    claim_id: str | None = None,
    created_at: datetime | None = None,
    triggered_by: TriggeredBy = TriggeredBy.USER,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> Claim:
    """Validate and store a new claim in ``INTAKE_PENDING``."""

    validate_polygon(polygon)
    claim = Claim.intake(
        grantor_name=grantor_name,
        polygon=polygon,
        claim_id=claim_id,
        created_at=created_at,
    )
    with _resolve_uow(unit_of_work_factory)() as uow:
        pipeline.register_claim(uow, claim, triggered_by=triggered_by)
        uow.commit()
    log.info("Claim %s received from grantor %s", claim.claim_id, claim.grantor_name)
    return claim


def _satellite_verdict(
    satellite: SatelliteVerdictProvider | None, polygon: Polygon
) -> SatelliteVerdict | None:
    if satellite is None:
        return None
    point = centroid(polygon)
    return satellite.get_verdict(point.lat, point.lng)


def classify_conflict(
    claim_id: str,
    *,
    satellite: SatelliteVerdictProvider | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    policy: PolicyConfig = DEFAULT_POLICY,
) -> SpatialConflictResult:
    """Grade a stored claim against its stored neighbours."""

    with _resolve_uow(unit_of_work_factory)() as uow:
        claim = _load_claim(uow, claim_id)
        candidates = uow.repositories.claims.candidates_near(
            claim.polygon, exclude_claim_id=claim.claim_id
        )
    verdict = _satellite_verdict(satellite, claim.polygon)
    return classification.classify_conflict(claim, candidates, verdict, policy=policy)


def profile_grantor(
    grantor_name: str,
    *,
    profiler: GrantorProfiler | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    policy: PolicyConfig = DEFAULT_POLICY,
) -> GrantorHistoryResult:
    with _resolve_uow(unit_of_work_factory)() as uow:
        claims = uow.repositories.claims
        if profiler is not None:
            return profiler.profile(grantor_name, claims)
        return grantor_risk.profile_grantor(
            grantor_name, claims.by_grantor(grantor_name), policy=policy
        )


def check_claim(
    claim_id: str,
    *,
    satellite: SatelliteVerdictProvider | None = None,
    profiler: GrantorProfiler | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    policy: PolicyConfig = DEFAULT_POLICY,
) -> SpatialCheckResult:
    """Full spatial check: geometry, satellite and seller history in one verdict."""

    uow_factory = _resolve_uow(unit_of_work_factory)
    with uow_factory() as uow:
        claim = _load_claim(uow, claim_id)
        candidates = uow.repositories.claims.candidates_near(
            claim.polygon, exclude_claim_id=claim.claim_id
        )
    verdict = _satellite_verdict(satellite, claim.polygon)
    conflict = classification.classify_conflict(claim, candidates, verdict, policy=policy)
    history = profile_grantor(
        claim.grantor_name,
        profiler=profiler,
        unit_of_work_factory=uow_factory,
        policy=policy,
    )
    result = assess_spatial_risk(claim.claim_id, conflict, verdict, history, policy=policy)
    if conflict.requires_hitl:
        with uow_factory() as uow:
            review.flag_for_review(uow, claim.claim_id, conflict)
            uow.commit()
    log.info(
        "Spatial check for claim %s: %s, score %s, %s",
        claim.claim_id,
        conflict.status,
        result.overall_risk_score,
        result.recommendation,
    )
    return result


def protect_claim(
    claim_id: str,
    *,
    indenture_hash: str,
    timestamp: datetime | None = None,
    triggered_by: TriggeredBy = TriggeredBy.SYSTEM,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    policy: PolicyConfig = DEFAULT_POLICY,
) -> ProtectClaimResult:
    """Record priority of sale for a stored claim.

    On success the stored claim is bound to its record and can no longer be
    amended; a claim already in ``AI_VERIFIED`` moves on to ``SPATIAL_LOCKED``.
    A claim refused because another claim holds its ground is flagged for review.
    """

    uow_factory = _resolve_uow(unit_of_work_factory)
    with uow_factory() as uow:
        claim = _load_claim(uow, claim_id)

    request = ProtectClaimRequest(
        claim_id=claim.claim_id,
        grantor_name=claim.grantor_name,
        indenture_hash=indenture_hash,
        polygon=claim.polygon,
        timestamp=timestamp or datetime.now(UTC),
    )
    result = PriorityOfSaleRegistry(uow_factory, policy=policy).protect_claim(request)

    if result.record is not None:
        with uow_factory() as uow:
            _bind_to_record(uow, claim.claim_id, result.record, triggered_by=triggered_by)
            uow.commit()
    elif result.conflicting_claim_id is not None:
        with uow_factory() as uow:
            holder = _record_holder(uow, result.conflicting_claim_id)
            if holder is not None:
                graded = classification.grade_candidate(claim, holder, policy=policy)
                review.flag_as_disputed(uow, claim.claim_id, graded)
                uow.commit()
    return result


def _bind_to_record(
    uow: ClaimUnitOfWork,
    claim_id: str,
    record: PriorityOfSaleRecord,
    *,
    triggered_by: TriggeredBy,
) -> None:
    claim = _load_claim(uow, claim_id)
    if claim.status is PipelineStatus.AI_VERIFIED:
        pipeline.transition(
            uow,
            claim_id,
            PipelineStatus.SPATIAL_LOCKED,
            triggered_by=triggered_by,
            reason=f"Priority of sale recorded ({record.priority_hash})",
        )
        return
    status = claim.status
    claim.mark_protected(record.priority_hash)
    if not uow.repositories.claims.update(claim, expected_status=status):
        log.warning("Claim %s changed while binding it to its priority record", claim_id)


def _record_holder(uow: ClaimUnitOfWork, claim_id: str) -> Claim | None:
    holder = uow.repositories.claims.get(claim_id)
    if holder is not None:
        return holder
    record = uow.repositories.priority_records.get_for_claim(claim_id)
    if record is None:
        return None
    return Claim.intake(
        grantor_name=record.grantor_name,
        polygon=record.polygon,
        claim_id=record.claim_id,
        created_at=record.claimed_at,
    )


def advance_claim(
    claim_id: str,
    to_status: PipelineStatus,
    *,
    triggered_by: TriggeredBy = TriggeredBy.SYSTEM,
    reason: str = "",
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> ClaimPipelineState:
    with _resolve_uow(unit_of_work_factory)() as uow:
        state = pipeline.transition(
            uow, claim_id, to_status, triggered_by=triggered_by, reason=reason
        )
        uow.commit()
    return state


def get_pipeline_state(
    claim_id: str,
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> ClaimPipelineState:
    with _resolve_uow(unit_of_work_factory)() as uow:
        return pipeline.pipeline_state(uow, claim_id)


def get_claim_review(
    claim_id: str,
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> ClaimReview:
    """The review flag on a claim, if any, with the conflict records behind it."""

    with _resolve_uow(unit_of_work_factory)() as uow:
        claim = _load_claim(uow, claim_id)
        reviews = uow.repositories.conflict_reviews
        return ClaimReview(
            claim_id=claim.claim_id,
            flag=reviews.flag_for(claim.claim_id),
            conflicts=tuple(reviews.conflicts_for(claim.claim_id)),
        )
