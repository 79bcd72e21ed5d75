"""Reusable builders and in-memory fakes for claim tests."""

from __future__ import annotations

from copy import copy
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Literal

from claimshield.domain.model import (
    Claim,
    PipelineStatus,
    PipelineStatusChange,
    Polygon,
    PriorityOfSaleRecord,
    ReviewFlag,
    SatelliteGeofenceResult,
    SpatialConflictRecord,
)
from claimshield.domain.ports.unit_of_work import ClaimRepositories

if TYPE_CHECKING:
    from collections.abc import Collection, Sequence
    from types import TracebackType

    from claimshield.domain.model import BoundingBox, SatelliteVerdict

BASE_LAT = 10.0
BASE_LNG = 76.0
SIDE_DEG = 0.001


def square(
    lat: float = BASE_LAT,
    lng: float = BASE_LNG,
    side: float = SIDE_DEG,
) -> Polygon:
    """Axis-aligned square with its south-west corner at ``(lat, lng)``."""

    return Polygon.from_points(
        [(lat, lng), (lat, lng + side), (lat + side, lng + side), (lat + side, lng)]
    )


def make_claim(
    claim_id: str,
    *,
    grantor: str = "Ravi Kumar",
    polygon: Polygon | None = None,
    status: PipelineStatus = PipelineStatus.INTAKE_PENDING,
    created_at: datetime | None = None,
) -> Claim:
    claim = Claim.intake(
        grantor_name=grantor,
        polygon=polygon or square(),
        claim_id=claim_id,
        created_at=created_at or datetime(2025, 3, 1, 9, tzinfo=UTC),
    )
    claim.status = status
    return claim


def verdict(
    *,
    is_valid: bool = True,
    confidence_score: float = 0.92,
    water_body_detected: bool = False,
    protected_area_detected: bool = False,
) -> SatelliteGeofenceResult:
    base = SatelliteGeofenceResult(is_valid=True, land_exists=True, confidence_score=0.92)
    return replace(
        base,
        is_valid=is_valid,
        confidence_score=confidence_score,
        water_body_detected=water_body_detected,
        protected_area_detected=protected_area_detected,
    )


@dataclass
class FakeSatellite:
    """Satellite provider returning a fixed verdict and recording every lookup."""

    result: SatelliteVerdict
    calls: list[tuple[float, float]] = field(default_factory=list[tuple[float, float]])

    def get_verdict(self, lat: float, lng: float) -> SatelliteVerdict:
        self.calls.append((lat, lng))
        return self.result


class FakeClaimRepository:
    """Hands out copies, like rows read back from a database."""

    def __init__(self, claims: dict[str, Claim]) -> None:
        self._claims = claims

    def add(self, entity: Claim) -> None:
        self._claims[entity.claim_id] = copy(entity)

    def get(self, claim_id: str) -> Claim | None:
        stored = self._claims.get(claim_id)
        return copy(stored) if stored is not None else None

    def update(self, claim: Claim, *, expected_status: PipelineStatus | None = None) -> bool:
        stored = self._claims.get(claim.claim_id)
        if stored is None:
            return False
        if expected_status is not None and stored.status is not expected_status:
            return False
        self._claims[claim.claim_id] = copy(claim)
        return True

    def candidates_near(
        self, polygon: Polygon, *, exclude_claim_id: str | None = None
    ) -> Sequence[Claim]:
        box = polygon.bounding_box
        return [
            copy(claim)
            for claim in self._claims.values()
            if claim.claim_id != exclude_claim_id and box.intersects(claim.polygon.bounding_box)
        ]

    def by_grantor(self, grantor_name: str) -> Sequence[Claim]:
        return [
            copy(claim) for claim in self._claims.values() if claim.grantor_name == grantor_name
        ]


class FakePriorityRecordRepository:
    def __init__(self, records: dict[str, PriorityOfSaleRecord]) -> None:
        self._records = records
        self.locked: list[frozenset[str]] = []

    def lock_regions(self, bucket_keys: Collection[str]) -> None:
        self.locked.append(frozenset(bucket_keys))

    def get_for_claim(self, claim_id: str) -> PriorityOfSaleRecord | None:
        return self._records.get(claim_id)

    def overlapping(self, box: BoundingBox) -> Sequence[PriorityOfSaleRecord]:
        hits = [r for r in self._records.values() if box.intersects(r.polygon.bounding_box)]
        return sorted(hits, key=lambda record: record.claimed_at)

    def add(self, record: PriorityOfSaleRecord) -> None:
        self._records[record.claim_id] = record


class FakePipelineHistoryRepository:
    def __init__(self, history: dict[str, list[PipelineStatusChange]]) -> None:
        self._history = history

    def append(self, claim_id: str, change: PipelineStatusChange) -> None:
        self._history.setdefault(claim_id, []).append(change)

    def history_for(self, claim_id: str) -> Sequence[PipelineStatusChange]:
        return list(self._history.get(claim_id, []))


class FakeConflictReviewRepository:
    def __init__(
        self,
        flags: dict[str, ReviewFlag],
        conflicts: list[SpatialConflictRecord],
    ) -> None:
        self._flags = flags
        self._conflicts = conflicts

    def flag(self, review_flag: ReviewFlag) -> None:
        self._flags[review_flag.claim_id] = review_flag

    def flag_for(self, claim_id: str) -> ReviewFlag | None:
        return self._flags.get(claim_id)

    def record_conflict(self, conflict: SpatialConflictRecord) -> bool:
        pair = (conflict.claim_id, conflict.conflicting_claim_id)
        if any((c.claim_id, c.conflicting_claim_id) == pair for c in self._conflicts):
            return False
        self._conflicts.append(conflict)
        return True

    def conflicts_for(self, claim_id: str) -> Sequence[SpatialConflictRecord]:
        return [c for c in self._conflicts if c.claim_id == claim_id]


@dataclass
class InMemoryClaimStore:
    """State shared by every fake unit of work built from it."""

    claims: dict[str, Claim] = field(default_factory=dict[str, Claim])
    records: dict[str, PriorityOfSaleRecord] = field(
        default_factory=dict[str, PriorityOfSaleRecord]
    )
    history: dict[str, list[PipelineStatusChange]] = field(
        default_factory=dict[str, list[PipelineStatusChange]]
    )
    review_flags: dict[str, ReviewFlag] = field(default_factory=dict[str, ReviewFlag])
    conflicts: list[SpatialConflictRecord] = field(default_factory=list[SpatialConflictRecord])
    commits: int = 0

    def unit_of_work(self) -> FakeClaimUnitOfWork:
        return FakeClaimUnitOfWork(self)


class FakeClaimUnitOfWork:
    """Writes go straight into the store; ``commit`` only counts."""

    def __init__(self, store: InMemoryClaimStore) -> None:
        self.store = store
        self._repositories = ClaimRepositories(
            claims=FakeClaimRepository(store.claims),
            priority_records=FakePriorityRecordRepository(store.records),
            pipeline_history=FakePipelineHistoryRepository(store.history),
            conflict_reviews=FakeConflictReviewRepository(store.review_flags, store.conflicts),
        )

    @property
    def repositories(self) -> ClaimRepositories:
        return self._repositories

    def __enter__(self) -> FakeClaimUnitOfWork:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        return False

    def commit(self) -> None:
        self.store.commits += 1

    def rollback(self) -> None:
        return None
