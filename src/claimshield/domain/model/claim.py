"""Land claim aggregate and its read-only conflict projection."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import uuid4

from .enums import PipelineStatus

if TYPE_CHECKING:
    from .primitives import Polygon
    from .results import IoUConflictResult


# statuses in which the boundary and the seller of record may still change
_AMENDABLE = frozenset({PipelineStatus.INTAKE_PENDING, PipelineStatus.AI_VERIFIED})


def new_claim_id() -> str:
    return str(uuid4())


class ClaimImmutableError(RuntimeError):
    """Raised when a locked claim's boundary or grantor is changed."""


@dataclass(eq=False, kw_only=True)
class Claim:
    """A claimant's assertion over a parcel, named after its seller of record."""

    claim_id: str = field(default_factory=new_claim_id)
    _grantor_name: str
    _polygon: Polygon
    status: PipelineStatus = PipelineStatus.INTAKE_PENDING
    priority_hash: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))

    @classmethod
    def intake(
        cls,
        *,
        grantor_name: str,
        polygon: Polygon,
        claim_id: str | None = None,
        created_at: datetime | None = None,
    ) -> Claim:
        claim = cls(_grantor_name=grantor_name, _polygon=polygon)
        if claim_id is not None:
            claim.claim_id = claim_id
        if created_at is not None:
            claim.created_at = created_at
        return claim

    @property
    def grantor_name(self) -> str:
        return self._grantor_name

    @property
    def polygon(self) -> Polygon:
        return self._polygon

    @property
    def is_protected(self) -> bool:
        return self.priority_hash is not None

    @property
    def is_amendable(self) -> bool:
        return self.status in _AMENDABLE and not self.is_protected

    def mark_protected(self, priority_hash: str) -> None:
        """Bind the claim to its priority-of-sale record; boundary and grantor freeze."""
        self.priority_hash = priority_hash

    def amend_boundary(self, polygon: Polygon) -> None:
        self._require_amendable("boundary")
        self._polygon = polygon

    def amend_grantor(self, grantor_name: str) -> None:
        self._require_amendable("grantor")
        self._grantor_name = grantor_name

    def _require_amendable(self, what: str) -> None:
        if self.is_protected:
            raise ClaimImmutableError(
                f"Cannot amend {what} of claim {self.claim_id}: priority of sale already recorded"
            )
        if not self.is_amendable:
            raise ClaimImmutableError(
                f"Cannot amend {what} of claim {self.claim_id} in status {self.status}"
            )


@dataclass(frozen=True, slots=True)
class ConflictingClaim:
    """Another claim as seen from the subject claim, with the computed overlap."""

    claim_id: str
    grantor_name: str
    created_at: datetime
    status: PipelineStatus
    overlap_area_sqm: float
    overlap_percentage: float
    iou: IoUConflictResult

    @property
    def iou_score(self) -> float:
        return self.iou.iou_score
