"""Human-review queue entries: why a claim was flagged and which overlaps caused it."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime

    from .enums import ConflictStatus


@dataclass(frozen=True, slots=True)
class ReviewFlag:
    """A claim held for a human decision. One per claim; the latest check wins."""

    claim_id: str
    reason: str
    conflict_status: ConflictStatus
    is_litigation_flag: bool
    flagged_at: datetime


@dataclass(frozen=True, slots=True)
class SpatialConflictRecord:
    claim_id: str
    conflicting_claim_id: str
    overlap_area_sqm: float
    overlap_percentage: float
    iou_score: float
    detected_at: datetime


@dataclass(frozen=True, slots=True)
class ClaimReview:
    claim_id: str
    flag: ReviewFlag | None
    conflicts: tuple[SpatialConflictRecord, ...] = ()

    @property
    def requires_review(self) -> bool:
        return self.flag is not None
