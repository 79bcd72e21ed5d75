"""Ports for the host's durable claim store."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from claimshield.domain.model import Claim

if TYPE_CHECKING:
    from collections.abc import Collection, Sequence

    from claimshield.domain.model import (
        BoundingBox,
        PipelineStatus,
        PipelineStatusChange,
        Polygon,
        PriorityOfSaleRecord,
        ReviewFlag,
        SpatialConflictRecord,
    )


@runtime_checkable
class Repository[TEntity](Protocol):
    """Minimal repository contract for a persistent aggregate store."""

    def add(self, entity: TEntity) -> None: ...


@runtime_checkable
class ClaimRepository(Repository[Claim], Protocol):
    """Persistence contract for land claims."""

    def get(self, claim_id: str) -> Claim | None: ...

    def update(self, claim: Claim, *, expected_status: PipelineStatus | None = None) -> bool:
        """Write ``claim`` back; with ``expected_status``, only if the stored status still matches.

        Returns ``False`` when no row was written.
        """
        ...

    def candidates_near(
        self, polygon: Polygon, *, exclude_claim_id: str | None = None
    ) -> Sequence[Claim]:
        """Claims whose bounding box touches ``polygon``'s; a coarse pre-filter only."""
        ...

    def by_grantor(self, grantor_name: str) -> Sequence[Claim]: ...


@runtime_checkable
class PriorityRecordRepository(Protocol):
    """Append-only ledger of priority-of-sale records."""

    def lock_regions(self, bucket_keys: Collection[str]) -> None:
        """Take exclusive write locks on the buckets until the transaction ends."""
        ...

    def get_for_claim(self, claim_id: str) -> PriorityOfSaleRecord | None: ...

    def overlapping(self, box: BoundingBox) -> Sequence[PriorityOfSaleRecord]:
        """Records whose bounding box touches ``box``, oldest first."""
        ...

    def add(self, record: PriorityOfSaleRecord) -> None: ...


@runtime_checkable
class PipelineHistoryRepository(Protocol):
    """Append-only pipeline audit trail."""

    def append(self, claim_id: str, change: PipelineStatusChange) -> None: ...

    def history_for(self, claim_id: str) -> Sequence[PipelineStatusChange]: ...


@runtime_checkable
class ConflictReviewRepository(Protocol):
    """Claims held for human review and the overlaps that put them there."""

    def flag(self, review_flag: ReviewFlag) -> None:
        """Store ``review_flag``, replacing any earlier flag on the same claim."""
        ...

    def flag_for(self, claim_id: str) -> ReviewFlag | None: ...

    def record_conflict(self, conflict: SpatialConflictRecord) -> bool:
        """Store one overlapping pair; ``False`` if the pair is already recorded."""
        ...

    def conflicts_for(self, claim_id: str) -> Sequence[SpatialConflictRecord]: ...
