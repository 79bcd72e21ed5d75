"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.dialects import postgresql, sqlite

from claimshield.adapters.sqlalchemy.mappings import (
    land_claim_table,
    pipeline_transition_table,
    priority_record_table,
    region_bucket_table,
    review_flag_table,
    spatial_conflict_table,
)
from claimshield.domain.model import (
    Claim,
    PipelineStatusChange,
    PriorityOfSaleRecord,
    ReviewFlag,
    SpatialConflictRecord,
)

if TYPE_CHECKING:
    from collections.abc import Collection, Sequence

    from sqlalchemy import CursorResult, Row
    from sqlalchemy.orm import Session

    from claimshield.domain.model import (
        BoundingBox,
        PipelineStatus,
        Polygon,
    )


def _claim_values(claim: Claim) -> dict[str, Any]:
    box = claim.polygon.bounding_box
    return {
        "grantor_name": claim.grantor_name,
        "polygon": claim.polygon,
        "status": claim.status,
        "priority_hash": claim.priority_hash,
        "created_at": claim.created_at,
        "min_lat": box.min_lat,
        "min_lng": box.min_lng,
        "max_lat": box.max_lat,
        "max_lng": box.max_lng,
    }


def _claim_from_row(row: Row[Any]) -> Claim:
    claim = Claim.intake(
        grantor_name=row.grantor_name,
        polygon=row.polygon,
        claim_id=row.claim_id,
        created_at=row.created_at,
    )
    claim.status = row.status
    claim.priority_hash = row.priority_hash
    return claim


class SqlAlchemyClaimRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: Claim) -> None:
        self.session.execute(
            insert(land_claim_table).values(claim_id=entity.claim_id, **_claim_values(entity))
        )

    def get(self, claim_id: str) -> Claim | None:
        stmt = select(land_claim_table).where(land_claim_table.c.claim_id == claim_id)
        row = self.session.execute(stmt).one_or_none()
        return _claim_from_row(row) if row is not None else None

    def update(self, claim: Claim, *, expected_status: PipelineStatus | None = None) -> bool:
        stmt = (
            update(land_claim_table)
            .where(land_claim_table.c.claim_id == claim.claim_id)
            .values(**_claim_values(claim))
        )
        if expected_status is not None:
            stmt = stmt.where(land_claim_table.c.status == expected_status)
        result = cast("CursorResult[Any]", self.session.execute(stmt))
        return result.rowcount > 0

    def candidates_near(
        self, polygon: Polygon, *, exclude_claim_id: str | None = None
    ) -> Sequence[Claim]:
        box = polygon.bounding_box
        table = land_claim_table
        stmt = (
            select(table)
            .where(table.c.min_lat <= box.max_lat)
            .where(table.c.max_lat >= box.min_lat)
            .where(table.c.min_lng <= box.max_lng)
            .where(table.c.max_lng >= box.min_lng)
            .order_by(table.c.created_at)
        )
        if exclude_claim_id is not None:
            stmt = stmt.where(table.c.claim_id != exclude_claim_id)
        return [_claim_from_row(row) for row in self.session.execute(stmt)]

    def by_grantor(self, grantor_name: str) -> Sequence[Claim]:
        stmt = (
            select(land_claim_table)
            .where(land_claim_table.c.grantor_name == grantor_name)
            .order_by(land_claim_table.c.created_at)
        )
        return [_claim_from_row(row) for row in self.session.execute(stmt)]


def _record_from_row(row: Row[Any]) -> PriorityOfSaleRecord:
    return PriorityOfSaleRecord(
        claim_id=row.claim_id,
        priority_hash=row.priority_hash,
        grantor_name=row.grantor_name,
        indenture_hash=row.indenture_hash,
        polygon=row.polygon,
        claimed_at=row.claimed_at,
        locked_at=row.locked_at,
    )


class SqlAlchemyPriorityRecordRepository:
    """Priority-of-sale ledger; rows are inserted once and never updated."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def lock_regions(self, bucket_keys: Collection[str]) -> None:
        keys = sorted(bucket_keys)
        if not keys:
            return
        self._ensure_buckets(keys)
        # the write holds the row (sqlite: database) lock until commit or rollback
        self.session.execute(
            update(region_bucket_table)
            .where(region_bucket_table.c.bucket_key.in_(keys))
            .values(version=region_bucket_table.c.version + 1)
        )

    def _ensure_buckets(self, keys: list[str]) -> None:
        rows = [{"bucket_key": key, "version": 0} for key in keys]
        dialect = self.session.get_bind().dialect.name
        if dialect == "sqlite":
            stmt = sqlite.insert(region_bucket_table).on_conflict_do_nothing(
                index_elements=["bucket_key"]
            )
            self.session.execute(stmt, rows)
            return
        if dialect == "postgresql":
            stmt = postgresql.insert(region_bucket_table).on_conflict_do_nothing(
                index_elements=["bucket_key"]
            )
            self.session.execute(stmt, rows)
            return
        existing = set(
            self.session.execute(
                select(region_bucket_table.c.bucket_key).where(
                    region_bucket_table.c.bucket_key.in_(keys)
                )
            ).scalars()
        )
        missing = [row for row in rows if row["bucket_key"] not in existing]
        if missing:
            self.session.execute(insert(region_bucket_table), missing)

    def get_for_claim(self, claim_id: str) -> PriorityOfSaleRecord | None:
        stmt = select(priority_record_table).where(priority_record_table.c.claim_id == claim_id)
        row = self.session.execute(stmt).one_or_none()
        return _record_from_row(row) if row is not None else None

    def overlapping(self, box: BoundingBox) -> Sequence[PriorityOfSaleRecord]:
        table = priority_record_table
        stmt = (
            select(table)
            .where(table.c.min_lat <= box.max_lat)
            .where(table.c.max_lat >= box.min_lat)
            .where(table.c.min_lng <= box.max_lng)
            .where(table.c.max_lng >= box.min_lng)
            .order_by(table.c.claimed_at)
        )
        return [_record_from_row(row) for row in self.session.execute(stmt)]

    def add(self, record: PriorityOfSaleRecord) -> None:
        box = record.polygon.bounding_box
        self.session.execute(
            insert(priority_record_table).values(
                claim_id=record.claim_id,
                priority_hash=record.priority_hash,
                grantor_name=record.grantor_name,
                indenture_hash=record.indenture_hash,
                polygon=record.polygon,
                claimed_at=record.claimed_at,
                locked_at=record.locked_at,
                min_lat=box.min_lat,
                min_lng=box.min_lng,
                max_lat=box.max_lat,
                max_lng=box.max_lng,
            )
        )


class SqlAlchemyPipelineHistoryRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def append(self, claim_id: str, change: PipelineStatusChange) -> None:
        table = pipeline_transition_table
        current = self.session.execute(
            select(func.max(table.c.sequence)).where(table.c.claim_id == claim_id)
        ).scalar_one_or_none()
        self.session.execute(
            insert(table).values(
                claim_id=claim_id,
                sequence=(current or 0) + 1,
                from_status=change.from_status,
                to_status=change.to_status,
                timestamp=change.timestamp,
                triggered_by=change.triggered_by,
                reason=change.reason,
            )
        )

    def history_for(self, claim_id: str) -> Sequence[PipelineStatusChange]:
        table = pipeline_transition_table
        stmt = select(table).where(table.c.claim_id == claim_id).order_by(table.c.sequence)
        return [
            PipelineStatusChange(
                from_status=row.from_status,
                to_status=row.to_status,
                timestamp=row.timestamp,
                triggered_by=row.triggered_by,
                reason=row.reason,
            )
            for row in self.session.execute(stmt)
        ]


class SqlAlchemyConflictReviewRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def flag(self, review_flag: ReviewFlag) -> None:
        table = review_flag_table
        self.session.execute(delete(table).where(table.c.claim_id == review_flag.claim_id))
        self.session.execute(
            insert(table).values(
                claim_id=review_flag.claim_id,
                reason=review_flag.reason,
                conflict_status=review_flag.conflict_status,
                is_litigation_flag=review_flag.is_litigation_flag,
                flagged_at=review_flag.flagged_at,
            )
        )

    def flag_for(self, claim_id: str) -> ReviewFlag | None:
        stmt = select(review_flag_table).where(review_flag_table.c.claim_id == claim_id)
        row = self.session.execute(stmt).one_or_none()
        if row is None:
            return None
        return ReviewFlag(
            claim_id=row.claim_id,
            reason=row.reason,
            conflict_status=row.conflict_status,
            is_litigation_flag=row.is_litigation_flag,
            flagged_at=row.flagged_at,
        )

    def record_conflict(self, conflict: SpatialConflictRecord) -> bool:
        table = spatial_conflict_table
        existing = self.session.execute(
            select(table.c.id)
            .where(table.c.claim_id == conflict.claim_id)
            .where(table.c.conflicting_claim_id == conflict.conflicting_claim_id)
        ).first()
        if existing is not None:
            return False
        self.session.execute(
            insert(table).values(
                claim_id=conflict.claim_id,
                conflicting_claim_id=conflict.conflicting_claim_id,
                overlap_area_sqm=conflict.overlap_area_sqm,
                overlap_percentage=conflict.overlap_percentage,
                iou_score=conflict.iou_score,
                detected_at=conflict.detected_at,
            )
        )
        return True

    def conflicts_for(self, claim_id: str) -> Sequence[SpatialConflictRecord]:
        table = spatial_conflict_table
        stmt = select(table).where(table.c.claim_id == claim_id).order_by(table.c.id)
        return [
            SpatialConflictRecord(
                claim_id=row.claim_id,
                conflicting_claim_id=row.conflicting_claim_id,
                overlap_area_sqm=row.overlap_area_sqm,
                overlap_percentage=row.overlap_percentage,
                iou_score=row.iou_score,
                detected_at=row.detected_at,
            )
            for row in self.session.execute(stmt)
        ]
