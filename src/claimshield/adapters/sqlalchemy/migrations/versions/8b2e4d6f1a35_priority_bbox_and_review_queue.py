"""priority record bounding boxes and review queue

Revision ID: 8b2e4d6f1a35
Revises: 3f1c2a9b7d10
Create Date: 2026-10-16 09:41:07.000000
"""

from __future__ import annotations

import json

import sqlalchemy as sa
from alembic import op

revision = "8b2e4d6f1a35"
down_revision = "3f1c2a9b7d10"
branch_labels = None
depends_on = None

_BBOX_COLUMNS = ("min_lat", "min_lng", "max_lat", "max_lng")


def _backfill_priority_bbox() -> None:
    records = sa.table(
        "priority_record",
        sa.column("claim_id", sa.String),
        sa.column("polygon", sa.Text),
        *(sa.column(name, sa.Float) for name in _BBOX_COLUMNS),
    )
    connection = op.get_bind()
    rows = connection.execute(sa.select(records.c.claim_id, records.c.polygon)).all()
    for claim_id, polygon in rows:
        ring = json.loads(polygon)
        lats = [float(lat) for lat, _ in ring]
        lngs = [float(lng) for _, lng in ring]
        connection.execute(
            sa.update(records)
            .where(records.c.claim_id == claim_id)
            .values(min_lat=min(lats), min_lng=min(lngs), max_lat=max(lats), max_lng=max(lngs))
        )


def upgrade() -> None:
    for name in _BBOX_COLUMNS:
        op.add_column("priority_record", sa.Column(name, sa.Float(), nullable=True))
    _backfill_priority_bbox()
    with op.batch_alter_table("priority_record") as batch_op:
        for name in _BBOX_COLUMNS:
            batch_op.alter_column(name, existing_type=sa.Float(), nullable=False)
        batch_op.create_index(
            "ix_priority_record_bbox", ["min_lat", "max_lat", "min_lng", "max_lng"], unique=False
        )

    # records are now found by bounding box; bucket rows remain as locks only
    op.drop_table("priority_region")

    op.create_table(
        "review_flag",
        sa.Column("claim_id", sa.String(length=64), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("conflict_status", sa.String(length=32), nullable=False),
        sa.Column("is_litigation_flag", sa.Boolean(), nullable=False),
        sa.Column("flagged_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["claim_id"],
            ["land_claim.claim_id"],
            name=op.f("fk_review_flag_claim_id_land_claim"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("claim_id", name=op.f("pk_review_flag")),
    )

    op.create_table(
        "spatial_conflict",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("claim_id", sa.String(length=64), nullable=False),
        sa.Column("conflicting_claim_id", sa.String(length=64), nullable=False),
        sa.Column("overlap_area_sqm", sa.Float(), nullable=False),
        sa.Column("overlap_percentage", sa.Float(), nullable=False),
        sa.Column("iou_score", sa.Float(), nullable=False),
        sa.Column("detected_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["claim_id"],
            ["land_claim.claim_id"],
            name=op.f("fk_spatial_conflict_claim_id_land_claim"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_spatial_conflict")),
        sa.UniqueConstraint(
            "claim_id", "conflicting_claim_id", name=op.f("uq_spatial_conflict_claim_id")
        ),
    )


def downgrade() -> None:
    op.drop_table("spatial_conflict")
    op.drop_table("review_flag")

    # bucket membership is not rebuilt; the restored table starts empty
    op.create_table(
        "priority_region",
        sa.Column("bucket_key", sa.String(length=64), nullable=False),
        sa.Column("claim_id", sa.String(length=64), nullable=False),
        sa.ForeignKeyConstraint(
            ["claim_id"],
            ["priority_record.claim_id"],
            name=op.f("fk_priority_region_claim_id_priority_record"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("bucket_key", "claim_id", name=op.f("pk_priority_region")),
    )

    with op.batch_alter_table("priority_record") as batch_op:
        batch_op.drop_index("ix_priority_record_bbox")
        for name in _BBOX_COLUMNS:
            batch_op.drop_column(name)
