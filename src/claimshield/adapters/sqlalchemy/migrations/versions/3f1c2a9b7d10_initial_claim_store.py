"""initial claim store

Revision ID: 3f1c2a9b7d10
Revises:
Create Date: 2026-09-28 10:12:44.000000
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "3f1c2a9b7d10"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "land_claim",
        sa.Column("claim_id", sa.String(length=64), nullable=False),
        sa.Column("grantor_name", sa.String(), nullable=False),
        sa.Column("polygon", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("priority_hash", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("min_lat", sa.Float(), nullable=False),
        sa.Column("min_lng", sa.Float(), nullable=False),
        sa.Column("max_lat", sa.Float(), nullable=False),
        sa.Column("max_lng", sa.Float(), nullable=False),
        sa.PrimaryKeyConstraint("claim_id", name=op.f("pk_land_claim")),
    )
    op.create_index(
        op.f("ix_land_claim_grantor_name"), "land_claim", ["grantor_name"], unique=False
    )
    op.create_index(
        "ix_land_claim_bbox",
        "land_claim",
        ["min_lat", "max_lat", "min_lng", "max_lng"],
        unique=False,
    )

    op.create_table(
        "pipeline_transition",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("claim_id", sa.String(length=64), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("from_status", sa.String(length=32), nullable=True),
        sa.Column("to_status", sa.String(length=32), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("triggered_by", sa.String(length=32), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.ForeignKeyConstraint(
            ["claim_id"],
            ["land_claim.claim_id"],
            name=op.f("fk_pipeline_transition_claim_id_land_claim"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_pipeline_transition")),
        sa.UniqueConstraint(
            "claim_id", "sequence", name=op.f("uq_pipeline_transition_claim_id")
        ),
    )

    op.create_table(
        "priority_record",
        sa.Column("claim_id", sa.String(length=64), nullable=False),
        sa.Column("priority_hash", sa.String(length=64), nullable=False),
        sa.Column("grantor_name", sa.String(), nullable=False),
        sa.Column("indenture_hash", sa.String(), nullable=False),
        sa.Column("polygon", sa.Text(), nullable=False),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("locked_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("claim_id", name=op.f("pk_priority_record")),
        sa.UniqueConstraint("priority_hash", name=op.f("uq_priority_record_priority_hash")),
    )

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

    op.create_table(
        "region_bucket",
        sa.Column("bucket_key", sa.String(length=64), nullable=False),
        sa.Column("version", sa.Integer(), server_default="0", nullable=False),
        sa.PrimaryKeyConstraint("bucket_key", name=op.f("pk_region_bucket")),
    )


def downgrade() -> None:
    op.drop_table("region_bucket")
    op.drop_table("priority_region")
    op.drop_table("priority_record")
    op.drop_table("pipeline_transition")
    op.drop_index("ix_land_claim_bbox", table_name="land_claim")
    op.drop_index(op.f("ix_land_claim_grantor_name"), table_name="land_claim")
    op.drop_table("land_claim")
