"""SQLAlchemy table metadata for the claim store.

Domain objects are plain (often frozen) dataclasses, so the store is described
with Core tables and the repositories translate rows explicitly.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Final, cast

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Dialect,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    TypeDecorator,
    UniqueConstraint,
)

from claimshield.domain.model import (
    ConflictStatus,
    Coordinate,
    PipelineStatus,
    Polygon,
    TriggeredBy,
)

CLAIM_ID_LENGTH: Final[int] = 64
STATUS_LENGTH: Final[int] = 32


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


class PolygonType(TypeDecorator[Polygon]):
    """Stores a ring as a JSON list of ``[lat, lng]`` pairs."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: Polygon | None, dialect: Dialect) -> str | None:
        _ = dialect
        if value is None:
            return None
        return json.dumps([[vertex.lat, vertex.lng] for vertex in value.vertices])

    def process_result_value(self, value: str | None, dialect: Dialect) -> Polygon | None:
        _ = dialect
        if value is None:
            return None
        loaded = cast(list[Any], json.loads(value))
        return Polygon(
            vertices=tuple(Coordinate(lat=float(lat), lng=float(lng)) for lat, lng in loaded)
        )


def _enum_values(enum_cls: type[StrEnum]) -> list[str]:
    return [member.value for member in enum_cls]


def _status_enum(enum_cls: type[StrEnum]) -> Enum:
    return Enum(
        enum_cls,
        native_enum=False,
        length=STATUS_LENGTH,
        values_callable=_enum_values,
        validate_strings=True,
    )


metadata = MetaData(
    naming_convention={
        "ix": "ix_%(column_0_label)s",
        "uq": "uq_%(table_name)s_%(column_0_label)s",
        "ck": "ck_%(table_name)s_%(constraint_name)s",
        "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
        "pk": "pk_%(table_name)s",
    }
)

land_claim_table = Table(
    "land_claim",
    metadata,
    Column("claim_id", String(CLAIM_ID_LENGTH), primary_key=True),
    Column("grantor_name", String, nullable=False, index=True),
    Column("polygon", PolygonType, nullable=False),
    Column("status", _status_enum(PipelineStatus), nullable=False),
    Column("priority_hash", String(64), nullable=True),
    Column("created_at", UTCDateTime, nullable=False),
    # bounding box, for the coarse neighbourhood pre-filter
    Column("min_lat", Float, nullable=False),
    Column("min_lng", Float, nullable=False),
    Column("max_lat", Float, nullable=False),
    Column("max_lng", Float, nullable=False),
    Index("ix_land_claim_bbox", "min_lat", "max_lat", "min_lng", "max_lng"),
)

pipeline_transition_table = Table(
    "pipeline_transition",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "claim_id",
        String(CLAIM_ID_LENGTH),
        ForeignKey("land_claim.claim_id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("sequence", Integer, nullable=False),
    Column("from_status", _status_enum(PipelineStatus), nullable=True),
    Column("to_status", _status_enum(PipelineStatus), nullable=False),
    Column("timestamp", UTCDateTime, nullable=False),
    Column("triggered_by", _status_enum(TriggeredBy), nullable=False),
    Column("reason", Text, nullable=False, default=""),
    UniqueConstraint("claim_id", "sequence"),
)

priority_record_table = Table(
    "priority_record",
    metadata,
    Column("claim_id", String(CLAIM_ID_LENGTH), primary_key=True),
    Column("priority_hash", String(64), nullable=False, unique=True),
    Column("grantor_name", String, nullable=False),
    Column("indenture_hash", String, nullable=False),
    Column("polygon", PolygonType, nullable=False),
    Column("claimed_at", UTCDateTime, nullable=False),
    Column("locked_at", UTCDateTime, nullable=False),
    Column("min_lat", Float, nullable=False),
    Column("min_lng", Float, nullable=False),
    Column("max_lat", Float, nullable=False),
    Column("max_lng", Float, nullable=False),
    Index("ix_priority_record_bbox", "min_lat", "max_lat", "min_lng", "max_lng"),
)

# one row per grid cell; writing the row is the neighbourhood lock
region_bucket_table = Table(
    "region_bucket",
    metadata,
    Column("bucket_key", String(64), primary_key=True),
    Column("version", Integer, nullable=False, default=0),
)

review_flag_table = Table(
    "review_flag",
    metadata,
    Column(
        "claim_id",
        String(CLAIM_ID_LENGTH),
        ForeignKey("land_claim.claim_id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("reason", Text, nullable=False),
    Column("conflict_status", _status_enum(ConflictStatus), nullable=False),
    Column("is_litigation_flag", Boolean, nullable=False, default=False),
    Column("flagged_at", UTCDateTime, nullable=False),
)

spatial_conflict_table = Table(
    "spatial_conflict",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "claim_id",
        String(CLAIM_ID_LENGTH),
        ForeignKey("land_claim.claim_id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("conflicting_claim_id", String(CLAIM_ID_LENGTH), nullable=False),
    Column("overlap_area_sqm", Float, nullable=False),
    Column("overlap_percentage", Float, nullable=False),
    Column("iou_score", Float, nullable=False),
    Column("detected_at", UTCDateTime, nullable=False),
    UniqueConstraint("claim_id", "conflicting_claim_id"),
)


__all__ = [
    "PolygonType",
    "UTCDateTime",
    "land_claim_table",
    "metadata",
    "pipeline_transition_table",
    "priority_record_table",
    "region_bucket_table",
    "review_flag_table",
    "spatial_conflict_table",
]
