"""Geometry kernel: pure polygon math over WGS84 parcels.

Every function here is deterministic and side-effect free; identical inputs give
identical outputs so verdicts can be replayed during an audit.

Projection and its limits
-------------------------
Areas are computed in a local equirectangular plane centred on the vertex
centroid. The plane is WGS84-aware: northings use the meridional radius of
curvature ``M`` and eastings the prime-vertical radius ``N`` at the centroid
latitude, so the ellipsoid's flattening (up to ~0.7 % difference between the
two radii) is accounted for. The remaining error is the curvature of the
parallels across the parcel: first-order terms cancel for a ring around its
own centroid, leaving a relative area error of roughly ``(span / R)^2 *
tan^2(lat)``. That is below 0.1 % for spans up to 10 km under 70° latitude.
Polygons whose projected bounding box diagonal exceeds ``MAX_PARCEL_SPAN_M``
are rejected by ``validate_polygon``; use a geodesic library for anything at
that scale.

Pairwise operations (intersection, union, IoU) project both rings into one
shared plane centred on their combined vertices, so the three areas of an IoU
come from the same frame and the score is consistent with them.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Final

from shapely.geometry import GeometryCollection, MultiPolygon
from shapely.geometry import Polygon as PlanarPolygon
from shapely.validation import explain_validity

from claimshield.config.policy import DEFAULT_POLICY
from claimshield.domain.model import (
    AlertType,
    Coordinate,
    IoUConflictResult,
    Polygon,
    Severity,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

    from shapely.geometry.base import BaseGeometry

    from claimshield.config.policy import PolicyConfig

WGS84_SEMI_MAJOR_AXIS_M: Final[float] = 6_378_137.0
WGS84_FLATTENING: Final[float] = 1 / 298.257223563
WGS84_ECCENTRICITY_SQ: Final[float] = WGS84_FLATTENING * (2 - WGS84_FLATTENING)

MAX_PARCEL_SPAN_M: Final[float] = 50_000.0
MIN_PARCEL_AREA_SQM: Final[float] = 1e-3


class GeometryErrorKind(StrEnum):
    TOO_FEW_VERTICES = "TooFewVertices"
    OUT_OF_RANGE = "OutOfRange"
    DEGENERATE_AREA = "DegenerateArea"
    SELF_INTERSECTING = "SelfIntersecting"
    EXCEEDS_PARCEL_SCALE = "ExceedsParcelScale"


class GeometryError(ValueError):
    """Raised when a polygon cannot describe a parcel."""

    def __init__(self, kind: GeometryErrorKind, message: str) -> None:
        super().__init__(f"{kind}: {message}")
        self.kind = kind


@dataclass(frozen=True, slots=True)
class OverlapContext:
    """Who claimed each side of a pair, and when; drives double-sale escalation."""

    subject_grantor: str
    other_grantor: str
    subject_created_at: datetime
    other_created_at: datetime


def _wrap_degrees(value: float) -> float:
    return ((value + 180.0) % 360.0) - 180.0


@dataclass(frozen=True, slots=True)
class _LocalPlane:
    origin_lat: float
    origin_lng: float
    metres_per_rad_lat: float
    metres_per_rad_lng: float

    @classmethod
    def around(cls, vertices: Sequence[Coordinate]) -> _LocalPlane:
        ref_lng = vertices[0].lng
        origin_lat = math.fsum(v.lat for v in vertices) / len(vertices)
        lng_offset = math.fsum(_wrap_degrees(v.lng - ref_lng) for v in vertices) / len(vertices)
        origin_lng = _wrap_degrees(ref_lng + lng_offset)

        phi = math.radians(origin_lat)
        denom = 1.0 - WGS84_ECCENTRICITY_SQ * math.sin(phi) ** 2
        meridional = WGS84_SEMI_MAJOR_AXIS_M * (1.0 - WGS84_ECCENTRICITY_SQ) / denom**1.5
        prime_vertical = WGS84_SEMI_MAJOR_AXIS_M / math.sqrt(denom)
        return cls(
            origin_lat=origin_lat,
            origin_lng=origin_lng,
            metres_per_rad_lat=meridional,
            metres_per_rad_lng=prime_vertical * math.cos(phi),
        )

    def project(self, vertex: Coordinate) -> tuple[float, float]:
        dlng = _wrap_degrees(vertex.lng - self.origin_lng)
        x = self.metres_per_rad_lng * math.radians(dlng)
        y = self.metres_per_rad_lat * math.radians(vertex.lat - self.origin_lat)
        return x, y

    def unproject(self, x: float, y: float) -> Coordinate:
        lat = self.origin_lat + math.degrees(y / self.metres_per_rad_lat)
        lng = _wrap_degrees(self.origin_lng + math.degrees(x / self.metres_per_rad_lng))
        return Coordinate(lat=lat, lng=lng)

    def project_ring(self, polygon: Polygon) -> list[tuple[float, float]]:
        return [self.project(vertex) for vertex in polygon.vertices]

    def to_planar(self, polygon: Polygon) -> PlanarPolygon:
        return PlanarPolygon(self.project_ring(polygon))

    def to_polygon(self, planar: PlanarPolygon) -> Polygon:
        return Polygon(tuple(self.unproject(x, y) for x, y in planar.exterior.coords))


def _shoelace(points: Sequence[tuple[float, float]]) -> float:
    """Signed area of a planar ring; positive when counter-clockwise."""

    n = len(points)
    total = math.fsum(
        points[i][0] * points[(i + 1) % n][1] - points[(i + 1) % n][0] * points[i][1]
        for i in range(n)
    )
    return total / 2.0


def validate_polygon(polygon: Polygon) -> Polygon:
    """Return ``polygon`` unchanged if it describes a parcel, else raise ``GeometryError``."""

    if len(polygon.vertices) < 3:  # noqa: PLR2004
        raise GeometryError(
            GeometryErrorKind.TOO_FEW_VERTICES,
            f"polygon needs at least 3 vertices, got {len(polygon.vertices)}",
        )
    for index, vertex in enumerate(polygon.vertices):
        if not vertex.in_range():
            raise GeometryError(
                GeometryErrorKind.OUT_OF_RANGE,
                f"vertex {index} ({vertex.lat}, {vertex.lng}) is outside WGS84 bounds",
            )

    plane = _LocalPlane.around(polygon.vertices)
    points = plane.project_ring(polygon)
    xs = [x for x, _ in points]
    ys = [y for _, y in points]
    span = math.hypot(max(xs) - min(xs), max(ys) - min(ys))
    if span > MAX_PARCEL_SPAN_M:
        raise GeometryError(
            GeometryErrorKind.EXCEEDS_PARCEL_SCALE,
            f"polygon spans {span:.0f} m, above the {MAX_PARCEL_SPAN_M:.0f} m parcel limit",
        )

    if abs(_shoelace(points)) < MIN_PARCEL_AREA_SQM:
        raise GeometryError(GeometryErrorKind.DEGENERATE_AREA, "polygon encloses no area")

    planar = PlanarPolygon(points)
    if not planar.is_valid:
        raise GeometryError(GeometryErrorKind.SELF_INTERSECTING, explain_validity(planar))

    return polygon


def area(polygon: Polygon) -> float:
    """Area in square metres (see the module docstring for the error bound)."""

    plane = _LocalPlane.around(polygon.vertices)
    return abs(_shoelace(plane.project_ring(polygon)))


def centroid(polygon: Polygon) -> Coordinate:
    """Vertex centroid; good enough to address a parcel for point lookups."""

    plane = _LocalPlane.around(polygon.vertices)
    return Coordinate(lat=plane.origin_lat, lng=plane.origin_lng)


def canonical_ring(polygon: Polygon) -> tuple[Coordinate, ...]:
    """Counter-clockwise ring starting at its smallest ``(lat, lng)`` vertex.

    Two rings describing the same boundary (any start vertex, either winding)
    canonicalise to the same tuple.
    """

    vertices = list(polygon.vertices)
    if not vertices:
        return ()
    plane = _LocalPlane.around(vertices)
    if _shoelace(plane.project_ring(polygon)) < 0:
        vertices.reverse()
    start = min(range(len(vertices)), key=lambda i: (vertices[i].lat, vertices[i].lng))
    return tuple(vertices[start:] + vertices[:start])


def _shared_plane(a: Polygon, b: Polygon) -> tuple[_LocalPlane, PlanarPolygon, PlanarPolygon]:
    plane = _LocalPlane.around((*a.vertices, *b.vertices))
    return plane, plane.to_planar(a), plane.to_planar(b)


def _polygonal_parts(geometry: BaseGeometry) -> list[PlanarPolygon]:
    if isinstance(geometry, PlanarPolygon):
        return [] if geometry.is_empty else [geometry]
    if isinstance(geometry, (MultiPolygon, GeometryCollection)):
        parts: list[PlanarPolygon] = []
        for member in geometry.geoms:
            parts.extend(_polygonal_parts(member))
        return parts
    return []


def intersection_parts(a: Polygon, b: Polygon) -> tuple[Polygon, ...]:
    """Every piece of ``a ∩ b`` with positive area, largest first."""

    plane, planar_a, planar_b = _shared_plane(a, b)
    if not planar_a.intersects(planar_b):
        return ()
    parts = [
        part
        for part in _polygonal_parts(planar_a.intersection(planar_b))
        if part.area >= MIN_PARCEL_AREA_SQM
    ]
    parts.sort(key=lambda part: part.area, reverse=True)
    return tuple(plane.to_polygon(part) for part in parts)


def intersect(a: Polygon, b: Polygon) -> Polygon | None:
    """Overlap region of two parcels, or ``None`` when they share no area.

    Concave parcels can overlap in several disjoint pieces; the largest one is
    returned here and ``intersection_parts`` exposes all of them.
    """

    parts = intersection_parts(a, b)
    return parts[0] if parts else None


def union(a: Polygon, b: Polygon) -> tuple[Polygon, ...]:
    """Outer boundaries of ``a ∪ b``: one ring when they overlap, two when disjoint."""

    plane, planar_a, planar_b = _shared_plane(a, b)
    parts = _polygonal_parts(planar_a.union(planar_b))
    parts.sort(key=lambda part: part.area, reverse=True)
    return tuple(plane.to_polygon(part) for part in parts)


def union_area(a: Polygon, b: Polygon) -> float:
    _, planar_a, planar_b = _shared_plane(a, b)
    return planar_a.union(planar_b).area


def classify_severity(iou_score: float, *, policy: PolicyConfig = DEFAULT_POLICY) -> Severity:
    if iou_score >= policy.iou_critical_threshold:
        return Severity.CRITICAL
    if iou_score >= policy.iou_warning_threshold:
        return Severity.WARNING
    return Severity.NONE


def classify_alert(
    severity: Severity,
    context: OverlapContext | None,
    *,
    policy: PolicyConfig = DEFAULT_POLICY,
) -> AlertType:
    if severity is Severity.NONE:
        return AlertType.NONE
    if severity is Severity.WARNING:
        return AlertType.OVERLAP_WARNING
    if context is None:
        return AlertType.CRITICAL_CONFLICT
    if context.subject_grantor == context.other_grantor:
        # an owner subdividing their own land
        return AlertType.OVERLAP_WARNING
    gap = abs(context.subject_created_at - context.other_created_at)
    if gap <= policy.double_sale_window:
        return AlertType.DOUBLE_SALE_SUSPECTED
    return AlertType.CRITICAL_CONFLICT


def iou(
    a: Polygon,
    b: Polygon,
    *,
    context: OverlapContext | None = None,
    policy: PolicyConfig = DEFAULT_POLICY,
) -> IoUConflictResult:
    """Intersection-over-union of two validated parcels, with its risk grading."""

    _, planar_a, planar_b = _shared_plane(a, b)
    area_a = planar_a.area
    area_b = planar_b.area

    if planar_a.equals(planar_b):
        intersection_area = area_a
        union_sqm = area_a
        score = 1.0
    else:
        intersection_area = 0.0
        if planar_a.intersects(planar_b):
            intersection_area = planar_a.intersection(planar_b).area
        if intersection_area < MIN_PARCEL_AREA_SQM:
            intersection_area = 0.0
        union_sqm = area_a + area_b - intersection_area
        score = intersection_area / union_sqm if union_sqm > 0 else 0.0
        score = min(max(score, 0.0), 1.0)

    severity = classify_severity(score, policy=policy)
    return IoUConflictResult(
        iou_score=score,
        intersection_area_sqm=intersection_area,
        union_area_sqm=union_sqm,
        claim_area_sqm=area_a,
        conflicting_claim_area_sqm=area_b,
        severity=severity,
        alert_type=classify_alert(severity, context, policy=policy),
    )


__all__ = [
    "MAX_PARCEL_SPAN_M",
    "MIN_PARCEL_AREA_SQM",
    "GeometryError",
    "GeometryErrorKind",
    "OverlapContext",
    "area",
    "canonical_ring",
    "centroid",
    "classify_alert",
    "classify_severity",
    "intersect",
    "intersection_parts",
    "iou",
    "union",
    "union_area",
    "validate_polygon",
]
