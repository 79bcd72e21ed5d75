"""Geographic value objects: coordinates and polygon rings."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, cast

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

_WKT_POLYGON = re.compile(r"^\s*(?:SRID=\d+;\s*)?POLYGON\s*\(\(\s*([^()]+?)\s*\)", re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class Coordinate:
    """A WGS84 position in decimal degrees."""

    lat: float
    lng: float

    def in_range(self) -> bool:
        return -90.0 <= self.lat <= 90.0 and -180.0 <= self.lng <= 180.0


@dataclass(frozen=True, slots=True)
class BoundingBox:
    min_lat: float
    min_lng: float
    max_lat: float
    max_lng: float

    def intersects(self, other: BoundingBox) -> bool:
        return not (
            other.min_lat > self.max_lat
            or other.max_lat < self.min_lat
            or other.min_lng > self.max_lng
            or other.max_lng < self.min_lng
        )


@dataclass(frozen=True, slots=True)
class Polygon:
    """Closed ring of coordinates; the last vertex connects back to the first.

    A trailing vertex equal to the first one (GeoJSON/WKT style explicit closure)
    is dropped on construction so every ring has exactly one representation.
    Shape validity is checked by ``claimshield.domain.geometry.validate_polygon``.
    """

    vertices: tuple[Coordinate, ...]

    def __post_init__(self) -> None:
        vertices = tuple(self.vertices)
        if len(vertices) > 1 and vertices[0] == vertices[-1]:
            vertices = vertices[:-1]
        object.__setattr__(self, "vertices", vertices)

    @classmethod
    def from_points(cls, points: Iterable[tuple[float, float]]) -> Polygon:
        """Build a ring from ``(lat, lng)`` pairs."""

        return cls(tuple(Coordinate(lat=float(lat), lng=float(lng)) for lat, lng in points))

    @classmethod
    def from_geojson(cls, geometry: Mapping[str, object]) -> Polygon:
        """Build a ring from the outer ring of a GeoJSON ``Polygon`` (``[lng, lat]`` order)."""

        if geometry.get("type") != "Polygon":
            raise ValueError(f"Unsupported GeoJSON geometry type: {geometry.get('type')!r}")
        rings = geometry.get("coordinates")
        if not isinstance(rings, list) or not rings:
            raise ValueError("GeoJSON polygon has no rings")
        outer = cast("list[Sequence[float]]", rings[0])
        return cls(tuple(Coordinate(lat=float(pos[1]), lng=float(pos[0])) for pos in outer))

    @classmethod
    def from_wkt(cls, text: str) -> Polygon:
        """Parse ``POLYGON((lng lat, ...))``; only the outer ring is read."""

        match = _WKT_POLYGON.match(text)
        if match is None:
            raise ValueError(f"Not a WKT polygon: {text[:40]!r}")
        vertices: list[Coordinate] = []
        for pair in match.group(1).split(","):
            parts = pair.split()
            if len(parts) != 2:  # noqa: PLR2004
                raise ValueError(f"Malformed WKT coordinate: {pair.strip()!r}")
            lng, lat = (float(part) for part in parts)
            vertices.append(Coordinate(lat=lat, lng=lng))
        return cls(tuple(vertices))

    def to_geojson(self) -> dict[str, object]:
        ring = [[vertex.lng, vertex.lat] for vertex in self.vertices]
        if ring:
            ring.append(ring[0])
        return {"type": "Polygon", "coordinates": [ring]}

    def to_wkt(self) -> str:
        ring = [*self.vertices, self.vertices[0]] if self.vertices else []
        body = ", ".join(f"{vertex.lng} {vertex.lat}" for vertex in ring)
        return f"POLYGON(({body}))"

    @property
    def bounding_box(self) -> BoundingBox:
        if not self.vertices:
            raise ValueError("Empty polygon has no bounding box")
        lats = [vertex.lat for vertex in self.vertices]
        lngs = [vertex.lng for vertex in self.vertices]
        return BoundingBox(
            min_lat=min(lats), min_lng=min(lngs), max_lat=max(lats), max_lng=max(lngs)
        )

    def __len__(self) -> int:
        return len(self.vertices)
