"""Geometry value types shared by the pipeline stages.

A ``Polygon`` is the outer ring of a GeoJSON polygon; interior rings
(holes) are dropped at extraction time because only the outer boundary
takes part in inside/outside tests.
"""

from __future__ import annotations

from dataclasses import dataclass

Coordinate = tuple[float, float]


@dataclass(frozen=True, slots=True)
class Polygon:
    """A simple polygon in data space.

    Attributes:
        ring: Outer ring as ``(x, y)`` tuples.  The last vertex may or may
            not repeat the first one; rings are never auto-closed here.
        feature_id: ``id`` of the enclosing GeoJSON Feature, if any.
    """

    ring: tuple[Coordinate, ...]
    feature_id: str = ""

    @property
    def is_closed(self) -> bool:
        return len(self.ring) > 1 and self.ring[0] == self.ring[-1]

    def edges(self, *, close: bool = False) -> list[tuple[Coordinate, Coordinate]]:
        """Consecutive vertex pairs; with *close* the last->first edge is added."""
        pairs = list(zip(self.ring, self.ring[1:]))
        if close and len(self.ring) > 2 and not self.is_closed:
            pairs.append((self.ring[-1], self.ring[0]))
        return pairs

    def to_list(self) -> list[list[float]]:
        return [list(c) for c in self.ring]


@dataclass(frozen=True, slots=True)
class BoundingBox:
    """Data-space bounding box over every extracted vertex.

    Invariant: ``min_x <= max_x`` and ``min_y <= max_y``.
    """

    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def span_x(self) -> float:
        return self.max_x - self.min_x

    @property
    def span_y(self) -> float:
        return self.max_y - self.min_y

    def contains(self, coord: Coordinate) -> bool:
        x, y = coord
        return self.min_x <= x <= self.max_x and self.min_y <= y <= self.max_y

    def to_dict(self) -> dict[str, dict[str, float]]:
        """Serialise as ``{"min": {"x", "y"}, "max": {"x", "y"}}``."""
        return {
            "min": {"x": self.min_x, "y": self.min_y},
            "max": {"x": self.max_x, "y": self.max_y},
        }
