"""Polygon extraction stage.

Walks a GeoJSON-like document and flattens it into a tuple of simple
polygons (outer rings only).

Supported node types:
- ``Polygon``            — ring 0 becomes one polygon
- ``MultiPolygon``       — one polygon per member
- ``GeometryCollection`` — recurse into ``geometries``
- ``Feature``            — recurse into ``geometry``
- ``FeatureCollection``  — recurse into ``features``

Anything else is logged as a warning and skipped; extraction carries on
with the remaining nodes.  A polygon-like node without ``coordinates``
is a hard error.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from particle_map.core.constants import (
    WARN_EMPTY_FEATURE,
    WARN_INVALID_RING,
    WARN_UNRECOGNIZED_TYPE,
)
from particle_map.core.exceptions import MalformedGeometryError
from particle_map.models.geometry import Coordinate, Polygon

logger = logging.getLogger("particle_map.stages.extract")


def extract_polygons(
    document: Mapping[str, Any],
    *,
    exclude_feature_ids: Iterable[str] = (),
    validate_geometry: bool = False,
    warnings: list[str] | None = None,
) -> tuple[Polygon, ...]:
    """Flatten *document* into its polygons' outer rings.

    Args:
        document: Deserialised GeoJSON object.
        exclude_feature_ids: Features whose ``id`` is listed are skipped.
        validate_geometry: Check each ring with shapely and warn about
            invalid rings (they are kept as-is).
        warnings: Optional list collecting one message per recoverable
            condition.

    Returns:
        Polygons in document order.

    Raises:
        MalformedGeometryError: If a ``Polygon``/``MultiPolygon`` node has
            no ``coordinates``, a vertex is not a numeric pair, or a
            collection's ``geometries``/``features`` is not an array.
    """
    walker = _Walker(
        excluded=frozenset(str(i) for i in exclude_feature_ids),
        warnings=warnings if warnings is not None else [],
    )
    walker.visit(document, feature_id="")

    polygons = tuple(walker.polygons)
    if validate_geometry:
        for index, polygon in enumerate(polygons):
            _check_ring(polygon, index, walker.warnings)

    logger.info(
        "Polygons extracted | polygons=%d | vertices=%d | skipped=%d",
        len(polygons),
        sum(len(p.ring) for p in polygons),
        walker.skipped,
    )
    return polygons


class _Walker:
    """Recursive visitor accumulating polygons and warnings."""

    def __init__(self, *, excluded: frozenset[str], warnings: list[str]) -> None:
        self.excluded = excluded
        self.warnings = warnings
        self.polygons: list[Polygon] = []
        self.skipped = 0

    def visit(self, node: object, *, feature_id: str) -> None:
        if not isinstance(node, Mapping):
            self._warn(WARN_UNRECOGNIZED_TYPE, f"not a GeoJSON object: {type(node).__name__}")
            return

        node_type = node.get("type")
        if node_type == "Polygon":
            self._add_polygon(_require_coordinates(node), feature_id)
        elif node_type == "MultiPolygon":
            for member in _require_coordinates(node):
                self._add_polygon(member, feature_id)
        elif node_type == "GeometryCollection":
            for child in _members(node, "geometries"):
                self.visit(child, feature_id=feature_id)
        elif node_type == "Feature":
            fid = "" if node.get("id") is None else str(node.get("id"))
            if fid and fid in self.excluded:
                logger.debug("Feature excluded | id=%s", fid)
                self.skipped += 1
                return
            geometry = node.get("geometry")
            if geometry is None:
                self._warn(WARN_EMPTY_FEATURE, f"feature {fid or '<no id>'} has no geometry")
                return
            self.visit(geometry, feature_id=fid)
        elif node_type == "FeatureCollection":
            for feature in _members(node, "features"):
                self.visit(feature, feature_id=feature_id)
        else:
            self._warn(WARN_UNRECOGNIZED_TYPE, f"unsupported type {node_type!r}")

    def _add_polygon(self, rings: object, feature_id: str) -> None:
        if not isinstance(rings, list | tuple) or not rings:
            self._warn(WARN_EMPTY_FEATURE, f"polygon without rings in {feature_id or '<no id>'}")
            return
        self.polygons.append(Polygon(ring=_to_ring(rings[0]), feature_id=feature_id))

    def _warn(self, code: str, detail: str) -> None:
        message = f"{code}: {detail}"
        logger.warning("Skipping geometry node | %s", message)
        self.warnings.append(message)
        self.skipped += 1


def _require_coordinates(node: Mapping[str, Any]) -> list[Any]:
    coordinates = node.get("coordinates")
    if coordinates is None:
        msg = f"Cannot find coordinates in {node.get('type')} object"
        raise MalformedGeometryError(msg)
    if not isinstance(coordinates, list | tuple):
        msg = f"{node.get('type')} coordinates must be an array, got {type(coordinates).__name__}"
        raise MalformedGeometryError(msg)
    return list(coordinates)


def _members(node: Mapping[str, Any], key: str) -> list[Any]:
    """Child list of a collection node; a missing or null list is empty."""
    members = node.get(key)
    if members is None:
        return []
    if not isinstance(members, list | tuple):
        msg = f"{node.get('type')} {key} must be an array, got {type(members).__name__}"
        raise MalformedGeometryError(msg)
    return list(members)


def _to_ring(raw_ring: object) -> tuple[Coordinate, ...]:
    """Convert a GeoJSON position array to ``(x, y)`` tuples, dropping altitude."""
    if not isinstance(raw_ring, list | tuple):
        msg = f"Ring must be an array of positions, got {type(raw_ring).__name__}"
        raise MalformedGeometryError(msg)
    ring: list[Coordinate] = []
    for idx, position in enumerate(raw_ring):
        if not isinstance(position, list | tuple) or len(position) < 2:
            msg = f"Malformed position at index {idx}: {position!r}"
            raise MalformedGeometryError(msg)
        try:
            ring.append((float(position[0]), float(position[1])))
        except (TypeError, ValueError) as exc:
            msg = f"Malformed position at index {idx}: cannot convert {position!r} to float"
            raise MalformedGeometryError(msg) from exc
    return tuple(ring)


def _check_ring(polygon: Polygon, index: int, warnings: list[str]) -> None:
    """Warn when shapely considers the ring invalid.  The ring is not repaired."""
    from shapely.geometry import Polygon as ShapelyPolygon

    try:
        valid = ShapelyPolygon(polygon.ring).is_valid
        reason = "" if valid else "self-intersecting or degenerate"
    except Exception as exc:
        valid = False
        reason = str(exc)

    if not valid:
        message = f"{WARN_INVALID_RING}: polygon {index} ({polygon.feature_id or '<no id>'}) {reason}"
        logger.warning("Invalid ring kept as-is | %s", message)
        warnings.append(message)
