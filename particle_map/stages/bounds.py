"""Bounding box stage.

Reduces every outer-ring vertex to a data-space bounding box.  No
antimeridian handling: longitudes are treated as plain numbers.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from particle_map.core.exceptions import EmptyGeometryError
from particle_map.models.geometry import BoundingBox, Polygon

logger = logging.getLogger("particle_map.stages.bounds")


def compute_bounds(polygons: Sequence[Polygon]) -> BoundingBox:
    """Compute the bounding box of all polygon outer rings.

    Raises:
        EmptyGeometryError: If there are no polygons or every ring is empty.
    """
    xs = [x for polygon in polygons for x, _ in polygon.ring]
    ys = [y for polygon in polygons for _, y in polygon.ring]
    if not xs:
        msg = (
            f"Empty geometry  --  no polygon vertices to bound "
            f"({len(polygons)} polygon(s) extracted)"
        )
        raise EmptyGeometryError(msg)

    bounds = BoundingBox(min_x=min(xs), min_y=min(ys), max_x=max(xs), max_y=max(ys))
    logger.info(
        "Bounds computed | min=(%.6f, %.6f) | max=(%.6f, %.6f) | vertices=%d",
        bounds.min_x,
        bounds.min_y,
        bounds.max_x,
        bounds.max_y,
        len(xs),
    )
    return bounds
