"""Point-in-polygon classification stage.

Each unvisited cell center is mapped back to data space and tested with
the even-odd (ray casting) rule against every edge of every polygon.
All polygons form one aggregate boundary: a point crossed an odd number
of times is INSIDE regardless of which polygon the crossings belong to.

Cost is ``O(cells x edges)``.  There is no spatial index; the edge scan
is vectorised over all cells with numpy, one pass per edge.

Open rings (last vertex != first vertex) are not closed unless
``close_rings`` is set, so the implicit closing edge is skipped by
default.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import numpy as np

from particle_map.core.constants import CellStatus
from particle_map.models.geometry import Coordinate, Polygon
from particle_map.stages.grid import Grid
from particle_map.stages.transform import Transform

logger = logging.getLogger("particle_map.stages.classify")


def classify(
    grid: Grid,
    transform: Transform,
    polygons: Sequence[Polygon],
    *,
    close_rings: bool = False,
) -> Grid:
    """Classify every ``NOT_VISITED`` cell as INSIDE or OUTSIDE.

    Returns a new grid; *grid* itself is left untouched.
    """
    result = grid.copy()
    pending = result.indices_with(CellStatus.NOT_VISITED)
    if pending.size == 0:
        return result

    sx, sy = result.cell_centers()
    x, y = transform.to_data_arrays(sx[pending], sy[pending])

    inside = np.zeros(pending.size, dtype=bool)
    edge_count = 0
    with np.errstate(divide="ignore", invalid="ignore"):
        for polygon in polygons:
            for (x1, y1), (x2, y2) in polygon.edges(close=close_rings):
                crosses = ((y1 < y) & (y2 >= y)) | ((y2 < y) & (y1 >= y))
                x_intersect = x1 + (y - y1) / (y2 - y1) * (x2 - x1)
                inside ^= crosses & (x_intersect < x)
                edge_count += 1

    result.cells[pending] = np.where(inside, CellStatus.INSIDE, CellStatus.OUTSIDE)

    inside_count = int(np.count_nonzero(inside))
    logger.info(
        "Grid classified | cells=%d | edges=%d | inside=%d | outside=%d",
        pending.size,
        edge_count,
        inside_count,
        pending.size - inside_count,
    )
    return result


def point_in_polygons(
    point: Coordinate,
    polygons: Sequence[Polygon],
    *,
    close_rings: bool = False,
) -> bool:
    """Even-odd test of a single data-space point against all polygons."""
    x, y = point
    inside = False
    for polygon in polygons:
        for (x1, y1), (x2, y2) in polygon.edges(close=close_rings):
            if (y1 < y and y2 >= y) or (y2 < y and y1 >= y):
                if x1 + (y - y1) / (y2 - y1) * (x2 - x1) < x:
                    inside = not inside
    return inside
