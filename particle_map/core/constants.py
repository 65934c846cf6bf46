"""Shared constants — single source of truth.

Cell status values, configuration defaults and warning codes used by
more than one stage.
"""

from __future__ import annotations

import enum

# ---------------------------------------------------------------------------
# Cell status
# ---------------------------------------------------------------------------


class CellStatus(enum.IntEnum):
    """Classification of a grid cell.

    Values match the integers stored in the grid array and in worker
    snapshots, so they must not be renumbered.
    """

    NOT_VISITED = 0
    INSIDE = 1
    OUTSIDE = 2


# ---------------------------------------------------------------------------
# Configuration defaults
# ---------------------------------------------------------------------------

DEFAULT_PIXEL_RESOLUTION: float = 10.0
"""Grid cell edge length in pixels."""

DEFAULT_COLOR: str = "#dddddd"
"""Flat cell color when no status-specific color applies."""

DEFAULT_FOREGROUND_COLOR: str = "#333"
"""Color of INSIDE cells."""

DEFAULT_OPACITY: float = 1.0

ARC_SIZE_DIVISOR: float = 4.0
"""Default particle radius is ``pixel_resolution / ARC_SIZE_DIVISOR``."""

MIN_EXTENT: float = 1e-9
"""Smallest data-space span used when deriving a scale (degenerate bounds guard)."""

# ---------------------------------------------------------------------------
# Warning codes (recoverable conditions, logged and collected)
# ---------------------------------------------------------------------------

WARN_UNRECOGNIZED_TYPE = "UNRECOGNIZED_GEOMETRY_TYPE"
WARN_EMPTY_FEATURE = "EMPTY_FEATURE"
WARN_INVALID_RING = "INVALID_RING"
WARN_DEGENERATE_BOUNDS = "DEGENERATE_BOUNDS"
