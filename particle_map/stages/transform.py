"""Data-space <-> screen-space transform stage.

Derives a linear scale (and centering offset) mapping the data bounding
box onto the viewport.  No projection: data coordinates are treated as
planar.

Sign convention
---------------
``to_screen`` keeps the browser build's X formula verbatim,
``x' = (min_x - x) * scale_x * -1 + offset_x``.  Screen Y grows downward
while data Y grows upward, so with ``flip_y`` (the default)
``y' = (max_y - y) * scale_y + offset_y`` and ``to_data`` applies the
matching ``y = max_y - (y' - offset_y) / scale_y``.  The two mappings are
exact inverses of each other.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from particle_map.core.constants import MIN_EXTENT, WARN_DEGENERATE_BOUNDS
from particle_map.models.geometry import BoundingBox, Coordinate

logger = logging.getLogger("particle_map.stages.transform")


@dataclass(frozen=True, slots=True)
class Transform:
    """Affine mapping between data coordinates and screen pixels.

    Attributes:
        bounds: Data bounding box the transform was derived from.
        scale_x: Pixels per data unit on X.
        scale_y: Pixels per data unit on Y.
        offset_x: Centering padding on X, in pixels.
        offset_y: Centering padding on Y, in pixels.
        flip_y: Whether screen Y runs opposite to data Y.
    """

    bounds: BoundingBox
    scale_x: float
    scale_y: float
    offset_x: float = 0.0
    offset_y: float = 0.0
    flip_y: bool = True

    def to_screen(self, coord: Coordinate) -> Coordinate:
        """Map a data coordinate to screen pixels."""
        x, y = coord
        sx = (self.bounds.min_x - x) * self.scale_x * -1 + self.offset_x
        if self.flip_y:
            sy = (self.bounds.max_y - y) * self.scale_y + self.offset_y
        else:
            sy = (y - self.bounds.min_y) * self.scale_y + self.offset_y
        return (sx, sy)

    def to_data(self, coord: Coordinate) -> Coordinate:
        """Map screen pixels back to a data coordinate."""
        sx, sy = coord
        x = (sx - self.offset_x) / self.scale_x + self.bounds.min_x
        descaled_y = (sy - self.offset_y) / self.scale_y
        y = self.bounds.max_y - descaled_y if self.flip_y else self.bounds.min_y + descaled_y
        return (x, y)

    def to_data_arrays(
        self, sx: np.ndarray, sy: np.ndarray
    ) -> tuple[np.ndarray, np.ndarray]:
        """Vectorised ``to_data`` over arrays of screen coordinates."""
        x = (sx - self.offset_x) / self.scale_x + self.bounds.min_x
        descaled_y = (sy - self.offset_y) / self.scale_y
        y = self.bounds.max_y - descaled_y if self.flip_y else self.bounds.min_y + descaled_y
        return x, y

    def to_dict(self) -> dict[str, float | bool]:
        return {
            "scale_x": self.scale_x,
            "scale_y": self.scale_y,
            "offset_x": self.offset_x,
            "offset_y": self.offset_y,
            "flip_y": self.flip_y,
        }


def compute_transform(
    bounds: BoundingBox,
    width: float,
    height: float,
    *,
    preserve_aspect: bool = True,
    flip_y: bool = True,
    warnings: list[str] | None = None,
) -> Transform:
    """Fit *bounds* into a ``width`` x ``height`` viewport.

    With *preserve_aspect* the smaller of the two raw scales is used for
    both axes and the other axis is centered with half the leftover
    viewport extent as offset.  A zero-width or zero-height box is
    clamped to ``MIN_EXTENT`` so scales stay finite.
    """
    span_x = _clamped_span("x", bounds.span_x, warnings)
    span_y = _clamped_span("y", bounds.span_y, warnings)

    scale_x = abs(width / span_x)
    scale_y = abs(height / span_y)
    offset_x = 0.0
    offset_y = 0.0

    if preserve_aspect:
        if scale_y > scale_x:
            offset_y = (height - span_y * scale_x) / 2
            scale_y = scale_x
        else:
            offset_x = (width - span_x * scale_y) / 2
            scale_x = scale_y

    transform = Transform(
        bounds=bounds,
        scale_x=scale_x,
        scale_y=scale_y,
        offset_x=offset_x,
        offset_y=offset_y,
        flip_y=flip_y,
    )
    logger.info(
        "Transform computed | viewport=%gx%g | scale=(%g, %g) | offset=(%g, %g) | aspect=%s",
        width,
        height,
        scale_x,
        scale_y,
        offset_x,
        offset_y,
        "preserved" if preserve_aspect else "stretched",
    )
    return transform


def _clamped_span(axis: str, span: float, warnings: list[str] | None) -> float:
    if abs(span) >= MIN_EXTENT:
        return span
    message = f"{WARN_DEGENERATE_BOUNDS}: {axis} extent {span!r} clamped to {MIN_EXTENT}"
    logger.warning("Degenerate bounds | %s", message)
    if warnings is not None:
        warnings.append(message)
    return MIN_EXTENT
