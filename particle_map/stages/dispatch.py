"""Render dispatch stage.

Walks a classified grid and hands each cell to a drawing backend.  The
optional ``draw_point_func`` from the configuration sees every cell
first and may:

- return a bool (numpy bools too) -> the cell is not drawn here (the
  callback draws it itself or hides it);
- return a mapping              -> merged over the status-based options;
- return ``None``               -> status-based options are used.

Status-based options: ``foreground_color`` for INSIDE cells,
``background_color`` for OUTSIDE cells, the default color otherwise.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import NamedTuple

import numpy as np

from particle_map.core.config import ConfigurationError, DrawOptions, ParticleMapConfig
from particle_map.core.constants import CellStatus
from particle_map.models.geometry import Coordinate
from particle_map.stages.grid import Grid

logger = logging.getLogger("particle_map.stages.dispatch")


class CellDraw(NamedTuple):
    """One cell handed to a drawing backend."""

    screen_coord: Coordinate
    index: int
    status: CellStatus


DrawFunc = Callable[[CellDraw, DrawOptions], None]


def status_options(status: CellStatus, config: ParticleMapConfig) -> DrawOptions:
    """Default draw options for a cell of the given status."""
    base = config.draw_options
    assert base is not None
    if status == CellStatus.INSIDE and config.foreground_color:
        return base.merged({"color": config.foreground_color})
    if status == CellStatus.OUTSIDE and config.background_color:
        return base.merged({"color": config.background_color})
    return base


def dispatch(grid: Grid, draw: DrawFunc, *, config: ParticleMapConfig) -> int:
    """Invoke *draw* once per cell that is not suppressed.

    Returns:
        Number of draw calls made.

    Raises:
        ConfigurationError: If ``draw_point_func`` returns something other
            than a bool, a mapping or ``None``.
    """
    callback = config.draw_point_func
    drawn = 0
    suppressed = 0

    for index in range(len(grid)):
        cell = CellDraw(grid.cell_center(index), index, grid[index])
        options = status_options(cell.status, config)

        if callback is not None:
            verdict = callback(cell.screen_coord, cell.index, int(cell.status))
            if isinstance(verdict, (bool, np.bool_)):
                suppressed += 1
                continue
            if isinstance(verdict, Mapping):
                options = options.merged(verdict)
            elif verdict is not None:
                raise ConfigurationError(
                    "draw_point_func",
                    verdict,
                    "must return a bool, a mapping of draw options, or None",
                )

        draw(cell, options)
        drawn += 1

    logger.info("Grid dispatched | cells=%d | drawn=%d | suppressed=%d", len(grid), drawn, suppressed)
    return drawn
