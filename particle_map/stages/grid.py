"""Screen-space grid stage.

Partitions the viewport into square cells of ``resolution`` pixels,
stored row-major in a flat array (``index = row * row_length + col``).
"""

from __future__ import annotations

import logging
import math

import numpy as np

from particle_map.core.constants import CellStatus
from particle_map.models.geometry import Coordinate

logger = logging.getLogger("particle_map.stages.grid")


class Grid:
    """Flat row-major array of ``CellStatus`` values.

    Each instance owns its cell array; ``copy()`` produces an independent
    grid.
    """

    def __init__(
        self,
        width: float,
        height: float,
        resolution: float,
        cells: np.ndarray | None = None,
    ) -> None:
        self.width = width
        self.height = height
        self.resolution = resolution
        self.row_length = math.ceil(width / resolution)
        self.rows = math.ceil(height / resolution)
        size = self.row_length * self.rows
        if cells is None:
            cells = np.full(size, CellStatus.NOT_VISITED, dtype=np.int8)
        elif cells.shape != (size,):
            msg = f"Grid expects {size} cells, got shape {cells.shape}"
            raise ValueError(msg)
        self.cells = cells

    def __len__(self) -> int:
        return int(self.cells.size)

    def __getitem__(self, index: int) -> CellStatus:
        return CellStatus(int(self.cells[index]))

    def __iter__(self):
        return (CellStatus(int(v)) for v in self.cells)

    def cell_center(self, index: int) -> Coordinate:
        """Screen coordinate of the center of cell *index*."""
        if not 0 <= index < len(self):
            msg = f"Cell index {index} out of range (0..{len(self) - 1})"
            raise IndexError(msg)
        col = index % self.row_length
        row = index // self.row_length
        half = self.resolution / 2
        return (col * self.resolution + half, row * self.resolution + half)

    def cell_index(self, coord: Coordinate) -> int:
        """Index of the cell containing screen coordinate *coord*."""
        x, y = coord
        col = math.floor(x / self.resolution)
        row = math.floor(y / self.resolution)
        if not (0 <= col < self.row_length and 0 <= row < self.rows):
            msg = f"Screen coordinate ({x}, {y}) is outside the {self.width}x{self.height} grid"
            raise IndexError(msg)
        return row * self.row_length + col

    def cell_centers(self) -> tuple[np.ndarray, np.ndarray]:
        """Screen X and Y of every cell center, in index order."""
        index = np.arange(len(self))
        half = self.resolution / 2
        xs = (index % self.row_length) * self.resolution + half
        ys = (index // self.row_length) * self.resolution + half
        return xs.astype(float), ys.astype(float)

    def indices_with(self, status: CellStatus) -> np.ndarray:
        return np.flatnonzero(self.cells == status)

    def count(self, status: CellStatus) -> int:
        return int(np.count_nonzero(self.cells == status))

    def copy(self) -> Grid:
        return Grid(self.width, self.height, self.resolution, self.cells.copy())


def build_grid(width: float, height: float, resolution: float) -> Grid:
    """Allocate a fresh grid with every cell ``NOT_VISITED``."""
    grid = Grid(width, height, resolution)
    logger.info(
        "Grid built | viewport=%gx%g | resolution=%g | rows=%d | row_length=%d | cells=%d",
        width,
        height,
        resolution,
        grid.rows,
        grid.row_length,
        len(grid),
    )
    return grid
