"""Character-grid drawing backend.

One character per grid cell, which makes a classified map readable in a
terminal or a test assertion.  Cells suppressed by ``draw_point_func``
stay blank.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from particle_map.core.constants import CellStatus

if TYPE_CHECKING:
    from particle_map.core.config import DrawOptions
    from particle_map.pipeline import ParticleMap
    from particle_map.stages.dispatch import CellDraw

GLYPH_INSIDE = "#"
GLYPH_OUTSIDE = "."
GLYPH_BLANK = " "


class TextCanvas:
    """Fixed-size character buffer addressed by grid cell."""

    def __init__(self, columns: int, rows: int) -> None:
        self.columns = columns
        self.rows = rows
        self.buffer = [[GLYPH_BLANK for _ in range(columns)] for _ in range(rows)]

    def set_char(self, x: int, y: int, char: str) -> None:
        if 0 <= x < self.columns and 0 <= y < self.rows:
            self.buffer[y][x] = char

    def get_row(self, y: int) -> str:
        return "".join(self.buffer[y])

    def to_text(self) -> str:
        return "\n".join(self.get_row(y) for y in range(self.rows))


def render_text(
    particle_map: ParticleMap,
    *,
    inside: str = GLYPH_INSIDE,
    outside: str = GLYPH_OUTSIDE,
) -> str:
    """Draw *particle_map* into a ``TextCanvas`` and return its text."""
    grid = particle_map.grid
    canvas = TextCanvas(grid.row_length, grid.rows)
    glyphs = {CellStatus.INSIDE: inside, CellStatus.OUTSIDE: outside}

    def draw(cell: CellDraw, options: DrawOptions) -> None:
        col = cell.index % grid.row_length
        row = cell.index // grid.row_length
        canvas.set_char(col, row, glyphs.get(cell.status, GLYPH_BLANK))

    particle_map.draw(draw)
    return canvas.to_text()
