"""Unit tests for render dispatch and the text backend.

Covers status-based coloring, the ``draw_point_func`` contract (bool
suppresses, mapping overrides, ``None`` keeps defaults) and that shared
default options are never mutated.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import numpy as np
import pytest

from particle_map.core.config import ConfigurationError, DrawOptions, ParticleMapConfig
from particle_map.core.constants import CellStatus
from particle_map.pipeline import ParticleMap
from particle_map.render.text import render_text
from particle_map.stages.dispatch import CellDraw, dispatch, status_options
from particle_map.stages.grid import build_grid


def _grid_with(statuses: list[CellStatus], width: int = 20, height: int = 10):
    grid = build_grid(width, height, 10)
    for index, status in enumerate(statuses):
        grid.cells[index] = status
    return grid


class TestStatusOptions:
    """Per-status colors on top of the defaults."""

    def test_inside_uses_foreground(self) -> None:
        config = ParticleMapConfig(width=20, height=10, foreground_color="#f00")
        assert status_options(CellStatus.INSIDE, config).color == "#f00"

    def test_outside_uses_background(self) -> None:
        config = ParticleMapConfig(width=20, height=10, background_color="#00f")
        assert status_options(CellStatus.OUTSIDE, config).color == "#00f"

    def test_outside_without_background_uses_default(self) -> None:
        config = ParticleMapConfig(width=20, height=10)
        assert status_options(CellStatus.OUTSIDE, config).color == "#dddddd"

    def test_no_foreground_uses_default(self) -> None:
        config = ParticleMapConfig(width=20, height=10, foreground_color=None)
        assert status_options(CellStatus.INSIDE, config).color == "#dddddd"

    def test_defaults_not_mutated(self) -> None:
        config = ParticleMapConfig(width=20, height=10, foreground_color="#f00")
        status_options(CellStatus.INSIDE, config)
        assert config.draw_options.color == "#dddddd"


class TestDispatch:
    """Draw calls per cell and the override callback."""

    def test_every_cell_drawn(self) -> None:
        draw = MagicMock()
        grid = _grid_with([CellStatus.INSIDE, CellStatus.OUTSIDE])
        count = dispatch(grid, draw, config=ParticleMapConfig(width=20, height=10))
        assert count == 2
        first_cell, first_options = draw.call_args_list[0].args
        assert first_cell == CellDraw((5.0, 5.0), 0, CellStatus.INSIDE)
        assert first_options.color == "#333"
        assert first_options.arc_size == pytest.approx(2.5)

    @pytest.mark.parametrize("verdict", [True, False])
    def test_bool_suppresses(self, verdict: bool) -> None:
        draw = MagicMock()
        config = ParticleMapConfig(
            width=20,
            height=10,
            draw_point_func=lambda coords, idx, status: verdict if status == CellStatus.OUTSIDE else None,
        )
        count = dispatch(_grid_with([CellStatus.INSIDE, CellStatus.OUTSIDE]), draw, config=config)
        assert count == 1
        assert draw.call_args.args[0].status == CellStatus.INSIDE

    def test_numpy_bool_suppresses(self) -> None:
        draw = MagicMock()
        hidden = np.array([False, True])
        config = ParticleMapConfig(
            width=20,
            height=10,
            draw_point_func=lambda coords, idx, status: hidden[idx] if hidden[idx] else None,
        )
        count = dispatch(_grid_with([CellStatus.INSIDE, CellStatus.OUTSIDE]), draw, config=config)
        assert count == 1
        assert draw.call_args.args[0].index == 0

    def test_mapping_overrides_status_options(self) -> None:
        draw = MagicMock()
        config = ParticleMapConfig(
            width=20,
            height=10,
            foreground_color="#f00",
            draw_point_func=lambda coords, idx, status: {"opacity": 0.5, "arcSize": 1},
        )
        dispatch(_grid_with([CellStatus.INSIDE, CellStatus.OUTSIDE]), draw, config=config)
        options = draw.call_args_list[0].args[1]
        assert options == DrawOptions(arc_size=1, color="#f00", opacity=0.5)

    def test_callback_receives_cell(self) -> None:
        callback = MagicMock(return_value=None)
        config = ParticleMapConfig(width=20, height=10, draw_point_func=callback)
        dispatch(_grid_with([CellStatus.INSIDE, CellStatus.OUTSIDE]), MagicMock(), config=config)
        callback.assert_any_call((15.0, 5.0), 1, int(CellStatus.OUTSIDE))

    def test_bad_callback_return(self) -> None:
        config = ParticleMapConfig(width=20, height=10, draw_point_func=lambda *a: 42)
        with pytest.raises(ConfigurationError, match="draw_point_func"):
            dispatch(_grid_with([CellStatus.INSIDE]), MagicMock(), config=config)

    def test_unknown_override_key(self) -> None:
        config = ParticleMapConfig(width=20, height=10, draw_point_func=lambda *a: {"radius": 3})
        with pytest.raises(ConfigurationError, match="radius"):
            dispatch(_grid_with([CellStatus.INSIDE]), MagicMock(), config=config)


class TestTextBackend:
    """Character rendering of a classified map."""

    def test_square_in_wide_viewport(self, square_polygon: dict) -> None:
        pm = ParticleMap(square_polygon, width=80, height=40, pixelResolution=10)
        text = render_text(pm)
        assert text.splitlines() == ["..####.."] * 4

    def test_suppressed_cells_blank(self, square_polygon: dict) -> None:
        pm = ParticleMap(
            square_polygon,
            width=80,
            height=40,
            pixelResolution=10,
            drawPointFunc=lambda coords, idx, status: False if status == 2 else None,
        )
        assert render_text(pm).splitlines()[0] == "  ####  "
