"""ParticleMap — the rasterization pipeline.

Runs the stages in order for one GeoJSON document and one viewport:

1. **extract**  — flatten the document into outer rings (memoised)
2. **bounds**   — data-space bounding box
3. **transform** — data <-> screen scale and centering offset
4. **grid**     — fresh ``NOT_VISITED`` grid for the viewport
5. **classify** — even-odd point-in-polygon per cell
6. **dispatch** — per-cell draw calls (on demand, via ``draw()``)

Steps 1-5 are pure computation and can run in a background worker (see
``particle_map.worker``); the result is restored with ``from_snapshot``
and drawn on the caller's side.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from typing import Any

import numpy as np

from particle_map.core.config import ConfigurationError, ParticleMapConfig
from particle_map.core.constants import WARN_DEGENERATE_BOUNDS, CellStatus
from particle_map.core.exceptions import PipelineStateError
from particle_map.models.geometry import BoundingBox, Coordinate, Polygon
from particle_map.models.snapshot import (
    BoundsModel,
    PipelineSnapshot,
    SnapshotContractError,
    TransformModel,
)
from particle_map.stages.bounds import compute_bounds
from particle_map.stages.classify import classify, point_in_polygons
from particle_map.stages.dispatch import DrawFunc, dispatch
from particle_map.stages.extract import extract_polygons
from particle_map.stages.grid import Grid, build_grid
from particle_map.stages.transform import Transform, compute_transform

logger = logging.getLogger("particle_map.pipeline")


class ParticleMap:
    """Rasterize a GeoJSON document's polygons onto a screen-space grid.

    Args:
        geojson: Deserialised GeoJSON document.
        config: Complete configuration.  Mutually exclusive with *options*.
        **options: Configuration options (``width``, ``height``,
            ``pixelResolution``, ``stretch`` ...), see
            ``ParticleMapConfig.from_options``.

    Raises:
        ConfigurationError: If *geojson* is missing or the configuration
            is invalid.
    """

    def __init__(
        self,
        geojson: Mapping[str, Any] | None,
        config: ParticleMapConfig | None = None,
        **options: Any,
    ) -> None:
        if geojson is None:
            raise ConfigurationError("geojson", None, "ParticleMap needs a GeoJSON document")
        if config is None:
            config = ParticleMapConfig.from_options(options)
        elif options:
            raise ConfigurationError(
                "options", sorted(options), "pass either a config or keyword options, not both"
            )

        self.geojson = geojson
        self.config = config
        self._warnings: list[str] = []
        self._polygons: tuple[Polygon, ...] | None = None
        self._bounds: BoundingBox | None = None
        self._transform: Transform | None = None
        self._grid: Grid | None = None

        if config.autostart:
            self.run()

    # ------------------------------------------------------------------
    # Stage results
    # ------------------------------------------------------------------

    @property
    def polygons(self) -> tuple[Polygon, ...]:
        """Extracted polygons; extraction runs once per instance."""
        if self._polygons is None:
            if self.geojson is None:
                raise PipelineStateError("No document loaded and no polygons restored")
            self._polygons = extract_polygons(
                self.geojson,
                exclude_feature_ids=self.config.exclude_feature_ids,
                validate_geometry=self.config.validate_geometry,
                warnings=self._warnings,
            )
        return self._polygons

    @property
    def bounds(self) -> BoundingBox:
        return _require(self._bounds, "bounds")

    @property
    def transform(self) -> Transform:
        return _require(self._transform, "transform")

    @property
    def grid(self) -> Grid:
        return _require(self._grid, "grid")

    @property
    def warnings(self) -> list[str]:
        """Recoverable conditions met so far (copy)."""
        return list(self._warnings)

    @property
    def has_run(self) -> bool:
        return self._grid is not None

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def run(self) -> ParticleMap:
        """Run extract -> bounds -> transform -> grid -> classify."""
        started = time.perf_counter()
        polygons = self.polygons
        self._bounds = compute_bounds(polygons)
        self._layout()
        logger.info(
            "Pipeline run | polygons=%d | cells=%d | inside=%d | duration=%.3f s",
            len(polygons),
            len(self.grid),
            self.grid.count(CellStatus.INSIDE),
            time.perf_counter() - started,
        )
        return self

    def resize(self, width: float, height: float) -> ParticleMap:
        """Recompute transform and a fresh grid for a new viewport.

        Extracted polygons and bounds are reused.
        """
        self.config = self.config.with_viewport(width, height)
        if self._bounds is None:
            return self.run()
        self._layout()
        return self

    def _layout(self) -> None:
        config = self.config
        # Transform warnings describe the current viewport only.
        self._warnings[:] = [w for w in self._warnings if not w.startswith(WARN_DEGENERATE_BOUNDS)]
        self._transform = compute_transform(
            self.bounds,
            config.width,
            config.height,
            preserve_aspect=config.preserve_aspect,
            flip_y=config.flip_y,
            warnings=self._warnings,
        )
        grid = build_grid(config.width, config.height, config.pixel_resolution)
        self._grid = classify(grid, self._transform, self.polygons, close_rings=config.close_rings)

    def draw(self, draw: DrawFunc) -> int:
        """Dispatch every classified cell to *draw*.  Returns the draw count."""
        return dispatch(self.grid, draw, config=self.config)

    # ------------------------------------------------------------------
    # Coordinate helpers
    # ------------------------------------------------------------------

    def data_to_screen(self, coord: Coordinate) -> Coordinate:
        return self.transform.to_screen(coord)

    def screen_to_data(self, coord: Coordinate) -> Coordinate:
        return self.transform.to_data(coord)

    def cell_center(self, index: int) -> Coordinate:
        return self.grid.cell_center(index)

    def cell_index_at(self, coord: Coordinate) -> int:
        return self.grid.cell_index(coord)

    def cell_data_coord(self, index: int) -> Coordinate:
        """Data-space coordinate of the center of cell *index*."""
        return self.transform.to_data(self.grid.cell_center(index))

    def status_at(self, index: int) -> CellStatus:
        return self.grid[index]

    def contains(self, point: Coordinate) -> bool:
        """Even-odd test of a data-space point against the loaded polygons."""
        return point_in_polygons(point, self.polygons, close_rings=self.config.close_rings)

    def random_inside_index(self, rng: np.random.Generator | None = None) -> int | None:
        """Pick a random INSIDE cell, or ``None`` when there is none."""
        candidates = self.grid.indices_with(CellStatus.INSIDE)
        if candidates.size == 0:
            return None
        rng = rng or np.random.default_rng()
        return int(rng.choice(candidates))

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def to_snapshot(self) -> PipelineSnapshot:
        """Capture the computed state for transport across the worker boundary."""
        bounds = self.bounds
        transform = self.transform
        return PipelineSnapshot(
            width=self.config.width,
            height=self.config.height,
            pixel_resolution=self.config.pixel_resolution,
            bounds=BoundsModel(
                min_x=bounds.min_x, min_y=bounds.min_y, max_x=bounds.max_x, max_y=bounds.max_y
            ),
            transform=TransformModel(**transform.to_dict()),
            cells=[int(v) for v in self.grid.cells],
            polygons=[p.to_list() for p in self.polygons],
            feature_ids=[p.feature_id for p in self.polygons],
            warnings=list(self._warnings),
        )

    @classmethod
    def from_snapshot(
        cls,
        snapshot: PipelineSnapshot,
        config: ParticleMapConfig | None = None,
    ) -> ParticleMap:
        """Rebuild a ready-to-draw instance from a snapshot.

        Args:
            snapshot: State computed elsewhere (typically the worker).
            config: Caller-side configuration, e.g. carrying
                ``draw_point_func``.  Its viewport and resolution must
                match the snapshot.

        Raises:
            SnapshotContractError: If *config* describes another viewport.
        """
        if config is None:
            config = ParticleMapConfig(
                width=snapshot.width,
                height=snapshot.height,
                pixel_resolution=snapshot.pixel_resolution,
                flip_y=snapshot.transform.flip_y,
                autostart=False,
            )
        elif (config.width, config.height, config.pixel_resolution) != (
            snapshot.width,
            snapshot.height,
            snapshot.pixel_resolution,
        ):
            msg = (
                f"Snapshot viewport {snapshot.width}x{snapshot.height}@{snapshot.pixel_resolution} "
                f"does not match config {config.width}x{config.height}@{config.pixel_resolution}"
            )
            raise SnapshotContractError(msg)

        instance = cls.__new__(cls)
        instance.geojson = None
        instance.config = config
        instance._warnings = list(snapshot.warnings)
        feature_ids = snapshot.feature_ids or [""] * len(snapshot.polygons)
        instance._polygons = tuple(
            Polygon(ring=tuple((float(c[0]), float(c[1])) for c in ring), feature_id=fid)
            for ring, fid in zip(snapshot.polygons, feature_ids)
        )
        b = snapshot.bounds
        instance._bounds = BoundingBox(min_x=b.min_x, min_y=b.min_y, max_x=b.max_x, max_y=b.max_y)
        t = snapshot.transform
        instance._transform = Transform(
            bounds=instance._bounds,
            scale_x=t.scale_x,
            scale_y=t.scale_y,
            offset_x=t.offset_x,
            offset_y=t.offset_y,
            flip_y=t.flip_y,
        )
        instance._grid = Grid(
            snapshot.width,
            snapshot.height,
            snapshot.pixel_resolution,
            np.asarray(snapshot.cells, dtype=np.int8),
        )
        logger.debug(
            "Restored from snapshot | cells=%d | polygons=%d",
            len(instance._grid),
            len(instance._polygons),
        )
        return instance


def _require(value: Any, stage: str) -> Any:
    if value is None:
        msg = f"Stage '{stage}' has not run yet; call run() first"
        raise PipelineStateError(msg, stage=stage)
    return value
