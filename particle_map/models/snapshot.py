"""Pydantic message schemas for the background worker boundary.

The worker receives one ``WorkerRequest`` and answers with one
``WorkerReply``.  A reply carries either a ``PipelineSnapshot`` (enough
state to resume at the dispatch stage) or a structured error payload
from ``ParticleMapError.to_error_dict()``; never both.

Snapshots are plain JSON once dumped with ``model_dump(mode="json")``,
so they can also be cached or shipped across processes.
"""

from __future__ import annotations

import math
from typing import Annotated, Any

from pydantic import BaseModel, Field, model_validator
from pydantic import ValidationError as PydanticValidationError

from particle_map.core.exceptions import ContractError

# Schema version for forward compatibility
SNAPSHOT_VERSION = "particle-map-snapshot-v1"

CellValue = Annotated[int, Field(ge=0, le=2)]


class SnapshotContractError(ContractError):
    """Raised when a worker payload does not match its schema."""

    default_stage = "worker"
    default_code = "SNAPSHOT_CONTRACT_VIOLATION"


class BoundsModel(BaseModel):
    """Data-space bounding box."""

    min_x: float
    min_y: float
    max_x: float
    max_y: float


class TransformModel(BaseModel):
    """Scale and offset of the data -> screen mapping."""

    scale_x: float
    scale_y: float
    offset_x: float = 0.0
    offset_y: float = 0.0
    flip_y: bool = True


class PipelineSnapshot(BaseModel):
    """Computed pipeline state, from extraction through classification.

    Attributes:
        schema_version: Schema identifier for forward compatibility.
        width: Viewport width in pixels.
        height: Viewport height in pixels.
        pixel_resolution: Grid cell edge length in pixels.
        bounds: Data-space bounding box.
        transform: Data -> screen scale and offset.
        cells: Flat row-major ``CellStatus`` values.
        polygons: Outer rings as ``[[x, y], ...]``.
        feature_ids: Feature id of each polygon (``""`` when absent).
        warnings: Recoverable conditions met while computing.
    """

    schema_version: str = SNAPSHOT_VERSION
    width: float = Field(gt=0)
    height: float = Field(gt=0)
    pixel_resolution: float = Field(gt=0)
    bounds: BoundsModel
    transform: TransformModel
    cells: list[CellValue] = Field(default_factory=list)
    polygons: list[list[list[float]]] = Field(default_factory=list)
    feature_ids: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_shape(self) -> PipelineSnapshot:
        expected = math.ceil(self.width / self.pixel_resolution) * math.ceil(
            self.height / self.pixel_resolution
        )
        if len(self.cells) != expected:
            msg = f"cells has {len(self.cells)} entries, viewport needs {expected}"
            raise ValueError(msg)
        if self.feature_ids and len(self.feature_ids) != len(self.polygons):
            msg = "feature_ids and polygons differ in length"
            raise ValueError(msg)
        return self


class WorkerRequest(BaseModel):
    """Caller -> worker: the raw document and configuration parameters."""

    geojson: dict[str, Any]
    params: dict[str, Any]


class WorkerReply(BaseModel):
    """Worker -> caller: a snapshot or an error payload."""

    snapshot: PipelineSnapshot | None = None
    error: dict[str, Any] | None = None

    @model_validator(mode="after")
    def _one_of(self) -> WorkerReply:
        if (self.snapshot is None) == (self.error is None):
            msg = "reply must carry exactly one of snapshot or error"
            raise ValueError(msg)
        return self


def decode_reply(payload: object) -> WorkerReply:
    """Validate a raw worker reply.

    Raises:
        SnapshotContractError: If *payload* does not match the schema.
    """
    try:
        return WorkerReply.model_validate(payload)
    except PydanticValidationError as exc:
        msg = f"Malformed worker reply: {exc.error_count()} validation error(s): {exc}"
        raise SnapshotContractError(msg) from exc


def decode_snapshot(payload: object) -> PipelineSnapshot:
    """Validate a raw snapshot dict.

    Raises:
        SnapshotContractError: If *payload* does not match the schema.
    """
    try:
        return PipelineSnapshot.model_validate(payload)
    except PydanticValidationError as exc:
        msg = f"Malformed pipeline snapshot: {exc.error_count()} validation error(s): {exc}"
        raise SnapshotContractError(msg) from exc
