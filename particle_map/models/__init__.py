"""Data models and schemas.

Defines the data structures passed between stages:
- Polygon: Outer ring extracted from GeoJSON
- BoundingBox: Data-space extent of all polygons
- PipelineSnapshot: Worker message schema for computed state
"""

from particle_map.models.geometry import BoundingBox, Coordinate, Polygon
from particle_map.models.snapshot import (
    PipelineSnapshot,
    SnapshotContractError,
    WorkerReply,
    WorkerRequest,
)

__all__ = [
    "BoundingBox",
    "Coordinate",
    "PipelineSnapshot",
    "Polygon",
    "SnapshotContractError",
    "WorkerReply",
    "WorkerRequest",
]
