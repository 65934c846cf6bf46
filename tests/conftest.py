"""Shared pytest fixtures for the ParticleMap test suite."""

from pathlib import Path

import pytest

from particle_map.core.config import ParticleMapConfig

# ---------------------------------------------------------------------------
# Path fixtures
# ---------------------------------------------------------------------------

TESTS_DIR = Path(__file__).parent
DATA_DIR = TESTS_DIR / "data"


@pytest.fixture()
def data_dir() -> Path:
    """Return the path to the test data directory."""
    return DATA_DIR


# ---------------------------------------------------------------------------
# Reference geometries
# ---------------------------------------------------------------------------

SQUARE_RING = [[0.0, 0.0], [10.0, 0.0], [10.0, 10.0], [0.0, 10.0], [0.0, 0.0]]


@pytest.fixture()
def square_polygon() -> dict:
    """A closed 10 x 10 square Polygon at the origin."""
    return {"type": "Polygon", "coordinates": [SQUARE_RING]}


@pytest.fixture()
def square_feature_collection(square_polygon: dict) -> dict:
    """The square wrapped in a Feature inside a FeatureCollection."""
    return {
        "type": "FeatureCollection",
        "features": [
            {"type": "Feature", "id": "SQ", "properties": {}, "geometry": square_polygon},
        ],
    }


@pytest.fixture()
def two_islands() -> dict:
    """Two disjoint squares as one MultiPolygon, the second with a hole ring."""
    return {
        "type": "MultiPolygon",
        "coordinates": [
            [[[0.0, 0.0], [4.0, 0.0], [4.0, 4.0], [0.0, 4.0], [0.0, 0.0]]],
            [
                [[6.0, 6.0], [10.0, 6.0], [10.0, 10.0], [6.0, 10.0], [6.0, 6.0]],
                [[7.0, 7.0], [9.0, 7.0], [9.0, 9.0], [7.0, 9.0], [7.0, 7.0]],
            ],
        ],
    }


@pytest.fixture()
def square_config() -> ParticleMapConfig:
    """100 x 100 viewport at resolution 10 (one cell per data unit)."""
    return ParticleMapConfig(width=100, height=100, pixel_resolution=10)
