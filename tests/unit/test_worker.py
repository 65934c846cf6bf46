"""Tests for the background worker offload.

The worker entry point is exercised directly and through executors: a
thread pool for most cases (same code path, no process start-up) and
one real process pool round trip.
"""

from __future__ import annotations

import concurrent.futures
import json
from concurrent.futures.process import BrokenProcessPool
from unittest.mock import MagicMock

import numpy as np
import pytest

from particle_map.core.config import ParticleMapConfig
from particle_map.core.constants import CellStatus
from particle_map.models.snapshot import SnapshotContractError, WorkerReply
from particle_map.pipeline import ParticleMap
from particle_map.worker import (
    WorkerError,
    WorkerUnavailableError,
    build_request,
    compute_snapshot,
    offload,
    submit,
)


@pytest.fixture()
def thread_pool():
    with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
        yield pool


class TestComputeSnapshot:
    """Worker-side entry point."""

    def test_success_reply(self, square_polygon: dict, square_config: ParticleMapConfig) -> None:
        raw = compute_snapshot(build_request(square_polygon, square_config))
        reply = WorkerReply.model_validate(raw)
        assert reply.error is None
        assert reply.snapshot is not None
        assert reply.snapshot.cells == [int(CellStatus.INSIDE)] * 100

    def test_reply_is_plain_json(self, square_polygon: dict, square_config: ParticleMapConfig) -> None:
        raw = compute_snapshot(build_request(square_polygon, square_config))
        assert json.loads(json.dumps(raw)) == raw

    def test_autostart_forced(self, square_polygon: dict) -> None:
        config = ParticleMapConfig(width=100, height=100, autostart=False)
        raw = compute_snapshot(build_request(square_polygon, config))
        assert raw["error"] is None

    def test_pipeline_error_reported(self, square_config: ParticleMapConfig) -> None:
        raw = compute_snapshot(build_request({"type": "Point", "coordinates": [0, 0]}, square_config))
        assert raw["snapshot"] is None
        assert raw["error"]["code"] == "GEOMETRY_EMPTY"
        assert raw["error"]["category"] == "validation"

    def test_bad_params_reported(self, square_polygon: dict) -> None:
        raw = compute_snapshot({"geojson": square_polygon, "params": {"width": -1, "height": 10}})
        assert raw["error"]["code"] == "CONFIGURATION_INVALID"

    def test_malformed_request_reported(self) -> None:
        raw = compute_snapshot({"geojson": "not a document"})
        assert raw["error"]["code"] == "SNAPSHOT_CONTRACT_VIOLATION"
        assert raw["error"]["category"] == "contract"

    def test_malformed_collection_reported(self, square_config: ParticleMapConfig) -> None:
        doc = {"type": "GeometryCollection", "geometries": 7}
        raw = compute_snapshot(build_request(doc, square_config))
        assert raw["snapshot"] is None
        assert raw["error"]["code"] == "GEOMETRY_MALFORMED"
        assert raw["error"]["stage"] == "extract"

    def test_unexpected_error_reported(
        self,
        square_polygon: dict,
        square_config: ParticleMapConfig,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        def explode(*args, **kwargs):
            raise RuntimeError("out of cheese")

        monkeypatch.setattr("particle_map.worker.ParticleMap", explode)
        raw = compute_snapshot(build_request(square_polygon, square_config))
        assert raw["snapshot"] is None
        assert raw["error"]["category"] == "permanent"
        assert raw["error"]["stage"] == "worker"
        assert raw["error"]["code"] == "WORKER_UNEXPECTED_ERROR"
        assert "RuntimeError" in raw["error"]["message"]
        assert "out of cheese" in raw["error"]["message"]

    def test_request_excludes_callback(self, square_polygon: dict) -> None:
        config = ParticleMapConfig(width=10, height=10, draw_point_func=lambda *a: None)
        request = build_request(square_polygon, config)
        assert "draw_point_func" not in request["params"]


class TestOffload:
    """Caller side: submit, wait for one reply, rebuild the map."""

    def test_matches_local_run(self, square_polygon: dict, thread_pool) -> None:
        remote = offload(square_polygon, executor=thread_pool, width=200, height=100)
        local = ParticleMap(square_polygon, width=200, height=100)
        assert np.array_equal(remote.grid.cells, local.grid.cells)
        assert remote.bounds == local.bounds

    def test_caller_config_kept(self, square_polygon: dict, thread_pool) -> None:
        config = ParticleMapConfig(width=100, height=100, draw_point_func=lambda *a: False)
        pm = offload(square_polygon, config, executor=thread_pool)
        assert pm.config is config
        assert pm.draw(lambda cell, options: None) == 0

    def test_worker_error_raised(self, thread_pool) -> None:
        with pytest.raises(WorkerError) as excinfo:
            offload({"type": "Point", "coordinates": [0, 0]}, executor=thread_pool, width=10, height=10)
        assert excinfo.value.code == "GEOMETRY_EMPTY"
        assert excinfo.value.stage == "bounds"
        assert excinfo.value.remote_category == "validation"

    def test_malformed_collection_raised_as_worker_error(self, thread_pool) -> None:
        with pytest.raises(WorkerError) as excinfo:
            offload(
                {"type": "GeometryCollection", "geometries": 7},
                executor=thread_pool,
                width=10,
                height=10,
            )
        assert excinfo.value.code == "GEOMETRY_MALFORMED"
        assert excinfo.value.remote_category == "validation"

    def test_warnings_travel_back(self, square_polygon: dict, thread_pool) -> None:
        doc = {"type": "GeometryCollection", "geometries": [square_polygon, {"type": "Point"}]}
        pm = offload(doc, executor=thread_pool, width=100, height=100)
        assert len(pm.warnings) == 1

    def test_submit_returns_future(self, square_polygon: dict, square_config, thread_pool) -> None:
        future = submit(thread_pool, square_polygon, square_config)
        assert future.result(timeout=30)["snapshot"]["width"] == 100.0

    def test_timeout(self, square_polygon: dict) -> None:
        executor = MagicMock()
        executor.submit.return_value.result.side_effect = concurrent.futures.TimeoutError()
        with pytest.raises(WorkerUnavailableError, match="did not reply") as excinfo:
            offload(square_polygon, executor=executor, timeout=0.1, width=10, height=10)
        assert excinfo.value.retryable is True
        executor.shutdown.assert_not_called()

    def test_broken_pool(self, square_polygon: dict) -> None:
        executor = MagicMock()
        executor.submit.return_value.result.side_effect = BrokenProcessPool("died")
        with pytest.raises(WorkerUnavailableError, match="broken"):
            offload(square_polygon, executor=executor, width=10, height=10)

    def test_malformed_reply(self, square_polygon: dict) -> None:
        executor = MagicMock()
        executor.submit.return_value.result.return_value = {"snapshot": None, "error": None}
        with pytest.raises(SnapshotContractError):
            offload(square_polygon, executor=executor, width=10, height=10)

    def test_default_process_pool(self, square_polygon: dict) -> None:
        pm = offload(square_polygon, width=100, height=100, timeout=60)
        assert pm.grid.count(CellStatus.INSIDE) == 100
