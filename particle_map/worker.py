"""Background worker offload.

Runs extract -> classify in a separate process so large documents do
not block the caller's thread.  The exchange is strictly one-shot: one
``WorkerRequest`` goes out, one ``WorkerReply`` comes back.  There is no
progress reporting and no cancellation.

Failures inside the worker are returned in the reply's ``error`` field
(``ParticleMapError.to_error_dict()``) and re-raised on the caller side
as ``WorkerError``.
"""

from __future__ import annotations

import concurrent.futures
import logging
from collections.abc import Mapping
from concurrent.futures.process import BrokenProcessPool
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from particle_map.core.config import ParticleMapConfig
from particle_map.core.exceptions import ParticleMapError, PermanentError, TransientError
from particle_map.models.snapshot import (
    SnapshotContractError,
    WorkerReply,
    WorkerRequest,
    decode_reply,
)
from particle_map.pipeline import ParticleMap

logger = logging.getLogger("particle_map.worker")


class WorkerError(PermanentError):
    """Raised on the caller side when the worker reported a failure.

    Attributes:
        remote: The error payload sent by the worker.
    """

    default_stage = "worker"
    default_code = "WORKER_FAILED"

    def __init__(self, remote: Mapping[str, Any]) -> None:
        self.remote = dict(remote)
        super().__init__(
            str(remote.get("message", "worker failed")),
            stage=str(remote.get("stage", "")),
            code=str(remote.get("code", "")),
        )

    @property
    def remote_category(self) -> str:
        return str(self.remote.get("category", ""))


class WorkerUnavailableError(TransientError):
    """Raised when the worker pool broke down or did not answer in time."""

    default_stage = "worker"
    default_code = "WORKER_UNAVAILABLE"


# ---------------------------------------------------------------------------
# Worker side
# ---------------------------------------------------------------------------


def compute_snapshot(request: dict[str, Any]) -> dict[str, Any]:
    """Worker entry point: run the pipeline and build the reply dict."""
    try:
        parsed = WorkerRequest.model_validate(request)
        config = ParticleMapConfig.from_options({**parsed.params, "autostart": True})
        snapshot = ParticleMap(parsed.geojson, config).to_snapshot()
        reply = WorkerReply(snapshot=snapshot)
    except PydanticValidationError as exc:
        error = SnapshotContractError(f"Malformed worker request: {exc}")
        logger.warning("Worker rejected request | %s", error.message)
        reply = WorkerReply(error=error.to_error_dict())
    except ParticleMapError as exc:
        logger.warning(
            "Worker pipeline failed | code=%s | stage=%s | %s", exc.code, exc.stage, exc.message
        )
        reply = WorkerReply(error=exc.to_error_dict())
    except Exception as exc:
        error = PermanentError(
            f"Unexpected {type(exc).__name__} in worker: {exc}",
            stage="worker",
            code="WORKER_UNEXPECTED_ERROR",
        )
        logger.exception("Worker crashed | %s", error.message)
        reply = WorkerReply(error=error.to_error_dict())
    return reply.model_dump(mode="json")


# ---------------------------------------------------------------------------
# Caller side
# ---------------------------------------------------------------------------


def build_request(geojson: Mapping[str, Any], config: ParticleMapConfig) -> dict[str, Any]:
    """Outbound message: the document plus JSON-safe parameters."""
    return WorkerRequest(geojson=dict(geojson), params=config.to_params()).model_dump(mode="json")


def submit(
    executor: concurrent.futures.Executor,
    geojson: Mapping[str, Any],
    config: ParticleMapConfig,
) -> concurrent.futures.Future[dict[str, Any]]:
    """Send the request to *executor*; the future resolves to the raw reply dict."""
    return executor.submit(compute_snapshot, build_request(geojson, config))


def offload(
    geojson: Mapping[str, Any],
    config: ParticleMapConfig | None = None,
    *,
    executor: concurrent.futures.Executor | None = None,
    timeout: float | None = None,
    **options: Any,
) -> ParticleMap:
    """Compute the grid in a background worker and return a drawable map.

    Blocks until the single reply arrives.  Without *executor* a
    one-process ``ProcessPoolExecutor`` is created for this call.

    Raises:
        WorkerError: If the pipeline failed inside the worker.
        WorkerUnavailableError: If the pool broke or *timeout* expired.
        SnapshotContractError: If the reply does not match its schema.
    """
    if config is None:
        config = ParticleMapConfig.from_options(options)

    owned = executor is None
    pool = executor or concurrent.futures.ProcessPoolExecutor(max_workers=1)
    finished = False
    try:
        future = submit(pool, geojson, config)
        try:
            raw = future.result(timeout=timeout)
        except concurrent.futures.TimeoutError as exc:
            future.cancel()
            msg = f"Worker did not reply within {timeout} s"
            raise WorkerUnavailableError(msg) from exc
        except BrokenProcessPool as exc:
            msg = f"Worker process pool is broken: {exc}"
            raise WorkerUnavailableError(msg) from exc
        finished = True
    finally:
        if owned:
            pool.shutdown(wait=finished, cancel_futures=True)

    reply = decode_reply(raw)
    if reply.error is not None:
        raise WorkerError(reply.error)
    assert reply.snapshot is not None

    logger.info(
        "Worker reply received | cells=%d | polygons=%d",
        len(reply.snapshot.cells),
        len(reply.snapshot.polygons),
    )
    return ParticleMap.from_snapshot(reply.snapshot, config)
