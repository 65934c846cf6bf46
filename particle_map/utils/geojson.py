"""GeoJSON document helpers.

Loading from disk and dropping features by id before rasterization.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from particle_map.core.config import ConfigurationError

logger = logging.getLogger("particle_map.utils.geojson")


def load_geojson(path: Path | str) -> dict[str, Any]:
    """Read a GeoJSON document from *path*.

    Raises:
        ConfigurationError: If the file cannot be read, is not JSON, or
            is not a JSON object.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError("geojson", str(path), f"cannot read file: {exc}") from exc

    try:
        document = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigurationError("geojson", str(path), f"not valid JSON: {exc}") from exc

    if not isinstance(document, dict):
        raise ConfigurationError(
            "geojson", str(path), f"expected a JSON object, got {type(document).__name__}"
        )

    logger.info("GeoJSON loaded | path=%s | type=%s", path.name, document.get("type"))
    return document


def without_features(document: Mapping[str, Any], feature_ids: Iterable[str]) -> dict[str, Any]:
    """Copy of a FeatureCollection without the features whose ``id`` is listed.

    Other document types are returned as a shallow copy.
    """
    excluded = {str(i) for i in feature_ids}
    copy = dict(document)
    if document.get("type") == "FeatureCollection":
        copy["features"] = [
            f
            for f in document.get("features") or []
            if not (
                isinstance(f, Mapping) and f.get("id") is not None and str(f["id"]) in excluded
            )
        ]
    return copy
