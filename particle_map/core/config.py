"""Particle map configuration.

``ParticleMapConfig`` is immutable and validated on construction, so a
bad viewport or resolution fails before any geometry is touched.
``from_options()`` accepts the option names used by the browser build of
ParticleMap (``pixelResolution``, ``stretch``, ``drawPointFunc`` ...) as
well as the snake_case field names.

Draw options are never mutated in place: per-status and per-cell
overrides always produce a fresh ``DrawOptions`` via ``merged()``.
"""

from __future__ import annotations

import dataclasses
import logging
import math
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from particle_map.core.constants import (
    ARC_SIZE_DIVISOR,
    DEFAULT_COLOR,
    DEFAULT_FOREGROUND_COLOR,
    DEFAULT_OPACITY,
    DEFAULT_PIXEL_RESOLUTION,
)
from particle_map.core.exceptions import ValidationError

logger = logging.getLogger("particle_map.core.config")

DrawPointFunc = Callable[[tuple[float, float], int, int], Any]


class ConfigurationError(ValidationError):
    """Raised when configuration is missing or out of valid range.

    Attributes:
        key: The configuration key that failed validation.
        value: The invalid value.
    """

    default_stage = "config"
    default_code = "CONFIGURATION_INVALID"

    def __init__(self, key: str, value: object, message: str) -> None:
        self.key = key
        self.value = value
        super().__init__(f"Invalid configuration {key}={value!r}: {message}")


# ---------------------------------------------------------------------------
# Draw options
# ---------------------------------------------------------------------------

_DRAW_OPTION_ALIASES = {
    "arcSize": "arc_size",
    "arc_size": "arc_size",
    "color": "color",
    "opacity": "opacity",
}


@dataclass(frozen=True, slots=True)
class DrawOptions:
    """Per-cell rendering hints.

    Attributes:
        arc_size: Particle radius in pixels.
        color: CSS-style color string.
        opacity: Alpha in ``[0, 1]``.
    """

    arc_size: float
    color: str = DEFAULT_COLOR
    opacity: float = DEFAULT_OPACITY

    @classmethod
    def for_resolution(cls, pixel_resolution: float) -> DrawOptions:
        """Default options for a grid of the given resolution."""
        return cls(arc_size=pixel_resolution / ARC_SIZE_DIVISOR)

    def merged(self, overrides: Mapping[str, Any]) -> DrawOptions:
        """Return a copy with *overrides* applied (shallow, override keys win).

        Raises:
            ConfigurationError: If an override key is not a draw option.
        """
        changes: dict[str, Any] = {}
        for key, value in overrides.items():
            field_name = _DRAW_OPTION_ALIASES.get(key)
            if field_name is None:
                raise ConfigurationError(
                    f"draw_options.{key}", value, "unknown draw option"
                )
            changes[field_name] = value
        if not changes:
            return self
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> dict[str, object]:
        return {"arc_size": self.arc_size, "color": self.color, "opacity": self.opacity}


# ---------------------------------------------------------------------------
# Pipeline configuration
# ---------------------------------------------------------------------------

_OPTION_ALIASES = {
    "pixelResolution": "pixel_resolution",
    "preserveAspect": "preserve_aspect",
    "drawOptions": "draw_options",
    "foregroundColor": "foreground_color",
    "backgroundColor": "background_color",
    "drawPointFunc": "draw_point_func",
    "closeRings": "close_rings",
    "flipY": "flip_y",
    "excludeFeatureIds": "exclude_feature_ids",
    "validateGeometry": "validate_geometry",
}

# Browser-only options with no meaning here.
_IGNORED_OPTIONS = frozenset({"canvasEl", "padding"})


@dataclass(frozen=True, slots=True)
class ParticleMapConfig:
    """Immutable rasterization configuration.

    Attributes:
        width: Viewport width in pixels (required).
        height: Viewport height in pixels (required).
        pixel_resolution: Grid cell edge length in pixels.
        preserve_aspect: Use one scale for both axes and center the
            shorter axis. ``stretch=True`` in ``from_options`` disables it.
        draw_options: Default draw options; derived from the resolution
            when omitted.
        foreground_color: Color of INSIDE cells (``None`` keeps the default).
        background_color: Color of OUTSIDE cells (``None`` keeps the default).
        draw_point_func: Per-cell override callback, see ``stages.dispatch``.
        autostart: Run the pipeline as soon as a ``ParticleMap`` is built.
        close_rings: Test the implicit closing edge of open rings.
        flip_y: Screen Y grows downward while data Y grows upward.
        exclude_feature_ids: Feature ``id`` values skipped during extraction.
        validate_geometry: Check each extracted ring with shapely and warn
            about invalid (self-intersecting) rings.
    """

    width: float
    height: float
    pixel_resolution: float = DEFAULT_PIXEL_RESOLUTION
    preserve_aspect: bool = True
    draw_options: DrawOptions | None = None
    foreground_color: str | None = DEFAULT_FOREGROUND_COLOR
    background_color: str | None = None
    draw_point_func: DrawPointFunc | None = None
    autostart: bool = True
    close_rings: bool = False
    flip_y: bool = True
    exclude_feature_ids: tuple[str, ...] = ()
    validate_geometry: bool = False

    def __post_init__(self) -> None:
        for key in ("width", "height", "pixel_resolution"):
            object.__setattr__(self, key, _positive_number(key, getattr(self, key)))
        if self.draw_options is None:
            object.__setattr__(
                self, "draw_options", DrawOptions.for_resolution(self.pixel_resolution)
            )
        elif isinstance(self.draw_options, Mapping):
            object.__setattr__(
                self,
                "draw_options",
                DrawOptions.for_resolution(self.pixel_resolution).merged(self.draw_options),
            )
        elif not isinstance(self.draw_options, DrawOptions):
            raise ConfigurationError(
                "draw_options", self.draw_options, "must be DrawOptions or a mapping of draw options"
            )
        if self.draw_point_func is not None and not callable(self.draw_point_func):
            raise ConfigurationError(
                "draw_point_func", self.draw_point_func, "must be callable"
            )
        object.__setattr__(
            self, "exclude_feature_ids", _feature_ids(self.exclude_feature_ids)
        )

    @classmethod
    def from_options(cls, options: Mapping[str, Any]) -> ParticleMapConfig:
        """Build a configuration from an options mapping.

        Raises:
            ConfigurationError: If ``width``/``height`` are missing, an
                option is unknown, or ``stretch`` contradicts
                ``preserveAspect``.
        """
        kwargs: dict[str, Any] = {}
        stretch: bool | None = None
        for key, value in options.items():
            if key in _IGNORED_OPTIONS:
                logger.debug("Ignoring browser-only option | key=%s", key)
                continue
            if key == "stretch":
                stretch = bool(value)
                continue
            name = _OPTION_ALIASES.get(key, key)
            if name not in _FIELD_NAMES:
                raise ConfigurationError(key, value, "unknown option")
            kwargs[name] = value

        if stretch is not None:
            if "preserve_aspect" in kwargs and bool(kwargs["preserve_aspect"]) == stretch:
                raise ConfigurationError(
                    "stretch", stretch, "contradicts preserveAspect; set only one"
                )
            kwargs["preserve_aspect"] = not stretch

        for key in ("width", "height"):
            if kwargs.get(key) is None:
                raise ConfigurationError(key, None, "is required (viewport pixels)")

        return cls(**kwargs)

    def to_params(self) -> dict[str, object]:
        """JSON-safe parameters for the worker request (callbacks excluded)."""
        assert self.draw_options is not None
        return {
            "width": self.width,
            "height": self.height,
            "pixel_resolution": self.pixel_resolution,
            "preserve_aspect": self.preserve_aspect,
            "draw_options": self.draw_options.to_dict(),
            "foreground_color": self.foreground_color,
            "background_color": self.background_color,
            "autostart": self.autostart,
            "close_rings": self.close_rings,
            "flip_y": self.flip_y,
            "exclude_feature_ids": list(self.exclude_feature_ids),
            "validate_geometry": self.validate_geometry,
        }

    def with_viewport(self, width: float, height: float) -> ParticleMapConfig:
        """Return a copy for a resized viewport."""
        return dataclasses.replace(self, width=width, height=height)


_FIELD_NAMES = frozenset(f.name for f in dataclasses.fields(ParticleMapConfig))


def _feature_ids(value: object) -> tuple[str, ...]:
    """Normalise feature ids to a tuple of str; a single id may be given bare."""
    if value is None:
        return ()
    if isinstance(value, str | int):
        return (str(value),)
    try:
        return tuple(str(i) for i in value)  # type: ignore[union-attr]
    except TypeError as exc:
        raise ConfigurationError(
            "exclude_feature_ids", value, "must be an id or a list of ids"
        ) from exc


def _positive_number(key: str, value: object) -> float:
    """Coerce *value* to a finite float > 0.  Raises ``ConfigurationError``."""
    if isinstance(value, bool):
        raise ConfigurationError(key, value, "must be a number")
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(key, value, "must be a number") from exc
    if not math.isfinite(number) or number <= 0:
        raise ConfigurationError(key, value, "must be > 0 (pixels)")
    return number
