"""Error taxonomy for the rasterization pipeline.

Every domain exception inherits from ``ParticleMapError`` and carries
``stage``, ``code`` and ``retryable`` so that a failure inside the
background worker can cross the process boundary as a plain dict
(``to_error_dict()``) and be re-raised on the caller side.

Categories are declared on four base classes; concrete errors only pick
a base and set their default stage and code:

- ``ValidationError``  bad configuration or geometry
- ``TransientError``   worker pool unavailable, worth retrying
- ``PermanentError``   pipeline misuse or unexpected failure
- ``ContractError``    worker payload does not match its schema
"""

from __future__ import annotations


class ParticleMapError(Exception):
    """Base exception for all particle map errors.

    Attributes:
        message: Human-readable error description.
        stage: Pipeline stage where the error occurred
            (e.g. ``"extract"``, ``"bounds"``).
        code: Machine-readable error code (e.g. ``"GEOMETRY_MALFORMED"``).
        retryable: Whether repeating the operation may succeed.
    """

    default_stage: str = ""
    default_code: str = ""
    default_retryable: bool = False
    #: Fixed category of a taxonomy branch; empty means "derive from retryable".
    category_name: str = ""

    def __init__(
        self,
        message: str = "",
        *,
        stage: str = "",
        code: str = "",
        retryable: bool | None = None,
    ) -> None:
        self.message = message
        self.stage = stage or self.default_stage
        self.code = code or self.default_code
        self.retryable = self.default_retryable if retryable is None else retryable
        super().__init__(message)

    @property
    def category(self) -> str:
        if self.category_name:
            return self.category_name
        return "transient" if self.retryable else "permanent"

    def to_error_dict(self) -> dict[str, object]:
        """Stable payload used as the error channel of the worker reply."""
        return {
            "category": self.category,
            "code": self.code,
            "stage": self.stage,
            "message": self.message,
            "retryable": self.retryable,
        }


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------


class ValidationError(ParticleMapError):
    """Bad input. Never retryable."""

    category_name = "validation"


class TransientError(ParticleMapError):
    """Temporary failure that may succeed on retry."""

    category_name = "transient"
    default_retryable = True


class PermanentError(ParticleMapError):
    """Unrecoverable failure."""

    category_name = "permanent"


class ContractError(ParticleMapError):
    """Payload or schema drift across the worker boundary."""

    category_name = "contract"


# ---------------------------------------------------------------------------
# Geometry and pipeline state
# ---------------------------------------------------------------------------


class MalformedGeometryError(ValidationError):
    """Raised when a polygon-like node lacks usable coordinates."""

    default_stage = "extract"
    default_code = "GEOMETRY_MALFORMED"


class EmptyGeometryError(MalformedGeometryError):
    """Raised when no polygon vertices are available to compute bounds."""

    default_stage = "bounds"
    default_code = "GEOMETRY_EMPTY"


class PipelineStateError(PermanentError):
    """Raised when a stage result is requested before the stage has run."""

    default_stage = "pipeline"
    default_code = "PIPELINE_NOT_RUN"
