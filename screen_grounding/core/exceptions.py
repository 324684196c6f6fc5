"""Exception hierarchy for the element resolution pipeline."""

from __future__ import annotations


class GroundingError(Exception):
    """Base class for all screen-grounding errors."""


class DetectionServiceError(GroundingError):
    """A detection backend call failed or returned an unusable payload."""


class ReasoningServiceError(GroundingError):
    """The reasoning (vision LLM) service is unavailable or the call failed."""


class ResponseParseError(GroundingError):
    """A structured model answer could not be parsed or validated."""


class MarkerError(GroundingError):
    """The screenshot could not be decoded for Set-of-Mark rendering."""


class ResolutionError(GroundingError):
    """No coordinate could be produced for a description.

    Raised only from the last tier; the underlying failure is kept both on
    ``cause`` and as ``__cause__``.
    """

    def __init__(self, description: str, cause: BaseException | None = None) -> None:
        self.description = description
        self.cause = cause
        message = f"Could not resolve {description!r}"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)
