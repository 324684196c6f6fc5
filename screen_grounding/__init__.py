"""Resolve natural-language UI element descriptions to screenshot coordinates.

The pipeline detects elements, filters menu-bar chrome, lets a vision model
pick a numbered mark, and falls back to a refined raw coordinate guess.
"""

from .core.exceptions import GroundingError, ResolutionError
from .core.resolver import ElementResolver, ResolutionState, Tier, get_element_resolver
from .vision.models import (
    BoundingBox,
    DetectedElement,
    DetectionMethod,
    DetectionResult,
    ElementSource,
    Point,
    ResolutionContext,
    ResolutionRequest,
    Screenshot,
)

__version__ = "0.1.0"

__all__ = [
    "BoundingBox",
    "DetectedElement",
    "DetectionMethod",
    "DetectionResult",
    "ElementResolver",
    "ElementSource",
    "GroundingError",
    "Point",
    "ResolutionContext",
    "ResolutionError",
    "ResolutionRequest",
    "ResolutionState",
    "Screenshot",
    "Tier",
    "get_element_resolver",
]
