"""Computer vision utilities for element resolution.

This sub-package aggregates detector output, filters it, draws Set-of-Mark
annotations and refines coordinate guesses with layout conventions.
"""

from .aggregator import ElementAggregator
from .detection_service import DetectionService, GoogleVisionDetectionService, RawDetection
from .geometry import DEFAULT_PATTERNS, AnchorRule, GeometricPattern, GeometricRefiner, NormalizedRegion
from .marker import SetOfMarkRenderer
from .models import BoundingBox, DetectedElement, ElementSource, Screenshot
from .relevance_filter import RelevanceFilter

__all__ = [
    "AnchorRule",
    "BoundingBox",
    "DEFAULT_PATTERNS",
    "DetectedElement",
    "DetectionService",
    "ElementAggregator",
    "ElementSource",
    "GeometricPattern",
    "GeometricRefiner",
    "GoogleVisionDetectionService",
    "NormalizedRegion",
    "RawDetection",
    "RelevanceFilter",
    "Screenshot",
    "SetOfMarkRenderer",
]
