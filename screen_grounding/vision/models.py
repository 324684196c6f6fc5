"""Data models for the element resolution pipeline."""

from __future__ import annotations

import base64
import binascii
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves upward (pixel convention)."""
    return int(math.floor(value + 0.5))


def clamp_confidence(value: float) -> float:
    """Clamp a confidence value into ``[0, 1]``; non-finite values become 0."""
    value = float(value)
    if math.isnan(value):
        return 0.0
    return min(1.0, max(0.0, value))


@dataclass(frozen=True, slots=True)
class Point:
    """Pixel coordinate in screenshot space (origin top-left)."""

    x: int
    y: int

    def as_tuple(self) -> tuple[int, int]:
        return self.x, self.y


@dataclass(frozen=True, slots=True)
class BoundingBox:
    """Axis-aligned rectangle (x1, y1, x2, y2) in pixel coordinates."""

    x1: float
    y1: float
    x2: float
    y2: float

    def __post_init__(self) -> None:
        # Detectors occasionally report corners in the wrong order.
        if self.x1 > self.x2:
            x1, x2 = self.x2, self.x1
            object.__setattr__(self, "x1", x1)
            object.__setattr__(self, "x2", x2)
        if self.y1 > self.y2:
            y1, y2 = self.y2, self.y1
            object.__setattr__(self, "y1", y1)
            object.__setattr__(self, "y2", y2)

    def width(self) -> float:
        """Width in pixels."""
        return self.x2 - self.x1

    def height(self) -> float:
        """Height in pixels."""
        return self.y2 - self.y1

    def center(self) -> Point:
        """Center of the box rounded to the nearest pixel."""
        return Point(
            round_half_up((self.x1 + self.x2) / 2),
            round_half_up((self.y1 + self.y2) / 2),
        )

    def as_tuple(self) -> tuple[float, float, float, float]:
        """Return bounding box as ``(x1, y1, x2, y2)`` tuple."""
        return self.x1, self.y1, self.x2, self.y2


class ElementSource(str, Enum):
    """Detection backend an element came from."""

    TEXT = "detector-text"
    OBJECT = "detector-object"
    LOGO = "detector-logo"


@dataclass(frozen=True, slots=True)
class DetectedElement:
    """A UI element found by one of the detection backends."""

    id: int
    bbox: BoundingBox
    label: str
    confidence: float
    source: ElementSource
    interactable: bool = False

    def center(self) -> Point:
        return self.bbox.center()


class DetectionMethod(str, Enum):
    """How the returned coordinate was produced."""

    SPATIAL_AWARE = "spatial_aware"
    VISION_API_FALLBACK = "vision_api_fallback"


@dataclass(frozen=True, slots=True)
class DetectionResult:
    """Final answer for one resolution request."""

    coordinates: Point
    confidence: float
    method: DetectionMethod
    selected_element: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "confidence", clamp_confidence(self.confidence))

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "coordinates": {"x": self.coordinates.x, "y": self.coordinates.y},
            "confidence": self.confidence,
            "method": self.method.value,
        }
        if self.selected_element is not None:
            data["selectedElement"] = self.selected_element
        return data


@dataclass(frozen=True, slots=True)
class Screenshot:
    """Encoded screenshot payload, optionally with its logical size."""

    data: bytes = field(repr=False)
    mime_type: str = "image/png"
    width: Optional[int] = None
    height: Optional[int] = None

    @classmethod
    def from_base64(
        cls,
        encoded: str,
        mime_type: str = "image/png",
        width: int | None = None,
        height: int | None = None,
    ) -> Screenshot:
        """Build a screenshot from a base64 string (a ``data:`` URL prefix is accepted)."""
        if encoded.startswith("data:") and "," in encoded:
            header, encoded = encoded.split(",", 1)
            mime_type = header[5:].split(";", 1)[0] or mime_type
        try:
            data = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValueError(f"Screenshot is not valid base64: {exc}") from exc
        return cls(data=data, mime_type=mime_type, width=width, height=height)

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    def to_data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.to_base64()}"


@dataclass(frozen=True, slots=True)
class ResolutionContext:
    """Optional hints about where the screenshot came from."""

    active_app: Optional[str] = None
    active_url: Optional[str] = None
    screen_width: Optional[int] = None
    screen_height: Optional[int] = None


@dataclass(frozen=True, slots=True)
class ResolutionRequest:
    """Inbound request: find *description* on *screenshot*."""

    screenshot: Screenshot
    description: str
    context: ResolutionContext = field(default_factory=ResolutionContext)
