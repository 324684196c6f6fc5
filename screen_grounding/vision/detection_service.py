"""Detection backends: text regions, generic objects and logos.

``DetectionService`` is the narrow contract the aggregator depends on. The
bundled implementation talks to the Google Cloud Vision REST API with an API
key; any other detector can be plugged in by implementing the three coroutines.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import aiohttp
from loguru import logger

from ..core.config import Config, config
from ..core.exceptions import DetectionServiceError
from .imaging import resolve_image_size
from .models import BoundingBox, Screenshot

# Confidence reported for OCR words, which Cloud Vision does not score
_DEFAULT_TEXT_CONFIDENCE = 0.9


@dataclass(frozen=True, slots=True)
class RawDetection:
    """A single backend hit before normalization into ``DetectedElement``."""

    bbox: BoundingBox
    name: str
    confidence: float


class DetectionService(ABC):
    """Contract for the three detection operations."""

    @property
    @abstractmethod
    def available(self) -> bool:
        """Whether the backend is configured and may be called."""

    @abstractmethod
    async def detect_text(self, screenshot: Screenshot) -> list[RawDetection]:
        """Return text regions; ``name`` holds the recognized text."""

    @abstractmethod
    async def detect_objects(self, screenshot: Screenshot) -> list[RawDetection]:
        """Return generic objects in pixel coordinates."""

    @abstractmethod
    async def detect_logos(self, screenshot: Screenshot) -> list[RawDetection]:
        """Return recognized logos in pixel coordinates."""

    async def close(self) -> None:
        """Release network resources; a no-op unless the backend holds any."""


def _vertex_bbox(vertices: list[dict[str, Any]], scale_x: float = 1.0, scale_y: float = 1.0, default: float = 0.0) -> BoundingBox:
    """Bounding box from a Cloud Vision polygon (top-left and bottom-right vertices)."""
    top_left = vertices[0] if vertices else {}
    bottom_right = vertices[2] if len(vertices) > 2 else {}
    return BoundingBox(
        round(float(top_left.get("x", 0)) * scale_x),
        round(float(top_left.get("y", 0)) * scale_y),
        round(float(bottom_right.get("x", default)) * scale_x),
        round(float(bottom_right.get("y", default)) * scale_y),
    )


class GoogleVisionDetectionService(DetectionService):
    """Detection backed by Google Cloud Vision ``images:annotate``."""

    def __init__(self, api_key: str | None = None, settings: Config | None = None) -> None:
        self.settings = settings or config
        self.api_key = api_key if api_key is not None else self.settings.google_cloud_vision_key
        self.endpoint = self.settings.google_vision_endpoint
        self.min_score = float(self.settings.detection_min_score)
        self.timeout = aiohttp.ClientTimeout(total=float(self.settings.detection_timeout_seconds))
        self._session: aiohttp.ClientSession | None = None

        if self.available:
            logger.info("GoogleVisionDetectionService: initialized with API key")
        else:
            logger.warning("GoogleVisionDetectionService: not configured (set GOOGLE_CLOUD_VISION_KEY)")

    @property
    def available(self) -> bool:
        return bool(self.api_key)

    def _get_session(self) -> aiohttp.ClientSession:
        """Shared session for all annotate calls, reopened after ``close``."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _annotate(self, screenshot: Screenshot, feature: str) -> dict[str, Any]:
        """POST a single-feature annotate request and return the first response."""
        if not self.available:
            raise DetectionServiceError("Google Cloud Vision is not configured")

        payload = {
            "requests": [
                {
                    "image": {"content": screenshot.to_base64()},
                    "features": [{"type": feature}],
                }
            ]
        }
        try:
            session = self._get_session()
            async with session.post(self.endpoint, params={"key": self.api_key}, json=payload) as response:
                response.raise_for_status()
                body = await response.json()
        except aiohttp.ClientError as exc:
            raise DetectionServiceError(f"{feature} request failed: {exc}") from exc

        responses = body.get("responses") or [{}]
        first = responses[0] or {}
        if "error" in first:
            raise DetectionServiceError(f"{feature} returned error: {first['error'].get('message', first['error'])}")
        return first

    async def detect_text(self, screenshot: Screenshot) -> list[RawDetection]:
        data = await self._annotate(screenshot, "TEXT_DETECTION")
        # The first annotation is the whole text block; words follow.
        words = (data.get("textAnnotations") or [])[1:]
        results = [
            RawDetection(
                bbox=_vertex_bbox((word.get("boundingPoly") or {}).get("vertices") or []),
                name=word.get("description", ""),
                confidence=float(word.get("confidence") or _DEFAULT_TEXT_CONFIDENCE),
            )
            for word in words
        ]
        logger.debug("Cloud Vision text detection returned {0} words", len(results))
        return results

    async def detect_objects(self, screenshot: Screenshot) -> list[RawDetection]:
        data = await self._annotate(screenshot, "OBJECT_LOCALIZATION")
        width, height = resolve_image_size(screenshot, self.settings)
        results: list[RawDetection] = []
        for obj in data.get("localizedObjectAnnotations") or []:
            score = float(obj.get("score") or 0.0)
            if score < self.min_score:
                continue
            # Object vertices are normalized to [0, 1]
            vertices = (obj.get("boundingPoly") or {}).get("normalizedVertices") or []
            results.append(
                RawDetection(
                    bbox=_vertex_bbox(vertices, width, height, default=1.0),
                    name=obj.get("name", ""),
                    confidence=score,
                )
            )
        logger.debug("Cloud Vision object detection returned {0} objects ({1}x{2})", len(results), width, height)
        return results

    async def detect_logos(self, screenshot: Screenshot) -> list[RawDetection]:
        data = await self._annotate(screenshot, "LOGO_DETECTION")
        results: list[RawDetection] = []
        for logo in data.get("logoAnnotations") or []:
            score = float(logo.get("score") or 0.0)
            if score < self.min_score:
                continue
            vertices = (logo.get("boundingPoly") or {}).get("vertices") or []
            results.append(
                RawDetection(
                    bbox=_vertex_bbox(vertices),
                    name=logo.get("description", ""),
                    confidence=score,
                )
            )
        logger.debug("Cloud Vision logo detection returned {0} logos", len(results))
        return results


# Singleton accessor ---------------------------------------------------------

_detection_service: DetectionService | None = None


def get_detection_service() -> DetectionService:
    global _detection_service  # pylint: disable=global-statement
    if _detection_service is None:
        _detection_service = GoogleVisionDetectionService()
    return _detection_service


async def close_detection_service() -> None:
    """Close the shared service's session, if one was ever created."""
    if _detection_service is not None:
        await _detection_service.close()
