"""Parallel fan-out to the detection backends and normalization of their hits."""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable

from loguru import logger

from ..core.config import Config, config
from .detection_service import DetectionService, RawDetection, get_detection_service
from .models import DetectedElement, ElementSource, Screenshot, clamp_confidence

DetectorCall = Callable[[Screenshot], Awaitable[list[RawDetection]]]


class ElementAggregator:
    """Collect text, object and logo detections into one typed element list."""

    def __init__(self, service: DetectionService | None = None, settings: Config | None = None) -> None:
        self.service = service or get_detection_service()
        self.settings = settings or config

    async def _guarded(self, name: str, call: DetectorCall, screenshot: Screenshot) -> list[RawDetection]:
        """Run one backend call; a failure or timeout contributes nothing."""
        try:
            return await asyncio.wait_for(call(screenshot), timeout=self.settings.detection_timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(
                "{0} detection timed out after {1}s",
                name,
                self.settings.detection_timeout_seconds,
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning(f"{name} detection failed: {exc}")
        return []

    async def collect(self, screenshot: Screenshot) -> list[DetectedElement]:
        """Return all detected elements; an empty list when nothing is available."""
        if not self.service.available:
            logger.debug("Detection service unavailable, skipping element aggregation")
            return []

        start = time.perf_counter()
        objects, logos, texts = await asyncio.gather(
            self._guarded("Object", self.service.detect_objects, screenshot),
            self._guarded("Logo", self.service.detect_logos, screenshot),
            self._guarded("Text", self.service.detect_text, screenshot),
        )

        elements: list[DetectedElement] = []
        next_id = 1

        for hit in objects:
            elements.append(self._element(next_id, hit, ElementSource.OBJECT, f'Object: "{hit.name}"', False))
            next_id += 1

        for hit in logos:
            elements.append(self._element(next_id, hit, ElementSource.LOGO, f'Logo: "{hit.name}"', True))
            next_id += 1

        min_len = int(self.settings.min_text_length)
        for hit in texts:
            text = hit.name.strip()
            if len(text) < min_len:
                continue
            elements.append(self._element(next_id, hit, ElementSource.TEXT, f'Text: "{text}"', False))
            next_id += 1

        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "Detection complete in {0:.0f}ms: {1} objects, {2} logos, {3} text, {4} elements",
            duration_ms,
            len(objects),
            len(logos),
            len(texts),
            len(elements),
        )
        return elements

    @staticmethod
    def _element(
        element_id: int,
        hit: RawDetection,
        source: ElementSource,
        label: str,
        interactable: bool,
    ) -> DetectedElement:
        return DetectedElement(
            id=element_id,
            bbox=hit.bbox,
            label=label,
            confidence=clamp_confidence(hit.confidence),
            source=source,
            interactable=interactable,
        )
