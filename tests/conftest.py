"""
Shared pytest fixtures for all tests.
"""
import asyncio
import os

# Keep test runs from writing rotating log files
os.environ.setdefault("LOG_TO_FILE", "false")

import cv2
import numpy as np
import pytest

from screen_grounding.core.config import Config
from screen_grounding.core.exceptions import ReasoningServiceError
from screen_grounding.core.filter_cache import MenuBarFilterCache
from screen_grounding.vision.detection_service import DetectionService, RawDetection
from screen_grounding.vision.models import (
    BoundingBox,
    DetectedElement,
    ElementSource,
    Screenshot,
)


def make_screenshot(width=400, height=300, color=(240, 240, 240)):
    """Encode a flat-colored BGR image as a PNG screenshot."""
    image = np.full((height, width, 3), color, dtype=np.uint8)
    ok, buffer = cv2.imencode(".png", image)
    assert ok
    return Screenshot(data=buffer.tobytes(), mime_type="image/png")


def make_element(element_id, bbox, label="Text: \"Save\"", confidence=0.9,
                 source=ElementSource.TEXT, interactable=False):
    return DetectedElement(
        id=element_id,
        bbox=BoundingBox(*bbox),
        label=label,
        confidence=confidence,
        source=source,
        interactable=interactable,
    )


def raw(bbox, name, confidence=0.9):
    return RawDetection(bbox=BoundingBox(*bbox), name=name, confidence=confidence)


class FakeReasoningClient:
    """Scripted stand-in for ReasoningClient: replies are consumed in order."""

    def __init__(self, *replies, available=True):
        self.replies = list(replies)
        self.available = available
        self.calls = []

    async def complete(self, prompt, *, image=None, max_tokens=150):
        self.calls.append({"prompt": prompt, "image": image, "max_tokens": max_tokens})
        if not self.replies:
            raise ReasoningServiceError("no scripted reply left")
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply


class FakeDetectionService(DetectionService):
    """Detection backend returning fixed hits, or raising scripted errors."""

    def __init__(self, texts=(), objects=(), logos=(), available=True, delays=None):
        self.results = {"text": texts, "object": objects, "logo": logos}
        self._available = available
        self.delays = delays or {}
        self.calls = []

    @property
    def available(self):
        return self._available

    async def _respond(self, kind):
        self.calls.append(kind)
        delay = self.delays.get(kind)
        if delay:
            await asyncio.sleep(delay)
        result = self.results[kind]
        if isinstance(result, BaseException):
            raise result
        return list(result)

    async def detect_text(self, screenshot):
        return await self._respond("text")

    async def detect_objects(self, screenshot):
        return await self._respond("object")

    async def detect_logos(self, screenshot):
        return await self._respond("logo")


@pytest.fixture
def settings(tmp_path):
    """Configuration isolated from the environment's API keys and debug output."""
    return Config(
        openai_api_key="",
        google_cloud_vision_key="",
        log_to_file=False,
        save_marker_debug=False,
        marker_debug_dir=str(tmp_path / "marker_debug"),
        tiered_detection_enabled=True,
        geometric_patterns_file=None,
        detection_timeout_seconds=1.0,
    )


@pytest.fixture
def filter_cache():
    return MenuBarFilterCache(max_size=16, ttl_seconds=0, key_length=100)


@pytest.fixture
def screenshot():
    return make_screenshot()
