"""Image decoding helpers shared by the marker, detectors and refiner."""

from __future__ import annotations

import io

import cv2  # type: ignore
import numpy as np  # type: ignore
from loguru import logger
from PIL import Image, UnidentifiedImageError

from ..core.config import Config, config
from ..core.exceptions import MarkerError
from .models import ResolutionContext, Screenshot


def read_image_size(screenshot: Screenshot) -> tuple[int, int] | None:
    """Return ``(width, height)`` from the image header, or ``None`` if unreadable."""
    try:
        with Image.open(io.BytesIO(screenshot.data)) as img:
            width, height = img.size
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        logger.debug("Could not read image metadata: {0}", exc)
        return None
    if width <= 0 or height <= 0:
        return None
    return int(width), int(height)


def resolve_image_size(screenshot: Screenshot, settings: Config | None = None) -> tuple[int, int]:
    """Return the screenshot size: declared, then metadata, then configured defaults."""
    settings = settings or config
    if screenshot.width and screenshot.height:
        return screenshot.width, screenshot.height

    size = read_image_size(screenshot)
    if size is not None:
        return size

    logger.warning(
        "Image metadata unreadable, using default size {0}x{1}",
        settings.default_image_width,
        settings.default_image_height,
    )
    return settings.default_image_width, settings.default_image_height


def resolve_screen_size(
    screenshot: Screenshot,
    context: ResolutionContext,
    settings: Config | None = None,
) -> tuple[int, int]:
    """Screen size for normalized geometry: request context first, then the image."""
    if context.screen_width and context.screen_height:
        return context.screen_width, context.screen_height
    return resolve_image_size(screenshot, settings)


def decode_image(screenshot: Screenshot) -> np.ndarray:
    """Decode the screenshot into a fresh BGR array."""
    buffer = np.frombuffer(screenshot.data, dtype=np.uint8)
    image = cv2.imdecode(buffer, cv2.IMREAD_COLOR) if buffer.size else None
    if image is None:
        raise MarkerError(f"Could not decode {screenshot.mime_type} screenshot ({len(screenshot.data)} bytes)")
    return image


def encode_png(image: np.ndarray) -> bytes:
    ok, encoded = cv2.imencode(".png", image)
    if not ok:
        raise MarkerError("PNG encoding failed")
    return encoded.tobytes()
