"""Vision debugging helpers: keep marked screenshots for inspection."""

from __future__ import annotations

import re
import time
from pathlib import Path

from loguru import logger

from ..core.config import Config, config
from .models import Screenshot


def _slug(description: str, max_length: int = 40) -> str:
    slug = re.sub(r"[^a-z0-9]+", "_", description.lower()).strip("_")
    return slug[:max_length] or "element"


def save_marked_screenshot(
    marked: Screenshot,
    description: str,
    settings: Config | None = None,
) -> Path | None:
    """Write the Set-of-Mark image under the marker debug directory, if enabled."""
    settings = settings or config
    if not settings.save_marker_debug:
        return None

    debug_dir = Path(settings.get_marker_debug_path())
    debug_dir.mkdir(parents=True, exist_ok=True)
    path = debug_dir / f"{int(time.time() * 1000)}_{_slug(description)}_marked.png"
    try:
        path.write_bytes(marked.data)
    except OSError as exc:
        logger.warning(f"Failed to save marker debug image: {exc}")
        return None
    logger.debug("Saved marker debug image to {0}", path)
    return path
