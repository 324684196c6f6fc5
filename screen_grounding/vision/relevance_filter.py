"""Deterministic pruning of elements unlikely to be the requested target."""

from __future__ import annotations

from loguru import logger

from ..core.config import Config, config
from .models import DetectedElement, ElementSource


def in_chrome_band(element: DetectedElement, band_height: float) -> bool:
    """True when the element's vertical center sits in the top menu-bar band."""
    return element.center().y < band_height


class RelevanceFilter:
    """Drop chrome-band elements and tiny text when filtering is in effect."""

    def __init__(self, settings: Config | None = None) -> None:
        self.settings = settings or config

    @property
    def band_height(self) -> int:
        return int(self.settings.chrome_band_height)

    def is_degenerate_text(self, element: DetectedElement) -> bool:
        """Very small OCR boxes are usually labels rather than controls."""
        return (
            element.source is ElementSource.TEXT
            and element.bbox.height() < self.settings.small_text_max_height
            and element.bbox.width() < self.settings.small_text_max_width
        )

    def apply(self, elements: list[DetectedElement], filter_in_effect: bool) -> list[DetectedElement]:
        """Return the elements that survive the filtering rules."""
        if not filter_in_effect:
            return list(elements)

        kept = [
            el
            for el in elements
            if not in_chrome_band(el, self.band_height) and not self.is_degenerate_text(el)
        ]
        logger.debug(
            "Relevance filter kept {0}/{1} elements (removed {2})",
            len(kept),
            len(elements),
            len(elements) - len(kept),
        )
        return kept

    def exclude_chrome_band(self, elements: list[DetectedElement]) -> list[DetectedElement]:
        return [el for el in elements if not in_chrome_band(el, self.band_height)]
