"""Geometric refinement of guessed coordinates using platform layout conventions.

Patterns are plain data: a screen-fraction region where a control usually
lives, plus anchor rules describing where the control sits relative to some
recognizable neighbour (a logo, a product title, a text label). Adding a new
convention means adding a ``GeometricPattern`` entry or a JSON file entry;
the refiner itself never changes.
"""

from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Iterable, Optional

from loguru import logger

from ..core.config import Config, config
from .models import DetectedElement, DetectionResult, ElementSource, Point, round_half_up

_LABEL_TEXT = re.compile(r'^\w+:\s*"(?P<text>.*)"$', re.DOTALL)

_X_REFS = ("left", "center", "right")
_Y_REFS = ("top", "center", "bottom")


def label_text(label: str) -> str:
    """Strip the provenance prefix: ``Text: "Save"`` -> ``Save``."""
    match = _LABEL_TEXT.match(label.strip())
    return match.group("text") if match else label


@dataclass(frozen=True, slots=True)
class NormalizedRegion:
    """Rectangle in screen-fraction space, bounds inclusive."""

    x_min: float
    x_max: float
    y_min: float
    y_max: float

    def __post_init__(self) -> None:
        for value in (self.x_min, self.x_max, self.y_min, self.y_max):
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"Region bound {value} outside [0, 1]")
        if self.x_min > self.x_max or self.y_min > self.y_max:
            raise ValueError("Region minimum exceeds maximum")

    def contains(self, point: Point, screen_width: int, screen_height: int) -> bool:
        nx = point.x / screen_width
        ny = point.y / screen_height
        return self.x_min <= nx <= self.x_max and self.y_min <= ny <= self.y_max

    def pixel_bounds(self, screen_width: int, screen_height: int) -> Optional[tuple[int, int, int, int]]:
        """Inclusive whole-pixel bounds ``(x_lo, x_hi, y_lo, y_hi)``, or ``None`` if no pixel fits."""
        x_lo = math.ceil(self.x_min * screen_width)
        x_hi = math.floor(self.x_max * screen_width)
        y_lo = math.ceil(self.y_min * screen_height)
        y_hi = math.floor(self.y_max * screen_height)
        if x_lo > x_hi or y_lo > y_hi:
            return None
        return x_lo, x_hi, y_lo, y_hi

    def center(self, screen_width: int, screen_height: int) -> Optional[Point]:
        """Rounded region center kept on a pixel inside the region."""
        bounds = self.pixel_bounds(screen_width, screen_height)
        if bounds is None:
            return None
        x_lo, x_hi, y_lo, y_hi = bounds
        x = round_half_up(screen_width * (self.x_min + self.x_max) / 2)
        y = round_half_up(screen_height * (self.y_min + self.y_max) / 2)
        return Point(min(max(x, x_lo), x_hi), min(max(y, y_lo), y_hi))


@dataclass(frozen=True, slots=True)
class AnchorRule:
    """Where the target sits relative to a matching anchor element.

    An anchor matches when every configured condition holds: one of
    ``label_keywords`` appears in its label, its source is in ``sources``, and
    (with ``text_in_description``) its text appears in the task description.
    """

    x_ref: str = "center"
    y_ref: str = "center"
    dx: float = 0.0
    dy: float = 0.0
    label_keywords: tuple[str, ...] = ()
    sources: tuple[ElementSource, ...] = ()
    text_in_description: bool = False

    def __post_init__(self) -> None:
        if self.x_ref not in _X_REFS:
            raise ValueError(f"x_ref must be one of {_X_REFS}, got {self.x_ref!r}")
        if self.y_ref not in _Y_REFS:
            raise ValueError(f"y_ref must be one of {_Y_REFS}, got {self.y_ref!r}")

    def matches(self, anchor: DetectedElement, description: str) -> bool:
        label = anchor.label.lower()
        if self.label_keywords and not any(kw.lower() in label for kw in self.label_keywords):
            return False
        if self.sources and anchor.source not in self.sources:
            return False
        if self.text_in_description:
            text = label_text(anchor.label).lower().strip()
            if not text or text not in description.lower():
                return False
        return True

    def apply(self, anchor: DetectedElement, description: str) -> Optional[Point]:
        """Candidate target position, or ``None`` if the anchor does not qualify."""
        if not self.matches(anchor, description):
            return None
        bbox = anchor.bbox
        x = {"left": bbox.x1, "center": (bbox.x1 + bbox.x2) / 2, "right": bbox.x2}[self.x_ref]
        y = {"top": bbox.y1, "center": (bbox.y1 + bbox.y2) / 2, "bottom": bbox.y2}[self.y_ref]
        return Point(round_half_up(x + self.dx), round_half_up(y + self.dy))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AnchorRule:
        return cls(
            x_ref=data.get("x_ref", "center"),
            y_ref=data.get("y_ref", "center"),
            dx=float(data.get("dx", 0.0)),
            dy=float(data.get("dy", 0.0)),
            label_keywords=tuple(data.get("label_keywords", ())),
            sources=tuple(ElementSource(s) for s in data.get("sources", ())),
            text_in_description=bool(data.get("text_in_description", False)),
        )


@dataclass(frozen=True, slots=True)
class GeometricPattern:
    """A named platform convention for where a control usually lives."""

    name: str
    expected_region: NormalizedRegion
    anchor_rules: tuple[AnchorRule, ...] = field(default_factory=tuple)

    def anchor_candidate(self, anchor: DetectedElement, description: str) -> Optional[Point]:
        for rule in self.anchor_rules:
            candidate = rule.apply(anchor, description)
            if candidate is not None:
                return candidate
        return None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GeometricPattern:
        region = data["expected_region"]
        return cls(
            name=str(data["name"]).lower(),
            expected_region=NormalizedRegion(
                x_min=float(region["x_min"]),
                x_max=float(region["x_max"]),
                y_min=float(region["y_min"]),
                y_max=float(region["y_max"]),
            ),
            anchor_rules=tuple(AnchorRule.from_dict(rule) for rule in data.get("anchor_rules", ())),
        )


_TOP_LEFT_CORNER = NormalizedRegion(x_min=0.02, x_max=0.08, y_min=0.04, y_max=0.12)

DEFAULT_PATTERNS: tuple[GeometricPattern, ...] = (
    # Hamburger menus sit ~60px left of the product logo/title
    GeometricPattern(
        name="hamburger menu",
        expected_region=_TOP_LEFT_CORNER,
        anchor_rules=(
            AnchorRule(x_ref="left", y_ref="center", dx=-60, label_keywords=("chatgpt", "logo")),
        ),
    ),
    GeometricPattern(
        name="sidebar toggle",
        expected_region=_TOP_LEFT_CORNER,
        anchor_rules=(
            AnchorRule(x_ref="left", y_ref="center", dx=-60, label_keywords=("chatgpt",)),
        ),
    ),
    # Profile icons sit just above the user's name
    GeometricPattern(
        name="profile",
        expected_region=NormalizedRegion(x_min=0.85, x_max=0.98, y_min=0.02, y_max=0.15),
        anchor_rules=(
            AnchorRule(
                x_ref="center",
                y_ref="top",
                dy=-30,
                sources=(ElementSource.TEXT,),
                text_in_description=True,
            ),
        ),
    ),
)


def load_patterns(path: str | Path) -> tuple[GeometricPattern, ...]:
    """Load patterns from a JSON file holding a list of pattern objects."""
    with open(path, encoding="utf-8") as fh:
        raw = json.load(fh)
    if not isinstance(raw, list):
        raise ValueError(f"{path}: expected a JSON list of patterns")
    patterns = tuple(GeometricPattern.from_dict(item) for item in raw)
    logger.info("Loaded {0} geometric patterns from {1}", len(patterns), path)
    return patterns


def configured_patterns(settings: Config | None = None) -> tuple[GeometricPattern, ...]:
    settings = settings or config
    if settings.geometric_patterns_file:
        return load_patterns(settings.geometric_patterns_file)
    return DEFAULT_PATTERNS


class GeometricRefiner:
    """Improve a raw coordinate guess with anchor relationships and layout regions."""

    def __init__(
        self,
        patterns: Iterable[GeometricPattern] | None = None,
        settings: Config | None = None,
    ) -> None:
        self.settings = settings or config
        self.patterns = tuple(patterns) if patterns is not None else configured_patterns(self.settings)

    def match_pattern(self, description: str) -> Optional[GeometricPattern]:
        """First pattern whose name appears in the lower-cased description."""
        lowered = description.lower()
        for pattern in self.patterns:
            if pattern.name in lowered:
                return pattern
        return None

    def nearby(self, guess: Point, elements: list[DetectedElement]) -> list[DetectedElement]:
        """Elements whose box top-left corner lies within the anchor radius."""
        radius = float(self.settings.anchor_radius)
        return [
            el
            for el in elements
            if math.hypot(el.bbox.x1 - guess.x, el.bbox.y1 - guess.y) < radius
        ]

    def refine_point(
        self,
        guess: Point,
        description: str,
        elements: list[DetectedElement],
        screen_width: int,
        screen_height: int,
    ) -> Optional[Point]:
        """Refined position, or ``None`` when no pattern applies."""
        pattern = self.match_pattern(description)
        if pattern is None:
            return None

        region = pattern.expected_region
        for anchor in self.nearby(guess, elements):
            candidate = pattern.anchor_candidate(anchor, description)
            if candidate is not None and region.contains(candidate, screen_width, screen_height):
                logger.debug(
                    "Pattern {0!r} anchored on {1} -> {2}",
                    pattern.name,
                    anchor.label,
                    candidate.as_tuple(),
                )
                return candidate

        center = region.center(screen_width, screen_height)
        if center is None:
            logger.debug(
                "Pattern {0!r}: region holds no pixel on a {1}x{2} screen, leaving guess as is",
                pattern.name,
                screen_width,
                screen_height,
            )
            return None
        logger.info(
            "Pattern {0!r}: no usable anchor, snapping to region center {1}",
            pattern.name,
            center.as_tuple(),
        )
        return center

    def refine(
        self,
        result: DetectionResult,
        description: str,
        elements: list[DetectedElement],
        screen_size: tuple[int, int],
    ) -> DetectionResult:
        """Return *result* with refined coordinates and boosted confidence, or unchanged."""
        screen_width, screen_height = screen_size
        refined = self.refine_point(result.coordinates, description, elements, screen_width, screen_height)
        if refined is None:
            return result

        bonus = float(self.settings.refinement_bonus)
        cap = float(self.settings.refinement_confidence_cap)
        confidence = max(result.confidence, min(result.confidence + bonus, cap))
        logger.info(
            "Refined {0} -> {1} ({2}px horizontal, {3}px vertical)",
            result.coordinates.as_tuple(),
            refined.as_tuple(),
            abs(refined.x - result.coordinates.x),
            abs(refined.y - result.coordinates.y),
        )
        return replace(result, coordinates=refined, confidence=confidence)
