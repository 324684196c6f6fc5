"""Element resolver: the tiered detection pipeline as an explicit state machine.

Tiers and their edges::

    AGGREGATE ──► FILTER ──► SELECT ──► DONE
        │            │       │  ▲
        │            │       └──┘ (one narrowed retry)
        ▼            ▼       ▼
        └──────► FALLBACK_GUESS ──► REFINE ──► DONE
                       │
                       └──────────────────────► DONE

Any unexpected error in AGGREGATE, FILTER or SELECT escalates to
FALLBACK_GUESS. FALLBACK_GUESS has no lower tier: its failures surface to the
caller as ``ResolutionError``.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Optional

from ..ai.chrome_classifier import ChromeFilterClassifier
from ..ai.coordinate_guesser import CoordinateGuesser
from ..ai.selector import ModelAssistedSelector, SelectionStatus
from ..vision.aggregator import ElementAggregator
from ..vision.debug import save_marked_screenshot
from ..vision.geometry import GeometricRefiner
from ..vision.imaging import resolve_screen_size
from ..vision.marker import SetOfMarkRenderer
from ..vision.models import (
    DetectedElement,
    DetectionResult,
    ResolutionContext,
    ResolutionRequest,
    Screenshot,
)
from ..vision.relevance_filter import RelevanceFilter
from .config import Config, config
from .exceptions import ResolutionError
from .logger import log

# Initial attempt plus one narrowed retry
MAX_SELECTION_ATTEMPTS = 2


class Tier(str, Enum):
    """Pipeline stages."""

    AGGREGATE = "aggregate"
    FILTER = "filter"
    SELECT = "select"
    FALLBACK_GUESS = "fallback_guess"
    REFINE = "refine"
    DONE = "done"


TRANSITIONS: dict[Tier, frozenset[Tier]] = {
    Tier.AGGREGATE: frozenset({Tier.FILTER, Tier.FALLBACK_GUESS}),
    Tier.FILTER: frozenset({Tier.SELECT, Tier.FALLBACK_GUESS}),
    Tier.SELECT: frozenset({Tier.SELECT, Tier.DONE, Tier.FALLBACK_GUESS}),
    Tier.FALLBACK_GUESS: frozenset({Tier.REFINE, Tier.DONE}),
    Tier.REFINE: frozenset({Tier.DONE}),
    Tier.DONE: frozenset(),
}

# Tiers whose failures are recovered by dropping to the coordinate guess
RECOVERABLE_TIERS = frozenset({Tier.AGGREGATE, Tier.FILTER, Tier.SELECT})


class InvalidTransitionError(RuntimeError):
    """A handler tried to move along an edge the pipeline does not define."""


@dataclass
class ResolutionState:
    """Mutable bookkeeping for one request while it moves through the tiers."""

    request: ResolutionRequest
    tier: Tier = Tier.AGGREGATE
    visited: list[Tier] = field(default_factory=list)
    elements: list[DetectedElement] = field(default_factory=list)
    candidates: list[DetectedElement] = field(default_factory=list)
    anchors: list[DetectedElement] = field(default_factory=list)
    filter_in_effect: bool = False
    selection_attempts: int = 0
    guess: Optional[DetectionResult] = None
    result: Optional[DetectionResult] = None

    def __post_init__(self) -> None:
        if not self.visited:
            self.visited.append(self.tier)

    def advance(self, target: Tier, reason: str | None = None) -> None:
        if target not in TRANSITIONS[self.tier]:
            raise InvalidTransitionError(f"{self.tier.value} -> {target.value} is not a pipeline edge")
        log.log_tier_transition(self.tier.value, target.value, reason)
        self.tier = target
        self.visited.append(target)


class ElementResolver:
    """Resolve a UI element description against a screenshot."""

    def __init__(
        self,
        aggregator: ElementAggregator | None = None,
        classifier: ChromeFilterClassifier | None = None,
        relevance_filter: RelevanceFilter | None = None,
        marker: SetOfMarkRenderer | None = None,
        selector: ModelAssistedSelector | None = None,
        guesser: CoordinateGuesser | None = None,
        refiner: GeometricRefiner | None = None,
        settings: Config | None = None,
    ) -> None:
        self.settings = settings or config
        self.aggregator = aggregator or ElementAggregator(settings=self.settings)
        self.classifier = classifier or ChromeFilterClassifier(settings=self.settings)
        self.relevance_filter = relevance_filter or RelevanceFilter(self.settings)
        self.marker = marker or SetOfMarkRenderer(self.settings)
        self.selector = selector or ModelAssistedSelector(settings=self.settings)
        self.guesser = guesser or CoordinateGuesser(settings=self.settings)
        self.refiner = refiner or GeometricRefiner(settings=self.settings)

        self._handlers: dict[Tier, Callable[[ResolutionState], Awaitable[None]]] = {
            Tier.AGGREGATE: self._aggregate,
            Tier.FILTER: self._filter,
            Tier.SELECT: self._select,
            Tier.FALLBACK_GUESS: self._fallback_guess,
            Tier.REFINE: self._refine,
        }

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    async def run(self, request: ResolutionRequest) -> ResolutionState:
        """Drive *request* through the tiers and return the final state."""
        start_tier = Tier.AGGREGATE if self.settings.tiered_detection_enabled else Tier.FALLBACK_GUESS
        state = ResolutionState(request=request, tier=start_tier)
        log.info(f"Resolving {request.description[:100]!r} starting at {start_tier.value}")

        start = time.perf_counter()
        while state.tier is not Tier.DONE:
            tier = state.tier
            try:
                await self._handlers[tier](state)
            except ResolutionError:
                raise
            except Exception as exc:  # noqa: BLE001
                if tier not in RECOVERABLE_TIERS:
                    raise ResolutionError(request.description, exc) from exc
                log.error(f"Tier {tier.value} failed: {exc}")
                state.advance(Tier.FALLBACK_GUESS, reason=f"{type(exc).__name__} in {tier.value}")

        if state.result is None:
            raise ResolutionError(request.description, RuntimeError("pipeline finished without a result"))

        log.log_performance("resolution", (time.perf_counter() - start) * 1000)
        log.log_detection_result(
            state.result.method.value,
            state.result.confidence,
            state.result.coordinates.as_tuple(),
            state.result.selected_element,
        )
        return state

    async def resolve(self, request: ResolutionRequest) -> DetectionResult:
        """Return the coordinate for *request* or raise ``ResolutionError``."""
        state = await self.run(request)
        assert state.result is not None
        return state.result

    async def detect_element(
        self,
        screenshot: Screenshot,
        description: str,
        context: ResolutionContext | None = None,
    ) -> DetectionResult:
        return await self.resolve(
            ResolutionRequest(screenshot=screenshot, description=description, context=context or ResolutionContext())
        )

    # ------------------------------------------------------------------
    # Tier handlers
    # ------------------------------------------------------------------
    async def _aggregate(self, state: ResolutionState) -> None:
        state.elements = await self.aggregator.collect(state.request.screenshot)
        if not state.elements:
            state.advance(Tier.FALLBACK_GUESS, reason="no elements detected")
            return
        state.advance(Tier.FILTER)

    async def _filter(self, state: ResolutionState) -> None:
        request = state.request
        state.filter_in_effect = await self.classifier.should_filter(request.description, request.context)
        filtered = self.relevance_filter.apply(state.elements, state.filter_in_effect)
        # Refinement anchors on everything detected, filtered or not
        state.anchors = list(state.elements)
        if not filtered:
            state.advance(Tier.FALLBACK_GUESS, reason="all elements filtered out")
            return
        state.candidates = filtered
        state.advance(Tier.SELECT)

    async def _select(self, state: ResolutionState) -> None:
        request = state.request
        state.selection_attempts += 1

        # Blocking OpenCV and file work
        marked = await asyncio.to_thread(self.marker.render, request.screenshot, state.candidates)
        await asyncio.to_thread(save_marked_screenshot, marked, request.description, self.settings)
        outcome = await self.selector.select(
            marked,
            state.candidates,
            request.description,
            request.context,
            state.filter_in_effect,
        )

        if outcome.valid:
            state.result = outcome.to_result()
            state.advance(Tier.DONE, reason=f"mark {outcome.mark}")
            return

        retry = outcome.status is not SelectionStatus.NO_MATCH and state.selection_attempts < MAX_SELECTION_ATTEMPTS
        narrowed = self._narrowed_catalog(state, outcome.status) if retry else []
        if narrowed:
            state.candidates = narrowed
            state.advance(Tier.SELECT, reason=f"{outcome.status.value}, retrying with {len(narrowed)} elements")
            return
        state.advance(Tier.FALLBACK_GUESS, reason=f"selection {outcome.status.value}")

    def _narrowed_catalog(self, state: ResolutionState, status: SelectionStatus) -> list[DetectedElement]:
        """Catalog for the retry: chrome-band elements removed when filtering applies."""
        if status is SelectionStatus.CHROME_BAND or state.filter_in_effect:
            return self.relevance_filter.exclude_chrome_band(state.candidates)
        return list(state.candidates)

    async def _fallback_guess(self, state: ResolutionState) -> None:
        request = state.request
        state.guess = await self.guesser.guess(request.screenshot, request.description, request.context)
        if state.anchors:
            state.advance(Tier.REFINE, reason=f"{len(state.anchors)} anchors available")
            return
        state.result = state.guess
        state.advance(Tier.DONE)

    async def _refine(self, state: ResolutionState) -> None:
        assert state.guess is not None
        request = state.request
        screen_size = resolve_screen_size(request.screenshot, request.context, self.settings)
        state.result = self.refiner.refine(state.guess, request.description, state.anchors, screen_size)
        state.advance(Tier.DONE)


# Singleton accessor ---------------------------------------------------------

_element_resolver: ElementResolver | None = None


def get_element_resolver() -> ElementResolver:
    global _element_resolver  # pylint: disable=global-statement
    if _element_resolver is None:
        _element_resolver = ElementResolver()
    return _element_resolver
