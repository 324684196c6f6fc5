"""Model-assisted element selection over a Set-of-Mark screenshot."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..core.config import Config, config
from ..core.logger import log
from ..vision.models import (
    DetectedElement,
    DetectionMethod,
    DetectionResult,
    ResolutionContext,
    Screenshot,
)
from ..vision.relevance_filter import in_chrome_band
from .openai_client import ReasoningClient, get_reasoning_client
from .prompt_builder import build_selection_prompt
from .response_parser import parse_selection


class SelectionStatus(str, Enum):
    """Validation verdict for one selection attempt."""

    VALID = "valid"
    NO_MATCH = "no_match"
    UNKNOWN_MARK = "unknown_mark"
    CHROME_BAND = "chrome_band"


@dataclass
class SelectionOutcome:
    status: SelectionStatus
    mark: Optional[int] = None
    element: Optional[DetectedElement] = None
    reasoning: str = ""

    @property
    def valid(self) -> bool:
        return self.status is SelectionStatus.VALID and self.element is not None

    def to_result(self) -> DetectionResult:
        """Detection result for a valid selection: element center and confidence."""
        if not self.valid:
            raise ValueError(f"Cannot build a result from a {self.status.value} selection")
        assert self.element is not None
        return DetectionResult(
            coordinates=self.element.center(),
            confidence=self.element.confidence,
            method=DetectionMethod.SPATIAL_AWARE,
            selected_element=self.element.label,
        )


class ModelAssistedSelector:
    """Ask the reasoning service to pick a mark, then validate the pick."""

    def __init__(self, client: ReasoningClient | None = None, settings: Config | None = None) -> None:
        self.client = client or get_reasoning_client()
        self.settings = settings or config

    def validate(
        self,
        mark: Optional[int],
        catalog: list[DetectedElement],
        filter_in_effect: bool,
    ) -> SelectionOutcome:
        """Apply the selection rules against the catalog of this call."""
        if mark is None:
            return SelectionOutcome(SelectionStatus.NO_MATCH)

        element = next((el for el in catalog if el.id == mark), None)
        if element is None:
            return SelectionOutcome(SelectionStatus.UNKNOWN_MARK, mark=mark)

        if filter_in_effect and in_chrome_band(element, self.settings.chrome_band_height):
            return SelectionOutcome(SelectionStatus.CHROME_BAND, mark=mark, element=element)

        return SelectionOutcome(SelectionStatus.VALID, mark=mark, element=element)

    async def select(
        self,
        marked: Screenshot,
        catalog: list[DetectedElement],
        description: str,
        context: ResolutionContext,
        filter_in_effect: bool,
    ) -> SelectionOutcome:
        """Return the validated selection.

        Raises ``ReasoningServiceError`` or ``ResponseParseError`` when the call
        fails or the answer is malformed; the caller escalates.
        """
        prompt = build_selection_prompt(
            catalog,
            description,
            context,
            chrome_band_height=int(self.settings.chrome_band_height),
        )
        reply = await self.client.complete(
            prompt,
            image=marked,
            max_tokens=int(self.settings.selector_max_tokens),
        )
        answer = parse_selection(reply)
        outcome = self.validate(answer.selected_mark, catalog, filter_in_effect)
        outcome.reasoning = answer.reasoning

        log.log_ai_decision(
            f"selected mark {answer.selected_mark} ({outcome.status.value})",
            confidence=outcome.element.confidence if outcome.element else None,
            context={"reasoning": answer.reasoning[:120]},
        )
        return outcome
