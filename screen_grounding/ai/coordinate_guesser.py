"""Last-resort tier: ask the model for raw pixel coordinates."""

from __future__ import annotations

from dataclasses import replace

from ..core.config import Config, config
from ..core.exceptions import ReasoningServiceError, ResolutionError, ResponseParseError
from ..core.logger import log
from ..vision.imaging import read_image_size
from ..vision.models import (
    DetectionMethod,
    DetectionResult,
    Point,
    ResolutionContext,
    Screenshot,
    round_half_up,
)
from .openai_client import ReasoningClient, get_reasoning_client
from .prompt_builder import build_coordinate_prompt
from .response_parser import parse_coordinate_guess


class CoordinateGuesser:
    """Guess coordinates from the unmarked screenshot; failures are fatal."""

    def __init__(self, client: ReasoningClient | None = None, settings: Config | None = None) -> None:
        self.client = client or get_reasoning_client()
        self.settings = settings or config

    @staticmethod
    def _with_screen_size(screenshot: Screenshot, context: ResolutionContext) -> ResolutionContext:
        """Fill in the screen size from the image when the caller did not give one."""
        if context.screen_width and context.screen_height:
            return context
        if screenshot.width and screenshot.height:
            return replace(context, screen_width=screenshot.width, screen_height=screenshot.height)
        size = read_image_size(screenshot)
        if size is None:
            return context
        return replace(context, screen_width=size[0], screen_height=size[1])

    async def guess(
        self,
        screenshot: Screenshot,
        description: str,
        context: ResolutionContext,
    ) -> DetectionResult:
        """Return a ``vision_api_fallback`` result or raise ``ResolutionError``."""
        context = self._with_screen_size(screenshot, context)
        try:
            reply = await self.client.complete(
                build_coordinate_prompt(description, context),
                image=screenshot,
                max_tokens=int(self.settings.guess_max_tokens),
            )
            guess = parse_coordinate_guess(reply)
        except (ReasoningServiceError, ResponseParseError) as exc:
            log.error(f"Coordinate guess failed for {description!r}: {exc}")
            raise ResolutionError(description, exc) from exc

        x = max(0, round_half_up(guess.x))
        y = max(0, round_half_up(guess.y))
        if context.screen_width and context.screen_height:
            x = min(x, context.screen_width - 1)
            y = min(y, context.screen_height - 1)
        if (x, y) != (round_half_up(guess.x), round_half_up(guess.y)):
            log.warning(f"Guessed point ({guess.x}, {guess.y}) clamped to screen as ({x}, {y})")

        log.log_ai_decision(
            f"guessed ({x}, {y}) for {description[:80]!r}",
            confidence=guess.confidence,
            context={"screen": f"{context.screen_width or 0}x{context.screen_height or 0}"},
        )
        return DetectionResult(
            coordinates=Point(x, y),
            confidence=guess.confidence,
            method=DetectionMethod.VISION_API_FALLBACK,
        )
