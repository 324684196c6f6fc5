"""Decide, once per task phrasing, whether menu-bar elements should be filtered."""

from __future__ import annotations

from ..core.config import Config, config
from ..core.filter_cache import MenuBarFilterCache, get_filter_cache
from ..core.logger import log
from ..vision.models import ResolutionContext
from .openai_client import ReasoningClient, get_reasoning_client
from .prompt_builder import build_menu_bar_prompt
from .response_parser import parse_boolean

# Window/app-level tasks rarely target the menu bar
FILTER_KEYWORDS = ("window", "application", "open")


def keyword_decision(description: str) -> bool:
    lowered = description.lower()
    return any(keyword in lowered for keyword in FILTER_KEYWORDS)


class ChromeFilterClassifier:
    """Cached true/false decision: should menu-bar chrome be filtered for a task?"""

    def __init__(
        self,
        client: ReasoningClient | None = None,
        cache: MenuBarFilterCache | None = None,
        settings: Config | None = None,
    ) -> None:
        self.client = client or get_reasoning_client()
        self.cache = cache if cache is not None else get_filter_cache()
        self.settings = settings or config

    async def should_filter(self, description: str, context: ResolutionContext | None = None) -> bool:
        """Return the filtering decision, querying the model only on a cache miss."""
        context = context or ResolutionContext()
        cached = self.cache.get(description)
        if cached is not None:
            log.debug(f"Menu-bar filter cache hit for {description[:80]!r}: {cached}")
            return cached

        decision = await self._classify(description, context)
        self.cache.set(description, decision)
        return decision

    async def _classify(self, description: str, context: ResolutionContext) -> bool:
        if not self.client.available:
            decision = keyword_decision(description)
            log.warning(f"No reasoning client, using keyword filtering decision: {decision}")
            return decision

        try:
            reply = await self.client.complete(
                build_menu_bar_prompt(description, context),
                max_tokens=int(self.settings.classifier_max_tokens),
            )
            decision = parse_boolean(reply)
        except Exception as exc:  # noqa: BLE001
            decision = keyword_decision(description)
            log.error(f"Menu-bar classification failed ({exc}), using keyword decision: {decision}")
            return decision

        log.log_ai_decision(
            f"filter menu bar = {decision}",
            context={"description": description[:80]},
        )
        return decision
