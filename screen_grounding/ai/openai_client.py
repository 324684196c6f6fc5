"""Async OpenAI client wrapper with retry & singleton semantics."""
from __future__ import annotations

import asyncio
import random
from typing import Any

import openai  # type: ignore

from ..core.config import Config, config
from ..core.exceptions import ReasoningServiceError
from ..core.logger import log
from ..vision.models import Screenshot

__all__ = ["ReasoningClient", "get_reasoning_client"]

# Constant settings
_BASE_BACKOFF = 1.0  # seconds


class ReasoningClient:
    """Lightweight async wrapper around the OpenAI chat completion API.

    Every prompt shape in the pipeline goes through :meth:`complete`: an
    optional image plus a text prompt in, the raw text completion out.
    """

    _instance: ReasoningClient | None = None

    @classmethod
    def instance(cls) -> ReasoningClient:
        """Return the singleton instance, creating it on first use."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def __init__(self, api_key: str | None = None, settings: Config | None = None) -> None:
        self.settings = settings or config
        api_key = api_key if api_key is not None else self.settings.openai_api_key
        self._client: openai.AsyncOpenAI | None = None
        if api_key:
            self._client = openai.AsyncOpenAI(
                api_key=api_key,
                timeout=float(self.settings.openai_timeout_seconds),
                max_retries=0,  # retries are handled below with jittered backoff
            )
        else:
            log.warning("OPENAI_API_KEY not configured; reasoning tiers unavailable")

        self.model = self.settings.openai_model
        self.temperature = float(self.settings.openai_temperature)
        self.max_retries = max(1, int(self.settings.openai_max_retries))

    @property
    def available(self) -> bool:
        return self._client is not None

    def _build_messages(self, prompt: str, image: Screenshot | None) -> list[dict[str, Any]]:
        if image is None:
            return [{"role": "user", "content": prompt}]
        return [
            {
                "role": "user",
                "content": [
                    {
                        "type": "image_url",
                        "image_url": {
                            "url": image.to_data_url(),
                            "detail": self.settings.openai_image_detail,
                        },
                    },
                    {"type": "text", "text": prompt},
                ],
            }
        ]

    # ---------------------------------------------------------------------
    # Public API
    # ---------------------------------------------------------------------
    async def complete(
        self,
        prompt: str,
        *,
        image: Screenshot | None = None,
        max_tokens: int = 150,
    ) -> str:
        """Send a single-turn request and return the assistant reply text.

        Args:
            prompt: Instruction text for the model.
            image: Optional screenshot sent alongside the prompt.
            max_tokens: Completion budget for this prompt shape.

        Raises:
            ReasoningServiceError: client not configured, empty reply, or the
                request still failing after all retries.

        """
        if self._client is None:
            raise ReasoningServiceError("OpenAI client not initialized")

        messages = self._build_messages(prompt, image)
        for attempt in range(self.max_retries):
            try:
                response = await self._client.chat.completions.create(
                    model=self.model,
                    messages=messages,  # type: ignore[arg-type]
                    temperature=self.temperature,
                    max_tokens=max_tokens,
                )
                choices = response.choices or []
                content = choices[0].message.content if choices else None  # type: ignore[attr-defined]
                if not content:
                    raise ReasoningServiceError("OpenAI returned empty content")
                return content
            except openai.APIError as exc:
                if attempt == self.max_retries - 1:
                    log.error(f"OpenAI request failed after {attempt + 1} attempts: {exc}")
                    raise ReasoningServiceError(str(exc)) from exc
                sleep_time = _BASE_BACKOFF * (2 ** attempt) + random.uniform(0, 0.5)  # noqa: S311
                log.warning(f"OpenAI error {exc}. Retrying in {sleep_time:.1f}s…")
                await asyncio.sleep(sleep_time)

        # Should not reach here
        raise ReasoningServiceError("OpenAI chat completion failed after retries")


# Convenience getter
get_reasoning_client = ReasoningClient.instance
