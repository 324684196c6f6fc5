"""AI utilities: prompt building, the OpenAI client wrapper and the model-backed tiers."""

from .chrome_classifier import ChromeFilterClassifier
from .coordinate_guesser import CoordinateGuesser
from .openai_client import ReasoningClient, get_reasoning_client
from .selector import ModelAssistedSelector, SelectionOutcome, SelectionStatus

__all__ = [
    "ChromeFilterClassifier",
    "CoordinateGuesser",
    "ModelAssistedSelector",
    "ReasoningClient",
    "SelectionOutcome",
    "SelectionStatus",
    "get_reasoning_client",
]
