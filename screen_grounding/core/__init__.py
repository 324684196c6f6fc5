"""Core components: configuration, logging, errors and the tier state machine."""

from .config import Config, config
from .exceptions import (
    DetectionServiceError,
    GroundingError,
    MarkerError,
    ReasoningServiceError,
    ResolutionError,
    ResponseParseError,
)
from .filter_cache import MenuBarFilterCache, get_filter_cache
from .logger import Logger, log

__all__ = [
    "Config",
    "DetectionServiceError",
    "GroundingError",
    "Logger",
    "MarkerError",
    "MenuBarFilterCache",
    "ReasoningServiceError",
    "ResolutionError",
    "ResponseParseError",
    "config",
    "get_filter_cache",
    "log",
]
