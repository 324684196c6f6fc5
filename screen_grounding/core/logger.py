"""Structured logging for the screen-grounding service.

Everything goes through loguru. ``log`` tags each record with the component
name and offers a few helpers for the events the resolver reports on: tier
transitions, model decisions, final results and timings.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

from loguru import logger

from .config import Config, config

_CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level:<8}</level> | "
    "<cyan>{extra[component]}</cyan> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)
_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<8} | {extra[component]} | {name}:{function}:{line} | {message}"

# (file pattern, minimum level, retention)
_FILE_SINKS = (
    ("grounding_{time:YYYY-MM-DD}.log", "DEBUG", "30 days"),
    ("errors_{time:YYYY-MM-DD}.log", "ERROR", "90 days"),
)


class Logger:
    """Component-tagged facade over the loguru logger."""

    def __init__(self, name: str = "grounding", settings: Config | None = None) -> None:
        self.name = name
        self.settings = settings or config
        self._logger = logger.bind(component=name)
        self._configure_sinks()

    def _configure_sinks(self) -> None:
        logger.remove()
        logger.configure(extra={"component": "-"})
        logger.add(sys.stdout, format=_CONSOLE_FORMAT, level=self.settings.log_level, colorize=True)

        if not self.settings.log_to_file:
            return

        logs_dir = Path(self.settings.logs_dir)
        logs_dir.mkdir(parents=True, exist_ok=True)
        for pattern, level, retention in _FILE_SINKS:
            logger.add(
                str(logs_dir / pattern),
                format=_FILE_FORMAT,
                level=level,
                rotation="1 day",
                retention=retention,
                compression="zip",
            )

    def _emit(self, level: str, message: str, **kwargs: Any) -> None:
        # depth=2 reports the caller of info()/debug()/..., not this helper
        self._logger.opt(depth=2).log(level, message, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self._emit("INFO", message, **kwargs)

    def debug(self, message: str, **kwargs: Any) -> None:
        self._emit("DEBUG", message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._emit("WARNING", message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self._emit("ERROR", message, **kwargs)

    def log_tier_transition(self, source: str, target: str, reason: str | None = None) -> None:
        msg = f"TIER {source} -> {target}"
        if reason:
            msg += f" ({reason})"
        self._emit("DEBUG", msg)

    def log_ai_decision(
        self,
        decision: str,
        confidence: float | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Record what the reasoning service decided, with its confidence if known."""
        msg = f"MODEL {decision}"
        if confidence is not None:
            msg += f" (confidence {confidence:.2f})"
        if context:
            msg += " | " + ", ".join(f"{key}={value!r}" for key, value in context.items())
        self._emit("INFO", msg)

    def log_detection_result(
        self,
        method: str,
        confidence: float,
        coordinates: tuple[int, int],
        label: str | None = None,
    ) -> None:
        msg = f"RESOLVED {coordinates} via {method} (confidence {confidence:.2f})"
        if label:
            msg += f" -> {label}"
        self._emit("INFO", msg)

    def log_performance(self, operation: str, duration_ms: float) -> None:
        self._emit("DEBUG", f"TIMING {operation}: {duration_ms:.1f}ms")


# Global logger instance
log = Logger()
