"""Parse and validate structured answers from the reasoning service."""

import json
import math
import re
from dataclasses import dataclass
from typing import Any, Optional

from ..core.exceptions import ResponseParseError

__all__ = [
    "CoordinateGuess",
    "SelectionAnswer",
    "parse_boolean",
    "parse_coordinate_guess",
    "parse_selection",
    "strip_code_fences",
]

_FENCE_REGEX = re.compile(r"```(?:json|JSON)?\s*")
_JSON_REGEX = re.compile(r"\{[\s\S]*\}")


@dataclass
class SelectionAnswer:
    """Mark chosen by the model (``None`` means "no match")."""

    selected_mark: Optional[int]
    reasoning: str = ""


@dataclass
class CoordinateGuess:
    """Raw pixel guess from the unmarked screenshot."""

    x: float
    y: float
    confidence: float


def strip_code_fences(text: str) -> str:
    """Remove Markdown code fences the model sometimes wraps around JSON."""
    return _FENCE_REGEX.sub("", text).strip()


def _load_object(raw: str) -> dict[str, Any]:
    """Return the first JSON object in *raw* after stripping fences."""
    cleaned = strip_code_fences(raw)
    match = _JSON_REGEX.search(cleaned)
    if not match:
        raise ResponseParseError(f"No JSON object found in response: {raw[:120]!r}")
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        raise ResponseParseError(f"JSON decode error: {exc}") from exc
    if not isinstance(data, dict):
        raise ResponseParseError("Expected a JSON object")
    return data


def _as_number(data: dict[str, Any], key: str) -> float:
    value = data.get(key)
    # bool is an int subclass; "true" is not a coordinate
    if isinstance(value, bool) or value is None:
        raise ResponseParseError(f"Missing or invalid numeric field: {key}")
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ResponseParseError(f"Field {key} is not a number: {value!r}") from exc
    if not math.isfinite(number):
        raise ResponseParseError(f"Field {key} is not finite: {value!r}")
    return number


def parse_selection(raw: str) -> SelectionAnswer:
    """Parse ``{"selected_mark": <int|null>, "reasoning": "..."}``."""
    data = _load_object(raw)
    if "selected_mark" not in data:
        raise ResponseParseError("Missing key: selected_mark")

    mark = data["selected_mark"]
    reasoning = str(data.get("reasoning") or "")
    if mark is None:
        return SelectionAnswer(selected_mark=None, reasoning=reasoning)
    if isinstance(mark, bool):
        raise ResponseParseError(f"selected_mark must be an integer, got {mark!r}")
    if isinstance(mark, str) and mark.strip().isdigit():
        mark = int(mark.strip())
    if isinstance(mark, float) and mark.is_integer():
        mark = int(mark)
    if not isinstance(mark, int):
        raise ResponseParseError(f"selected_mark must be an integer, got {mark!r}")
    return SelectionAnswer(selected_mark=mark, reasoning=reasoning)


def parse_coordinate_guess(raw: str) -> CoordinateGuess:
    """Parse ``{"x": <px>, "y": <px>, "confidence": <0..1>}``."""
    data = _load_object(raw)
    return CoordinateGuess(
        x=_as_number(data, "x"),
        y=_as_number(data, "y"),
        confidence=_as_number(data, "confidence"),
    )


def parse_boolean(raw: str) -> bool:
    """Parse a bare ``true``/``false`` answer (quotes, fences and punctuation tolerated)."""
    cleaned = strip_code_fences(raw).strip().strip("\"'`.").strip().lower()
    if cleaned == "true":
        return True
    if cleaned == "false":
        return False
    raise ResponseParseError(f"Expected true or false, got {raw[:40]!r}")
