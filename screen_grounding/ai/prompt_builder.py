"""Prompt construction for the three reasoning-service calls.

* menu-bar classification: does the task need the top-of-screen menu bar?
* Set-of-Mark selection: which numbered mark matches the description?
* coordinate guess: where on the unmarked screenshot is the element?
"""

from __future__ import annotations

from loguru import logger

from ..vision.models import DetectedElement, ResolutionContext

MENU_BAR_CLASSIFIER_HEADER = (
    "Analyze this UI automation task and determine if it requires clicking "
    "menu bar items (File, Edit, View, etc. at the top of the screen)."
)

MENU_BAR_CLASSIFIER_RULES = (
    'Answer with ONLY "true" or "false":\n'
    '- "false" = Task requires menu bar interaction (File menu, Edit menu, preferences, etc.)\n'
    '- "true" = Task is about windows, apps, icons, or other non-menu-bar elements\n'
    "\n"
    "Examples:\n"
    '- "Click File menu and select Save" → false (needs menu bar)\n'
    '- "Open preferences from Edit menu" → false (needs menu bar)\n'
    '- "Open TextEdit application" → true (filter menu bar)\n'
    '- "Click the TextEdit window" → true (filter menu bar)\n'
    '- "Find app icon in dock" → true (filter menu bar)'
)


def serialize_element_catalog(elements: list[DetectedElement]) -> str:
    """One line per element: id, label, source, confidence and vertical center."""
    lines: list[str] = []
    for el in elements:
        line = (
            f"[{el.id}] {el.label} "
            f"({el.source.value}, confidence: {el.confidence:.2f}, y: {el.center().y})"
        )
        lines.append(line)
    return "\n".join(lines)


def build_menu_bar_prompt(description: str, context: ResolutionContext) -> str:
    prompt = (
        f"{MENU_BAR_CLASSIFIER_HEADER}\n\n"
        f'Task: "{description}"\n'
        f"Active App: {context.active_app or 'unknown'}\n\n"
        f"{MENU_BAR_CLASSIFIER_RULES}\n\n"
        'Return ONLY "true" or "false":'
    )
    return prompt


def build_selection_prompt(
    elements: list[DetectedElement],
    description: str,
    context: ResolutionContext,
    chrome_band_height: int,
) -> str:
    """Prompt for picking one numbered mark on the annotated screenshot."""
    url_line = f"URL: {context.active_url}\n" if context.active_url else ""
    prompt = (
        "You are analyzing a screenshot with NUMBERED UI ELEMENTS "
        "(red boxes with white numbers).\n\n"
        f'Find the UI element that best matches: "{description}"\n\n'
        f"App: {context.active_app or 'unknown'}\n"
        f"{url_line}\n"
        f"Elements:\n{serialize_element_catalog(elements)}\n\n"
        "Rules:\n"
        "1. Match text content to description (exact or partial match)\n"
        "2. Prefer elements with higher confidence\n"
        "3. Consider context (app name, URL)\n"
        "4. If multiple matches, choose the most relevant one\n"
        f"5. Menu bar elements (y < {chrome_band_height}) are not valid targets\n\n"
        "Return JSON:\n"
        "{\n"
        '  "selected_mark": <number or null>,\n'
        '  "reasoning": "Why this element matches"\n'
        "}\n\n"
        "Be lenient - if there's a reasonable match, select it. "
        "Only return null if truly no match exists."
    )
    logger.debug("Selection prompt generated, {0} characters", len(prompt))
    return prompt


def build_coordinate_prompt(description: str, context: ResolutionContext) -> str:
    """Prompt for a raw pixel guess with explicit coordinate conventions."""
    width = context.screen_width or 0
    height = context.screen_height or 0
    screen_info = f"Screen: {width}x{height}\n" if width and height else ""
    bottom = height or "screen height"

    prompt = (
        f'Find the EXACT pixel coordinates of: "{description}"\n\n'
        f"{screen_info}\n"
        "**CRITICAL - COORDINATE SYSTEM:**\n"
        "- Screenshot origin: Top-left corner (0, 0)\n"
        "- X increases from left to right\n"
        "- Y increases from top to bottom\n"
        "- Top of screen: y = 0\n"
        f"- Bottom of screen: y = {bottom}\n"
        f"- Example: Element at bottom of screen has HIGH y value (near {bottom})\n\n"
        "**CRITICAL - BROWSER UI DISAMBIGUATION:**\n"
        "- Browser Address Bar = Top of browser (y: 30-100), shows URL\n"
        "- In-Page Search Box = Inside web page (y: 120+), application-specific\n"
        f"- Message Input Field = Usually at BOTTOM of screen (high y value, near {bottom})\n\n"
        "Return ONLY valid JSON:\n"
        "{\n"
        '  "x": <pixel number>,\n'
        '  "y": <pixel number>,\n'
        '  "confidence": <0.0 to 1.0>\n'
        "}"
    )
    logger.debug("Coordinate prompt generated, {0} characters", len(prompt))
    return prompt
