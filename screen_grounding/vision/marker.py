"""Set-of-Mark rendering: numbered markers drawn over a screenshot copy."""

from __future__ import annotations

import cv2  # type: ignore
from loguru import logger

from ..core.config import Config, config
from .imaging import decode_image, encode_png, resolve_image_size
from .models import DetectedElement, Screenshot

_MARK_COLOR = (0, 0, 255)  # Red in BGR
_TEXT_COLOR = (255, 255, 255)
_OVERLAY_ALPHA = 0.85


class SetOfMarkRenderer:
    """Draw a box, a filled circle and the element id for every element."""

    def __init__(self, settings: Config | None = None) -> None:
        self.settings = settings or config

    def render(self, screenshot: Screenshot, elements: list[DetectedElement]) -> Screenshot:
        """Return a new PNG screenshot annotated with *elements*.

        The input screenshot is never modified; with no elements its bytes are
        returned unchanged in a new ``Screenshot``.
        """
        width, height = resolve_image_size(screenshot, self.settings)
        if not elements:
            return Screenshot(
                data=screenshot.data,
                mime_type=screenshot.mime_type,
                width=width,
                height=height,
            )

        image = decode_image(screenshot)
        radius = int(self.settings.marker_circle_radius)
        stroke = int(self.settings.marker_stroke_width)

        # Boxes and circles are blended so the underlying UI stays readable
        overlay = image.copy()
        for el in elements:
            x1, y1, x2, y2 = (int(round(v)) for v in el.bbox.as_tuple())
            center = el.center().as_tuple()
            cv2.rectangle(overlay, (x1, y1), (x2, y2), _MARK_COLOR, thickness=stroke)
            cv2.circle(overlay, center, radius, _MARK_COLOR, thickness=cv2.FILLED, lineType=cv2.LINE_AA)
        marked = cv2.addWeighted(overlay, _OVERLAY_ALPHA, image, 1 - _OVERLAY_ALPHA, 0)

        font = cv2.FONT_HERSHEY_SIMPLEX
        font_scale = float(self.settings.marker_font_scale)
        for el in elements:
            label = str(el.id)
            (text_w, text_h), _ = cv2.getTextSize(label, font, font_scale, 2)
            cx, cy = el.center().as_tuple()
            text_org = (cx - text_w // 2, cy + text_h // 2)
            cv2.putText(
                marked,
                label,
                text_org,
                font,
                font_scale,
                _TEXT_COLOR,
                thickness=2,
                lineType=cv2.LINE_AA,
            )

        logger.debug("Rendered {0} marks on {1}x{2} screenshot", len(elements), width, height)
        return Screenshot(
            data=encode_png(marked),
            mime_type="image/png",
            width=image.shape[1],
            height=image.shape[0],
        )
