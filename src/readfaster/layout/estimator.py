"""Screen capacity estimate from viewport size and font size."""

from __future__ import annotations

import math

from readfaster.library.models import Capacity

SAFE_AREA_TOP = 100
SAFE_AREA_BOTTOM = 140
HORIZONTAL_PADDING = 48
MAX_CONTENT_WIDTH = 600
LINE_HEIGHT_FACTOR = 1.9
LINE_FILL_FACTOR = 0.75  # word wrap leaves lines partly empty

MIN_LINES = 3
MIN_CHARS_PER_LINE = 30
MIN_CHARS = 150


def char_width_ratio(font_size: float) -> float:
    """Average glyph width relative to font size, by size bracket."""
    if font_size <= 18:
        return 0.5
    if font_size <= 26:
        return 0.55
    return 0.6


def calculate_capacity(
    viewport_width: float, viewport_height: float, font_size: float
) -> Capacity:
    """Return the approximate text capacity of one screen.

    Recompute whenever the font size or viewport changes.
    """
    if viewport_width <= 0 or viewport_height <= 0:
        raise ValueError(
            f"Invalid viewport: {viewport_width}x{viewport_height}"
        )
    if font_size <= 0:
        raise ValueError(f"Invalid font size: {font_size}")

    available_height = viewport_height - SAFE_AREA_TOP - SAFE_AREA_BOTTOM
    available_width = min(viewport_width - HORIZONTAL_PADDING, MAX_CONTENT_WIDTH)

    line_height_px = font_size * LINE_HEIGHT_FACTOR
    max_lines = max(MIN_LINES, math.floor(available_height / line_height_px) - 1)
    chars_per_line = max(
        MIN_CHARS_PER_LINE,
        math.floor(available_width / (font_size * char_width_ratio(font_size))),
    )
    max_chars = max(MIN_CHARS, max_lines * chars_per_line * LINE_FILL_FACTOR)

    return Capacity(
        max_lines=max_lines,
        chars_per_line=chars_per_line,
        max_chars=max_chars,
        line_height_px=line_height_px,
        available_height=available_height,
        font_size=font_size,
    )
