"""Split normalized text into screen-sized sections.

Paragraphs are packed into a section until the estimated height reaches 90%
of the available height. A paragraph that is too tall on its own is split at
sentence, then clause, then word boundaries and each chunk becomes its own
section. Splitting never cuts inside a word and never drops characters other
than the whitespace between chunks.
"""

from __future__ import annotations

import math
import re

from readfaster.layout.estimator import LINE_HEIGHT_FACTOR
from readfaster.library.models import Capacity, ReadingTime, Section
from readfaster.text.normalizer import collapse_blank_lines

HEIGHT_FILL = 0.9
LONG_PARAGRAPH_BUDGET = 0.8  # fraction of max_chars for oversized paragraphs
PARAGRAPH_SPACING = 1.1  # margin between paragraphs, in font sizes
HEADING_MARGIN = 2.0
SEPARATOR_ALLOWANCE = 2  # "\n\n" between emitted chunks

_PARAGRAPH_BREAK_RE = re.compile(r"\n\s*\n")
_HEADING_RE = re.compile(r"^<h([1-6])>")
_TAG_RE = re.compile(r"</?h[1-6]>")
_HEADING_SCALE = {1: 2.2, 2: 1.9, 3: 1.6}
_SENTENCE_END_RE = re.compile(
    r"""[.!?]+["'”’»)\]]*(?=\s+["'“‘«(\[]?[A-Z]|\s*$)"""
)
_CLAUSE_END_RE = re.compile(r"[,;:—–-](?=\s)")
_WORD_RE = re.compile(r"\S+")


def is_heading(paragraph: str) -> bool:
    return _HEADING_RE.match(paragraph.strip()) is not None


def heading_level(paragraph: str) -> int:
    match = _HEADING_RE.match(paragraph.strip())
    return int(match.group(1)) if match else 1


def count_wrapped_lines(text: str, chars_per_line: int) -> int:
    """Simulate greedy word wrap and return the number of lines."""
    chars_per_line = max(1, chars_per_line)
    lines = 1
    current = 0
    for word in _TAG_RE.sub("", text).split():
        width = len(word) + 1
        if current and current + width > chars_per_line:
            lines += 1
            current = width
        else:
            current += width
        # A word wider than the line spills onto extra lines.
        lines += (len(word) - 1) // chars_per_line
    return lines


def estimate_paragraph_height(paragraph: str, capacity: Capacity) -> float:
    if is_heading(paragraph):
        scale = _HEADING_SCALE.get(heading_level(paragraph), 1.3)
        lines = count_wrapped_lines(
            paragraph, math.floor(capacity.chars_per_line / scale)
        )
        line_height = capacity.font_size * scale * LINE_HEIGHT_FACTOR
        return lines * line_height + capacity.font_size * HEADING_MARGIN
    lines = count_wrapped_lines(paragraph, capacity.chars_per_line)
    return lines * capacity.line_height_px


def estimate_text_height(text: str, capacity: Capacity) -> float:
    """Estimated rendered height of blank-line separated paragraphs."""
    paragraphs = [p for p in _PARAGRAPH_BREAK_RE.split(text) if p.strip()]
    if not paragraphs:
        return 0.0
    spacing = capacity.font_size * PARAGRAPH_SPACING
    height = sum(estimate_paragraph_height(p, capacity) for p in paragraphs)
    return height + spacing * (len(paragraphs) - 1)


def split_into_sections(text: str, capacity: Capacity) -> list[Section]:
    """Partition text into ordered sections that fit one screen each.

    Deterministic for a given (text, capacity). Always returns at least one
    section.
    """
    normalized = collapse_blank_lines(text)
    paragraphs = [p.strip() for p in _PARAGRAPH_BREAK_RE.split(normalized)]
    paragraphs = [p for p in paragraphs if p]

    limit = capacity.available_height * HEIGHT_FILL
    spacing = capacity.font_size * PARAGRAPH_SPACING
    budget = max(1, math.floor(capacity.max_chars * LONG_PARAGRAPH_BUDGET))

    sections: list[Section] = []
    offset = 0

    def emit(parts: list[str]) -> None:
        nonlocal offset
        content = "\n\n".join(parts)
        sections.append(
            Section(
                id=len(sections),
                content=content,
                estimated_height=estimate_text_height(content, capacity),
                start_char_index=offset,
                end_char_index=offset + len(content),
                character_count=len(content),
                paragraph_count=len(parts),
            )
        )
        offset += len(content) + SEPARATOR_ALLOWANCE

    current: list[str] = []
    current_height = 0.0

    for paragraph in paragraphs:
        height = estimate_paragraph_height(paragraph, capacity)

        # Headings are atomic; anything else too tall is split on its own.
        if height > limit and not is_heading(paragraph):
            if current:
                emit(current)
                current = []
                current_height = 0.0
            for chunk in split_long_paragraph(paragraph, budget):
                emit([chunk])
            continue

        new_height = current_height + height + (spacing if current else 0.0)
        if new_height > limit and current:
            emit(current)
            current = [paragraph]
            current_height = height
        else:
            current.append(paragraph)
            current_height = new_height

    if current:
        emit(current)

    if not sections:
        return [
            Section(
                id=0,
                content=text,
                estimated_height=estimate_text_height(text, capacity),
                start_char_index=0,
                end_char_index=len(text),
                character_count=len(text),
                paragraph_count=1,
            )
        ]
    return sections


def split_long_paragraph(paragraph: str, budget: int) -> list[str]:
    """Split a paragraph into chunks of at most ``budget`` characters.

    Falls back from sentences to clauses to words. A single word longer than
    the budget is kept whole.
    """
    budget = max(1, budget)
    if len(paragraph) <= budget:
        return [paragraph]

    spans: list[tuple[int, int]] = []
    for start, end in _split_spans(paragraph, 0, len(paragraph), _SENTENCE_END_RE):
        if end - start <= budget:
            spans.append((start, end))
            continue
        for c_start, c_end in _split_spans(paragraph, start, end, _CLAUSE_END_RE):
            if c_end - c_start <= budget:
                spans.append((c_start, c_end))
            else:
                words = _WORD_RE.finditer(paragraph, c_start, c_end)
                spans.extend(m.span() for m in words)

    return [paragraph[start:end] for start, end in _pack(spans, budget)]


def _split_spans(
    text: str, start: int, end: int, boundary: re.Pattern[str]
) -> list[tuple[int, int]]:
    """Cut text[start:end] after each boundary match, trimming whitespace."""
    spans: list[tuple[int, int]] = []
    cursor = start
    for match in boundary.finditer(text, start, end):
        _add_trimmed(spans, text, cursor, match.end())
        cursor = match.end()
    _add_trimmed(spans, text, cursor, end)
    return spans


def _add_trimmed(
    spans: list[tuple[int, int]], text: str, start: int, end: int
) -> None:
    while start < end and text[start].isspace():
        start += 1
    while end > start and text[end - 1].isspace():
        end -= 1
    if start < end:
        spans.append((start, end))


def _pack(spans: list[tuple[int, int]], budget: int) -> list[tuple[int, int]]:
    """Greedily merge consecutive spans while the merged slice fits."""
    packed: list[tuple[int, int]] = []
    for start, end in spans:
        if packed and end - packed[-1][0] <= budget:
            packed[-1] = (packed[-1][0], end)
        else:
            packed.append((start, end))
    return packed


def find_section_by_char_index(sections: list[Section], char_index: int) -> int:
    """Index of the section holding a character offset.

    Offsets in the gap between two sections map to the following one.
    """
    for index, section in enumerate(sections):
        if char_index <= section.end_char_index:
            return index
    return max(0, len(sections) - 1)


def estimate_reading_time(text: str, words_per_minute: int = 200) -> ReadingTime:
    words = len(_TAG_RE.sub("", text).split())
    minutes = math.ceil(words / words_per_minute)
    if minutes < 60:
        label = f"{minutes} min"
    else:
        label = f"{minutes // 60}h {minutes % 60}m"
    return ReadingTime(words=words, minutes=minutes, label=label)
