"""Bionic reading emphasis and paragraph markup for the renderer."""

from __future__ import annotations

import html
import math
import re
from collections.abc import Callable
from dataclasses import fields

from readfaster.library.models import ProcessedSection, Section

EMPHASIS_OPEN = "<b>"
EMPHASIS_CLOSE = "</b>"

_WORD_RE = re.compile(r"[^\W\d_]+")
# Only the markers this package emits count as markup; any other "<" or ">"
# is prose.
_MARKUP_RE = re.compile(r"(</?h[1-6]>|</?b>|</?p>|<br/>)")
_HEADING_RE = re.compile(r"^<h[1-6]>")
_PARAGRAPH_BREAK_RE = re.compile(r"\n\s*\n")


def emphasis_length(word_length: int) -> int:
    """Number of leading characters to emphasize in a word."""
    if word_length <= 3:
        return 1
    if word_length <= 5:
        return 2
    if word_length <= 8:
        return math.ceil(word_length * 0.4)
    return math.ceil(word_length * 0.35)


def _emphasize_word(match: re.Match[str]) -> str:
    word = match.group(0)
    n = emphasis_length(len(word))
    return f"{EMPHASIS_OPEN}{word[:n]}{EMPHASIS_CLOSE}{word[n:]}"


def emphasize(text: str) -> str:
    """Wrap the leading letters of every word in an emphasis marker.

    Non-letter characters and existing heading, emphasis, paragraph and
    line-break markers are left untouched.
    """
    parts = _MARKUP_RE.split(text)
    for i in range(0, len(parts), 2):
        parts[i] = _WORD_RE.sub(_emphasize_word, parts[i])
    return "".join(parts)


def _has_significant_line_breaks(paragraph: str) -> bool:
    lines = [line for line in paragraph.split("\n") if line.strip()]
    if len(lines) < 3:
        return False
    return sum(len(line) for line in lines) / len(lines) < 80


def _escape_text(markup: str) -> str:
    parts = _MARKUP_RE.split(markup)
    for i in range(0, len(parts), 2):
        parts[i] = html.escape(parts[i], quote=False)
    return "".join(parts)


def format_for_reading(
    text: str, transform: Callable[[str], str] | None = None
) -> str:
    """Wrap each paragraph in <p> markup; heading markers pass through.

    ``transform`` is applied to each line after the line-break mode has been
    chosen from the untransformed paragraph. Text outside the markers is
    HTML-escaped.
    """
    blocks: list[str] = []
    for paragraph in _PARAGRAPH_BREAK_RE.split(text):
        paragraph = paragraph.strip()
        if not paragraph:
            continue
        if _HEADING_RE.match(paragraph):
            if transform is not None:
                paragraph = transform(paragraph)
            blocks.append(_escape_text(paragraph))
            continue
        lines = [line.strip() for line in paragraph.split("\n") if line.strip()]
        # Verse and other short-line layouts keep their line breaks.
        joiner = "<br/>" if _has_significant_line_breaks(paragraph) else " "
        if transform is not None:
            lines = [transform(line) for line in lines]
        body = joiner.join(_escape_text(line) for line in lines)
        blocks.append(f"<p>{body}</p>")
    return "".join(blocks)


def process_section(section: Section, is_bionic: bool = False) -> ProcessedSection:
    regular = format_for_reading(section.content)
    processed = regular
    if is_bionic:
        processed = format_for_reading(section.content, emphasize)
    return ProcessedSection(
        **{f.name: getattr(section, f.name) for f in fields(Section)},
        processed=processed,
        regular_formatted=regular,
        is_bionic=is_bionic,
    )
