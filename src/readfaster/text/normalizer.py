"""Whitespace and sentence-boundary cleanup applied after extraction."""

from __future__ import annotations

import re

_CONTROL_RE = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
_EXCESS_BLANK_RE = re.compile(r"\n\s*\n\s*\n+")
_BROKEN_SENTENCE_RE = re.compile(r"([.!?])[^\S\n]*\n+\s*([A-Z])")
_GLUED_SENTENCE_RE = re.compile(r"([.!?])([A-Z])")
# Lowercase followed by uppercase is usually two words merged by per-line
# text operators. Misfires on camel case ("iPhone", "McDonald").
_GLUED_WORD_RE = re.compile(r"([a-z])([A-Z])")
_INLINE_SPACE_RE = re.compile(r"[^\S\n]+")
_LINE_EDGE_RE = re.compile(r"^ +| +$", re.MULTILINE)


def collapse_blank_lines(text: str) -> str:
    """Canonicalize line endings and reduce runs of blank lines to one."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    return _EXCESS_BLANK_RE.sub("\n\n", text)


def normalize_text(text: str, repair_boundaries: bool = True) -> str:
    if not text:
        return ""

    text = collapse_blank_lines(text)
    text = _CONTROL_RE.sub("", text)
    if repair_boundaries:
        text = _BROKEN_SENTENCE_RE.sub(r"\1\n\n\2", text)
        text = _GLUED_SENTENCE_RE.sub(r"\1 \2", text)
        text = _GLUED_WORD_RE.sub(r"\1 \2", text)
    text = _INLINE_SPACE_RE.sub(" ", text)
    text = _LINE_EDGE_RE.sub("", text)
    text = _EXCESS_BLANK_RE.sub("\n\n", text)
    return text.strip()


def count_words(text: str | None) -> int:
    if not text:
        return 0
    return len(text.split())
