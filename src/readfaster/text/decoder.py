"""Escape and entity decoding shared by the PDF and EPUB extractors."""

from __future__ import annotations

import re

_PDF_ESCAPE_RE = re.compile(r"\\([0-7]{1,3}|\r\n|[\r\n]|.)", re.DOTALL)

_PDF_SIMPLE_ESCAPES = {
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "b": "\b",
    "f": "\f",
    "\\": "\\",
    "(": "(",
    ")": ")",
    "'": "'",
    '"': '"',
}

_NAMED_ENTITIES = {
    "amp": "&",
    "lt": "<",
    "gt": ">",
    "quot": '"',
    "apos": "'",
    "nbsp": " ",
}

_ENTITY_RE = re.compile(r"&(#[0-9]+|#[xX][0-9a-fA-F]+|[A-Za-z][A-Za-z0-9]*);")
_UNKNOWN_ENTITY_RE = re.compile(
    r"&(?!(?:amp|lt|gt|quot|apos|nbsp);)[A-Za-z][A-Za-z0-9]*;"
)


def _pdf_escape(match: re.Match[str]) -> str:
    token = match.group(1)
    if token[0] in "01234567":
        code = int(token, 8)
        return chr(code) if 32 <= code <= 126 else " "
    if token in ("\r\n", "\r", "\n"):
        return ""  # line continuation
    # Unknown escapes drop the backslash.
    return _PDF_SIMPLE_ESCAPES.get(token, token)


def decode_pdf_string(raw: str) -> str:
    """Decode the body of a PDF literal string (without the parentheses).

    Octal escapes outside printable ASCII become a space.
    """
    if not raw:
        return ""
    return _PDF_ESCAPE_RE.sub(_pdf_escape, raw)


def _entity(match: re.Match[str]) -> str:
    name = match.group(1)
    if name.startswith("#"):
        try:
            code = int(name[2:], 16) if name[1] in "xX" else int(name[1:])
            return chr(code)
        except (ValueError, OverflowError):
            return " "
    return _NAMED_ENTITIES.get(name, " ")


def decode_entities(text: str) -> str:
    """Decode HTML/XML entities; unknown named entities collapse to a space."""
    return _ENTITY_RE.sub(_entity, text)


def blank_unknown_entities(markup: str) -> str:
    """Replace named entities a parser would not resolve with a space.

    The well-known XML entities and numeric references are left for the
    markup parser.
    """
    return _UNKNOWN_ENTITY_RE.sub(" ", markup)
