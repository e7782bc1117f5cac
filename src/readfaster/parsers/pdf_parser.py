"""PDF text extraction straight from the raw file bytes.

Only uncompressed content is readable: no stream filter is decoded, so
FlateDecode and other encoded streams look binary and are skipped.
"""

from __future__ import annotations

import base64
import logging
import re

from readfaster.library.models import (
    PDF_MIN_WORDS,
    ExtractionMetadata,
    ExtractionResult,
    OriginalPage,
)
from readfaster.text.decoder import decode_pdf_string
from readfaster.text.normalizer import count_words, normalize_text

from .base import BaseExtractor

log = logging.getLogger(__name__)

STRUCTURED_MIN_CHARS = 100
BINARY_RATIO_LIMIT = 0.3
KERNING_SPACE = -200  # TJ adjustment (1/1000 em) wide enough to be a space
FALLBACK_LETTER_RATIO = 0.4

PAGE_VIEW_MESSAGE = (
    "This PDF does not contain enough readable text for section view. "
    "It will be shown page by page instead."
)

# Literal strings may hold one level of balanced, unescaped parentheses.
_LITERAL_BODY = r"(?:\\.|[^\\()]|\((?:\\.|[^\\()])*\))"
_LITERAL = rf"\({_LITERAL_BODY}*\)"

_STREAM_RE = re.compile(r"(?<![A-Za-z])stream\r?\n(.*?)endstream", re.DOTALL)
_TEXT_BLOCK_RE = re.compile(r"\bBT\b(.*?)\bET\b", re.DOTALL)
_SHOW_TEXT_RE = re.compile(
    rf"\((?P<string>{_LITERAL_BODY}*)\)\s*(?:Tj|'|\")"
    rf"|\[(?P<array>(?:{_LITERAL}|[^\](\[])*)\]\s*TJ",
    re.DOTALL,
)
_ARRAY_ITEM_RE = re.compile(
    rf"\((?P<string>{_LITERAL_BODY}*)\)"
    r"|(?P<number>[-+]?(?:\d+\.?\d*|\.\d+))",
    re.DOTALL,
)
_BASIC_LITERAL_RE = re.compile(
    rf"\[(?P<array>(?:{_LITERAL}|[^\](\[])*)\]"
    rf"|\((?P<string>{_LITERAL_BODY}{{3,}})\)",
    re.DOTALL,
)
_NON_PRINTABLE_RE = re.compile(r"[^\x20-\x7e\n\r\t]")
_LETTER_RE = re.compile(r"[A-Za-z]")
_JUNK_RE = re.compile(r"[\W\d_]+")


class PdfExtractor(BaseExtractor):
    SUPPORTED_EXTENSIONS = (".pdf",)
    MIME_TYPES = ("application/pdf",)

    def extract(self, data: bytes) -> ExtractionResult:
        if not isinstance(data, (bytes, bytearray, memoryview)):
            log.error("PDF extraction got %s instead of bytes", type(data).__name__)
            return ExtractionResult.failed(
                message="The PDF file could not be read.",
                error=f"Expected bytes, got {type(data).__name__}",
            )
        data = bytes(data)

        text, method = self.extract_raw_text(data.decode("latin-1"))
        cleaned = normalize_text(text)
        metadata = ExtractionMetadata(
            word_count=count_words(cleaned),
            character_count=len(cleaned),
            extraction_method=method,
        )

        if metadata.word_count < PDF_MIN_WORDS:
            log.info(
                "PDF yielded %d words via %s, falling back to page view",
                metadata.word_count,
                method,
            )
            page = OriginalPage(id=0, content=_data_uri(data), type="pdf")
            return ExtractionResult.failed(
                message=PAGE_VIEW_MESSAGE,
                metadata=metadata,
                original_pages=[page],
            )

        log.info("PDF extracted: %d words via %s", metadata.word_count, method)
        return ExtractionResult.succeeded(cleaned, metadata, PDF_MIN_WORDS)

    def extract_raw_text(self, pdf_data: str) -> tuple[str, str]:
        """Recover text from a Latin-1 decoded PDF buffer.

        Returns the space-joined fragments (not yet normalized) and the name
        of the strategy that produced them.
        """
        fragments: list[str] = []
        method = "pdf-none"

        skipped = 0
        for match in _STREAM_RE.finditer(pdf_data):
            region = match.group(1)
            if _binary_ratio(region) > BINARY_RATIO_LIMIT:
                skipped += 1
                continue
            fragments.extend(self._show_text_fragments(region))
        if skipped:
            log.debug("Skipped %d binary or compressed streams", skipped)
        if fragments:
            method = "pdf-content-stream"
        text = " ".join(fragments)

        if len(text) < STRUCTURED_MIN_CHARS:
            block_fragments: list[str] = []
            for match in _TEXT_BLOCK_RE.finditer(pdf_data):
                block_fragments.extend(self._show_text_fragments(match.group(1)))
            if block_fragments:
                if not fragments:
                    method = "pdf-text-block"
                fragments.extend(block_fragments)
                text = " ".join(fragments)

        if len(text) < STRUCTURED_MIN_CHARS:
            basic = self._extract_basic(pdf_data)
            if len(basic) > len(text):
                text = basic
                method = "pdf-basic"

        return text, method

    def _show_text_fragments(self, region: str) -> list[str]:
        """Operands of Tj, ', " and TJ in source order."""
        fragments: list[str] = []
        for match in _SHOW_TEXT_RE.finditer(region):
            if match.group("string") is not None:
                text = decode_pdf_string(match.group("string"))
            else:
                text = _join_text_array(match.group("array"))
            text = text.strip()
            if text:
                fragments.append(text)
        return fragments

    def _extract_basic(self, pdf_data: str) -> str:
        """Scrape every literal string that looks like prose."""
        fragments: list[str] = []
        for match in _BASIC_LITERAL_RE.finditer(pdf_data):
            if match.group("string") is not None:
                text = decode_pdf_string(match.group("string"))
            else:
                text = _join_text_array(match.group("array"))
            text = text.strip()
            if is_readable_text(text):
                fragments.append(text)
        return " ".join(fragments)


def _join_text_array(array: str) -> str:
    parts: list[str] = []
    for item in _ARRAY_ITEM_RE.finditer(array):
        if item.group("string") is not None:
            parts.append(decode_pdf_string(item.group("string")))
        elif float(item.group("number")) <= KERNING_SPACE:
            parts.append(" ")
    return "".join(parts)


def _binary_ratio(region: str) -> float:
    if not region:
        return 0.0
    return len(_NON_PRINTABLE_RE.findall(region)) / len(region)


def is_readable_text(text: str) -> bool:
    """Filter for fallback strings: mostly letters, at least three of them."""
    if len(text) < 3 or _JUNK_RE.fullmatch(text):
        return False
    letters = len(_LETTER_RE.findall(text))
    return letters >= 3 and letters / len(text) >= FALLBACK_LETTER_RATIO


def _data_uri(data: bytes) -> str:
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:application/pdf;base64,{encoded}"
