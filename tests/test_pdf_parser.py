"""Tests for PDF text extraction."""

from __future__ import annotations

import base64
from pathlib import Path

import pytest

from conftest import build_pdf, prose

from readfaster.parsers.base import get_extractor, get_extractor_for_path
from readfaster.parsers.epub_parser import EpubExtractor
from readfaster.parsers.pdf_parser import (
    PAGE_VIEW_MESSAGE,
    PdfExtractor,
    is_readable_text,
)


def _latin1(data: bytes) -> str:
    return data.decode("latin-1")


class TestExtractRawText:
    def test_show_text_inside_stream(self):
        pdf = build_pdf("BT /F1 12 Tf 72 700 Td (Hello) Tj (World) Tj ET")
        text, method = PdfExtractor().extract_raw_text(_latin1(pdf))
        assert "Hello" in text
        assert "World" in text
        assert text.index("Hello") < text.index("World")
        assert method == "pdf-content-stream"

    def test_text_array_kerning(self):
        pdf = build_pdf("BT [(Hel) -10 (lo) -250 (World)] TJ ET")
        text, _ = PdfExtractor().extract_raw_text(_latin1(pdf))
        assert "Hello World" in text

    def test_quote_operators(self):
        pdf = build_pdf("BT (First) Tj (Second) ' 0 0 (Third) \" ET")
        text, _ = PdfExtractor().extract_raw_text(_latin1(pdf))
        assert text.index("First") < text.index("Second") < text.index("Third")

    def test_escaped_parenthesis_in_string(self):
        pdf = build_pdf(r"BT (Call \(now\) please) Tj ET")
        text, _ = PdfExtractor().extract_raw_text(_latin1(pdf))
        assert "Call (now) please" in text

    def test_balanced_parentheses_in_string(self):
        pdf = build_pdf("BT (Plot f(x) value) Tj [(where g(y)) -300 (holds)] TJ ET")
        text, _ = PdfExtractor().extract_raw_text(_latin1(pdf))
        assert "Plot f(x) value" in text
        assert "where g(y) holds" in text

    def test_text_blocks_outside_streams(self):
        data = "%PDF-1.4\n1 0 obj\nBT (Loose text block) Tj ET\nendobj\n"
        text, method = PdfExtractor().extract_raw_text(data)
        assert "Loose text block" in text
        assert method == "pdf-text-block"

    def test_binary_stream_skipped_then_fallback(self):
        binary = "".join(chr(c) for c in range(128, 256)) * 4
        pdf = build_pdf(binary + " (Readable words) Tj")
        text, method = PdfExtractor().extract_raw_text(_latin1(pdf))
        assert method == "pdf-basic"
        assert "Readable words" in text

    def test_fallback_filters_junk(self):
        data = "(12345) (Some real prose here) (..,,;;) [(More) -300 (prose)]"
        text, method = PdfExtractor().extract_raw_text(data)
        assert method == "pdf-basic"
        assert "Some real prose here" in text
        assert "More prose" in text
        assert "12345" not in text

    def test_nothing_found(self):
        text, method = PdfExtractor().extract_raw_text("%PDF-1.4\n%%EOF\n")
        assert text == ""
        assert method == "pdf-none"


class TestPdfExtractor:
    def test_success(self):
        pdf = build_pdf(f"BT /F1 12 Tf ({prose(60)}) Tj ET")
        result = PdfExtractor().extract(pdf)
        assert result.extraction_failed is False
        assert result.text is not None
        assert result.metadata.word_count == 60
        assert result.metadata.character_count == len(result.text)
        assert result.metadata.extraction_method == "pdf-content-stream"
        assert result.original_pages == []

    def test_too_few_words_falls_back_to_pages(self):
        pdf = build_pdf("BT (Hello) Tj (World) Tj ET")
        result = PdfExtractor().extract(pdf)
        assert result.extraction_failed is True
        assert result.text is None
        assert result.message == PAGE_VIEW_MESSAGE
        assert result.error is None
        assert len(result.original_pages) == 1
        page = result.original_pages[0]
        assert page.type == "pdf"
        prefix = "data:application/pdf;base64,"
        assert page.content.startswith(prefix)
        assert base64.b64decode(page.content[len(prefix):]) == pdf

    def test_not_bytes(self):
        result = PdfExtractor().extract("not bytes")  # type: ignore[arg-type]
        assert result.extraction_failed is True
        assert result.error is not None
        assert result.original_pages == []

    def test_normalizes_text(self):
        words = prose(60)
        pdf = build_pdf(f"BT ({words}) Tj (Next   sentence starts here.) Tj ET")
        result = PdfExtractor().extract(pdf)
        assert result.text is not None
        assert "  " not in result.text
        assert result.text.endswith("Next sentence starts here.")


class TestIsReadableText:
    def test_prose(self):
        assert is_readable_text("Hello there")

    def test_too_short(self):
        assert not is_readable_text("ab")

    def test_digits_and_punctuation(self):
        assert not is_readable_text("1234")
        assert not is_readable_text("...!!")

    def test_letter_ratio(self):
        assert is_readable_text("a1b2c3d4e5")
        assert not is_readable_text("x1y2z3444444")


# ── get_extractor routing ──────────────────────────


class TestGetExtractor:
    def test_by_mime_type(self):
        assert isinstance(get_extractor("application/pdf"), PdfExtractor)
        assert isinstance(get_extractor("application/epub+zip"), EpubExtractor)
        assert isinstance(get_extractor("Application/PDF"), PdfExtractor)

    def test_by_path(self):
        assert isinstance(get_extractor_for_path(Path("a.PDF")), PdfExtractor)
        assert isinstance(get_extractor_for_path(Path("b.epub")), EpubExtractor)

    def test_unsupported(self):
        with pytest.raises(ValueError, match="Unsupported format"):
            get_extractor("text/plain")
        with pytest.raises(ValueError, match="Unsupported format"):
            get_extractor_for_path(Path("notes.docx"))
