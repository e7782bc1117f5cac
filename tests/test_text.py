"""Tests for escape decoding and text normalization."""

from __future__ import annotations

from readfaster.text.decoder import (
    blank_unknown_entities,
    decode_entities,
    decode_pdf_string,
)
from readfaster.text.normalizer import (
    collapse_blank_lines,
    count_words,
    normalize_text,
)


class TestDecodePdfString:
    def test_plain(self):
        assert decode_pdf_string("Hello") == "Hello"

    def test_simple_escapes(self):
        assert decode_pdf_string(r"a\nb\tc") == "a\nb\tc"
        assert decode_pdf_string(r"\(x\)") == "(x)"
        assert decode_pdf_string("back\\\\slash") == "back\\slash"

    def test_printable_octal(self):
        assert decode_pdf_string(r"\101\102") == "AB"

    def test_non_printable_octal_becomes_space(self):
        assert decode_pdf_string(r"a\001b\351c") == "a b c"

    def test_line_continuation(self):
        assert decode_pdf_string("con\\\ntinued") == "continued"
        assert decode_pdf_string("con\\\r\ntinued") == "continued"

    def test_unknown_escape_drops_backslash(self):
        assert decode_pdf_string(r"\q") == "q"

    def test_empty(self):
        assert decode_pdf_string("") == ""


class TestDecodeEntities:
    def test_named(self):
        assert decode_entities("a &amp; b &lt;c&gt;") == "a & b <c>"
        assert decode_entities("&quot;hi&apos;") == "\"hi'"

    def test_nbsp_is_space(self):
        assert decode_entities("a&nbsp;b") == "a b"

    def test_numeric(self):
        assert decode_entities("&#65;&#x42;&#X43;") == "ABC"

    def test_unknown_named_is_space(self):
        assert decode_entities("a&mdash;b") == "a b"

    def test_blank_unknown_keeps_xml_entities(self):
        markup = "<p>a&mdash;b &amp; c&#8212;d</p>"
        assert blank_unknown_entities(markup) == "<p>a b &amp; c&#8212;d</p>"


class TestNormalizeText:
    def test_empty(self):
        assert normalize_text("") == ""

    def test_collapses_blank_runs(self):
        assert collapse_blank_lines("a\r\n\r\n\r\n\r\nb") == "a\n\nb"
        assert normalize_text("One.\n\n\n\n\nTwo.") == "One.\n\nTwo."

    def test_repairs_broken_sentence(self):
        assert normalize_text("First line.\nSecond line.") == (
            "First line.\n\nSecond line."
        )

    def test_repairs_glued_sentence(self):
        assert normalize_text("End.Start") == "End. Start"

    def test_splits_glued_words(self):
        assert normalize_text("helloWorld") == "hello World"

    def test_no_repair_when_disabled(self):
        assert normalize_text("helloWorld", repair_boundaries=False) == "helloWorld"

    def test_collapses_inline_whitespace(self):
        assert normalize_text("  a   \t b  \n  c  ") == "a b\nc"

    def test_removes_control_characters(self):
        assert normalize_text("a\x00b\x07c") == "abc"

    def test_no_triple_newlines(self):
        result = normalize_text("A.\n \n \n \nB.\n\t\n\n\nC.")
        assert "\n\n\n" not in result


class TestCountWords:
    def test_count(self):
        assert count_words("one two  three\nfour") == 4

    def test_empty(self):
        assert count_words("") == 0
        assert count_words(None) == 0
