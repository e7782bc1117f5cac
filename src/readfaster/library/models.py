"""Data models for extraction results, sections, and the book library."""

from __future__ import annotations

import hashlib
import time
from dataclasses import dataclass, field
from typing import Any, Optional

PDF_MIN_WORDS = 50
EPUB_MIN_WORDS = 100


@dataclass
class OriginalPage:
    """Raw per-page (PDF) or per-spine-item (EPUB) content for page view."""

    id: int
    content: str
    type: str = "html"  # html, pdf

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "content": self.content, "type": self.type}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OriginalPage:
        return cls(
            id=data["id"], content=data["content"], type=data.get("type", "html")
        )


@dataclass
class ExtractionMetadata:
    word_count: int = 0
    character_count: int = 0
    extraction_method: str = ""
    chapters: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "wordCount": self.word_count,
            "characterCount": self.character_count,
            "extractionMethod": self.extraction_method,
        }
        if self.chapters is not None:
            data["chapters"] = self.chapters
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExtractionMetadata:
        return cls(
            word_count=data.get("wordCount", 0),
            character_count=data.get("characterCount", 0),
            extraction_method=data.get("extractionMethod", ""),
            chapters=data.get("chapters"),
        )


@dataclass
class ExtractionResult:
    """Outcome of one extraction call. Persisted as the book's content blob."""

    text: Optional[str]
    extraction_failed: bool
    message: Optional[str] = None
    cover_image: Optional[str] = None  # data URI
    original_pages: list[OriginalPage] = field(default_factory=list)
    metadata: ExtractionMetadata = field(default_factory=ExtractionMetadata)
    error: Optional[str] = None

    def __post_init__(self) -> None:
        if self.extraction_failed and self.text is not None:
            raise ValueError("A failed extraction cannot carry text")

    @classmethod
    def succeeded(
        cls,
        text: str,
        metadata: ExtractionMetadata,
        min_words: int,
        cover_image: Optional[str] = None,
        original_pages: Optional[list[OriginalPage]] = None,
    ) -> ExtractionResult:
        if metadata.word_count < min_words:
            raise ValueError(
                f"Extracted text has {metadata.word_count} words, need {min_words}"
            )
        return cls(
            text=text,
            extraction_failed=False,
            cover_image=cover_image,
            original_pages=original_pages or [],
            metadata=metadata,
        )

    @classmethod
    def failed(
        cls,
        message: str,
        metadata: Optional[ExtractionMetadata] = None,
        cover_image: Optional[str] = None,
        original_pages: Optional[list[OriginalPage]] = None,
        error: Optional[str] = None,
    ) -> ExtractionResult:
        return cls(
            text=None,
            extraction_failed=True,
            message=message,
            cover_image=cover_image,
            original_pages=original_pages or [],
            metadata=metadata or ExtractionMetadata(),
            error=error,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "text": self.text,
            "extractionFailed": self.extraction_failed,
            "coverImage": self.cover_image,
            "originalPages": [p.to_dict() for p in self.original_pages],
            "metadata": self.metadata.to_dict(),
        }
        if self.message is not None:
            data["message"] = self.message
        if self.error is not None:
            data["error"] = self.error
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExtractionResult:
        return cls(
            text=data.get("text"),
            extraction_failed=data.get("extractionFailed", False),
            message=data.get("message"),
            cover_image=data.get("coverImage"),
            original_pages=[
                OriginalPage.from_dict(p) for p in data.get("originalPages") or []
            ],
            metadata=ExtractionMetadata.from_dict(data.get("metadata") or {}),
            error=data.get("error"),
        )


@dataclass
class ManifestItem:
    href: str
    media_type: str
    properties: Optional[str] = None


@dataclass
class EpubPackage:
    """Manifest and spine of one EPUB package document."""

    manifest: dict[str, ManifestItem] = field(default_factory=dict)
    spine: list[str] = field(default_factory=list)  # manifest ids, reading order
    base_path: str = ""
    cover_id: Optional[str] = None  # EPUB 2 <meta name="cover">


@dataclass(frozen=True)
class Capacity:
    """Approximate text capacity of one screen."""

    max_lines: int
    chars_per_line: int
    max_chars: float
    line_height_px: float
    available_height: float
    font_size: float


@dataclass
class Section:
    id: int
    content: str
    estimated_height: float
    start_char_index: int
    end_char_index: int
    character_count: int
    paragraph_count: int = 1


@dataclass
class ProcessedSection(Section):
    processed: str = ""
    regular_formatted: str = ""
    is_bionic: bool = False


@dataclass
class ReadingTime:
    words: int
    minutes: int
    label: str  # "12 min", "1h 5m"


@dataclass
class ProcessedBook:
    """Sections ready for the renderer, or page-mode fallback."""

    sections: list[ProcessedSection] = field(default_factory=list)
    is_page_mode: bool = False
    original_pages: list[OriginalPage] = field(default_factory=list)
    font_size: int = 22
    bionic_mode: bool = False
    error: Optional[str] = None


@dataclass
class Book:
    id: str
    name: str
    mime_type: str = ""  # application/pdf, application/epub+zip
    file_size: int = 0
    cover_image: Optional[str] = None
    word_count: int = 0
    extraction_failed: bool = False
    added_at: float = field(default_factory=time.time)
    last_read_at: Optional[float] = None

    @staticmethod
    def make_id(name: str, data: bytes) -> str:
        digest = hashlib.sha256(name.encode())
        digest.update(data)
        return digest.hexdigest()[:16]


@dataclass
class ReadingPosition:
    book_id: str
    section_index: int = 0
    percentage: float = 0.0  # 0.0 - 100.0
    char_index: int = 0  # start offset of the section, survives font changes
    last_read: float = field(default_factory=time.time)


@dataclass
class ReaderSettings:
    is_dark_mode: bool = False
    font_size: int = 22
    bionic_mode: bool = False
    use_original_reader: bool = False
