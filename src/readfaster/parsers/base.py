"""Base extractor interface for all document formats."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from readfaster.library.models import ExtractionResult


class BaseExtractor(ABC):
    """Abstract base for format-specific text extractors."""

    SUPPORTED_EXTENSIONS: tuple[str, ...] = ()
    MIME_TYPES: tuple[str, ...] = ()

    @abstractmethod
    def extract(self, data: bytes) -> ExtractionResult:
        """Extract text, cover and fallback pages from raw file bytes."""

    @classmethod
    def can_handle(cls, file_path: Path) -> bool:
        return file_path.suffix.lower() in cls.SUPPORTED_EXTENSIONS

    @classmethod
    def handles_mime_type(cls, mime_type: str) -> bool:
        return mime_type.lower() in cls.MIME_TYPES


def _extractors() -> list[type[BaseExtractor]]:
    from readfaster.parsers.epub_parser import EpubExtractor
    from readfaster.parsers.pdf_parser import PdfExtractor

    return [EpubExtractor, PdfExtractor]


def get_extractor(mime_type: str) -> BaseExtractor:
    """Return the extractor for a MIME type. Rejects anything unsupported."""
    extractors = _extractors()
    for extractor_cls in extractors:
        if extractor_cls.handles_mime_type(mime_type):
            return extractor_cls()

    supported = []
    for e in extractors:
        supported.extend(e.MIME_TYPES)
    raise ValueError(
        f"Unsupported format: {mime_type}. Supported: {', '.join(supported)}"
    )


def get_extractor_for_path(file_path: Path) -> BaseExtractor:
    """Return the extractor for a file, judged by its extension."""
    extractors = _extractors()
    for extractor_cls in extractors:
        if extractor_cls.can_handle(file_path):
            return extractor_cls()

    supported = []
    for e in extractors:
        supported.extend(e.SUPPORTED_EXTENSIONS)
    raise ValueError(
        f"Unsupported format: {file_path.suffix}. Supported: {', '.join(supported)}"
    )
