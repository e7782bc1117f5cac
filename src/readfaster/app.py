"""ReadFaster - document import and section reading service."""

from __future__ import annotations

import logging
import mimetypes
import time
from pathlib import Path
from typing import Any, Optional

from readfaster.config import AppConfig, load_config
from readfaster.layout.splitter import find_section_by_char_index
from readfaster.library.database import Database
from readfaster.library.models import (
    Book,
    ProcessedBook,
    ReaderSettings,
    ReadingPosition,
    Section,
)
from readfaster.library.processor import BookProcessor
from readfaster.parsers.base import get_extractor

log = logging.getLogger(__name__)

mimetypes.add_type("application/epub+zip", ".epub")


class BookImportError(RuntimeError):
    """A document could not be read or holds nothing displayable."""


class ReadFaster:
    """Imports documents into the library and serves them as sections."""

    def __init__(self, config: AppConfig | None = None) -> None:
        self.config = config or load_config()
        self.db = Database(self.config.db_path)
        self.processor = BookProcessor(
            self.config.viewport_width,
            self.config.viewport_height,
            batch_size=self.config.batch_size,
        )

    def import_file(self, file_path: Path, mime_type: Optional[str] = None) -> Book:
        """Extract a PDF or EPUB file and add it to the library."""
        file_path = Path(file_path).expanduser()
        mime_type = mime_type or mimetypes.guess_type(file_path.name)[0] or ""
        # Reject unsupported formats before touching the file.
        get_extractor(mime_type)

        try:
            data = file_path.read_bytes()
        except OSError as e:
            log.error("Failed to read %s: %s", file_path, e)
            raise BookImportError(f"Failed to read {file_path.name}: {e}") from e

        return self.import_bytes(file_path.name, data, mime_type)

    def import_bytes(self, name: str, data: bytes, mime_type: str) -> Book:
        extractor = get_extractor(mime_type)
        result = extractor.extract(data)

        if result.error and not result.original_pages:
            raise BookImportError(result.message or result.error)

        book = Book(
            id=Book.make_id(name, data),
            name=name,
            mime_type=mime_type,
            file_size=len(data),
            cover_image=result.cover_image,
            word_count=result.metadata.word_count,
            extraction_failed=result.extraction_failed,
            added_at=time.time(),
        )
        self.db.add_book(book, result)
        log.info(
            "Imported %s (%s, %d words, failed=%s)",
            name,
            mime_type,
            book.word_count,
            book.extraction_failed,
        )
        return book

    def _default_settings(self) -> ReaderSettings:
        return ReaderSettings(
            font_size=self.config.default_font_size,
            bionic_mode=self.config.default_bionic_mode,
        )

    def reader_settings(self) -> ReaderSettings:
        return self.db.get_settings(self._default_settings())

    def save_setting(self, key: str, value: Any) -> ReaderSettings:
        return self.db.save_setting(key, value, self._default_settings())

    async def open_book(self, book_id: str) -> ProcessedBook:
        """Sections of a book at the current reader settings."""
        content = self.db.get_content(book_id)
        if content is None:
            raise KeyError(f"Book not found: {book_id}")
        settings = self.reader_settings()
        processed = await self.processor.process_book(book_id, content, settings)
        self.db.update_last_read(book_id)
        return processed

    async def preprocess(self, book_id: str) -> None:
        content = self.db.get_content(book_id)
        if content is None:
            raise KeyError(f"Book not found: {book_id}")
        await self.processor.preprocess_book(
            book_id, content, self.config.preprocess_font_sizes
        )

    def update_reading_position(
        self,
        book_id: str,
        section_index: int,
        total_sections: int,
        char_index: int = 0,
    ) -> ReadingPosition:
        percentage = 0.0
        if total_sections > 0:
            percentage = round((section_index + 1) / total_sections * 100, 1)
        position = ReadingPosition(
            book_id=book_id,
            section_index=section_index,
            percentage=percentage,
            char_index=char_index,
        )
        self.db.save_progress(position)
        return position

    def resume_section(self, book_id: str, sections: list[Section]) -> int:
        """Section to reopen at, mapped by character offset.

        The offset keeps the place when a font change repaginates the book.
        """
        position = self.db.get_progress(book_id)
        if position is None or not sections:
            return 0
        return find_section_by_char_index(sections, position.char_index)

    def remove_book(self, book_id: str) -> None:
        self.db.remove_book(book_id)
        self.processor.remove_cached_book(book_id)

    def close(self) -> None:
        self.processor.clear_cache()
        self.db.close()


def setup_logging(config: AppConfig) -> None:
    handler = logging.FileHandler(config.log_path, encoding="utf-8")
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    )
    root = logging.getLogger("readfaster")
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)
