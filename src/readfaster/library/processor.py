from __future__ import annotations

import asyncio
import functools
import logging
from typing import Optional

from readfaster.layout.bionic import process_section
from readfaster.layout.estimator import calculate_capacity
from readfaster.layout.splitter import split_into_sections
from readfaster.library.models import (
    ExtractionResult,
    ProcessedBook,
    ProcessedSection,
    ReaderSettings,
    Section,
)

log = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 5
DEFAULT_PREPROCESS_FONT_SIZES = (18, 22, 26)


class BookProcessor:
    """Memoizes sections per (book, font size, bionic mode).

    At most one computation runs per key; concurrent callers await the same
    task. A result is committed only once complete, and only if the key was
    not discarded while it ran.
    """

    def __init__(
        self,
        viewport_width: int,
        viewport_height: int,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        self._viewport = (viewport_width, viewport_height)
        self._batch_size = max(1, batch_size)
        self._processed: dict[str, ProcessedBook] = {}
        self._pending: dict[str, asyncio.Task[ProcessedBook]] = {}

    @staticmethod
    def cache_key(book_id: str, font_size: int, bionic_mode: bool) -> str:
        return f"{book_id}_{font_size}_{bionic_mode}"

    def is_cached(self, book_id: str, settings: ReaderSettings) -> bool:
        key = self.cache_key(book_id, settings.font_size, settings.bionic_mode)
        return key in self._processed

    def is_pending(self, book_id: str, settings: ReaderSettings) -> bool:
        key = self.cache_key(book_id, settings.font_size, settings.bionic_mode)
        return key in self._pending

    async def process_book(
        self, book_id: str, content: ExtractionResult, settings: ReaderSettings
    ) -> ProcessedBook:
        key = self.cache_key(book_id, settings.font_size, settings.bionic_mode)

        cached = self._processed.get(key)
        if cached is not None:
            log.debug("Returning cached sections for %s", key)
            return cached

        task = self._pending.get(key)
        if task is None:
            log.debug("Processing %s", key)
            task = asyncio.ensure_future(self._process(content, settings))
            self._pending[key] = task
            task.add_done_callback(functools.partial(self._commit, key))
        else:
            log.debug("Waiting for in-flight processing of %s", key)

        # A cancelled caller must not cancel work other callers share.
        return await asyncio.shield(task)

    def _commit(self, key: str, task: asyncio.Task[ProcessedBook]) -> None:
        if self._pending.get(key) is not task:
            log.debug("Discarding result for %s", key)
            return
        del self._pending[key]
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            log.error("Processing %s failed: %s", key, error)
            return
        self._processed[key] = task.result()

    async def _process(
        self, content: ExtractionResult, settings: ReaderSettings
    ) -> ProcessedBook:
        if content.extraction_failed or not content.text:
            return ProcessedBook(
                is_page_mode=True,
                original_pages=content.original_pages,
                font_size=settings.font_size,
                bionic_mode=settings.bionic_mode,
                error=None if content.original_pages else "No content available",
            )

        capacity = calculate_capacity(*self._viewport, settings.font_size)
        raw_sections = await asyncio.to_thread(
            split_into_sections, content.text, capacity
        )
        sections = await self._process_sections_batched(
            raw_sections, settings.bionic_mode
        )
        log.info(
            "Split %d characters into %d sections at %dpx",
            len(content.text),
            len(sections),
            settings.font_size,
        )
        return ProcessedBook(
            sections=sections,
            is_page_mode=False,
            font_size=settings.font_size,
            bionic_mode=settings.bionic_mode,
        )

    async def _process_sections_batched(
        self, sections: list[Section], is_bionic: bool
    ) -> list[ProcessedSection]:
        processed: list[ProcessedSection] = []
        for start in range(0, len(sections), self._batch_size):
            batch = sections[start : start + self._batch_size]
            processed.extend(process_section(s, is_bionic) for s in batch)
            if start + self._batch_size < len(sections):
                await asyncio.sleep(0)
        return processed

    async def preprocess_book(
        self,
        book_id: str,
        content: ExtractionResult,
        font_sizes: tuple[int, ...] = DEFAULT_PREPROCESS_FONT_SIZES,
    ) -> None:
        """Warm the cache for common font sizes, plain and bionic."""
        for bionic_mode in (False, True):
            for font_size in font_sizes:
                settings = ReaderSettings(font_size=font_size, bionic_mode=bionic_mode)
                try:
                    await self.process_book(book_id, content, settings)
                except ValueError as e:
                    log.warning(
                        "Background processing failed for %s: %s",
                        self.cache_key(book_id, font_size, bionic_mode),
                        e,
                    )

    def get_cached(
        self, book_id: str, settings: ReaderSettings
    ) -> Optional[ProcessedBook]:
        key = self.cache_key(book_id, settings.font_size, settings.bionic_mode)
        return self._processed.get(key)

    def clear_cache(self) -> None:
        self._processed.clear()
        self._pending.clear()

    def remove_cached_book(self, book_id: str) -> None:
        prefix = f"{book_id}_"
        for key in [k for k in self._processed if k.startswith(prefix)]:
            del self._processed[key]
        for key in [k for k in self._pending if k.startswith(prefix)]:
            del self._pending[key]
