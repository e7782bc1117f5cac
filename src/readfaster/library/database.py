"""SQLite storage for books, extracted content, progress and settings."""

from __future__ import annotations

import json
import sqlite3
import time
from dataclasses import asdict, fields
from pathlib import Path
from typing import Any, Optional

from .models import Book, ExtractionResult, ReaderSettings, ReadingPosition

_SCHEMA = """
CREATE TABLE IF NOT EXISTS books (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    mime_type TEXT DEFAULT '',
    file_size INTEGER DEFAULT 0,
    cover_image TEXT,
    word_count INTEGER DEFAULT 0,
    extraction_failed INTEGER DEFAULT 0,
    added_at REAL NOT NULL,
    last_read_at REAL
);

CREATE TABLE IF NOT EXISTS book_content (
    book_id TEXT PRIMARY KEY REFERENCES books(id) ON DELETE CASCADE,
    content TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS reading_progress (
    book_id TEXT PRIMARY KEY REFERENCES books(id) ON DELETE CASCADE,
    section_index INTEGER DEFAULT 0,
    percentage REAL DEFAULT 0.0,
    char_index INTEGER DEFAULT 0,
    last_read REAL NOT NULL
);

CREATE TABLE IF NOT EXISTS settings (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""

_SETTINGS_KEY = "reader_settings"


class Database:
    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path
        self._conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._init_schema()

    def _init_schema(self) -> None:
        self._conn.executescript(_SCHEMA)
        self._conn.commit()

    def close(self) -> None:
        self._conn.close()

    # ── Books ──────────────────────────────────────────────

    def add_book(self, book: Book, content: ExtractionResult) -> None:
        """Store a book and its extracted content in one transaction."""
        with self._conn:
            self._conn.execute(
                """INSERT OR REPLACE INTO books
                   (id, name, mime_type, file_size, cover_image, word_count,
                    extraction_failed, added_at, last_read_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    book.id,
                    book.name,
                    book.mime_type,
                    book.file_size,
                    book.cover_image,
                    book.word_count,
                    int(book.extraction_failed),
                    book.added_at,
                    book.last_read_at,
                ),
            )
            self._conn.execute(
                """INSERT OR REPLACE INTO book_content (book_id, content)
                   VALUES (?, ?)""",
                (book.id, json.dumps(content.to_dict())),
            )

    def remove_book(self, book_id: str) -> None:
        self._conn.execute("DELETE FROM books WHERE id = ?", (book_id,))
        self._conn.commit()

    def get_book(self, book_id: str) -> Optional[Book]:
        row = self._conn.execute(
            "SELECT * FROM books WHERE id = ?", (book_id,)
        ).fetchone()
        return self._row_to_book(row) if row else None

    def get_content(self, book_id: str) -> Optional[ExtractionResult]:
        row = self._conn.execute(
            "SELECT content FROM book_content WHERE book_id = ?", (book_id,)
        ).fetchone()
        if not row:
            return None
        return ExtractionResult.from_dict(json.loads(row["content"]))

    def list_books(self, order_by: str = "last_read_at DESC") -> list[Book]:
        allowed = {
            "last_read_at DESC",
            "last_read_at ASC",
            "name ASC",
            "name DESC",
            "added_at DESC",
            "added_at ASC",
            "word_count DESC",
            "word_count ASC",
        }
        if order_by not in allowed:
            order_by = "last_read_at DESC"
        rows = self._conn.execute(
            f"SELECT * FROM books ORDER BY {order_by} NULLS LAST"
        ).fetchall()
        return [self._row_to_book(r) for r in rows]

    def search_books(self, query: str) -> list[Book]:
        q = f"%{query}%"
        rows = self._conn.execute(
            """SELECT * FROM books WHERE name LIKE ?
               ORDER BY last_read_at DESC NULLS LAST""",
            (q,),
        ).fetchall()
        return [self._row_to_book(r) for r in rows]

    def update_last_read(self, book_id: str) -> None:
        self._conn.execute(
            "UPDATE books SET last_read_at = ? WHERE id = ?", (time.time(), book_id)
        )
        self._conn.commit()

    def clear_library(self) -> None:
        with self._conn:
            self._conn.execute("DELETE FROM books")

    def storage_usage(self) -> dict[str, Any]:
        row = self._conn.execute(
            """SELECT COUNT(*) AS books, COALESCE(SUM(LENGTH(content)), 0) AS size
               FROM book_content"""
        ).fetchone()
        size = row["size"]
        return {
            "books": row["books"],
            "sizeBytes": size,
            "sizeMB": f"{size / (1024 * 1024):.2f}",
        }

    @staticmethod
    def _row_to_book(row: sqlite3.Row) -> Book:
        return Book(
            id=row["id"],
            name=row["name"],
            mime_type=row["mime_type"],
            file_size=row["file_size"],
            cover_image=row["cover_image"],
            word_count=row["word_count"],
            extraction_failed=bool(row["extraction_failed"]),
            added_at=row["added_at"],
            last_read_at=row["last_read_at"],
        )

    # ── Reading Progress ───────────────────────────────────

    def save_progress(self, position: ReadingPosition) -> None:
        self._conn.execute(
            """INSERT OR REPLACE INTO reading_progress
               (book_id, section_index, percentage, char_index, last_read)
               VALUES (?, ?, ?, ?, ?)""",
            (
                position.book_id,
                position.section_index,
                position.percentage,
                position.char_index,
                position.last_read,
            ),
        )
        self._conn.execute(
            "UPDATE books SET last_read_at = ? WHERE id = ?",
            (position.last_read, position.book_id),
        )
        self._conn.commit()

    def get_progress(self, book_id: str) -> Optional[ReadingPosition]:
        row = self._conn.execute(
            "SELECT * FROM reading_progress WHERE book_id = ?",
            (book_id,),
        ).fetchone()
        if not row:
            return None
        return ReadingPosition(
            book_id=row["book_id"],
            section_index=row["section_index"],
            percentage=row["percentage"],
            char_index=row["char_index"],
            last_read=row["last_read"],
        )

    # ── Settings ───────────────────────────────────────────

    def _stored_settings(self) -> dict[str, Any]:
        row = self._conn.execute(
            "SELECT value FROM settings WHERE key = ?", (_SETTINGS_KEY,)
        ).fetchone()
        return json.loads(row["value"]) if row else {}

    def _write_settings(self, values: dict[str, Any]) -> None:
        self._conn.execute(
            "INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)",
            (_SETTINGS_KEY, json.dumps(values)),
        )
        self._conn.commit()

    def get_settings(
        self, defaults: Optional[ReaderSettings] = None
    ) -> ReaderSettings:
        """Stored reader settings layered over ``defaults``."""
        values = asdict(defaults or ReaderSettings())
        stored = self._stored_settings()
        values.update({k: v for k, v in stored.items() if k in values})
        return ReaderSettings(**values)

    def save_settings(self, settings: ReaderSettings) -> None:
        self._write_settings(asdict(settings))

    def save_setting(
        self,
        key: str,
        value: Any,
        defaults: Optional[ReaderSettings] = None,
    ) -> ReaderSettings:
        """Store one setting; keys never set keep following ``defaults``."""
        if key not in {f.name for f in fields(ReaderSettings)}:
            raise KeyError(f"Unknown setting: {key}")
        stored = self._stored_settings()
        stored[key] = value
        self._write_settings(stored)
        return self.get_settings(defaults)

    def reset_settings(self) -> None:
        self._conn.execute("DELETE FROM settings WHERE key = ?", (_SETTINGS_KEY,))
        self._conn.commit()
