"""EPUB text extraction from the raw ZIP container.

The package document is read with regular expressions rather than an XML
parser; EPUB package files are regular enough for that. Chapter markup is
handed to BeautifulSoup.
"""

from __future__ import annotations

import base64
import io
import logging
import mimetypes
import posixpath
import re
import warnings
import zipfile
import zlib
from collections.abc import Iterator
from typing import Optional
from urllib.parse import unquote

from bs4 import BeautifulSoup, NavigableString, Tag, XMLParsedAsHTMLWarning

warnings.filterwarnings("ignore", category=XMLParsedAsHTMLWarning)

from readfaster.library.models import (
    EPUB_MIN_WORDS,
    EpubPackage,
    ExtractionMetadata,
    ExtractionResult,
    ManifestItem,
    OriginalPage,
)
from readfaster.text.decoder import blank_unknown_entities, decode_entities
from readfaster.text.normalizer import count_words, normalize_text

from .base import BaseExtractor

log = logging.getLogger(__name__)

CONTAINER_PATH = "META-INF/container.xml"
ITEM_MIN_CHARS = 50

TEXT_MEDIA_TYPES = frozenset(
    [
        "application/xhtml+xml",
        "text/html",
        "text/xml",
        "application/x-dtbook+xml",
    ]
)
IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp", ".bmp")

# Probed in this order, first relative to the package directory, then at the
# archive root.
COVER_CANDIDATES = (
    "cover.jpg",
    "cover.jpeg",
    "cover.png",
    "images/cover.jpg",
    "images/cover.jpeg",
    "images/cover.png",
    "Images/cover.jpg",
    "Images/cover.jpeg",
    "Images/cover.png",
    "img/cover.jpg",
    "img/cover.png",
    "OEBPS/cover.jpg",
    "OEBPS/images/cover.jpg",
    "OPS/images/cover.jpg",
)

_FULL_PATH_RE = re.compile(r"full-path\s*=\s*[\"']([^\"']+)[\"']")
_ITEM_RE = re.compile(r"<(?:\w+:)?item\s+([^>]+)>")
_ITEMREF_RE = re.compile(r"<(?:\w+:)?itemref\s+([^>]+)>")
_META_RE = re.compile(r"<(?:\w+:)?meta\s+([^>]+)>")
_ATTR_RE = re.compile(r"([\w:-]+)\s*=\s*(?:\"([^\"]*)\"|'([^']*)')")
_WHITESPACE_RE = re.compile(r"\s+")
_PARAGRAPH_CLASS_RE = re.compile(r"para|body|text|content", re.IGNORECASE)

_HEADING_TAGS = frozenset(["h1", "h2", "h3", "h4", "h5", "h6"])
_TEXT_BLOCK_TAGS = frozenset(["p", "li", "blockquote"])


class EpubStructureError(ValueError):
    """The archive lacks a file or entry every EPUB must have."""


def parse_attributes(attributes: str) -> dict[str, str]:
    result: dict[str, str] = {}
    for match in _ATTR_RE.finditer(attributes):
        value = match.group(2) if match.group(2) is not None else match.group(3)
        result[match.group(1)] = decode_entities(value)
    return result


def parse_container(container_xml: str) -> Optional[str]:
    """Path of the package document named by META-INF/container.xml."""
    match = _FULL_PATH_RE.search(container_xml)
    return decode_entities(match.group(1)) if match else None


def parse_package(opf_xml: str, base_path: str = "") -> EpubPackage:
    """Build the manifest and spine of a package document."""
    package = EpubPackage(base_path=base_path)

    for match in _ITEM_RE.finditer(opf_xml):
        attrs = parse_attributes(match.group(1))
        if attrs.get("id") and attrs.get("href") and attrs.get("media-type"):
            package.manifest[attrs["id"]] = ManifestItem(
                href=attrs["href"],
                media_type=attrs["media-type"],
                properties=attrs.get("properties"),
            )

    for match in _ITEMREF_RE.finditer(opf_xml):
        attrs = parse_attributes(match.group(1))
        if attrs.get("idref"):
            package.spine.append(attrs["idref"])

    for match in _META_RE.finditer(opf_xml):
        attrs = parse_attributes(match.group(1))
        if attrs.get("name") == "cover" and attrs.get("content"):
            package.cover_id = attrs["content"]
            break

    return package


def resolve_href(base_path: str, href: str) -> str:
    """Archive member path of a manifest href."""
    href = unquote(href.split("#", 1)[0])
    path = posixpath.normpath(posixpath.join(base_path, href))
    return path.lstrip("/")


def _is_image(item: ManifestItem) -> bool:
    return item.media_type.startswith("image/") or item.href.lower().endswith(
        IMAGE_EXTENSIONS
    )


def _find_member(members: dict[str, str], path: str) -> Optional[str]:
    """Exact member name, tolerating case differences in the archive."""
    return members.get(path.lower())


def _read_text(archive: zipfile.ZipFile, member: str) -> str:
    return archive.read(member).decode("utf-8", errors="replace")


class EpubExtractor(BaseExtractor):
    SUPPORTED_EXTENSIONS = (".epub",)
    MIME_TYPES = ("application/epub+zip",)

    def extract(self, data: bytes) -> ExtractionResult:
        try:
            archive = zipfile.ZipFile(io.BytesIO(data))
        except (zipfile.BadZipFile, TypeError) as e:
            log.error("Not an EPUB archive: %s", e)
            return ExtractionResult.failed(
                message="The file is not a valid EPUB archive.",
                error=str(e),
            )

        with archive:
            try:
                return self._extract(archive)
            except EpubStructureError as e:
                log.warning("Invalid EPUB structure: %s", e)
                return ExtractionResult.failed(
                    message=f"EPUB processing failed: {e}",
                    error=str(e),
                )
            except (zipfile.BadZipFile, zlib.error) as e:
                log.error("Corrupt EPUB archive: %s", e)
                return ExtractionResult.failed(
                    message="The EPUB archive is damaged.",
                    error=str(e),
                )

    def _extract(self, archive: zipfile.ZipFile) -> ExtractionResult:
        members = {name.lower(): name for name in archive.namelist()}

        container = _find_member(members, CONTAINER_PATH)
        if container is None:
            raise EpubStructureError("Missing META-INF/container.xml")
        opf_path = parse_container(_read_text(archive, container))
        if not opf_path:
            raise EpubStructureError("Could not find the package document path")
        opf_member = _find_member(members, opf_path)
        if opf_member is None:
            raise EpubStructureError(f"Missing package document {opf_path}")

        package = parse_package(
            _read_text(archive, opf_member), posixpath.dirname(opf_path)
        )
        if not package.spine:
            raise EpubStructureError("No readable content: the spine is empty")

        cover_image = self._extract_cover(archive, members, package)

        pages: list[OriginalPage] = []
        texts: list[str] = []
        for idref in package.spine:
            item = package.manifest.get(idref)
            if item is None or item.media_type not in TEXT_MEDIA_TYPES:
                continue
            path = resolve_href(package.base_path, item.href)
            member = _find_member(members, path)
            if member is None:
                log.warning("Spine item %s missing from archive: %s", idref, path)
                continue
            try:
                markup = _read_text(archive, member)
            except (zipfile.BadZipFile, zlib.error) as e:
                log.warning("Could not read spine item %s: %s", path, e)
                continue

            pages.append(OriginalPage(id=len(pages), content=markup, type="html"))
            text = self.html_to_text(markup)
            if len(text.strip()) > ITEM_MIN_CHARS:
                texts.append(text)

        if not texts:
            return ExtractionResult.failed(
                message="No readable text content found in EPUB file.",
                metadata=ExtractionMetadata(extraction_method="epub-structure"),
                cover_image=cover_image,
                original_pages=pages,
            )

        full_text = normalize_text("\n\n".join(texts), repair_boundaries=False)
        metadata = ExtractionMetadata(
            word_count=count_words(full_text),
            character_count=len(full_text),
            extraction_method="epub-structure",
            chapters=len(texts),
        )
        if metadata.word_count < EPUB_MIN_WORDS:
            log.info("EPUB yielded only %d words", metadata.word_count)
            return ExtractionResult.failed(
                message="Insufficient text content extracted from EPUB.",
                metadata=metadata,
                cover_image=cover_image,
                original_pages=pages,
            )

        log.info(
            "EPUB extracted: %d words from %d chapters",
            metadata.word_count,
            metadata.chapters,
        )
        return ExtractionResult.succeeded(
            full_text,
            metadata,
            EPUB_MIN_WORDS,
            cover_image=cover_image,
            original_pages=pages,
        )

    # ── Chapter text ───────────────────────────────────────

    @staticmethod
    def _is_block(tag: Tag) -> bool:
        if tag.name in _HEADING_TAGS or tag.name in _TEXT_BLOCK_TAGS:
            return True
        if tag.name == "div":
            classes = " ".join(tag.get("class") or [])
            return bool(_PARAGRAPH_CLASS_RE.search(classes))
        return False

    def _owning_block(self, string: NavigableString) -> Optional[Tag]:
        for parent in string.parents:
            if self._is_block(parent):
                return parent
        return None

    def html_to_text(self, html: str) -> str:
        """Headings and paragraphs of one chapter, blank-line separated.

        Every text node belongs to its nearest block ancestor. A block's own
        text on either side of a nested block becomes a paragraph of its own,
        in document order. Headings keep an ``<hN>`` marker so the reader can
        style them.
        """
        soup = BeautifulSoup(blank_unknown_entities(html), "lxml")

        for tag in soup.find_all(["script", "style"]):
            tag.decompose()

        blocks: list[str] = []
        owner: Optional[Tag] = None
        run: list[str] = []

        def flush() -> None:
            text = _WHITESPACE_RE.sub(" ", " ".join(run)).strip()
            run.clear()
            if not text or owner is None:
                return
            if owner.name in _HEADING_TAGS:
                text = f"<{owner.name}>{text}</{owner.name}>"
            blocks.append(text)

        for string in soup.strings:
            block = self._owning_block(string)
            if block is not owner:
                flush()
                owner = block
            run.append(string)
        flush()

        if not blocks:
            root = soup.body or soup
            for para in re.split(r"\n\s*\n", root.get_text(separator="\n")):
                cleaned = _WHITESPACE_RE.sub(" ", para).strip()
                if cleaned:
                    blocks.append(cleaned)

        return "\n\n".join(blocks)

    # ── Cover ──────────────────────────────────────────────

    def _extract_cover(
        self,
        archive: zipfile.ZipFile,
        members: dict[str, str],
        package: EpubPackage,
    ) -> Optional[str]:
        for path, media_type in self._cover_candidates(package):
            member = _find_member(members, path)
            if member is None:
                continue
            try:
                data = archive.read(member)
            except (zipfile.BadZipFile, zlib.error) as e:
                log.warning("Could not read cover image %s: %s", path, e)
                continue
            media_type = media_type or mimetypes.guess_type(path)[0] or "image/jpeg"
            encoded = base64.b64encode(data).decode("ascii")
            return f"data:{media_type};base64,{encoded}"
        return None

    @staticmethod
    def _cover_candidates(
        package: EpubPackage,
    ) -> Iterator[tuple[str, Optional[str]]]:
        manifest = package.manifest
        base = package.base_path

        for item in manifest.values():
            if item.properties and "cover-image" in item.properties.split():
                yield resolve_href(base, item.href), item.media_type

        cover_item = manifest.get(package.cover_id or "")
        if cover_item is not None and _is_image(cover_item):
            yield resolve_href(base, cover_item.href), cover_item.media_type

        for item in manifest.values():
            href = item.href.lower()
            if ("cover" in href or "title" in href) and _is_image(item):
                yield resolve_href(base, item.href), item.media_type

        for candidate in COVER_CANDIDATES:
            yield resolve_href(base, candidate), None
        if base:
            for candidate in COVER_CANDIDATES:
                yield candidate, None
