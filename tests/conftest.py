"""Shared fixtures for tests."""

from __future__ import annotations

import io
import zipfile
from pathlib import Path
from typing import Callable, Optional

import pytest

from readfaster.config import AppConfig
from readfaster.library.database import Database

CONTAINER_XML = """<?xml version="1.0"?>
<container version="1.0" xmlns="urn:oasis:names:tc:opendocument:xmlns:container">
  <rootfiles>
    <rootfile full-path="{opf_path}" media-type="application/oebps-package+xml"/>
  </rootfiles>
</container>
"""

OPF_TEMPLATE = """<?xml version="1.0" encoding="UTF-8"?>
<package xmlns="http://www.idpf.org/2007/opf" version="3.0">
  <metadata>{meta}</metadata>
  <manifest>
{items}
  </manifest>
  <spine>
{itemrefs}
  </spine>
</package>
"""

XHTML_TEMPLATE = """<?xml version="1.0" encoding="UTF-8"?>
<html xmlns="http://www.w3.org/1999/xhtml">
<head><title>Chapter</title></head>
<body>{body}</body>
</html>
"""


def prose(words: int, word: str = "word") -> str:
    """A sentence-cased run of ``words`` words."""
    return " ".join([word.capitalize()] + [word] * (words - 1)) + "."


def build_epub(
    chapters: list[str],
    opf_path: str = "OEBPS/content.opf",
    extra_files: Optional[dict[str, bytes]] = None,
    extra_items: str = "",
    meta: str = "",
) -> bytes:
    """Zip a minimal EPUB whose spine lists one XHTML file per chapter body."""
    base = opf_path.rsplit("/", 1)[0] + "/" if "/" in opf_path else ""
    items = [
        f'    <item id="chap{i}" href="chap{i}.xhtml" '
        'media-type="application/xhtml+xml"/>'
        for i in range(1, len(chapters) + 1)
    ]
    if extra_items:
        items.append(extra_items)
    itemrefs = [
        f'    <itemref idref="chap{i}"/>' for i in range(1, len(chapters) + 1)
    ]

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr("mimetype", "application/epub+zip")
        archive.writestr(
            "META-INF/container.xml", CONTAINER_XML.format(opf_path=opf_path)
        )
        archive.writestr(
            opf_path,
            OPF_TEMPLATE.format(
                meta=meta, items="\n".join(items), itemrefs="\n".join(itemrefs)
            ),
        )
        for i, body in enumerate(chapters, start=1):
            archive.writestr(f"{base}chap{i}.xhtml", XHTML_TEMPLATE.format(body=body))
        for name, data in (extra_files or {}).items():
            archive.writestr(name, data)
    return buffer.getvalue()


def build_pdf(content_stream: str) -> bytes:
    """An uncompressed single-page PDF around one content stream."""
    stream = content_stream.encode("latin-1")
    return (
        b"%PDF-1.4\n"
        b"1 0 obj\n<< /Type /Catalog /Pages 2 0 R >>\nendobj\n"
        b"2 0 obj\n<< /Type /Pages /Kids [3 0 R] /Count 1 >>\nendobj\n"
        b"3 0 obj\n<< /Type /Page /Parent 2 0 R /Contents 4 0 R >>\nendobj\n"
        b"4 0 obj\n<< /Length " + str(len(stream)).encode() + b" >>\n"
        b"stream\n" + stream + b"\nendstream\nendobj\n"
        b"trailer\n<< /Root 1 0 R >>\n%%EOF\n"
    )


@pytest.fixture
def db(tmp_path: Path) -> Database:
    db_path = tmp_path / "test.db"
    database = Database(db_path)
    yield database
    database.close()


@pytest.fixture
def config(tmp_path: Path) -> AppConfig:
    return AppConfig(
        data_dir=tmp_path / "data",
        config_dir=tmp_path / "config",
    )


@pytest.fixture
def epub_factory() -> Callable[..., bytes]:
    return build_epub


@pytest.fixture
def pdf_factory() -> Callable[[str], bytes]:
    return build_pdf
