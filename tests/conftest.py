# ABOUTME: Shared pytest fixtures for epubseries tests.
# ABOUTME: Provides EPUB files with each series convention, plus broken and corrupt containers.

from collections.abc import Callable
from pathlib import Path

import pytest
from ebooklib import epub

from tests.fixtures.opf_documents import (
    BOTH_SERIES_OPF,
    CALIBRE_SERIES_OPF,
    EPUB3_SERIES_OPF,
    NO_METADATA_OPF,
    PLAIN_OPF,
    build_epub,
    damage_entry,
)


@pytest.fixture
def make_epub(tmp_path: Path) -> Callable[..., Path]:
    """Factory that writes an EPUB with the given package document under tmp_path."""

    def _make(name: str = "book.epub", opf: str | bytes | None = PLAIN_OPF, **kwargs) -> Path:
        return build_epub(tmp_path / name, opf, **kwargs)

    return _make


@pytest.fixture
def plain_epub(make_epub) -> Path:
    """An EPUB with title and author but no series."""
    return make_epub("plain.epub")


@pytest.fixture
def epub3_epub(make_epub) -> Path:
    """An EPUB whose series is an EPUB3 collection."""
    return make_epub("epub3.epub", EPUB3_SERIES_OPF)


@pytest.fixture
def calibre_epub(make_epub) -> Path:
    """An EPUB whose series is stored as calibre meta tags."""
    return make_epub("calibre.epub", CALIBRE_SERIES_OPF)


@pytest.fixture
def both_epub(make_epub) -> Path:
    """An EPUB carrying both conventions with different values."""
    return make_epub("both.epub", BOTH_SERIES_OPF)


@pytest.fixture
def no_metadata_epub(make_epub) -> Path:
    """An EPUB whose package document has no metadata element."""
    return make_epub("no_metadata.epub", NO_METADATA_OPF)


@pytest.fixture
def no_container_epub(make_epub) -> Path:
    """A zip without META-INF/container.xml."""
    return make_epub("no_container.epub", container=None)


@pytest.fixture
def sample_epub(tmp_path: Path) -> Path:
    """Create a complete EPUB with ebooklib, the way other tools produce them."""
    book = epub.EpubBook()

    book.set_identifier("urn:isbn:9780553293371")
    book.set_title("Foundation")
    book.set_language("en")
    book.add_author("Isaac Asimov")

    book.add_metadata("DC", "publisher", "Gnome Press")

    chapter = epub.EpubHtml(title="The Psychohistorians", file_name="chap01.xhtml", lang="en")
    chapter.content = b"<html><body><h1>The Psychohistorians</h1><p>Content.</p></body></html>"
    book.add_item(chapter)

    book.toc = [epub.Link("chap01.xhtml", "The Psychohistorians", "chap01")]
    book.add_item(epub.EpubNcx())
    book.add_item(epub.EpubNav())
    book.spine = ["nav", chapter]

    filepath = tmp_path / "foundation.epub"
    epub.write_epub(str(filepath), book)
    return filepath


@pytest.fixture
def corrupt_epub(tmp_path: Path) -> Path:
    """Create a corrupt file that is not a valid EPUB."""
    filepath = tmp_path / "corrupt.epub"
    filepath.write_text("this is not a valid epub file")
    return filepath


@pytest.fixture
def damaged_epub(make_epub) -> Path:
    """A valid zip whose package document entry holds an unreadable deflate stream."""
    return damage_entry(make_epub("damaged.epub"), "OEBPS/content.opf")


@pytest.fixture
def library_dir(tmp_path: Path) -> Path:
    """A directory tree of EPUBs in different states.

    Layout:
        library/
            a_plain.epub
            b_epub3.epub
            c_no_metadata.epub
            notes.txt
            Asimov/
                Foundation/
                    d_calibre.EPUB
    """
    root = tmp_path / "library"
    build_epub(root / "a_plain.epub", PLAIN_OPF)
    build_epub(root / "b_epub3.epub", EPUB3_SERIES_OPF)
    build_epub(root / "c_no_metadata.epub", NO_METADATA_OPF)
    (root / "notes.txt").write_text("not a book")
    build_epub(root / "Asimov" / "Foundation" / "d_calibre.EPUB", CALIBRE_SERIES_OPF)
    return root
