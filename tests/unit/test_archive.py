# ABOUTME: Unit tests for the zip container wrapper.
# ABOUTME: Tests entry reads, staged replacement, and the atomic, order-preserving commit.

import zipfile
from pathlib import Path

import pytest

from epubseries.formats.archive import Archive
from epubseries.formats.errors import (
    ArchiveError,
    CorruptArchiveError,
    EntryNotFoundError,
    NotAFileError,
)
from tests.fixtures.opf_documents import CHAPTER_XHTML, PLAIN_OPF, read_entries


class TestArchiveOpen:
    """Tests for opening containers."""

    def test_open_lists_entries_in_order(self, plain_epub: Path) -> None:
        """Entry names come back in archive order."""
        with Archive.open(plain_epub) as archive:
            assert archive.names() == [
                "mimetype",
                "META-INF/container.xml",
                "OEBPS/content.opf",
                "OEBPS/chap01.xhtml",
            ]

    def test_open_missing_file(self, tmp_path: Path) -> None:
        """A path that does not exist is not a file."""
        with pytest.raises(NotAFileError):
            Archive.open(tmp_path / "missing.epub")

    def test_open_directory(self, tmp_path: Path) -> None:
        """A directory is not a file either."""
        with pytest.raises(NotAFileError):
            Archive.open(tmp_path)

    def test_open_corrupt_file(self, corrupt_epub: Path) -> None:
        """Bytes that are not a zip archive are reported as corrupt."""
        with pytest.raises(CorruptArchiveError):
            Archive.open(corrupt_epub)

    def test_errors_share_a_base_class(self, corrupt_epub: Path) -> None:
        with pytest.raises(ArchiveError):
            Archive.open(corrupt_epub)


class TestArchiveEntries:
    """Tests for reading and staging entries."""

    def test_read_entry(self, plain_epub: Path) -> None:
        with Archive.open(plain_epub) as archive:
            assert archive.read_entry("OEBPS/content.opf") == PLAIN_OPF.encode()

    def test_read_missing_entry(self, plain_epub: Path) -> None:
        with Archive.open(plain_epub) as archive:
            with pytest.raises(EntryNotFoundError):
                archive.read_entry("OEBPS/missing.xhtml")

    def test_has_entry(self, plain_epub: Path) -> None:
        with Archive.open(plain_epub) as archive:
            assert archive.has_entry("mimetype")
            assert not archive.has_entry("nope")

    def test_replace_is_staged_until_commit(self, plain_epub: Path) -> None:
        """A replaced entry reads back the new bytes, the file on disk is unchanged."""
        before = plain_epub.read_bytes()
        with Archive.open(plain_epub) as archive:
            archive.replace_entry("OEBPS/content.opf", b"<package/>")

            assert archive.has_changes
            assert archive.read_entry("OEBPS/content.opf") == b"<package/>"

        assert plain_epub.read_bytes() == before

    def test_replace_unknown_entry(self, plain_epub: Path) -> None:
        """Only existing entries can be replaced."""
        with Archive.open(plain_epub) as archive:
            with pytest.raises(EntryNotFoundError):
                archive.replace_entry("OEBPS/new.opf", b"<package/>")
            assert not archive.has_changes


class TestArchiveCommit:
    """Tests for writing the archive back."""

    def test_commit_replaces_only_staged_entry(self, plain_epub: Path) -> None:
        """Every other entry keeps its bytes, name, and position."""
        before = read_entries(plain_epub)

        archive = Archive.open(plain_epub)
        archive.replace_entry("OEBPS/content.opf", b"<package>new</package>")
        archive.commit()

        after = read_entries(plain_epub)
        assert list(after) == list(before)
        assert after["OEBPS/content.opf"] == b"<package>new</package>"
        assert after["OEBPS/chap01.xhtml"] == CHAPTER_XHTML
        assert after["META-INF/container.xml"] == before["META-INF/container.xml"]
        assert after["mimetype"] == b"application/epub+zip"

    def test_commit_keeps_entry_headers(self, plain_epub: Path) -> None:
        """Compression method and timestamps are copied from the original entries."""
        with zipfile.ZipFile(plain_epub) as zf:
            before = {i.filename: (i.compress_type, i.date_time) for i in zf.infolist()}

        archive = Archive.open(plain_epub)
        archive.replace_entry("OEBPS/content.opf", b"<package/>")
        archive.commit()

        with zipfile.ZipFile(plain_epub) as zf:
            after = {i.filename: (i.compress_type, i.date_time) for i in zf.infolist()}
        assert after == before

    def test_mimetype_written_first_and_stored(self, tmp_path: Path) -> None:
        """A misplaced, compressed mimetype entry is moved to the front uncompressed."""
        path = tmp_path / "odd.epub"
        with zipfile.ZipFile(path, "w") as zf:
            zf.writestr("OEBPS/chap01.xhtml", CHAPTER_XHTML, compress_type=zipfile.ZIP_DEFLATED)
            zf.writestr("mimetype", "application/epub+zip", compress_type=zipfile.ZIP_DEFLATED)

        archive = Archive.open(path)
        archive.replace_entry("OEBPS/chap01.xhtml", b"<html/>")
        archive.commit()

        with zipfile.ZipFile(path) as zf:
            first = zf.infolist()[0]
            assert first.filename == "mimetype"
            assert first.compress_type == zipfile.ZIP_STORED
            assert zf.read("mimetype") == b"application/epub+zip"

    def test_commit_to_other_path(self, plain_epub: Path, tmp_path: Path) -> None:
        """Committing elsewhere leaves the source file alone."""
        before = plain_epub.read_bytes()
        target = tmp_path / "copy.epub"

        archive = Archive.open(plain_epub)
        archive.replace_entry("OEBPS/content.opf", b"<package/>")
        written = archive.commit(target)

        assert written == target
        assert plain_epub.read_bytes() == before
        assert read_entries(target)["OEBPS/content.opf"] == b"<package/>"

    def test_commit_leaves_no_temporary_files(self, plain_epub: Path) -> None:
        archive = Archive.open(plain_epub)
        archive.replace_entry("OEBPS/content.opf", b"<package/>")
        archive.commit()

        assert sorted(p.name for p in plain_epub.parent.iterdir()) == ["plain.epub"]

    def test_failed_commit_leaves_target_untouched(self, plain_epub: Path, tmp_path: Path) -> None:
        """When the destination directory does not exist nothing is written anywhere."""
        before = plain_epub.read_bytes()

        archive = Archive.open(plain_epub)
        archive.replace_entry("OEBPS/content.opf", b"<package/>")
        with pytest.raises(ArchiveError):
            archive.commit(tmp_path / "missing" / "out.epub")
        archive.close()

        assert plain_epub.read_bytes() == before
        assert not (tmp_path / "missing").exists()


class TestDamagedEntries:
    """Tests for zips whose directory is fine but whose entry data is not."""

    def test_read_damaged_entry(self, damaged_epub: Path) -> None:
        """Undecodable entry data is reported as a corrupt archive."""
        with Archive.open(damaged_epub) as archive:
            with pytest.raises(CorruptArchiveError):
                archive.read_entry("OEBPS/content.opf")

    def test_other_entries_still_readable(self, damaged_epub: Path) -> None:
        with Archive.open(damaged_epub) as archive:
            assert archive.read_entry("OEBPS/chap01.xhtml") == CHAPTER_XHTML

    def test_commit_copying_damaged_entry(self, damaged_epub: Path) -> None:
        """A damaged entry met while copying fails the commit and leaves the file alone."""
        before = damaged_epub.read_bytes()

        archive = Archive.open(damaged_epub)
        archive.replace_entry("OEBPS/chap01.xhtml", b"<html/>")
        with pytest.raises(CorruptArchiveError):
            archive.commit()
        archive.close()

        assert damaged_epub.read_bytes() == before
        assert sorted(p.name for p in damaged_epub.parent.iterdir()) == ["damaged.epub"]
