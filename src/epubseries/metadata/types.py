# ABOUTME: Core data structures for EPUB series metadata.
# ABOUTME: BookRecord is the read projection produced by every scan of a container file.

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

UNKNOWN = "Unknown"


class SeriesSource(str, Enum):
    """Which series convention supplied a record's series value."""

    EPUB3 = "epub3"
    CALIBRE = "calibre"
    NONE = "none"


@dataclass(frozen=True)
class BookRecord:
    """Series-relevant metadata for one EPUB file.

    Built fresh from the file on every read and never mutated afterwards.
    The series index keeps its original textual form, so "1.5" or "02"
    round-trip unchanged. When extraction fails the record carries the
    defaults and ``error`` explains why.
    """

    file_path: Path
    file_name: str
    title: str = UNKNOWN
    author: str = UNKNOWN
    series: str = ""
    series_index: str = ""
    series_source: SeriesSource = SeriesSource.NONE
    opf_path: str | None = None
    error: str | None = None

    @classmethod
    def default(cls, path: Path, error: str | None = None) -> "BookRecord":
        """The best-effort record for a file whose metadata could not be read."""
        return cls(file_path=path, file_name=path.name, error=error)

    @property
    def has_series(self) -> bool:
        return bool(self.series)

    @property
    def series_label(self) -> str:
        """Display string: 'Series #Index', 'Series', or empty."""
        if not self.series:
            return ""
        if self.series_index:
            return f"{self.series} #{self.series_index}"
        return self.series

    def to_dict(self) -> dict[str, str | None]:
        return {
            "file_path": str(self.file_path),
            "file_name": self.file_name,
            "title": self.title,
            "author": self.author,
            "series": self.series,
            "series_index": self.series_index,
            "series_source": self.series_source.value,
            "opf_path": self.opf_path,
            "error": self.error,
        }
