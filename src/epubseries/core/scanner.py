# ABOUTME: Directory scanner that reads the series record of every EPUB it finds.
# ABOUTME: A file that cannot be read yields a default record; the scan itself never fails.

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from epubseries.formats.opf import read_book_safely
from epubseries.metadata.types import BookRecord

logger = logging.getLogger(__name__)

EPUB_EXTENSION = ".epub"


def find_epubs(root: Path, recursive: bool = False) -> list[Path]:
    """List .epub files (any case) under root, sorted.

    A root that is itself an EPUB file is returned as a one-element list; a
    missing root yields an empty list.
    """
    root = Path(root)
    if root.is_file():
        return [root] if root.suffix.lower() == EPUB_EXTENSION else []
    if not root.is_dir():
        return []

    candidates = root.rglob("*") if recursive else root.iterdir()
    return sorted(
        path
        for path in candidates
        if path.is_file() and path.suffix.lower() == EPUB_EXTENSION
    )


def scan(root: Path, recursive: bool = False, *, workers: int = 1) -> list[BookRecord]:
    """Read the series record of every EPUB under root.

    Each file is independent, so with workers > 1 files are read on a thread
    pool. Records always come back in sorted path order.

    Args:
        root: Directory (or single EPUB file) to scan.
        recursive: Descend into subdirectories.
        workers: Number of files read concurrently.

    Returns:
        One BookRecord per EPUB file found.
    """
    paths = find_epubs(root, recursive)
    logger.debug("Found %d EPUB file(s) under %s", len(paths), root)

    if workers <= 1 or len(paths) <= 1:
        return [read_book_safely(path) for path in paths]

    with ThreadPoolExecutor(max_workers=workers) as executor:
        return list(executor.map(read_book_safely, paths))
