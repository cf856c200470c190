# ABOUTME: Write pipeline for series metadata: backup, inject, and atomic archive commit.
# ABOUTME: Per-file failures become SaveResults so a batch keeps going and reports counts.

import logging
import shutil
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path

from epubseries.formats.archive import Archive
from epubseries.formats.container import require_package_document
from epubseries.formats.errors import EpubSeriesError, IOFailureError
from epubseries.formats.inject import inject_series

logger = logging.getLogger(__name__)

BACKUP_SUFFIX = ".bak"


@dataclass
class SaveResult:
    """Outcome of writing series metadata to one EPUB file."""

    path: Path
    success: bool
    changed: bool = False
    backup_path: Path | None = None
    error: str | None = None


@dataclass
class SeriesEdit:
    """One requested change in a batch save."""

    path: Path
    series: str
    index: str | None = None


@dataclass
class BatchSaveResult:
    """Summary of a batch save. Failures do not stop the batch."""

    saved: int = 0
    unchanged: int = 0
    failed: int = 0
    error_details: list[tuple[Path, str]] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.saved + self.unchanged + self.failed


def backup_path_for(
    path: Path, backup_dir: Path | None = None, base: Path | None = None
) -> Path:
    """Where the backup of path goes.

    Without backup_dir this is the sibling '<path>.bak'. With backup_dir the
    file's location relative to base (default: its own directory) is mirrored
    under backup_dir.
    """
    path = Path(path)
    if backup_dir is None:
        return path.with_name(path.name + BACKUP_SUFFIX)

    resolved = path.resolve()
    base = Path(base).resolve() if base is not None else resolved.parent
    try:
        relative = resolved.relative_to(base)
    except ValueError:
        relative = Path(resolved.name)
    target = Path(backup_dir) / relative
    return target.with_name(target.name + BACKUP_SUFFIX)


def _write_backup(source: Path, dest: Path) -> Path:
    """Copy the container byte-for-byte. A written backup is never removed."""
    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, dest)
    except OSError as exc:
        raise IOFailureError(f"Failed to write backup {dest}: {exc}") from exc
    logger.debug("Backed up %s to %s", source, dest)
    return dest


def save_series_or_raise(
    path: Path,
    series: str,
    index: str | None = None,
    *,
    backup: bool = True,
    backup_dir: Path | None = None,
    backup_base: Path | None = None,
    write_collection: bool = True,
    write_calibre: bool = True,
    dry_run: bool = False,
) -> SaveResult:
    """Write series metadata into an EPUB file, raising on failure.

    Sequence: open the archive, resolve the package document, read it,
    back up the container (if requested), inject the series tags, stage the
    new package document and commit the archive. Only the commit touches the
    original file, and it replaces the file atomically. If the package
    document comes out unchanged the archive is not rewritten.

    Args:
        path: The EPUB file to update in place.
        series: Series name, or empty to clear the series.
        index: Series index in its textual form, or None.
        backup: Copy the file to its backup path before any mutation.
        backup_dir: Put backups under this directory instead of beside the file.
        backup_base: Directory that backup_dir mirrors the file's location from.
        write_collection: Write EPUB3 collection tags.
        write_calibre: Write calibre series tags.
        dry_run: Compute the change but neither back up nor commit.

    Returns:
        A successful SaveResult.

    Raises:
        EpubSeriesError: Any archive, container, injection, or I/O failure.
    """
    path = Path(path)
    backup_path = None

    with Archive.open(path) as archive:
        opf_path = require_package_document(archive)
        original = archive.read_entry(opf_path)

        if backup and not dry_run:
            backup_path = _write_backup(path, backup_path_for(path, backup_dir, backup_base))

        updated = inject_series(
            original,
            series,
            index,
            write_collection=write_collection,
            write_calibre=write_calibre,
        )
        changed = updated != original

        if changed and not dry_run:
            archive.replace_entry(opf_path, updated)
            archive.commit()
            logger.info("Wrote series %r (index %r) to %s", series, index, path)

    return SaveResult(path=path, success=True, changed=changed, backup_path=backup_path)


def save_series(
    path: Path,
    series: str,
    index: str | None = None,
    *,
    backup: bool = True,
    backup_dir: Path | None = None,
    backup_base: Path | None = None,
    write_collection: bool = True,
    write_calibre: bool = True,
    dry_run: bool = False,
) -> SaveResult:
    """Write series metadata into an EPUB file, reporting failure as a result.

    Same sequence as save_series_or_raise(). Any failure leaves the original
    file as it was and comes back as SaveResult(success=False) with the
    reason; a backup written before the failure stays on disk.
    """
    path = Path(path)
    try:
        return save_series_or_raise(
            path,
            series,
            index,
            backup=backup,
            backup_dir=backup_dir,
            backup_base=backup_base,
            write_collection=write_collection,
            write_calibre=write_calibre,
            dry_run=dry_run,
        )
    except (EpubSeriesError, OSError) as exc:
        logger.error("Failed to write series to %s: %s", path, exc)
        return SaveResult(path=path, success=False, error=str(exc))


save = save_series


def save_batch(
    edits: Iterable[SeriesEdit],
    *,
    on_result: Callable[[SaveResult], None] | None = None,
    **options: object,
) -> BatchSaveResult:
    """Save each edit in turn, continuing past failures.

    Args:
        edits: The per-file changes to apply.
        on_result: Called with each file's SaveResult as soon as it is known.
        **options: Passed to save_series() for every file.

    Returns:
        BatchSaveResult with saved/unchanged/failed counts.
    """
    result = BatchSaveResult()

    for edit in edits:
        outcome = save_series(edit.path, edit.series, edit.index, **options)
        if not outcome.success:
            result.failed += 1
            result.error_details.append((outcome.path, outcome.error or "unknown error"))
        elif outcome.changed:
            result.saved += 1
        else:
            result.unchanged += 1

        if on_result is not None:
            on_result(outcome)

    return result
