# ABOUTME: Zip container access with staged entry replacement and atomic commit.
# ABOUTME: Only entries passed to replace_entry change; every other entry is copied as-is.

import logging
import os
import shutil
import tempfile
import zipfile
import zlib
from pathlib import Path

from epubseries.formats.errors import (
    CorruptArchiveError,
    EntryNotFoundError,
    IOFailureError,
    NotAFileError,
)

logger = logging.getLogger(__name__)

MIMETYPE_ENTRY = "mimetype"

_COPY_CHUNK_SIZE = 1024 * 1024

# What zipfile raises for entry data it cannot decode. NotImplementedError is an
# unsupported compression method, RuntimeError an encrypted entry.
_ENTRY_DATA_ERRORS = (
    zipfile.BadZipFile,
    EOFError,
    zlib.error,
    NotImplementedError,
    RuntimeError,
)


def _clone_zip_info(info: zipfile.ZipInfo) -> zipfile.ZipInfo:
    """Copy the header fields of an entry so it is rewritten as it was read."""
    cloned = zipfile.ZipInfo(info.filename, date_time=info.date_time)
    cloned.compress_type = info.compress_type
    cloned.comment = info.comment
    cloned.extra = info.extra
    cloned.internal_attr = info.internal_attr
    cloned.external_attr = info.external_attr
    cloned.create_system = info.create_system
    cloned.create_version = info.create_version
    cloned.extract_version = info.extract_version
    return cloned


class Archive:
    """An open EPUB zip container.

    Reads go straight to the underlying zip file. Replacements are staged in
    memory and only reach the disk through commit(), which writes a complete
    new archive next to the target and swaps it in with os.replace().
    """

    def __init__(self, path: Path, zip_file: zipfile.ZipFile) -> None:
        self.path = path
        self._zip = zip_file
        self._staged: dict[str, bytes] = {}

    @classmethod
    def open(cls, path: Path) -> "Archive":
        """Open a container file for reading.

        Raises:
            NotAFileError: If path does not name an existing regular file.
            CorruptArchiveError: If the file is not a readable zip archive.
            IOFailureError: If the file cannot be read.
        """
        path = Path(path)
        if not path.is_file():
            raise NotAFileError(f"Not a file: {path}")
        try:
            zip_file = zipfile.ZipFile(path, "r")
        except (zipfile.BadZipFile, zipfile.LargeZipFile) as exc:
            raise CorruptArchiveError(f"Not a valid zip archive: {path}: {exc}") from exc
        except OSError as exc:
            raise IOFailureError(f"Failed to open {path}: {exc}") from exc
        return cls(path, zip_file)

    def __enter__(self) -> "Archive":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._zip.close()

    def names(self) -> list[str]:
        """Entry names in archive order."""
        return self._zip.namelist()

    def has_entry(self, name: str) -> bool:
        try:
            self._zip.getinfo(name)
        except KeyError:
            return False
        return True

    def read_entry(self, name: str) -> bytes:
        """Return the bytes of an entry, including staged replacements."""
        if name in self._staged:
            return self._staged[name]
        try:
            return self._zip.read(name)
        except KeyError as exc:
            raise EntryNotFoundError(f"No entry {name!r} in {self.path}") from exc
        except _ENTRY_DATA_ERRORS as exc:
            raise CorruptArchiveError(f"Failed to read {name!r} from {self.path}: {exc}") from exc
        except OSError as exc:
            raise IOFailureError(f"Failed to read {name!r} from {self.path}: {exc}") from exc

    def replace_entry(self, name: str, data: bytes) -> None:
        """Stage new bytes for an existing entry. Nothing is written yet."""
        if not self.has_entry(name):
            raise EntryNotFoundError(f"No entry {name!r} in {self.path}")
        self._staged[name] = data

    @property
    def has_changes(self) -> bool:
        return bool(self._staged)

    def _copy_entries(self, dst: zipfile.ZipFile) -> None:
        infos = self._zip.infolist()
        # The EPUB mimetype entry must come first and stay uncompressed.
        ordered = [i for i in infos if i.filename == MIMETYPE_ENTRY]
        ordered += [i for i in infos if i.filename != MIMETYPE_ENTRY]

        for info in ordered:
            zinfo = _clone_zip_info(info)
            if info.filename == MIMETYPE_ENTRY:
                zinfo.compress_type = zipfile.ZIP_STORED
            if info.filename in self._staged:
                dst.writestr(zinfo, self._staged[info.filename])
                continue
            with self._zip.open(info, "r") as src_stream:
                with dst.open(zinfo, "w") as dst_stream:
                    shutil.copyfileobj(src_stream, dst_stream, _COPY_CHUNK_SIZE)

    def commit(self, path: Path | None = None) -> Path:
        """Write the archive with staged replacements to path and close it.

        The new archive is built in a temporary file in the destination
        directory and moved over the target in one os.replace() call. On any
        failure the temporary file is removed and the target is untouched.

        Args:
            path: Destination file. Defaults to the path the archive was
                opened from.

        Returns:
            The path written.
        """
        target = Path(path) if path is not None else self.path
        try:
            tmp_handle = tempfile.NamedTemporaryFile(
                prefix=f".{target.stem}.",
                suffix=".tmp",
                dir=str(target.parent),
                delete=False,
            )
        except OSError as exc:
            raise IOFailureError(f"Failed to create temporary file for {target}: {exc}") from exc
        tmp_path = Path(tmp_handle.name)
        tmp_handle.close()

        try:
            try:
                with zipfile.ZipFile(tmp_path, "w") as dst:
                    self._copy_entries(dst)
            except _ENTRY_DATA_ERRORS as exc:
                raise CorruptArchiveError(f"Failed to copy entries of {self.path}: {exc}") from exc
            except OSError as exc:
                raise IOFailureError(f"Failed to write {target}: {exc}") from exc

            self.close()
            try:
                if target.exists():
                    shutil.copymode(target, tmp_path)
                os.replace(tmp_path, target)
            except OSError as exc:
                raise IOFailureError(f"Failed to replace {target}: {exc}") from exc
        finally:
            if tmp_path.exists():
                tmp_path.unlink(missing_ok=True)

        logger.debug("Committed %d replaced entries to %s", len(self._staged), target)
        return target
