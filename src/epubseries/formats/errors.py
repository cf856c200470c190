# ABOUTME: Exception hierarchy for reading and rewriting EPUB series metadata.
# ABOUTME: Stage bases (archive, container, metadata, injection) let callers catch a whole step.


class EpubSeriesError(Exception):
    """Base class for every error raised by epubseries."""


class ArchiveError(EpubSeriesError):
    """Raised when the zip container cannot be opened, read, or written."""


class NotAFileError(ArchiveError):
    """Raised when the given path is not an existing regular file."""


class CorruptArchiveError(ArchiveError):
    """Raised when the file is not a readable zip archive."""


class EntryNotFoundError(ArchiveError):
    """Raised when a named entry does not exist in the archive."""


class IOFailureError(ArchiveError):
    """Raised when a filesystem read, write, or copy fails."""


class ContainerError(EpubSeriesError):
    """Raised when the package document cannot be located."""


class MissingContainerError(ContainerError):
    """Raised when META-INF/container.xml is absent."""


class MissingRootfileError(ContainerError):
    """Raised when container.xml declares no usable rootfile full-path."""


class MissingPackageDocumentError(ContainerError):
    """Raised when the declared package document is not in the archive."""


class MissingMetadataError(EpubSeriesError):
    """Raised when the package document has no metadata element."""


class MalformedPackageError(MissingMetadataError):
    """Raised when the package document is not parseable XML."""


class InjectionError(EpubSeriesError):
    """Raised when series tags cannot be spliced into the package document."""


class MissingMetadataTagError(InjectionError):
    """Raised when no single balanced metadata tag pair can be located."""


class PackageDecodeError(InjectionError):
    """Raised when the package document bytes are not valid text."""


class IdAllocationError(InjectionError):
    """Raised when no unused collection id could be generated."""
