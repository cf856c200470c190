# ABOUTME: Series metadata extraction from the OPF package document.
# ABOUTME: EPUB3 collections take precedence over calibre series tags when both are present.

import logging
from dataclasses import dataclass
from pathlib import Path

from lxml import etree

from epubseries.formats.archive import Archive
from epubseries.formats.container import (
    local_name,
    namespace_of,
    parse_xml,
    require_package_document,
)
from epubseries.formats.errors import EpubSeriesError, MalformedPackageError, MissingMetadataError
from epubseries.metadata.types import UNKNOWN, BookRecord, SeriesSource

logger = logging.getLogger(__name__)

DC_NAMESPACE = "http://purl.org/dc/elements/1.1/"

COLLECTION_PROPERTY = "belongs-to-collection"
GROUP_POSITION_PROPERTY = "group-position"
CALIBRE_SERIES = "calibre:series"
CALIBRE_SERIES_INDEX = "calibre:series_index"


@dataclass(frozen=True)
class PackageMetadata:
    """The fields extracted from one package document."""

    title: str = UNKNOWN
    author: str = UNKNOWN
    series: str = ""
    series_index: str = ""
    series_source: SeriesSource = SeriesSource.NONE


def _parse_package(data: bytes) -> etree._Element:
    """Parse the package document, falling back to lxml's recovering parser."""
    try:
        return parse_xml(data)
    except etree.XMLSyntaxError as exc:
        logger.debug("Strict OPF parse failed (%s), retrying in recover mode", exc)

    parser = etree.XMLParser(resolve_entities=False, no_network=True, recover=True)
    try:
        root = etree.fromstring(data, parser=parser)
    except etree.XMLSyntaxError as exc:
        raise MalformedPackageError(f"Package document is not parseable: {exc}") from exc
    if root is None:
        raise MalformedPackageError("Package document is empty")
    return root


def _find_metadata(root: etree._Element) -> etree._Element:
    """The one metadata child of the package root.

    Several metadata elements are an error, the same as none.
    """
    found = [child for child in root if local_name(child.tag) == "metadata"]
    if not found:
        raise MissingMetadataError("Package document has no metadata element")
    if len(found) > 1:
        raise MissingMetadataError(
            f"Package document has {len(found)} metadata elements, expected one"
        )
    return found[0]


def _is_dc(element: etree._Element, name: str) -> bool:
    if local_name(element.tag) != name:
        return False
    return namespace_of(element.tag) in (None, DC_NAMESPACE)


def _text(element: etree._Element) -> str:
    """Inner text of an element, including text nested in child elements."""
    return "".join(element.itertext()).strip()


def _meta_elements(metadata: etree._Element) -> list[etree._Element]:
    return [
        element
        for element in metadata.iter()
        if element is not metadata and local_name(element.tag) == "meta"
    ]


def _calibre_value(metas: list[etree._Element], key: str) -> str | None:
    for meta in metas:
        if meta.get("name") == key or meta.get("property") == key:
            return meta.get("content") or _text(meta)
    return None


def _extract_series(metas: list[etree._Element]) -> tuple[str, str, SeriesSource]:
    """Apply the series precedence rules to the package's meta elements.

    1. An EPUB3 belongs-to-collection meta wins. Its index comes from the
       group-position meta refining the collection's id, if any.
    2. Only without a collection, calibre:series supplies the series and
       calibre:series_index supplies the index.
    """
    for meta in metas:
        if meta.get("property") != COLLECTION_PROPERTY:
            continue
        index = ""
        collection_id = meta.get("id")
        if collection_id:
            for other in metas:
                if (
                    other.get("refines") == f"#{collection_id}"
                    and other.get("property") == GROUP_POSITION_PROPERTY
                ):
                    index = _text(other)
                    break
        return _text(meta), index, SeriesSource.EPUB3

    series = _calibre_value(metas, CALIBRE_SERIES)
    index = _calibre_value(metas, CALIBRE_SERIES_INDEX) or ""
    if series is None:
        return "", index, SeriesSource.NONE
    return series, index, SeriesSource.CALIBRE


def extract_metadata(data: bytes) -> PackageMetadata:
    """Extract title, author, and series fields from package document bytes.

    Args:
        data: Raw bytes of the OPF document.

    Returns:
        PackageMetadata with defaults for any absent field.

    Raises:
        MalformedPackageError: If the document cannot be parsed at all.
        MissingMetadataError: If the package has no metadata element, or
            more than one.
    """
    root = _parse_package(data)
    metadata = _find_metadata(root)

    title = UNKNOWN
    for element in metadata:
        if _is_dc(element, "title"):
            title = _text(element) or UNKNOWN
            break

    creators = [_text(element) for element in metadata if _is_dc(element, "creator")]
    author = ", ".join(creators) if creators else UNKNOWN

    series, series_index, source = _extract_series(_meta_elements(metadata))

    return PackageMetadata(
        title=title,
        author=author,
        series=series,
        series_index=series_index,
        series_source=source,
    )


def read_book(path: Path) -> BookRecord:
    """Read the series record of one EPUB file.

    Raises:
        EpubSeriesError: Any archive, container, or metadata failure.
    """
    path = Path(path)
    with Archive.open(path) as archive:
        opf_path = require_package_document(archive)
        data = archive.read_entry(opf_path)

    meta = extract_metadata(data)
    return BookRecord(
        file_path=path,
        file_name=path.name,
        title=meta.title,
        author=meta.author,
        series=meta.series,
        series_index=meta.series_index,
        series_source=meta.series_source,
        opf_path=opf_path,
    )


def read_book_safely(path: Path) -> BookRecord:
    """Like read_book(), but a failure yields the default record instead.

    A single malformed book must never abort a directory scan, so every
    epubseries and filesystem error is logged and folded into the record.
    """
    path = Path(path)
    try:
        return read_book(path)
    except (EpubSeriesError, OSError) as exc:
        logger.warning("Could not read metadata from %s: %s", path, exc)
        return BookRecord.default(path, error=str(exc))
