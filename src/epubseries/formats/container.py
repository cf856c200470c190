# ABOUTME: Resolves the package document path from META-INF/container.xml.
# ABOUTME: The first declared rootfile is authoritative; other renditions are ignored.

from lxml import etree

from epubseries.formats.archive import Archive
from epubseries.formats.errors import (
    EntryNotFoundError,
    MissingContainerError,
    MissingPackageDocumentError,
    MissingRootfileError,
)

CONTAINER_PATH = "META-INF/container.xml"


def parse_xml(data: bytes) -> etree._Element:
    """Parse XML bytes without resolving entities or touching the network."""
    parser = etree.XMLParser(resolve_entities=False, no_network=True)
    return etree.fromstring(data, parser=parser)


def local_name(tag: object) -> str:
    """Strip the {namespace} part from an lxml tag. Comments and PIs yield ''."""
    if not tag or not isinstance(tag, str):
        return ""
    if "}" in tag:
        return tag.split("}", 1)[1]
    # Recovered documents keep undeclared prefixes in the tag name.
    return tag.rsplit(":", 1)[-1]


def namespace_of(tag: object) -> str | None:
    if isinstance(tag, str) and tag.startswith("{"):
        return tag[1:].split("}", 1)[0]
    return None


def rootfile_paths(archive: Archive) -> list[str]:
    """The full-path of every rootfile in container.xml, in order ('' when unset).

    Raises:
        MissingContainerError: If container.xml is not in the archive.
        MissingRootfileError: If container.xml is not parseable XML.
    """
    try:
        data = archive.read_entry(CONTAINER_PATH)
    except EntryNotFoundError as exc:
        raise MissingContainerError(f"Invalid EPUB: no {CONTAINER_PATH} in {archive.path}") from exc

    try:
        root = parse_xml(data)
    except etree.XMLSyntaxError as exc:
        raise MissingRootfileError(f"Unreadable {CONTAINER_PATH} in {archive.path}: {exc}") from exc

    return [
        (element.get("full-path") or "").strip()
        for element in root.iter()
        if local_name(element.tag) == "rootfile"
    ]


def resolve_package_path(archive: Archive) -> str:
    """Return the path of the package document declared by the first rootfile.

    The returned path is not checked against the archive; use
    require_package_document() for that.

    Raises:
        MissingContainerError: If container.xml is not in the archive.
        MissingRootfileError: If no rootfile with a full-path is declared.
    """
    paths = rootfile_paths(archive)
    if not paths or not paths[0]:
        raise MissingRootfileError(f"No rootfile full-path declared in {archive.path}")
    return paths[0]


def require_package_document(archive: Archive) -> str:
    """Resolve the package document path and check the entry exists."""
    opf_path = resolve_package_path(archive)
    if not archive.has_entry(opf_path):
        raise MissingPackageDocumentError(f"Package document not found: {opf_path}")
    return opf_path
