# ABOUTME: Minimal-diff rewriting of series tags inside an OPF package document.
# ABOUTME: Works on the document text directly so untouched bytes are never re-serialized.

import codecs
import logging
import random
import re
from dataclasses import dataclass
from xml.sax.saxutils import escape

from epubseries.formats.errors import (
    IdAllocationError,
    MissingMetadataTagError,
    PackageDecodeError,
)

logger = logging.getLogger(__name__)

DEFAULT_INDENT = "  "
INDENT_SAMPLE_SIZE = 200
COLLECTION_ID_PREFIX = "col"
_ID_RANGE = (10000, 99999)
_MAX_ID_ATTEMPTS = 1000

# UTF-32 BOMs must be tried before the UTF-16 ones they start with.
_BOMS: tuple[tuple[bytes, str], ...] = (
    (codecs.BOM_UTF8, "utf-8"),
    (codecs.BOM_UTF32_LE, "utf-32-le"),
    (codecs.BOM_UTF32_BE, "utf-32-be"),
    (codecs.BOM_UTF16_LE, "utf-16-le"),
    (codecs.BOM_UTF16_BE, "utf-16-be"),
)

_XML_DECLARATION_RE = re.compile(
    rb"""^\s*<\?xml[^>]*?\bencoding\s*=\s*["']([A-Za-z0-9._-]+)["']"""
)

_PREFIX = r"(?:[A-Za-z_][\w.-]*:)?"

# Attributes as quoted tokens, so a ">" inside a quoted value does not end the tag.
_ATTRS = r"""(?:[^>"']|"[^"]*"|'[^']*')*"""

_METADATA_OPEN = r"<(?P<prefix>[A-Za-z_][\w.-]*:)?metadata(?=[\s/>])" + _ATTRS + r"(?<!/)>"
_METADATA_OPEN_RE = re.compile(_METADATA_OPEN, re.IGNORECASE)
_METADATA_RE = re.compile(
    r"(?P<open>" + _METADATA_OPEN + r")"
    r"(?P<body>.*?)"
    r"(?P<close></(?(prefix)(?P=prefix))metadata\s*>)",
    re.IGNORECASE | re.DOTALL,
)

# A removed element takes the line break and indentation in front of it along.
_LEADING_SPACE = r"(?:\r?\n)?[ \t]*"


def _meta_re(attribute: str, values: tuple[str, ...]) -> re.Pattern[str]:
    """Match a self-closing or paired meta element whose attribute has one of values."""
    alternatives = "|".join(re.escape(value) for value in values)
    return re.compile(
        _LEADING_SPACE
        + r"<" + _PREFIX + r"meta\b" + _ATTRS + r"?\s" + attribute
        + r"""\s*=\s*(?P<q>["'])(?:""" + alternatives + r")(?P=q)" + _ATTRS + r"?"
        + r"(?:/>|(?<!/)>[^<]*</" + _PREFIX + r"meta\s*>)",
        re.IGNORECASE,
    )


def _element_re(name: str) -> re.Pattern[str]:
    """Match a self-closing or paired element with the given qualified name."""
    qname = re.escape(name)
    return re.compile(
        _LEADING_SPACE
        + r"<" + qname + r"\b" + _ATTRS + r"?(?:/>|(?<!/)>[^<]*</" + qname + r"\s*>)",
        re.IGNORECASE,
    )


_CALIBRE_KEYS = ("calibre:series", "calibre:series_index")
_COLLECTION_RE = _meta_re("property", ("belongs-to-collection",))

_SERIES_TAG_PATTERNS: tuple[re.Pattern[str], ...] = (
    _element_re("calibre:series"),
    _element_re("calibre:series_index"),
    _meta_re("name", _CALIBRE_KEYS),
    _meta_re("property", _CALIBRE_KEYS),
    _COLLECTION_RE,
    _meta_re("property", ("collection-type", "group-position")),
)

_ID_ATTR_RE = re.compile(r"""\s(?:xml:)?id\s*=\s*(?P<q>["'])(?P<id>.*?)(?P=q)""")
_INDENT_RE = re.compile(r"\n([ \t]*)(?=\S)")
_OPEN_TAG_RE = re.compile(r"<" + _ATTRS + r">")
_UNPARSED_RE = re.compile(r"<!--.*?-->|<!\[CDATA\[.*?\]\]>", re.DOTALL)
# Not whitespace, not markup: a masked span never joins a leading-space match.
_MASK_CHAR = "_"


@dataclass(frozen=True)
class MetadataSpan:
    """Character offsets of the metadata element's parts within the document."""

    open_start: int
    body_start: int
    body_end: int
    close_end: int
    prefix: str = ""


def xml_escape(text: str) -> str:
    """Escape text for use in both element content and quoted attributes."""
    return escape(text, {'"': "&quot;", "'": "&apos;"})


def _detect_encoding(data: bytes) -> tuple[bytes, str]:
    """Return (bom, encoding) for the document bytes. UTF-8 unless told otherwise."""
    for bom, encoding in _BOMS:
        if data.startswith(bom):
            return bom, encoding
    match = _XML_DECLARATION_RE.match(data)
    if match:
        declared = match.group(1).decode("ascii")
        try:
            return b"", codecs.lookup(declared).name
        except LookupError as exc:
            raise PackageDecodeError(f"Unknown declared encoding: {declared}") from exc
    return b"", "utf-8"


def decode_document(data: bytes) -> tuple[str, bytes, str]:
    """Decode package document bytes strictly.

    Returns:
        (text, bom, encoding) so the caller can encode the result the same way.

    Raises:
        PackageDecodeError: If the bytes are not valid in the detected encoding.
    """
    bom, encoding = _detect_encoding(data)
    try:
        text = data[len(bom):].decode(encoding)
    except UnicodeDecodeError as exc:
        raise PackageDecodeError(f"Package document is not valid {encoding}: {exc}") from exc
    return text, bom, encoding


def mask_unparsed(text: str) -> str:
    """Blank out comments and CDATA sections, keeping every offset in place.

    Tag patterns are matched against the masked text, then applied to the
    original, so markup quoted inside a comment is never mistaken for an
    element and never edited.
    """
    return _UNPARSED_RE.sub(lambda m: _MASK_CHAR * len(m.group(0)), text)


def find_metadata_span(text: str) -> MetadataSpan:
    """Locate the single metadata element of a package document.

    The body ends at the first close tag carrying the same prefix as the open
    tag. Comments and CDATA sections are ignored.

    Raises:
        MissingMetadataTagError: If there is no balanced metadata element, or
            more than one metadata open tag.
    """
    masked = mask_unparsed(text)
    opens = _METADATA_OPEN_RE.findall(masked)
    if len(opens) > 1:
        raise MissingMetadataTagError(
            f"Package document has {len(opens)} metadata elements, expected one"
        )
    match = _METADATA_RE.search(masked)
    if match is None:
        raise MissingMetadataTagError("Package document is missing the metadata tag")
    return MetadataSpan(
        open_start=match.start("open"),
        body_start=match.start("body"),
        body_end=match.end("body"),
        close_end=match.end("close"),
        prefix=match.group("prefix") or "",
    )


def strip_series_tags(body: str) -> str:
    """Remove every series element of both conventions from a metadata body."""
    for pattern in _SERIES_TAG_PATTERNS:
        spans = [m.span() for m in pattern.finditer(mask_unparsed(body))]
        for start, end in reversed(spans):
            body = body[:start] + body[end:]
    return body


def detect_indent(body: str) -> str:
    """Indentation of the first indented line near the start of the body."""
    match = _INDENT_RE.search(body[:INDENT_SAMPLE_SIZE])
    return match.group(1) if match else DEFAULT_INDENT


def _existing_collection_id(body: str) -> str | None:
    match = _COLLECTION_RE.search(mask_unparsed(body))
    if match is None:
        return None
    open_tag = _OPEN_TAG_RE.search(match.group(0))
    id_match = _ID_ATTR_RE.search(open_tag.group(0)) if open_tag else None
    return id_match.group("id") if id_match else None


def allocate_collection_id(taken: set[str], preferred: str | None = None) -> str:
    """Pick a collection id that no other element of the document uses.

    The preferred id (the one of the collection being replaced) is kept when
    it is still free, so rewriting a document with the same values does not
    change it.
    """
    if preferred and preferred not in taken:
        return preferred
    for _ in range(_MAX_ID_ATTEMPTS):
        candidate = f"{COLLECTION_ID_PREFIX}{random.randint(*_ID_RANGE)}"
        if candidate not in taken:
            return candidate
    raise IdAllocationError(
        f"No free collection id after {_MAX_ID_ATTEMPTS} attempts"
    )


def build_series_tags(
    series: str,
    index: str | None,
    *,
    indent: str,
    newline: str,
    collection_id: str | None,
    write_collection: bool,
    write_calibre: bool,
    prefix: str = "",
) -> str:
    """Render the series elements to insert, one per line, each line-break first.

    The meta elements carry the same namespace prefix as the metadata element.
    """
    if not series:
        return ""

    meta = f"{prefix}meta"
    lines = []
    name = xml_escape(series)
    position = xml_escape(index) if index else ""

    if write_collection:
        ref = xml_escape(f"#{collection_id}")
        lines.append(
            f'<{meta} property="belongs-to-collection" id="{xml_escape(collection_id or "")}">'
            f"{name}</{meta}>"
        )
        lines.append(f'<{meta} refines="{ref}" property="collection-type">series</{meta}>')
        if position:
            lines.append(
                f'<{meta} refines="{ref}" property="group-position">{position}</{meta}>'
            )

    if write_calibre:
        lines.append(f'<{meta} name="calibre:series" content="{name}" />')
        if position:
            lines.append(f'<{meta} name="calibre:series_index" content="{position}" />')

    return "".join(f"{newline}{indent}{line}" for line in lines)


def inject_series(
    data: bytes,
    series: str,
    index: str | None = None,
    *,
    write_collection: bool = True,
    write_calibre: bool = True,
) -> bytes:
    """Rewrite the series tags of a package document, touching nothing else.

    All previously written series tags of both conventions are removed, then
    the requested ones are inserted at the top of the metadata block using
    the block's own indentation. An empty series clears the series. Bytes
    outside the metadata body, and every non-series element inside it, are
    preserved exactly. Running this twice with the same arguments yields the
    same bytes.

    When the metadata body does not begin on a new line (a single-line or
    empty metadata element), the inserted block is followed by a line break
    plus the indentation instead of a bare line break, and blanks before the
    first existing child are dropped. A second run then finds the same layout
    it produced. Comments and CDATA sections are never edited.

    Args:
        data: Raw package document bytes.
        series: Series name; empty to clear.
        index: Series index in its textual form, or None/empty for none.
        write_collection: Write the EPUB3 belongs-to-collection elements.
        write_calibre: Write the calibre:series meta elements.

    Returns:
        The new package document bytes, in the original encoding.

    Raises:
        PackageDecodeError: If the bytes are not valid text.
        MissingMetadataTagError: If the metadata element cannot be located.
    """
    text, bom, encoding = decode_document(data)
    span = find_metadata_span(text)

    body = text[span.body_start:span.body_end]
    preferred_id = _existing_collection_id(body)
    cleaned = strip_series_tags(body)

    head = text[:span.body_start]
    tail = text[span.body_end:]
    newline = "\r\n" if "\r\n" in text else "\n"

    collection_id = None
    if write_collection and series:
        taken = {m.group("id") for m in _ID_ATTR_RE.finditer(head + cleaned + tail)}
        collection_id = allocate_collection_id(taken, preferred=preferred_id)

    inserted = ""
    new_body = cleaned
    if write_collection or write_calibre:
        # Blanks ahead of the first line break are dropped by the splice.
        rest = cleaned.lstrip(" \t")
        indent = detect_indent(rest)
        inserted = build_series_tags(
            series,
            index,
            indent=indent,
            newline=newline,
            collection_id=collection_id,
            write_collection=write_collection,
            write_calibre=write_calibre,
            prefix=span.prefix,
        )
        if inserted and rest.startswith(("\n", "\r\n")):
            new_body = inserted + rest
        elif inserted:
            new_body = inserted + newline + indent + rest

    logger.debug(
        "Rewrote metadata body: %d chars removed, %d chars inserted",
        len(body) - len(cleaned),
        len(inserted),
    )
    return bom + (head + new_body + tail).encode(encoding, errors="xmlcharrefreplace")
