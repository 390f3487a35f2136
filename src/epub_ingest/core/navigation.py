"""Table of contents from the EPUB 3 nav document or the EPUB 2 NCX."""

import logging
from collections.abc import Mapping
from types import MappingProxyType

from epub_ingest.core.archive import find_member
from epub_ingest.core.parser_factory import XmlParser
from epub_ingest.core.paths import normalize_href, relative_to, resolve_href, split_fragment
from epub_ingest.errors import MarkupError
from epub_ingest.models.epub import TOCEntry
from epub_ingest.models.extraction import Diagnostics
from epub_ingest.models.package import ManifestItem, PackageDocument

log = logging.getLogger(__name__)

NCX_MEDIA_TYPE = "application/x-dtbncx+xml"


def locate_navigation(
    package: PackageDocument,
) -> tuple[ManifestItem | None, ManifestItem | None]:
    """Find the nav document and the NCX, either of which may be absent."""
    nav = next((item for item in package.manifest if "nav" in item.properties), None)
    if nav is None:
        nav = next(
            (
                item
                for item in package.manifest
                if item.is_document and "nav" in item.href.lower()
            ),
            None,
        )

    ncx = package.item(package.toc_id) if package.toc_id else None
    if ncx is None:
        ncx = next(
            (
                item
                for item in package.manifest
                if item.media_type == NCX_MEDIA_TYPE or ".ncx" in item.href.lower()
            ),
            None,
        )
    return nav, ncx


def parse_navigation(
    files: dict[str, bytes],
    opf_path: str,
    package: PackageDocument,
    parser: XmlParser,
    fallback: XmlParser,
    diagnostics: Diagnostics,
) -> list[TOCEntry]:
    """Parse the preferred navigation document into a TOC tree.

    Entry hrefs are rewritten relative to the package document so they
    compare directly with manifest hrefs. An empty list means no usable
    navigation; that is not an error.
    """
    nav_item, ncx_item = locate_navigation(package)
    if nav_item is None and ncx_item is None:
        diagnostics.warn("No navigation document or NCX found; chapters follow the spine")
        return []

    for item, kind in ((nav_item, "nav"), (ncx_item, "ncx")):
        if item is None:
            continue

        path = resolve_href(opf_path, item.href)
        member = find_member(files, path)
        if member is None:
            diagnostics.warn(f"Navigation document missing from archive: {item.href}")
            continue

        entries = _parse_document(files[member], kind, item.href, parser, fallback, diagnostics)
        if entries:
            log.info(f"Table of contents from {kind} {item.href}: {len(entries)} top-level entries")
            return [_rebase(entry, path, opf_path) for entry in entries]
        diagnostics.warn(f"Navigation document {item.href} lists no entries")

    return []


def _parse_document(
    raw: bytes,
    kind: str,
    href: str,
    parser: XmlParser,
    fallback: XmlParser,
    diagnostics: Diagnostics,
) -> list[TOCEntry]:
    method = "parse_nav" if kind == "nav" else "parse_ncx"
    try:
        return getattr(parser, method)(raw)
    except MarkupError as e:
        diagnostics.warn(f"Could not parse {kind} document {href}, using flat fallback: {e}")
        return getattr(fallback, method)(raw)


def _rebase(entry: TOCEntry, doc_path: str, opf_path: str) -> TOCEntry:
    """Rewrite an href relative to its navigation document as OPF-relative."""
    href = entry.href
    if href and "://" not in href and not href.startswith("mailto:"):
        base, anchor = split_fragment(href)
        target = resolve_href(doc_path, base) if base else doc_path
        href = relative_to(opf_path, target)
        if anchor:
            href = f"{href}#{anchor}"

    return entry.model_copy(
        update={
            "href": href,
            "children": [_rebase(child, doc_path, opf_path) for child in entry.children],
        }
    )


def build_toc_index(entries: list[TOCEntry]) -> Mapping[str, TOCEntry]:
    """Read-only file href -> entry lookup over the whole tree.

    Anchors are stripped from keys; when several entries target the same
    file the last one in depth-first order wins.
    """
    index: dict[str, TOCEntry] = {}
    for root in entries:
        for entry in root.walk():
            key = normalize_href(entry.file_href)
            if key:
                index[key] = entry
    return MappingProxyType(index)


def count_entries(entries: list[TOCEntry]) -> int:
    return sum(1 for root in entries for _ in root.walk())
