"""Anchor indexing and anchor-delimited slicing of spine files."""

import warnings

from bs4 import BeautifulSoup, NavigableString, Tag, XMLParsedAsHTMLWarning

from epub_ingest.core.paths import normalize_href
from epub_ingest.models.epub import TOCEntry
from epub_ingest.models.extraction import AnchorTarget, Section
from epub_ingest.models.package import ManifestItem

# Suppress XML parsing warnings - EPUB files often use XHTML
warnings.filterwarnings("ignore", category=XMLParsedAsHTMLWarning)

_ROOT_NAMES = ("body", "html", "[document]")


def build_anchor_index(entries: list[TOCEntry]) -> dict[str, list[AnchorTarget]]:
    """Group anchored TOC entries by file, in depth-first TOC order.

    Repeated anchors within a file keep their first occurrence.
    """
    index: dict[str, list[AnchorTarget]] = {}
    seen: set[tuple[str, str]] = set()
    for root in entries:
        for entry in root.walk():
            anchor = entry.anchor
            if not anchor:
                continue
            key = normalize_href(entry.file_href)
            if not key or (key, anchor) in seen:
                continue
            seen.add((key, anchor))
            index.setdefault(key, []).append(
                AnchorTarget(anchor=anchor, title=entry.title, level=entry.level)
            )
    return index


def slice_sections(
    markup: str,
    targets: list[AnchorTarget],
    item: ManifestItem,
    linear: bool = True,
) -> list[Section]:
    """Cut one section per anchor from a file's markup.

    Section *i* runs from the element carrying anchor *i* up to, but not
    including, the element carrying the next located anchor. An anchor that
    cannot be found yields the whole file with ``located=False``.
    """
    soup = BeautifulSoup(markup, "lxml")
    starts = [find_anchor(soup, target.anchor) for target in targets]

    sections = []
    for position, (target, start) in enumerate(zip(targets, starts)):
        fields = dict(
            item_id=item.id,
            href=item.href,
            anchor=target.anchor,
            title=target.title,
            level=target.level,
            linear=linear,
        )
        if start is None:
            sections.append(Section(markup=markup, located=False, **fields))
            continue

        stop = next((found for found in starts[position + 1:] if found is not None), None)
        sections.append(Section(markup=_collect(start, stop), **fields))
    return sections


def find_anchor(soup: BeautifulSoup, anchor: str) -> Tag | None:
    """Element whose id is ``anchor``, else a legacy ``<a name>`` target."""
    return soup.find(id=anchor) or soup.find(attrs={"name": anchor})


def _markup(node) -> str:
    if isinstance(node, Tag):
        return node.decode()
    if isinstance(node, NavigableString):
        return node.output_ready()
    return ""


def _contains(node, target: Tag) -> bool:
    # Identity, not equality: bs4 compares tags structurally
    if node is target:
        return True
    return isinstance(node, Tag) and any(desc is target for desc in node.descendants)


def _leading(container: Tag, stop: Tag) -> list[str]:
    """Markup inside ``container`` that precedes ``stop``."""
    parts = []
    for child in container.children:
        if child is stop:
            break
        if _contains(child, stop):
            parts.extend(_leading(child, stop))
            break
        parts.append(_markup(child))
    return parts


def _collect(start: Tag, stop: Tag | None) -> str:
    """The start element and everything after it in document order, up to ``stop``."""
    if stop is not None and stop is not start and _contains(start, stop):
        return "".join(_leading(start, stop))

    parts = [_markup(start)]
    node = start
    while node is not None and node.name not in _ROOT_NAMES:
        for sibling in node.next_siblings:
            if sibling is stop:
                return "".join(parts)
            if stop is not None and _contains(sibling, stop):
                parts.extend(_leading(sibling, stop))
                return "".join(parts)
            parts.append(_markup(sibling))
        node = node.parent
    return "".join(parts)
