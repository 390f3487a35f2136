"""XML backends: strict lxml parsing and a permissive regex fallback."""

import html
import itertools
import mimetypes
import re
import warnings
from urllib.parse import unquote

from bs4 import BeautifulSoup, Tag, XMLParsedAsHTMLWarning
from lxml import etree

from epub_ingest.core.archive import decode_text
from epub_ingest.core.parser_factory import XmlParser
from epub_ingest.errors import MarkupError
from epub_ingest.models.epub import TOCEntry
from epub_ingest.models.package import (
    ManifestItem,
    PackageDocument,
    PackageMetadata,
    SpineItem,
)

# Navigation documents are XHTML; parsing them with the HTML parser is intended
warnings.filterwarnings("ignore", category=XMLParsedAsHTMLWarning)

DC_FIELDS = (
    "title",
    "creator",
    "language",
    "identifier",
    "publisher",
    "date",
    "description",
    "subject",
    "rights",
    "source",
)

_WS = re.compile(r"\s+")
_TAG = re.compile(r"<[^>]+>")


def _clean(text: str) -> str:
    """Strip tags, decode entities and collapse whitespace."""
    return _WS.sub(" ", html.unescape(_TAG.sub(" ", text))).strip()


def _guess_media_type(href: str) -> str:
    guessed, _ = mimetypes.guess_type(href)
    return guessed or "application/octet-stream"


def _is_linear(value: str | None) -> bool:
    return (value or "yes").strip().lower() != "no"


def _properties(value: str | None) -> frozenset[str]:
    return frozenset((value or "").split())


# =============================================================================
# Structured backend
# =============================================================================


def _localname(element) -> str:
    return etree.QName(element).localname


class LxmlXmlParser(XmlParser):
    """Strict XML parsing with lxml; navigation documents via BeautifulSoup."""

    name = "lxml"

    def _parse(self, raw: bytes):
        parser = etree.XMLParser(
            recover=False, resolve_entities=False, no_network=True
        )
        try:
            return etree.fromstring(raw, parser=parser)
        except (etree.XMLSyntaxError, ValueError) as e:
            raise MarkupError(f"Malformed XML: {e}") from e

    def _elements(self, root, name: str):
        for element in root.iter(etree.Element):
            if _localname(element) == name:
                yield element

    def _first(self, root, name: str):
        return next(self._elements(root, name), None)

    def _text(self, element) -> str:
        return _WS.sub(" ", "".join(element.itertext())).strip()

    def parse_container(self, raw: bytes) -> str | None:
        root = self._parse(raw)
        for rootfile in self._elements(root, "rootfile"):
            full_path = (rootfile.get("full-path") or "").strip()
            if full_path:
                return full_path
        return None

    def parse_package(self, raw: bytes) -> PackageDocument:
        root = self._parse(raw)
        package = PackageDocument(version=(root.get("version") or "3.0").strip())

        metadata_el = self._first(root, "metadata")
        if metadata_el is not None:
            package.metadata = self._metadata(metadata_el)
            for meta in self._elements(metadata_el, "meta"):
                if (meta.get("name") or "").lower() == "cover" and meta.get("content"):
                    package.cover_id = meta.get("content").strip()
                    break

        manifest_el = self._first(root, "manifest")
        if manifest_el is not None:
            for item in self._elements(manifest_el, "item"):
                item_id = (item.get("id") or "").strip()
                href = (item.get("href") or "").strip()
                if not item_id or not href:
                    continue
                package.manifest.append(
                    ManifestItem(
                        id=item_id,
                        href=href,
                        media_type=(item.get("media-type") or "").strip()
                        or _guess_media_type(href),
                        properties=_properties(item.get("properties")),
                    )
                )

        spine_el = self._first(root, "spine")
        if spine_el is not None:
            package.toc_id = spine_el.get("toc")
            for itemref in self._elements(spine_el, "itemref"):
                idref = (itemref.get("idref") or "").strip()
                if idref:
                    package.spine.append(
                        SpineItem(idref=idref, linear=_is_linear(itemref.get("linear")))
                    )

        return package

    def _metadata(self, metadata_el) -> PackageMetadata:
        metadata = PackageMetadata()
        for element in metadata_el.iter(etree.Element):
            field_name = _localname(element)
            if field_name not in DC_FIELDS:
                continue
            text = self._text(element)
            if not text:
                continue
            if field_name == "subject":
                metadata.subject.append(text)
            elif field_name == "creator":
                if metadata.creator is None:
                    metadata.creator = text
            elif getattr(metadata, field_name) is None:
                setattr(metadata, field_name, text)
        return metadata

    def parse_nav(self, raw: bytes) -> list[TOCEntry]:
        soup = BeautifulSoup(raw, "lxml")
        navs = soup.find_all("nav")
        toc_nav = next((nav for nav in navs if _is_toc_nav(nav)), None)
        if toc_nav is None:
            # Fallback: any <nav> carrying a list
            toc_nav = next((nav for nav in navs if nav.find("ol")), None)
        if toc_nav is None:
            raise MarkupError('No <nav epub:type="toc"> in navigation document')

        top_ol = toc_nav.find("ol")
        if top_ol is None:
            raise MarkupError("Found <nav> but no <ol>")

        entries = self._nav_list(top_ol, 1, itertools.count())
        if not entries:
            raise MarkupError("Navigation document lists no entries")
        return entries

    def _nav_list(self, ol: Tag, level: int, counter) -> list[TOCEntry]:
        entries = []
        for li in ol.find_all("li", recursive=False):
            label = li.find("a", recursive=False) or li.find("span", recursive=False)
            sublists = li.find_all("ol", recursive=False)
            if label is None and not sublists:
                continue

            play_order = next(counter)
            children: list[TOCEntry] = []
            for sub in sublists:
                children.extend(self._nav_list(sub, level + 1, counter))

            title = _WS.sub(" ", label.get_text(" ", strip=True)) if label else ""
            href = (label.get("href") or "").strip() if label and label.name == "a" else ""
            entries.append(
                TOCEntry(
                    id=f"toc-{play_order}",
                    title=title,
                    href=href,
                    level=level,
                    play_order=play_order,
                    children=children,
                )
            )
        return entries

    def parse_ncx(self, raw: bytes) -> list[TOCEntry]:
        root = self._parse(raw)
        nav_map = self._first(root, "navMap")
        if nav_map is None:
            raise MarkupError("Could not find <navMap> in NCX")

        entries = self._nav_points(nav_map, 1, itertools.count())
        if not entries:
            raise MarkupError("NCX <navMap> has no navPoints")
        return entries

    def _nav_points(self, parent, level: int, counter) -> list[TOCEntry]:
        entries = []
        for nav_point in parent:
            if not isinstance(nav_point.tag, str) or _localname(nav_point) != "navPoint":
                continue

            position = next(counter)
            label = self._first(nav_point, "navLabel")
            text_el = self._first(label, "text") if label is not None else None
            content = next(
                (
                    child
                    for child in nav_point
                    if isinstance(child.tag, str) and _localname(child) == "content"
                ),
                None,
            )
            play_order = nav_point.get("playOrder", "")
            entries.append(
                TOCEntry(
                    id=nav_point.get("id") or f"navpoint-{position}",
                    title=self._text(text_el) if text_el is not None else "",
                    href=(content.get("src") or "").strip() if content is not None else "",
                    level=level,
                    play_order=int(play_order) if play_order.isdigit() else position,
                    children=self._nav_points(nav_point, level + 1, counter),
                )
            )
        return entries

    def parse_encryption(self, raw: bytes) -> dict[str, str]:
        root = self._parse(raw)
        encrypted: dict[str, str] = {}
        for data in self._elements(root, "EncryptedData"):
            method = self._first(data, "EncryptionMethod")
            reference = self._first(data, "CipherReference")
            if method is None or reference is None or not reference.get("URI"):
                continue
            encrypted[unquote(reference.get("URI"))] = method.get("Algorithm", "")
        return encrypted


def _is_toc_nav(nav: Tag) -> bool:
    """Match epub:type="toc" however the HTML parser named the attribute."""
    for key, value in nav.attrs.items():
        values = value if isinstance(value, list) else str(value).split()
        if key.split(":")[-1] == "type" and "toc" in values:
            return True
        if key == "role" and "doc-toc" in values:
            return True
    return False


# =============================================================================
# Regex fallback backend
# =============================================================================


def _attr(tag_text: str, name: str) -> str | None:
    match = re.search(
        rf"(?<![\w:.-]){re.escape(name)}\s*=\s*([\"'])(.*?)\1", tag_text, re.DOTALL
    )
    return html.unescape(match.group(2)).strip() if match else None


def _open_tags(text: str, name: str) -> list[str]:
    return re.findall(rf"<(?:[\w.-]+:)?{name}\b[^>]*>", text, re.IGNORECASE)


def _scope(text: str, name: str) -> str:
    """Body of the first <name> element, to end of text when unterminated."""
    match = re.search(
        rf"<(?:[\w.-]+:)?{name}\b[^>]*>(.*?)(?:</(?:[\w.-]+:)?{name}\s*>|$)",
        text,
        re.DOTALL | re.IGNORECASE,
    )
    return match.group(1) if match else text


def _element_texts(text: str, name: str) -> list[str]:
    pattern = rf"<(?:[\w.-]+:)?{name}\b[^>]*>(.*?)</(?:[\w.-]+:)?{name}\s*>"
    values = []
    for match in re.finditer(pattern, text, re.DOTALL | re.IGNORECASE):
        value = _clean(match.group(1))
        if value:
            values.append(value)
    return values


class RegexXmlParser(XmlParser):
    """Tag-scoped pattern matching over raw markup.

    Recovers whatever fields are extractable from documents lxml rejects.
    Every value is best-effort; nothing here raises on bad input.
    """

    name = "regex"

    def parse_container(self, raw: bytes) -> str | None:
        for tag in _open_tags(decode_text(raw), "rootfile"):
            full_path = _attr(tag, "full-path")
            if full_path:
                return full_path
        return None

    def parse_package(self, raw: bytes) -> PackageDocument:
        text = decode_text(raw)
        package = PackageDocument()

        package_tags = _open_tags(text, "package")
        if package_tags:
            package.version = _attr(package_tags[0], "version") or "3.0"

        metadata = PackageMetadata()
        for field_name in DC_FIELDS:
            values = _element_texts(text, field_name)
            if field_name == "subject":
                metadata.subject = values
            elif values:
                setattr(metadata, field_name, values[0])
        package.metadata = metadata

        for tag in _open_tags(text, "meta"):
            if (_attr(tag, "name") or "").lower() == "cover" and _attr(tag, "content"):
                package.cover_id = _attr(tag, "content")
                break

        for tag in _open_tags(_scope(text, "manifest"), "item"):
            item_id = _attr(tag, "id")
            href = _attr(tag, "href")
            if not item_id or not href:
                continue
            package.manifest.append(
                ManifestItem(
                    id=item_id,
                    href=href,
                    media_type=_attr(tag, "media-type") or _guess_media_type(href),
                    properties=_properties(_attr(tag, "properties")),
                )
            )

        spine_tags = _open_tags(text, "spine")
        if spine_tags:
            package.toc_id = _attr(spine_tags[0], "toc")
        for tag in _open_tags(_scope(text, "spine"), "itemref"):
            idref = _attr(tag, "idref")
            if idref:
                package.spine.append(SpineItem(idref=idref, linear=_is_linear(_attr(tag, "linear"))))

        return package

    def parse_nav(self, raw: bytes) -> list[TOCEntry]:
        text = decode_text(raw)
        toc_block = re.search(
            r"<nav\b[^>]*\btype\s*=\s*[\"'][^\"']*\btoc\b[^\"']*[\"'][^>]*>(.*?)(?:</nav\s*>|$)",
            text,
            re.DOTALL | re.IGNORECASE,
        )
        scope = toc_block.group(1) if toc_block else text

        entries = []
        for match in re.finditer(r"<a\b([^>]*)>(.*?)</a\s*>", scope, re.DOTALL | re.IGNORECASE):
            href = _attr(match.group(1), "href")
            if not href:
                continue
            position = len(entries)
            entries.append(
                TOCEntry(
                    id=f"toc-{position}",
                    title=_clean(match.group(2)),
                    href=href,
                    level=1,
                    play_order=position,
                )
            )
        return entries

    def parse_ncx(self, raw: bytes) -> list[TOCEntry]:
        text = decode_text(raw)
        entries = []
        for match in re.finditer(r"<(?:[\w.-]+:)?navPoint\b([^>]*)>", text, re.IGNORECASE):
            rest = text[match.end():]
            label = re.search(r"<(?:[\w.-]+:)?text\b[^>]*>(.*?)</(?:[\w.-]+:)?text\s*>", rest, re.DOTALL)
            content = re.search(r"<(?:[\w.-]+:)?content\b[^>]*>", rest)
            src = _attr(content.group(0), "src") if content else None
            if not src:
                continue
            position = len(entries)
            play_order = _attr(match.group(1), "playOrder") or ""
            entries.append(
                TOCEntry(
                    id=_attr(match.group(1), "id") or f"navpoint-{position}",
                    title=_clean(label.group(1)) if label else "",
                    href=src,
                    level=1,
                    play_order=int(play_order) if play_order.isdigit() else position,
                )
            )
        return entries

    def parse_encryption(self, raw: bytes) -> dict[str, str]:
        text = decode_text(raw)
        encrypted: dict[str, str] = {}
        blocks = re.findall(
            r"<(?:[\w.-]+:)?EncryptedData\b.*?</(?:[\w.-]+:)?EncryptedData\s*>", text, re.DOTALL
        )
        for block in blocks:
            methods = _open_tags(block, "EncryptionMethod")
            references = _open_tags(block, "CipherReference")
            if not methods or not references:
                continue
            uri = _attr(references[0], "URI")
            if uri:
                encrypted[unquote(uri)] = _attr(methods[0], "Algorithm") or ""
        return encrypted
