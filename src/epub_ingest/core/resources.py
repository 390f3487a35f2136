"""Extract images, stylesheets and fonts declared in the manifest."""

import base64
import logging
import re

from epub_ingest.config import ParserConfig
from epub_ingest.core.archive import ENCRYPTION_PATH, find_member
from epub_ingest.core.parser_factory import XmlParser
from epub_ingest.core.paths import normalize_href, resolve_href
from epub_ingest.errors import MarkupError
from epub_ingest.models.epub import FontResource, ImageResource, Resources
from epub_ingest.models.extraction import Diagnostics
from epub_ingest.models.package import ManifestItem, PackageDocument

log = logging.getLogger(__name__)

IDPF_OBFUSCATION = "http://www.idpf.org/2008/embedding"
ADOBE_OBFUSCATION = "http://ns.adobe.com/pdf/enc#RC"
OBFUSCATION_ALGORITHMS = frozenset({IDPF_OBFUSCATION, ADOBE_OBFUSCATION})

FONT_EXTENSIONS = (".ttf", ".otf", ".woff", ".woff2")

_FONT_FACE = re.compile(r"@font-face\s*\{(.*?)\}", re.IGNORECASE | re.DOTALL)
_FONT_FAMILY = re.compile(r"font-family\s*:\s*([\"']?)([^;\"'}]+)\1", re.IGNORECASE)
_CSS_URL = re.compile(r"url\(\s*([\"']?)([^\"')]+)\1\s*\)", re.IGNORECASE)


def to_data_uri(media_type: str, data: bytes) -> str:
    return f"data:{media_type};base64,{base64.b64encode(data).decode('ascii')}"


def is_font(item: ManifestItem) -> bool:
    return "font" in item.media_type.lower() or item.href.lower().endswith(FONT_EXTENSIONS)


def font_families(stylesheets: list[tuple[str, str]]) -> dict[str, str]:
    """Map font archive paths to the family their @font-face rule declares."""
    families: dict[str, str] = {}
    for css_path, css in stylesheets:
        for block in _FONT_FACE.findall(css):
            family = _FONT_FAMILY.search(block)
            if not family:
                continue
            for _, url in _CSS_URL.findall(block):
                families.setdefault(resolve_href(css_path, url.strip()), family.group(2).strip())
    return families


class ResourceExtractor:
    """Walk the manifest once, collecting non-text resources.

    A resource that cannot be read is recorded as a warning and skipped.
    """

    def __init__(self, parser: XmlParser, fallback: XmlParser, config: ParserConfig):
        self.parser = parser
        self.fallback = fallback
        self.config = config

    def extract(
        self,
        files: dict[str, bytes],
        opf_path: str,
        package: PackageDocument,
        diagnostics: Diagnostics,
    ) -> Resources:
        images: list[ImageResource] = []
        stylesheets: list[tuple[str, str]] = []
        font_items: list[tuple[ManifestItem, str]] = []
        cover_image: str | None = None
        declared_cover = self._declared_cover(files, opf_path, package)

        for item in package.manifest:
            path = resolve_href(opf_path, item.href)
            is_css = item.media_type.lower() == "text/css"
            if not (item.is_image or is_css or is_font(item)):
                continue

            member = find_member(files, path)
            if member is None:
                diagnostics.warn(f"Resource '{item.id}' missing from archive: {item.href}")
                continue
            data = files[member]

            if item.is_image:
                embed = len(data) < self.config.embed_image_limit
                images.append(
                    ImageResource(
                        id=item.id,
                        href=item.href,
                        media_type=item.media_type,
                        base64=to_data_uri(item.media_type, data) if embed else None,
                    )
                )
                if cover_image is None and self._is_cover(item, declared_cover):
                    cover_image = to_data_uri(item.media_type, data)
                    log.info(f"Cover image: {item.href}")
            elif is_css:
                try:
                    stylesheets.append((path, data.decode("utf-8")))
                except UnicodeDecodeError as e:
                    diagnostics.warn(f"Stylesheet {item.href} is not valid UTF-8: {e}")
            else:
                font_items.append((item, path))

        families = font_families(stylesheets)
        encrypted = self._encrypted_paths(files, diagnostics)
        fonts = [
            FontResource(
                id=item.id,
                href=item.href,
                media_type=item.media_type,
                font_family=families.get(path, item.id),
                is_obfuscated=encrypted.get(path) in OBFUSCATION_ALGORITHMS,
            )
            for item, path in font_items
        ]

        log.info(
            f"Resources: {len(images)} images, {len(stylesheets)} stylesheets, "
            f"{len(fonts)} fonts, cover {'found' if cover_image else 'not found'}"
        )
        return Resources(
            cover_image=cover_image,
            images=images,
            stylesheets=[css for _, css in stylesheets],
            fonts=fonts,
        )

    def _declared_cover(
        self, files: dict[str, bytes], opf_path: str, package: PackageDocument
    ) -> ManifestItem | None:
        """EPUB 2 <meta name="cover"> target, when it is an image present in the archive."""
        item = package.item(package.cover_id) if package.cover_id else None
        if item is None or not item.is_image:
            return None
        if find_member(files, resolve_href(opf_path, item.href)) is None:
            return None
        return item

    def _is_cover(self, item: ManifestItem, declared: ManifestItem | None) -> bool:
        if declared is not None:
            return item.id == declared.id
        return (
            "cover-image" in item.properties
            or "cover" in item.id.lower()
            or "cover" in item.href.lower()
        )

    def _encrypted_paths(self, files: dict[str, bytes], diagnostics: Diagnostics) -> dict[str, str]:
        member = find_member(files, ENCRYPTION_PATH)
        if member is None:
            return {}
        raw = files[member]
        try:
            encrypted = self.parser.parse_encryption(raw)
        except MarkupError as e:
            diagnostics.warn(f"Malformed {ENCRYPTION_PATH}, using permissive extraction: {e}")
            encrypted = self.fallback.parse_encryption(raw)
        return {normalize_href(path): algorithm for path, algorithm in encrypted.items()}
