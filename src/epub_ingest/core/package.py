"""Container resolution and OPF package loading."""

import logging
import posixpath

from epub_ingest.core.archive import CONTAINER_PATH, find_member
from epub_ingest.core.parser_factory import XmlParser
from epub_ingest.core.paths import resolve_href
from epub_ingest.errors import InvalidContainer, MarkupError, PackageNotFound
from epub_ingest.models.extraction import Diagnostics
from epub_ingest.models.package import ManifestItem, PackageDocument, SpineItem

log = logging.getLogger(__name__)


def resolve_package_path(
    files: dict[str, bytes],
    parser: XmlParser,
    fallback: XmlParser,
    diagnostics: Diagnostics,
) -> str:
    """Archive path of the package document named by container.xml."""
    member = find_member(files, CONTAINER_PATH)
    if member is None:
        raise InvalidContainer(f"Missing {CONTAINER_PATH} - not a valid EPUB")

    raw = files[member]
    try:
        full_path = parser.parse_container(raw)
    except MarkupError as e:
        diagnostics.warn(f"Malformed {CONTAINER_PATH}, using permissive extraction: {e}")
        full_path = fallback.parse_container(raw)

    if not full_path:
        raise InvalidContainer(f"{CONTAINER_PATH} names no rootfile full-path")

    opf_path = posixpath.normpath(full_path.replace("\\", "/").lstrip("/"))
    log.info(f"Package document: {opf_path}")
    return opf_path


def load_package(
    files: dict[str, bytes],
    opf_path: str,
    parser: XmlParser,
    fallback: XmlParser,
    diagnostics: Diagnostics,
) -> PackageDocument:
    """Parse the OPF, recovering fields with the fallback when it is malformed."""
    member = find_member(files, opf_path)
    if member is None:
        raise PackageNotFound(
            f"Package document not found in archive: {opf_path}",
            hint="container.xml points at a file the archive does not contain.",
        )

    raw = files[member]
    try:
        package = parser.parse_package(raw)
    except MarkupError as e:
        diagnostics.warn(f"Malformed package document {opf_path}, recovering with regex: {e}")
        package = fallback.parse_package(raw)

    seen: dict[str, str] = {}
    for item in package.manifest:
        path = resolve_href(opf_path, item.href)
        if path in seen:
            diagnostics.warn(
                f"Manifest items '{seen[path]}' and '{item.id}' share href {item.href}"
            )
        else:
            seen[path] = item.id

    log.info(
        f"EPUB {package.version}: {len(package.manifest)} manifest items, "
        f"{len(package.spine)} spine items"
    )
    return package


def resolve_spine(
    package: PackageDocument, diagnostics: Diagnostics
) -> list[tuple[SpineItem, ManifestItem]]:
    """Pair spine entries with their manifest items, dropping dangling idrefs."""
    resolved = []
    for spine_item in package.spine:
        item = package.item(spine_item.idref)
        if item is None:
            diagnostics.warn(f"Spine idref '{spine_item.idref}' not in manifest; skipped")
            continue
        resolved.append((spine_item, item))
    return resolved
