"""Path arithmetic for archive-internal hrefs."""

import posixpath
from urllib.parse import unquote


def split_fragment(href: str) -> tuple[str, str | None]:
    """Split ``file#anchor`` into its file part and decoded anchor."""
    if "#" in href:
        base, fragment = href.split("#", 1)
        return base, unquote(fragment) or None
    return href, None


def resolve_href(base_file: str, href: str) -> str:
    """Resolve ``href`` relative to the directory holding ``base_file``.

    Returns an archive path: no leading slash, no ``..`` segments, percent
    escapes decoded.
    """
    href = unquote(split_fragment(href)[0])
    if href.startswith("/"):
        return posixpath.normpath(href.lstrip("/"))
    base_dir = posixpath.dirname(base_file)
    joined = posixpath.join(base_dir, href) if base_dir else href
    normalized = posixpath.normpath(joined)
    return "" if normalized == "." else normalized


def relative_to(base_file: str, path: str) -> str:
    """Express archive ``path`` relative to the directory holding ``base_file``."""
    base_dir = posixpath.dirname(base_file)
    if not base_dir or not path:
        return path
    return posixpath.relpath(path, base_dir)


def normalize_href(href: str) -> str:
    """Comparable form of an href: no fragment, decoded, normalized."""
    return resolve_href("", href)
