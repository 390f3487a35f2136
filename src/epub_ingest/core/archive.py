"""ZIP container access: reading, upload unwrapping and structure checks."""

import io
import logging
import posixpath
import zipfile

from epub_ingest.errors import ArchiveError, UnsupportedUpload

log = logging.getLogger(__name__)

EPUB_MIMETYPE = "application/epub+zip"
CONTAINER_PATH = "META-INF/container.xml"
ENCRYPTION_PATH = "META-INF/encryption.xml"
MIN_ENTRIES = 3

TEXT_ENCODINGS = ("utf-8-sig", "cp1252")


def _open(data: bytes, label: str) -> zipfile.ZipFile:
    try:
        return zipfile.ZipFile(io.BytesIO(data))
    except (zipfile.BadZipFile, zipfile.LargeZipFile, OSError, ValueError) as e:
        raise ArchiveError(f"{label} is not a readable ZIP archive: {e}") from e


def _safe_name(name: str) -> str | None:
    """Normalized member name, or None when it escapes the archive root."""
    name = name.replace("\\", "/")
    if name.startswith("/") or (len(name) > 1 and name[1] == ":"):
        return None
    if ".." in name.split("/"):
        return None
    return posixpath.normpath(name)


def read_archive(data: bytes, label: str = "archive") -> dict[str, bytes]:
    """Decompress every file member into a path -> bytes mapping.

    All-or-nothing: any unreadable member fails the whole archive.
    Absolute or traversing member names are skipped.
    """
    with _open(data, label) as archive:
        files: dict[str, bytes] = {}
        try:
            for info in archive.infolist():
                if info.is_dir():
                    continue
                name = _safe_name(info.filename)
                if name is None:
                    log.warning(f"Skipping unsafe archive member: {info.filename}")
                    continue
                files[name] = archive.read(info)
        except (zipfile.BadZipFile, OSError, EOFError, NotImplementedError, RuntimeError) as e:
            raise ArchiveError(f"Failed to decompress {label}: {e}") from e

    log.debug(f"Read {len(files)} files from {label} ({len(data)} bytes)")
    return files


def unwrap_upload(data: bytes, filename: str) -> tuple[bytes, str]:
    """Return the EPUB bytes and name carried by an upload.

    A ``.epub`` passes through. A ``.zip`` yields its first ``.epub`` member.
    """
    lowered = filename.lower()
    if lowered.endswith(".epub"):
        return data, filename
    if not lowered.endswith(".zip"):
        raise UnsupportedUpload(f"Unsupported file type: {filename}")

    log.info(f"Decompressing ZIP file: {filename}")
    with _open(data, filename) as archive:
        epub_names = [
            info.filename
            for info in archive.infolist()
            if not info.is_dir() and info.filename.lower().endswith(".epub")
        ]
        if not epub_names:
            raise UnsupportedUpload(f"No EPUB files found in {filename}")
        if len(epub_names) > 1:
            log.warning(
                f"Multiple EPUB files found in {filename}, using first one: {epub_names[0]}"
            )
        try:
            epub_data = archive.read(epub_names[0])
        except (zipfile.BadZipFile, OSError, EOFError, NotImplementedError, RuntimeError) as e:
            raise ArchiveError(f"Failed to decompress ZIP file {filename}: {e}") from e

    log.info(
        f"Extracted {epub_names[0]} from ZIP: {len(epub_data)} bytes "
        f"(was {len(data)} bytes compressed)"
    )
    return epub_data, posixpath.basename(epub_names[0])


def validate_structure(files: dict[str, bytes]) -> list[str]:
    """Non-fatal container checks; returns warning messages."""
    warnings: list[str] = []

    mimetype = files.get("mimetype")
    if mimetype is None:
        warnings.append("Missing mimetype file")
    elif mimetype.decode("ascii", errors="replace").strip() != EPUB_MIMETYPE:
        warnings.append(f"Invalid mimetype - should be {EPUB_MIMETYPE}")

    if len(files) < MIN_ENTRIES:
        warnings.append("EPUB appears to be incomplete - too few files")

    return warnings


def decode_text(raw: bytes) -> str:
    """Decode document bytes, trying common encodings in order."""
    if raw.startswith((b"\xff\xfe", b"\xfe\xff")):
        return raw.decode("utf-16", errors="replace")
    for encoding in TEXT_ENCODINGS:
        try:
            return raw.decode(encoding)
        except UnicodeDecodeError:
            continue
    return raw.decode("latin-1")


def find_member(files: dict[str, bytes], path: str) -> str | None:
    """Exact member name for ``path``, matching case-insensitively as a fallback."""
    if path in files:
        return path
    lowered = path.lower()
    for name in files:
        if name.lower() == lowered:
            return name
    return None
