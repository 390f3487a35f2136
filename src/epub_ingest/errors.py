"""Exceptions raised by the EPUB parsing pipeline."""


class FatalParseError(Exception):
    """A parse that cannot produce any document.

    Raised for conditions that leave nothing to read: a corrupt archive, a
    missing container document, or a package document that cannot be found.
    """

    error_type = "parse_failed"
    hint = "Check that the file is a valid EPUB archive."

    def __init__(self, message: str, hint: str | None = None):
        self.message = message
        if hint is not None:
            self.hint = hint
        super().__init__(f"{self.error_type}: {message}")


class ArchiveError(FatalParseError):
    """The uploaded bytes are not a readable ZIP container."""

    error_type = "archive_error"
    hint = "The file is not a ZIP archive. Re-export the book as EPUB and try again."


class InvalidContainer(FatalParseError):
    """META-INF/container.xml is missing or names no package document."""

    error_type = "invalid_container"
    hint = "The archive has no usable META-INF/container.xml, so it is not an EPUB."


class PackageNotFound(FatalParseError):
    """The package document named by the container is not in the archive."""

    error_type = "package_not_found"


class UnsupportedUpload(FatalParseError):
    """An upload that is neither an EPUB nor a ZIP wrapping one."""

    error_type = "unsupported_upload"
    hint = "Only .epub files, or .zip files containing an .epub, are supported."


class MarkupError(ValueError):
    """Structured parsing of an XML or XHTML document failed.

    Never reaches callers of ``parse``: every component that sees it falls
    back to the permissive regex backend and records a warning.
    """
