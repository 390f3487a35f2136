"""Parsing backends and the factory that wires them into a parser."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

from epub_ingest.config import ParserConfig
from epub_ingest.models.epub import TOCEntry
from epub_ingest.models.package import PackageDocument

if TYPE_CHECKING:
    from epub_ingest.core.epub_parser import EpubParser


class XmlParser(ABC):
    """Reads the XML documents of an EPUB container.

    Implementations raise ``MarkupError`` when a document cannot be parsed,
    so callers can fall back to a more permissive backend.
    """

    name: str = "xml"

    @abstractmethod
    def parse_container(self, raw: bytes) -> str | None:
        """Return ``full-path`` of the first rootfile, if any."""
        pass

    @abstractmethod
    def parse_package(self, raw: bytes) -> PackageDocument:
        """Parse an OPF package document."""
        pass

    @abstractmethod
    def parse_nav(self, raw: bytes) -> list[TOCEntry]:
        """Parse an EPUB 3 navigation document into a TOC tree."""
        pass

    @abstractmethod
    def parse_ncx(self, raw: bytes) -> list[TOCEntry]:
        """Parse an EPUB 2 NCX document into a TOC tree."""
        pass

    @abstractmethod
    def parse_encryption(self, raw: bytes) -> dict[str, str]:
        """Map encrypted archive paths to their algorithm URI."""
        pass


class HtmlTextExtractor(ABC):
    """Turns XHTML markup into text and display-safe markup."""

    name: str = "html"

    @abstractmethod
    def to_plain_text(self, markup: str) -> str:
        """Text with markup, boilerplate elements and entities removed."""
        pass

    @abstractmethod
    def to_display_markup(self, markup: str) -> str:
        """Markup reduced to <p>, <strong>, <em> and <u>."""
        pass

    @abstractmethod
    def find_heading(self, markup: str) -> str | None:
        """First non-empty h1, h2, h3 or title text."""
        pass

    @abstractmethod
    def count_images(self, markup: str) -> int:
        """Number of image elements in the markup."""
        pass


def create_backends(config: ParserConfig) -> tuple[XmlParser, HtmlTextExtractor]:
    """Build the backend pair selected by ``config.backend``."""
    if config.backend == "regex":
        from epub_ingest.core.html_extractors import RegexHtmlExtractor
        from epub_ingest.core.xml_parsers import RegexXmlParser

        return RegexXmlParser(), RegexHtmlExtractor()

    from epub_ingest.core.html_extractors import SoupHtmlExtractor
    from epub_ingest.core.xml_parsers import LxmlXmlParser

    return LxmlXmlParser(), SoupHtmlExtractor()


class ParserFactory:
    """Factory for creating a configured EPUB parser."""

    SUPPORTED_FORMATS = {
        ".epub": "epub",
        ".zip": "zip",
    }

    @classmethod
    def create(cls, config: ParserConfig | None = None) -> "EpubParser":
        """Create a parser with the backends named by the config.

        Args:
            config: Parser policy; defaults to ``ParserConfig()``

        Returns:
            EpubParser with its backends injected
        """
        from epub_ingest.core.epub_parser import EpubParser

        config = config or ParserConfig()
        xml_parser, html_extractor = create_backends(config)
        return EpubParser(xml_parser, html_extractor, config)

    @classmethod
    def detect_format(cls, path: Path) -> str:
        """Detect upload format from extension.

        Args:
            path: Path to the uploaded file

        Returns:
            Format string ("epub", "zip", or "unknown")
        """
        return cls.SUPPORTED_FORMATS.get(path.suffix.lower(), "unknown")

    @classmethod
    def is_supported(cls, path: Path) -> bool:
        """Check if the upload format is supported."""
        return path.suffix.lower() in cls.SUPPORTED_FORMATS
