"""Parse EPUB archives into a structured document model."""

from epub_ingest.config import PARSER_ID, ParserConfig
from epub_ingest.core.epub_parser import EpubParser, parse
from epub_ingest.core.pairing import parse_pair
from epub_ingest.errors import (
    ArchiveError,
    FatalParseError,
    InvalidContainer,
    PackageNotFound,
    UnsupportedUpload,
)

__version__ = "0.3.0"

__all__ = [
    "PARSER_ID",
    "ParserConfig",
    "EpubParser",
    "parse",
    "parse_pair",
    "FatalParseError",
    "ArchiveError",
    "InvalidContainer",
    "PackageNotFound",
    "UnsupportedUpload",
]
