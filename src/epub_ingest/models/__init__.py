"""Data models."""

from epub_ingest.models.epub import (
    Chapter,
    DocumentStructure,
    EpubDocument,
    EpubMetadata,
    FontResource,
    ImageResource,
    ParsingInfo,
    Resources,
    SpineEntry,
    TOCEntry,
)
from epub_ingest.models.extraction import (
    AnchorTarget,
    AssemblyResult,
    AssemblyStrategy,
    Diagnostics,
    Section,
)
from epub_ingest.models.package import (
    ManifestItem,
    PackageDocument,
    PackageMetadata,
    SpineItem,
)
from epub_ingest.models.pair import PairResult, PairSide

__all__ = [
    # Document models
    "TOCEntry",
    "SpineEntry",
    "Chapter",
    "EpubMetadata",
    "DocumentStructure",
    "ImageResource",
    "FontResource",
    "Resources",
    "ParsingInfo",
    "EpubDocument",
    # Package models
    "ManifestItem",
    "SpineItem",
    "PackageMetadata",
    "PackageDocument",
    # Extraction models
    "AnchorTarget",
    "AssemblyStrategy",
    "AssemblyResult",
    "Diagnostics",
    "Section",
    # Pair models
    "PairSide",
    "PairResult",
]
