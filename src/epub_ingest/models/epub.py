"""Data models for the parsed EPUB document.

Field names serialize to camelCase; that serialized shape is what downstream
storage consumes, so renaming a field is a breaking change.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class EpubModel(BaseModel):
    """Base for immutable, camelCase-serialized models."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class TOCEntry(EpubModel):
    """Single entry in table of contents."""

    id: str
    title: str
    href: str
    level: int = 1
    play_order: int = 0
    children: list["TOCEntry"] = Field(default_factory=list)

    @property
    def file_href(self) -> str:
        """Href without its in-document anchor."""
        return self.href.split("#", 1)[0]

    @property
    def anchor(self) -> str | None:
        if "#" not in self.href:
            return None
        return self.href.split("#", 1)[1] or None

    def walk(self):
        """Yield this entry and its descendants depth-first."""
        yield self
        for child in self.children:
            yield from child.walk()


class SpineEntry(EpubModel):
    """Reading-order entry as exposed in the document structure."""

    id: str
    href: str
    media_type: str
    linear: bool = True
    properties: list[str] | None = None


class Chapter(EpubModel):
    """Chapter content and metadata."""

    id: str
    title: str
    href: str
    html_content: str
    text_content: str
    word_count: int
    order: int
    level: int = 1


class EpubMetadata(EpubModel):
    """Book-level metadata."""

    title: str
    author: str
    language: str
    identifier: str = ""
    publisher: str | None = None
    published_date: str | None = None
    description: str | None = None
    subject: list[str] = Field(default_factory=list)
    rights: str | None = None
    source: str | None = None


class DocumentStructure(EpubModel):
    """Aggregate statistics and navigation structure."""

    total_chapters: int
    word_count: int
    estimated_reading_time: int
    table_of_contents: list[TOCEntry] = Field(default_factory=list)
    spine: list[SpineEntry] = Field(default_factory=list)


class ImageResource(EpubModel):
    """Image declared in the manifest."""

    id: str
    href: str
    media_type: str
    base64: str | None = None  # data URI, only for small images


class FontResource(EpubModel):
    """Font declared in the manifest."""

    id: str
    href: str
    media_type: str
    font_family: str
    is_obfuscated: bool = False


class Resources(EpubModel):
    """Non-text resources extracted from the archive."""

    cover_image: str | None = None
    images: list[ImageResource] = Field(default_factory=list)
    stylesheets: list[str] = Field(default_factory=list)
    fonts: list[FontResource] = Field(default_factory=list)

    @model_validator(mode="after")
    def _cover_is_data_uri(self) -> "Resources":
        if self.cover_image is not None and not self.cover_image.startswith("data:"):
            raise ValueError("cover_image must be a data URI")
        return self


class ParsingInfo(EpubModel):
    """Diagnostics for a single parse."""

    parsed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    epub_version: str = "3.0"
    parser: str
    errors: list[str] | None = None
    warnings: list[str] | None = None


class EpubDocument(EpubModel):
    """Complete parsed EPUB."""

    metadata: EpubMetadata
    structure: DocumentStructure
    chapters: list[Chapter]
    resources: Resources
    parsing: ParsingInfo

    @model_validator(mode="after")
    def _check_invariants(self) -> "EpubDocument":
        if self.structure.total_chapters != len(self.chapters):
            raise ValueError("structure.total_chapters does not match chapters")
        if self.structure.word_count != sum(c.word_count for c in self.chapters):
            raise ValueError("structure.word_count does not match chapter word counts")
        for index, chapter in enumerate(self.chapters):
            if chapter.order != index:
                raise ValueError(f"chapter at index {index} has order {chapter.order}")
        return self

    def to_dict(self) -> dict:
        """Serialized form consumed by storage."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def to_json(self, indent: int | None = None) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True, indent=indent)

    def summary(self) -> dict:
        """Short human-facing summary of the parse."""
        return {
            "title": self.metadata.title,
            "author": self.metadata.author,
            "chapters": self.structure.total_chapters,
            "words": self.structure.word_count,
            "readingTime": self.structure.estimated_reading_time,
            "coverFound": self.resources.cover_image is not None,
            "errors": len(self.parsing.errors or []),
            "warnings": len(self.parsing.warnings or []),
        }
