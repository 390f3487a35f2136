"""Data models for the OPF package document."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ManifestItem:
    """A file declared in the manifest."""

    id: str
    href: str
    media_type: str
    properties: frozenset[str] = frozenset()

    @property
    def is_image(self) -> bool:
        return self.media_type.lower().startswith("image/")

    @property
    def is_document(self) -> bool:
        return self.media_type.lower() in ("application/xhtml+xml", "text/html")


@dataclass(frozen=True)
class SpineItem:
    """A reading-order reference into the manifest."""

    idref: str
    linear: bool = True


@dataclass
class PackageMetadata:
    """Raw Dublin Core fields; no defaults are applied here."""

    title: str | None = None
    creator: str | None = None
    language: str | None = None
    identifier: str | None = None
    publisher: str | None = None
    date: str | None = None
    description: str | None = None
    subject: list[str] = field(default_factory=list)
    rights: str | None = None
    source: str | None = None


@dataclass
class PackageDocument:
    """Parsed OPF: metadata, manifest and spine."""

    version: str = "3.0"
    metadata: PackageMetadata = field(default_factory=PackageMetadata)
    manifest: list[ManifestItem] = field(default_factory=list)
    spine: list[SpineItem] = field(default_factory=list)
    cover_id: str | None = None  # EPUB 2 <meta name="cover">
    toc_id: str | None = None  # EPUB 2 <spine toc="...">

    def item(self, item_id: str) -> ManifestItem | None:
        for entry in self.manifest:
            if entry.id == item_id:
                return entry
        return None
