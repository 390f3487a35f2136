"""EPUB parsing pipeline."""

import logging
from pathlib import Path

from epub_ingest.config import ParserConfig
from epub_ingest.core.archive import read_archive, unwrap_upload, validate_structure
from epub_ingest.core.chapter_assembler import ChapterAssembler
from epub_ingest.core.content_processor import ContentProcessor, estimate_reading_time
from epub_ingest.core.front_matter import FrontMatterClassifier
from epub_ingest.core.navigation import count_entries, parse_navigation
from epub_ingest.core.package import load_package, resolve_package_path, resolve_spine
from epub_ingest.core.parser_factory import HtmlTextExtractor, ParserFactory, XmlParser
from epub_ingest.core.resources import ResourceExtractor
from epub_ingest.core.xml_parsers import RegexXmlParser
from epub_ingest.models.epub import (
    DocumentStructure,
    EpubDocument,
    EpubMetadata,
    ParsingInfo,
    SpineEntry,
)
from epub_ingest.models.extraction import Diagnostics
from epub_ingest.models.package import ManifestItem, PackageMetadata, SpineItem

log = logging.getLogger(__name__)

DEFAULT_TITLE = "Unknown Title"
DEFAULT_AUTHOR = "Unknown Author"
DEFAULT_LANGUAGE = "en"


class EpubParser:
    """Parse EPUB archives into an EpubDocument.

    Holds no per-parse state, so one instance may serve concurrent parses.
    """

    def __init__(
        self,
        xml_parser: XmlParser,
        html_extractor: HtmlTextExtractor,
        config: ParserConfig | None = None,
    ):
        self.config = config or ParserConfig()
        self.xml_parser = xml_parser
        self.html_extractor = html_extractor
        # Permissive backend used when structured parsing of a document fails
        self.fallback = (
            xml_parser if isinstance(xml_parser, RegexXmlParser) else RegexXmlParser()
        )
        self.assembler = ChapterAssembler(
            ContentProcessor(html_extractor),
            html_extractor,
            FrontMatterClassifier(self.config),
            self.config,
        )
        self.resources = ResourceExtractor(xml_parser, self.fallback, self.config)

    @classmethod
    def from_config(cls, config: ParserConfig | None = None) -> "EpubParser":
        return ParserFactory.create(config)

    def parse(self, data: bytes, filename: str) -> EpubDocument:
        """Parse archive bytes.

        Raises:
            FatalParseError: when no document can be produced at all
        """
        if ParserFactory.detect_format(Path(filename)) == "zip":
            data, filename = unwrap_upload(data, filename)

        log.info(f"Parsing {filename} ({len(data):,} bytes)")
        diagnostics = Diagnostics()

        files = read_archive(data, filename)
        diagnostics.extend(validate_structure(files))

        opf_path = resolve_package_path(files, self.xml_parser, self.fallback, diagnostics)
        package = load_package(files, opf_path, self.xml_parser, self.fallback, diagnostics)
        spine = resolve_spine(package, diagnostics)

        toc = parse_navigation(
            files, opf_path, package, self.xml_parser, self.fallback, diagnostics
        )
        log.info(f"Table of contents: {count_entries(toc)} entries")

        assembly = self.assembler.assemble(files, opf_path, package, spine, toc, diagnostics)
        resources = self.resources.extract(files, opf_path, package, diagnostics)

        chapters = assembly.chapters
        word_count = sum(chapter.word_count for chapter in chapters)
        document = EpubDocument(
            metadata=self._metadata(package.metadata),
            structure=DocumentStructure(
                total_chapters=len(chapters),
                word_count=word_count,
                estimated_reading_time=estimate_reading_time(
                    word_count, self.config.words_per_minute
                ),
                table_of_contents=toc,
                spine=[self._spine_entry(spine_item, item) for spine_item, item in spine],
            ),
            chapters=chapters,
            resources=resources,
            parsing=ParsingInfo(
                epub_version=package.version,
                parser=self.config.parser_id,
                errors=diagnostics.errors or None,
                warnings=diagnostics.warnings or None,
            ),
        )

        log.info(
            f"Parsed {filename}: {len(chapters)} chapters ({assembly.strategy.value}, "
            f"{assembly.dropped} dropped), {word_count:,} words, "
            f"{len(diagnostics.warnings)} warnings, {len(diagnostics.errors)} errors"
        )
        return document

    def _metadata(self, metadata: PackageMetadata) -> EpubMetadata:
        """Apply defaults for the fields every document must carry."""
        return EpubMetadata(
            title=metadata.title or DEFAULT_TITLE,
            author=metadata.creator or DEFAULT_AUTHOR,
            language=metadata.language or DEFAULT_LANGUAGE,
            identifier=metadata.identifier or "",
            publisher=metadata.publisher,
            published_date=metadata.date,
            description=metadata.description,
            subject=metadata.subject,
            rights=metadata.rights,
            source=metadata.source,
        )

    def _spine_entry(self, spine_item: SpineItem, item: ManifestItem) -> SpineEntry:
        return SpineEntry(
            id=item.id,
            href=item.href,
            media_type=item.media_type,
            linear=spine_item.linear,
            properties=sorted(item.properties) or None,
        )


def parse(data: bytes, filename: str, config: ParserConfig | None = None) -> EpubDocument:
    """Parse one EPUB (or a ZIP wrapping one) with a freshly built parser."""
    return ParserFactory.create(config).parse(data, filename)
