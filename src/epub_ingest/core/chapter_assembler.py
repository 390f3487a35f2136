"""Assemble the logical chapter list from spine files and the TOC."""

import logging
import re
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor

from epub_ingest.config import ParserConfig
from epub_ingest.core.archive import decode_text, find_member
from epub_ingest.core.content_processor import ContentProcessor, NormalizedContent
from epub_ingest.core.front_matter import Candidate, FrontMatterClassifier, is_front_matter_title
from epub_ingest.core.navigation import build_toc_index
from epub_ingest.core.parser_factory import HtmlTextExtractor
from epub_ingest.core.paths import normalize_href, resolve_href
from epub_ingest.core.sections import build_anchor_index, slice_sections
from epub_ingest.models.epub import Chapter, TOCEntry
from epub_ingest.models.extraction import AssemblyResult, AssemblyStrategy, Diagnostics, Section
from epub_ingest.models.package import ManifestItem, PackageDocument, SpineItem

log = logging.getLogger(__name__)

SVG_MEDIA_TYPE = "image/svg+xml"

_SENTENCE_END = re.compile(r"(?<=[.!?])\s")
_ID_SEPARATORS = re.compile(r"[_\-.\s]+")


def first_sentence(text: str, min_length: int = 5, max_length: int = 100) -> str | None:
    """Leading sentence of ``text`` when its length is plausible for a title."""
    sentence = _SENTENCE_END.split(text.strip(), maxsplit=1)[0].strip()
    if min_length <= len(sentence) <= max_length:
        return sentence
    return None


def placeholder_title(item_id: str, position: int) -> str:
    """Readable title generated from a manifest id."""
    words = _ID_SEPARATORS.sub(" ", item_id).strip()
    if not words or words.isdigit():
        return f"Chapter {position + 1}"
    return words[0].upper() + words[1:]


class ChapterAssembler:
    """Turn spine files into an ordered list of content chapters.

    Anchor-driven assembly slices files at TOC anchors and is preferred
    whenever the TOC carries any. When it yields nothing, every spine file
    becomes one candidate instead.
    """

    def __init__(
        self,
        processor: ContentProcessor,
        extractor: HtmlTextExtractor,
        classifier: FrontMatterClassifier,
        config: ParserConfig,
    ):
        self.processor = processor
        self.extractor = extractor
        self.classifier = classifier
        self.config = config

    def assemble(
        self,
        files: dict[str, bytes],
        opf_path: str,
        package: PackageDocument,
        spine: list[tuple[SpineItem, ManifestItem]],
        toc: list[TOCEntry],
        diagnostics: Diagnostics,
    ) -> AssemblyResult:
        known_titles = tuple(
            value for value in (package.metadata.title, package.metadata.creator) if value
        )
        documents = self._load_documents(files, opf_path, spine, diagnostics)
        toc_index = build_toc_index(toc)
        anchor_index = build_anchor_index(toc)

        if anchor_index:
            candidates = self._anchor_candidates(documents, anchor_index, toc_index, diagnostics)
            chapters, dropped = self._build(
                candidates, self.config.min_chapter_words, known_titles, diagnostics
            )
            if chapters:
                log.info(f"Anchor-driven assembly: {len(chapters)} chapters, {dropped} dropped")
                return AssemblyResult(
                    chapters=chapters, strategy=AssemblyStrategy.ANCHOR, dropped=dropped
                )
            diagnostics.warn("Anchor-driven assembly produced no chapters; using spine files")

        candidates = self._spine_candidates(documents, toc_index)
        chapters, dropped = self._build(candidates, 0, known_titles, diagnostics)
        log.info(f"Spine-driven assembly: {len(chapters)} chapters, {dropped} dropped")
        return AssemblyResult(chapters=chapters, strategy=AssemblyStrategy.SPINE, dropped=dropped)

    def _load_documents(
        self,
        files: dict[str, bytes],
        opf_path: str,
        spine: list[tuple[SpineItem, ManifestItem]],
        diagnostics: Diagnostics,
    ) -> list[tuple[SpineItem, ManifestItem, str]]:
        documents = []
        for spine_item, item in spine:
            if not (item.is_document or item.media_type.lower() == SVG_MEDIA_TYPE):
                diagnostics.warn(
                    f"Spine item '{item.id}' is {item.media_type}, not a text document; skipped"
                )
                continue
            member = find_member(files, resolve_href(opf_path, item.href))
            if member is None:
                diagnostics.warn(f"Spine item '{item.id}' missing from archive: {item.href}")
                continue
            documents.append((spine_item, item, decode_text(files[member])))
        return documents

    def _anchor_candidates(
        self,
        documents: list[tuple[SpineItem, ManifestItem, str]],
        anchor_index: dict,
        toc_index: Mapping[str, TOCEntry],
        diagnostics: Diagnostics,
    ) -> list[Section]:
        candidates: list[Section] = []
        for spine_item, item, markup in documents:
            targets = anchor_index.get(normalize_href(item.href))
            if not targets:
                candidates.append(self._whole_file(spine_item, item, markup, toc_index))
                continue

            sections = slice_sections(markup, targets, item, spine_item.linear)
            located = [section for section in sections if section.located]
            if not located:
                # No anchor resolved: keep the file once, as a single section
                candidates.append(sections[0])
                continue
            for section in sections:
                if not section.located:
                    diagnostics.warn(f"Anchor #{section.anchor} not found in {item.href}")
            candidates.extend(located)
        return candidates

    def _spine_candidates(
        self,
        documents: list[tuple[SpineItem, ManifestItem, str]],
        toc_index: Mapping[str, TOCEntry],
    ) -> list[Section]:
        return [
            self._whole_file(spine_item, item, markup, toc_index)
            for spine_item, item, markup in documents
        ]

    def _whole_file(
        self,
        spine_item: SpineItem,
        item: ManifestItem,
        markup: str,
        toc_index: Mapping[str, TOCEntry],
    ) -> Section:
        entry = toc_index.get(normalize_href(item.href))
        return Section(
            item_id=item.id,
            href=item.href,
            markup=markup,
            title=entry.title if entry else None,
            level=entry.level if entry else 1,
            linear=spine_item.linear,
        )

    def _build(
        self,
        candidates: list[Section],
        min_words: int,
        known_titles: tuple[str, ...],
        diagnostics: Diagnostics,
    ) -> tuple[list[Chapter], int]:
        """Normalize and classify candidates; order follows candidate order."""

        def evaluate(numbered: tuple[int, Section]) -> tuple[Chapter | None, str | None]:
            position, section = numbered
            try:
                return self._evaluate(section, position, min_words, known_titles), None
            except Exception as e:
                return None, f"Failed to process {section.href}#{section.anchor or ''}: {e}"

        numbered = list(enumerate(candidates))
        if self.config.max_workers > 1 and len(numbered) > 1:
            with ThreadPoolExecutor(max_workers=self.config.max_workers) as pool:
                outcomes = list(pool.map(evaluate, numbered))
        else:
            outcomes = [evaluate(pair) for pair in numbered]

        chapters: list[Chapter] = []
        dropped = 0
        for chapter, error in outcomes:
            if error:
                diagnostics.error(error)
            if chapter is None:
                dropped += 1
                continue
            chapters.append(chapter.model_copy(update={"order": len(chapters)}))
        return chapters, dropped

    def _evaluate(
        self,
        section: Section,
        position: int,
        min_words: int,
        known_titles: tuple[str, ...],
    ) -> Chapter | None:
        content = self.processor.process(section.markup)
        verdict = self.classifier.classify(
            Candidate(
                markup=section.markup,
                text=content.text_content,
                word_count=content.word_count,
                linear=section.linear,
                image_count=content.image_count,
                known_titles=known_titles,
            )
        )
        if verdict:
            log.debug(f"Dropped {section.href}#{section.anchor or ''} as front matter ({verdict})")
            return None
        if content.word_count < min_words:
            log.debug(
                f"Dropped {section.href}#{section.anchor or ''}: "
                f"{content.word_count} words is under {min_words}"
            )
            return None

        anchored = section.located and section.anchor
        chapter = Chapter(
            id=f"{section.item_id}#{section.anchor}" if anchored else section.item_id,
            title=self._resolve_title(section, content, position),
            href=f"{section.href}#{section.anchor}" if anchored else section.href,
            html_content=content.html_content,
            text_content=content.text_content,
            word_count=content.word_count,
            order=position,
            level=section.level,
        )
        log.debug(f"Accepted '{chapter.title}' ({chapter.word_count} words)")
        return chapter

    def _resolve_title(self, section: Section, content: NormalizedContent, position: int) -> str:
        """TOC title, then heading, then first sentence, then the manifest id."""
        if section.title and not is_front_matter_title(section.title):
            return section.title
        heading = self.extractor.find_heading(section.markup)
        if heading:
            return heading
        sentence = first_sentence(content.text_content)
        if sentence:
            return sentence
        return placeholder_title(section.item_id, position)
