import io
import json
import zipfile
from pathlib import Path

import pytest

from epub_factory import CONTAINER_XML, prose, two_chapter_book

from epub_ingest import EpubParser, parse
from epub_ingest.config import PARSER_ID, ParserConfig
from epub_ingest.core.parser_factory import ParserFactory
from epub_ingest.errors import ArchiveError, InvalidContainer, PackageNotFound


def _zip(members: dict[str, bytes | str]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, data in members.items():
            archive.writestr(name, data)
    return buffer.getvalue()


def test_two_chapter_book(parser):
    document = parser.parse(two_chapter_book().build(), "sample.epub")

    assert document.metadata.title == "Sample Book"
    assert document.metadata.author == "Sample Author"
    assert [chapter.title for chapter in document.chapters] == ["Chapter One", "Chapter Two"]
    assert [chapter.order for chapter in document.chapters] == [0, 1]
    assert [chapter.id for chapter in document.chapters] == ["ch1#s1", "ch2#s1"]
    assert [chapter.href for chapter in document.chapters] == ["ch1.xhtml#s1", "ch2.xhtml#s1"]
    assert document.structure.total_chapters == 2
    assert document.parsing.parser == PARSER_ID
    assert document.parsing.epub_version == "3.0"
    assert document.parsing.errors is None


def test_document_totals_match_chapters(parser):
    document = parser.parse(two_chapter_book().build(), "sample.epub")
    structure = document.structure

    assert structure.word_count == sum(chapter.word_count for chapter in document.chapters)
    assert structure.word_count == 124
    assert structure.estimated_reading_time == 1
    chapter = document.chapters[0]
    assert chapter.text_content.startswith("Chapter One River stone")
    assert chapter.html_content.startswith("<p>Chapter One</p><p>River stone")
    assert [entry.title for entry in structure.table_of_contents] == ["Chapter One", "Chapter Two"]
    assert [entry.id for entry in structure.spine] == ["ch1", "ch2"]


def test_serialized_form_uses_camel_case(parser):
    payload = parser.parse(two_chapter_book().build(), "sample.epub").to_dict()

    assert set(payload) == {"metadata", "structure", "chapters", "resources", "parsing"}
    assert {"totalChapters", "wordCount", "estimatedReadingTime", "tableOfContents"} <= set(
        payload["structure"]
    )
    assert {"htmlContent", "textContent", "wordCount", "order"} <= set(payload["chapters"][0])
    assert {"parsedAt", "epubVersion", "parser"} <= set(payload["parsing"])
    assert "errors" not in payload["parsing"]
    assert "coverImage" not in payload["resources"]
    assert json.loads(json.dumps(payload)) == payload


def test_to_json_round_trips_to_dict(parser):
    document = parser.parse(two_chapter_book().build(), "sample.epub")

    assert json.loads(document.to_json()) == document.to_dict()


def test_summary(parser):
    summary = parser.parse(two_chapter_book().build(), "sample.epub").summary()

    assert summary["title"] == "Sample Book"
    assert summary["chapters"] == 2
    assert summary["words"] == 124
    assert summary["coverFound"] is False


def test_not_a_zip_is_fatal(parser):
    with pytest.raises(ArchiveError) as excinfo:
        parser.parse(b"this is plain text, not an archive", "broken.epub")

    assert str(excinfo.value).startswith("archive_error:")
    assert excinfo.value.hint


def test_missing_container_is_fatal(parser):
    builder = two_chapter_book()
    builder.include_container = False

    with pytest.raises(InvalidContainer):
        parser.parse(builder.build(), "sample.epub")


def test_missing_package_document_is_fatal(parser):
    data = _zip(
        {
            "mimetype": "application/epub+zip",
            "META-INF/container.xml": CONTAINER_XML.format(opf_path="OEBPS/missing.opf"),
            "OEBPS/ch1.xhtml": "<html><body><p>text</p></body></html>",
        }
    )

    with pytest.raises(PackageNotFound):
        parser.parse(data, "sample.epub")


def test_structure_problems_are_warnings(parser):
    builder = two_chapter_book()
    builder.include_mimetype = False

    document = parser.parse(builder.build(), "sample.epub")

    assert document.structure.total_chapters == 2
    assert "Missing mimetype file" in document.parsing.warnings


def test_malformed_package_is_recovered(parser):
    builder = two_chapter_book()
    builder.metadata["description"] = "Boats & harbors"

    document = parser.parse(builder.build(), "sample.epub")

    assert document.metadata.title == "Sample Book"
    assert document.metadata.author == "Sample Author"
    assert document.structure.total_chapters == 2
    assert any("Malformed package document" in w for w in document.parsing.warnings)


def test_metadata_defaults():
    builder = two_chapter_book()
    builder.metadata = {}

    document = parse(builder.build(), "sample.epub")

    assert document.metadata.title == "Unknown Title"
    assert document.metadata.author == "Unknown Author"
    assert document.metadata.language == "en"
    assert document.metadata.identifier == ""


def test_spine_fallback_without_navigation(parser, builder):
    builder.chapter("cover", '<img src="cover.jpg"/>')
    builder.chapter("ch1", f"<h2>Arrival</h2><p>{prose(60)}</p>")

    document = parser.parse(builder.build(), "sample.epub")

    assert [chapter.id for chapter in document.chapters] == ["ch1"]
    assert document.chapters[0].title == "Arrival"
    assert document.chapters[0].href == "ch1.xhtml"
    assert document.structure.table_of_contents == []
    assert any("No navigation document" in w for w in document.parsing.warnings)


def test_front_matter_toc_title_replaced_by_heading(parser, builder):
    builder.chapter("ch1", f"<h2>Arrival</h2><p>{prose(60)}</p>")
    builder.nav([("Copyright", "ch1.xhtml", [])])

    document = parser.parse(builder.build(), "sample.epub")

    assert [chapter.title for chapter in document.chapters] == ["Arrival"]


def test_title_falls_back_to_first_sentence(parser, builder):
    builder.chapter("ch1", f"<p>{prose(60)}</p>")

    document = parser.parse(builder.build(), "sample.epub")

    assert document.chapters[0].title == prose(10)


def test_two_anchors_in_one_file(parser, builder):
    builder.chapter(
        "ch1",
        f'<h1 id="a">First Part</h1><p>{prose(60)}</p>'
        f'<h1 id="b">Second Part</h1><p>{prose(60, offset=5)}</p>',
    )
    builder.nav([("First Part", "ch1.xhtml#a", []), ("Second Part", "ch1.xhtml#b", [])])

    document = parser.parse(builder.build(), "sample.epub")

    assert [chapter.id for chapter in document.chapters] == ["ch1#a", "ch1#b"]
    assert [chapter.title for chapter in document.chapters] == ["First Part", "Second Part"]
    first, second = document.chapters
    assert "Second Part" not in first.text_content
    assert first.word_count == 62
    assert second.word_count == 62


def test_unresolved_anchors_keep_the_whole_file(parser, builder):
    builder.chapter("ch1", f"<h1>Lost</h1><p>{prose(60)}</p>")
    builder.nav([("Lost Anchor", "ch1.xhtml#nowhere", [])])

    document = parser.parse(builder.build(), "sample.epub")

    assert [chapter.id for chapter in document.chapters] == ["ch1"]
    assert document.chapters[0].href == "ch1.xhtml"
    assert document.chapters[0].title == "Lost Anchor"


def test_partially_resolved_anchors_warn(parser, builder):
    builder.chapter("ch1", f'<h1 id="a">Found</h1><p>{prose(60)}</p>')
    builder.nav([("Found", "ch1.xhtml#a", []), ("Missing", "ch1.xhtml#gone", [])])

    document = parser.parse(builder.build(), "sample.epub")

    assert [chapter.id for chapter in document.chapters] == ["ch1#a"]
    assert "Anchor #gone not found in ch1.xhtml" in document.parsing.warnings


def test_anchor_mode_without_chapters_falls_back_to_spine(parser, builder):
    builder.chapter("ch1", f'<p>{prose(60)}</p><p id="end">The end of it all.</p>')
    builder.nav([("Ending", "ch1.xhtml#end", [])])

    document = parser.parse(builder.build(), "sample.epub")

    assert [chapter.id for chapter in document.chapters] == ["ch1"]
    assert document.chapters[0].word_count == 65
    assert any("using spine files" in w for w in document.parsing.warnings)


def test_non_linear_items_are_dropped(parser, builder):
    builder.chapter("notes", f"<p>{prose(60)}</p>", linear=False)
    builder.chapter("ch1", f"<h1>Arrival</h1><p>{prose(60, offset=2)}</p>")

    document = parser.parse(builder.build(), "sample.epub")

    assert [chapter.id for chapter in document.chapters] == ["ch1"]
    assert [entry.linear for entry in document.structure.spine] == [False, True]


def test_dangling_spine_reference_is_skipped(parser):
    builder = two_chapter_book()
    builder.spine.insert(0, ("ghost", True))

    document = parser.parse(builder.build(), "sample.epub")

    assert [entry.id for entry in document.structure.spine] == ["ch1", "ch2"]
    assert "Spine idref 'ghost' not in manifest; skipped" in document.parsing.warnings


def test_ncx_navigation(parser, builder):
    builder.version = "2.0"
    builder.chapter("ch1", f'<h1 id="s1">Opening</h1><p>{prose(60)}</p>')
    builder.chapter("ch2", f'<h1 id="s1">Closing</h1><p>{prose(60, offset=4)}</p>')
    builder.ncx([("Opening", "ch1.xhtml#s1", []), ("Closing", "ch2.xhtml#s1", [])])

    document = parser.parse(builder.build(), "sample.epub")

    assert document.parsing.epub_version == "2.0"
    assert [chapter.title for chapter in document.chapters] == ["Opening", "Closing"]
    assert document.structure.table_of_contents[0].play_order == 1


def test_concurrent_evaluation_keeps_order(builder):
    titles = [f"Section {name}" for name in ("Alpha", "Beta", "Gamma", "Delta", "Epsilon")]
    for position, title in enumerate(titles):
        builder.chapter(f"c{position}", f"<h1>{title}</h1><p>{prose(60, offset=position)}</p>")

    document = parse(builder.build(), "sample.epub", ParserConfig(max_workers=4))

    assert [chapter.title for chapter in document.chapters] == titles
    assert [chapter.order for chapter in document.chapters] == [0, 1, 2, 3, 4]


def test_non_document_spine_items_are_skipped(parser, builder):
    builder.add("plate", "plate.jpg", bytes(range(256)) * 16, "image/jpeg", spine=True)
    builder.chapter("ch1", f"<h1>Arrival</h1><p>{prose(60)}</p>")

    document = parser.parse(builder.build(), "sample.epub")

    assert [chapter.id for chapter in document.chapters] == ["ch1"]
    assert "Spine item 'plate' is image/jpeg, not a text document; skipped" in (
        document.parsing.warnings
    )


def test_unanchored_files_kept_whole_in_anchor_mode(parser, builder):
    builder.chapter("ch1", f'<h1 id="s1">Opening</h1><p>{prose(60)}</p>')
    builder.chapter("ch2", f"<h1>Interlude</h1><p>{prose(60, offset=3)}</p>")
    builder.nav([("Opening", "ch1.xhtml#s1", [])])

    document = parser.parse(builder.build(), "sample.epub")

    assert [chapter.id for chapter in document.chapters] == ["ch1#s1", "ch2"]
    assert [chapter.title for chapter in document.chapters] == ["Opening", "Interlude"]
    assert document.chapters[1].href == "ch2.xhtml"


def test_regex_backend_end_to_end(regex_parser):
    document = regex_parser.parse(two_chapter_book().build(), "sample.epub")

    assert document.metadata.title == "Sample Book"
    assert [chapter.title for chapter in document.chapters] == ["Chapter One", "Chapter Two"]
    assert document.structure.word_count == 124


def test_zip_upload_is_unwrapped(parser):
    upload = _zip({"readme.txt": "hello", "books/sample.epub": two_chapter_book().build()})

    document = parser.parse(upload, "upload.zip")

    assert document.structure.total_chapters == 2


def test_from_config_builds_requested_backend():
    parser = EpubParser.from_config(ParserConfig(backend="regex"))

    assert isinstance(parser, EpubParser)
    assert parser.xml_parser is parser.fallback
    assert parser.html_extractor.name == "regex"
    assert parser.config.backend == "regex"


def test_factory_defaults_to_soup_backend():
    parser = ParserFactory.create()

    assert parser.xml_parser is not parser.fallback
    assert parser.html_extractor.name == "soup"


@pytest.mark.parametrize(
    "name, expected",
    [("book.epub", "epub"), ("BOOK.ZIP", "zip"), ("book.pdf", "unknown")],
)
def test_detect_format(name, expected):
    assert ParserFactory.detect_format(Path(name)) == expected
