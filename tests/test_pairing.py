from epub_factory import two_chapter_book

from epub_ingest import parse_pair


def test_both_sides_parse():
    foreign = two_chapter_book()
    foreign.metadata["title"] = "El Puerto Tranquilo"
    foreign.metadata["language"] = "es"

    result = parse_pair(
        (foreign.build(), "foreign.epub"), (two_chapter_book().build(), "native.epub")
    )

    assert result.foreign.parsed and result.native.parsed
    assert result.foreign.document.metadata.title == "El Puerto Tranquilo"
    assert result.native.document.metadata.title == "Sample Book"
    summary = result.summary()
    assert summary["bothSuccessful"] is True
    assert summary["successfullyParsed"] == 2
    assert summary["failedToParse"] == 0
    assert summary["totalChapters"] == 4
    assert summary["totalWords"] == 248
    assert summary["foreignError"] is None


def test_one_failed_side_leaves_the_other_intact():
    result = parse_pair(
        (b"not an archive", "foreign.epub"), (two_chapter_book().build(), "native.epub")
    )

    assert not result.foreign.parsed
    assert result.foreign.error.startswith("archive_error:")
    assert result.native.parsed
    summary = result.summary()
    assert summary["bothSuccessful"] is False
    assert summary["successfullyParsed"] == 1
    assert summary["failedToParse"] == 1
    assert summary["foreignChapters"] == 0
    assert summary["nativeChapters"] == 2
    assert summary["nativeWords"] == 124
    assert summary["nativeCoverFound"] is False
