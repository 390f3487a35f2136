import pytest

from epub_ingest.core.paths import normalize_href, relative_to, resolve_href, split_fragment


def test_split_fragment_decodes_anchor():
    assert split_fragment("text/ch1.xhtml#part%201") == ("text/ch1.xhtml", "part 1")
    assert split_fragment("ch1.xhtml#") == ("ch1.xhtml", None)
    assert split_fragment("ch1.xhtml") == ("ch1.xhtml", None)


@pytest.mark.parametrize(
    "base, href, expected",
    [
        ("OEBPS/content.opf", "text/ch1.xhtml#a", "OEBPS/text/ch1.xhtml"),
        ("OEBPS/nav/toc.xhtml", "../text/ch%201.xhtml", "OEBPS/text/ch 1.xhtml"),
        ("OEBPS/content.opf", "/images/a.png", "images/a.png"),
        ("content.opf", "ch1.xhtml", "ch1.xhtml"),
        ("OEBPS/nav.xhtml", "../", ""),
    ],
)
def test_resolve_href(base, href, expected):
    assert resolve_href(base, href) == expected


def test_relative_to():
    assert relative_to("OEBPS/content.opf", "OEBPS/text/ch1.xhtml") == "text/ch1.xhtml"
    assert relative_to("content.opf", "text/ch1.xhtml") == "text/ch1.xhtml"
    assert relative_to("OEBPS/content.opf", "") == ""


def test_normalize_href():
    assert normalize_href("./text/../ch1.xhtml#frag") == "ch1.xhtml"
