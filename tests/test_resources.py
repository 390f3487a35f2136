import base64

import pytest

from epub_factory import two_chapter_book

from epub_ingest.config import ParserConfig
from epub_ingest.core.parser_factory import ParserFactory
from epub_ingest.core.resources import font_families, is_font, to_data_uri
from epub_ingest.models.epub import Resources
from epub_ingest.models.package import ManifestItem

SMALL_PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 100
LARGE_PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 2000
JPEG = b"\xff\xd8\xff\xe0" + b"\x00" * 50

ENCRYPTION_XML = """<?xml version="1.0" encoding="UTF-8"?>
<encryption xmlns="urn:oasis:names:tc:opendocument:xmlns:container"
            xmlns:enc="http://www.w3.org/2001/04/xmlenc#">
  <enc:EncryptedData>
    <enc:EncryptionMethod Algorithm="http://www.idpf.org/2008/embedding"/>
    <enc:CipherData>
      <enc:CipherReference URI="OEBPS/fonts/harbor.ttf"/>
    </enc:CipherData>
  </enc:EncryptedData>
</encryption>
"""

FONT_CSS = """
@font-face {
  font-family: 'Harbor Serif';
  src: url(../fonts/harbor.ttf) format('truetype');
}
p { margin: 0; }
"""


@pytest.fixture
def small_limit_parser():
    return ParserFactory.create(ParserConfig(embed_image_limit=1000))


def test_small_images_are_embedded_and_large_ones_are_not(small_limit_parser):
    builder = two_chapter_book()
    builder.add("pic", "images/pic.png", SMALL_PNG, media_type="image/png")
    builder.add("plate", "images/plate.png", LARGE_PNG, media_type="image/png")

    resources = small_limit_parser.parse(builder.build(), "sample.epub").resources

    images = {image.id: image for image in resources.images}
    assert images["pic"].base64 == to_data_uri("image/png", SMALL_PNG)
    assert images["pic"].href == "images/pic.png"
    assert images["plate"].base64 is None
    assert resources.cover_image is None


def test_cover_found_by_property_is_always_embedded(small_limit_parser):
    builder = two_chapter_book()
    builder.add(
        "art", "images/art.png", LARGE_PNG, media_type="image/png", properties="cover-image"
    )

    document = small_limit_parser.parse(builder.build(), "sample.epub")

    assert document.resources.cover_image == to_data_uri("image/png", LARGE_PNG)
    assert document.resources.images[0].base64 is None
    assert document.summary()["coverFound"] is True


def test_declared_cover_wins_over_name_heuristics(parser):
    builder = two_chapter_book()
    builder.add("cover-art", "images/cover-art.png", SMALL_PNG, media_type="image/png")
    builder.add("frontispiece", "images/front.jpg", JPEG, media_type="image/jpeg")
    builder.cover_id = "frontispiece"

    resources = parser.parse(builder.build(), "sample.epub").resources

    assert resources.cover_image == to_data_uri("image/jpeg", JPEG)


def test_missing_declared_cover_falls_back_to_heuristics(parser):
    builder = two_chapter_book()
    builder.items.append(("frontispiece", "images/front.jpg", "image/jpeg", ""))
    builder.add("cover-art", "images/cover-art.png", SMALL_PNG, media_type="image/png")
    builder.cover_id = "frontispiece"

    document = parser.parse(builder.build(), "sample.epub")

    assert document.resources.cover_image == to_data_uri("image/png", SMALL_PNG)
    assert [image.id for image in document.resources.images] == ["cover-art"]
    assert (
        "Resource 'frontispiece' missing from archive: images/front.jpg"
        in document.parsing.warnings
    )


def test_stylesheets_are_decoded(parser):
    builder = two_chapter_book()
    builder.add("css", "styles/main.css", "p { text-indent: 1em; }", media_type="text/css")
    builder.add("bad", "styles/bad.css", b"p { content: '\xff\xfe'; }", media_type="text/css")

    document = parser.parse(builder.build(), "sample.epub")

    assert document.resources.stylesheets == ["p { text-indent: 1em; }"]
    assert any(
        w.startswith("Stylesheet styles/bad.css is not valid UTF-8")
        for w in document.parsing.warnings
    )


def test_font_family_comes_from_font_face(parser):
    builder = two_chapter_book()
    builder.add("css", "styles/main.css", FONT_CSS, media_type="text/css")
    builder.add("harbor", "fonts/harbor.ttf", b"\x00\x01\x00\x00", media_type="font/ttf")
    builder.add("plain", "fonts/plain.otf", b"OTTO", media_type="application/vnd.ms-opentype")

    fonts = parser.parse(builder.build(), "sample.epub").resources.fonts

    families = {font.id: font.font_family for font in fonts}
    assert families == {"harbor": "Harbor Serif", "plain": "plain"}
    assert not any(font.is_obfuscated for font in fonts)


def test_obfuscated_fonts_are_flagged(parser):
    builder = two_chapter_book()
    builder.add("harbor", "fonts/harbor.ttf", b"\x00\x01\x00\x00", media_type="font/ttf")
    builder.extra_files["META-INF/encryption.xml"] = ENCRYPTION_XML.encode("utf-8")

    (font,) = parser.parse(builder.build(), "sample.epub").resources.fonts

    assert font.is_obfuscated


def test_obfuscation_read_by_regex_backend(regex_parser):
    builder = two_chapter_book()
    builder.add("harbor", "fonts/harbor.ttf", b"\x00\x01\x00\x00", media_type="font/ttf")
    builder.extra_files["META-INF/encryption.xml"] = ENCRYPTION_XML.encode("utf-8")

    (font,) = regex_parser.parse(builder.build(), "sample.epub").resources.fonts

    assert font.is_obfuscated


def test_font_families_resolve_urls_against_stylesheet():
    families = font_families([("OEBPS/styles/main.css", FONT_CSS)])

    assert families == {"OEBPS/fonts/harbor.ttf": "Harbor Serif"}


@pytest.mark.parametrize(
    "href, media_type, expected",
    [
        ("fonts/a.ttf", "application/octet-stream", True),
        ("fonts/a.bin", "font/woff2", True),
        ("fonts/a.woff", "application/font-woff", True),
        ("images/a.png", "image/png", False),
    ],
)
def test_is_font(href, media_type, expected):
    assert is_font(ManifestItem(id="x", href=href, media_type=media_type)) is expected


def test_data_uri():
    assert to_data_uri("image/png", b"abc") == "data:image/png;base64," + base64.b64encode(
        b"abc"
    ).decode("ascii")


def test_cover_must_be_a_data_uri():
    with pytest.raises(ValueError):
        Resources(cover_image="images/cover.png")
