"""Normalize section markup into plain text and display-safe markup."""

import math
import re
from dataclasses import dataclass

from epub_ingest.core.parser_factory import HtmlTextExtractor

_GUTENBERG_START = re.compile(
    r"\*{3}\s*START OF (?:THE |THIS )?PROJECT GUTENBERG.*?\*{3}", re.IGNORECASE | re.DOTALL
)
_GUTENBERG_END = re.compile(
    r"\*{3}\s*END OF (?:THE |THIS )?PROJECT GUTENBERG.*?\*{3}", re.IGNORECASE | re.DOTALL
)
_PRODUCED_BY_BLOCK = re.compile(
    r"<(p|div)\b[^>]*>\s*Produced by\b.*?</\1\s*>", re.IGNORECASE | re.DOTALL
)
_PRODUCED_BY_LINE = re.compile(r"^[ \t]*Produced by\b[^\n<]*$", re.IGNORECASE | re.MULTILINE)


def strip_gutenberg_boilerplate(markup: str) -> str:
    """Remove Project Gutenberg header, license and attribution lines.

    Text before a START marker and after an END marker is dropped, markers
    included; "Produced by ..." paragraphs and lines go too.
    """
    start = _GUTENBERG_START.search(markup)
    if start:
        markup = markup[start.end():]
    end = _GUTENBERG_END.search(markup)
    if end:
        markup = markup[:end.start()]
    markup = _PRODUCED_BY_BLOCK.sub("", markup)
    return _PRODUCED_BY_LINE.sub("", markup)


def count_words(text: str) -> int:
    """Number of whitespace-delimited tokens."""
    return len(text.split())


def estimate_reading_time(word_count: int, words_per_minute: int = 200) -> int:
    """Minutes to read ``word_count`` words, rounded up."""
    return math.ceil(word_count / words_per_minute)


@dataclass(frozen=True)
class NormalizedContent:
    """Both renderings of one section, plus the counts the classifier needs."""

    html_content: str
    text_content: str
    word_count: int
    image_count: int


class ContentProcessor:
    """Process section markup into text and display formats."""

    def __init__(self, extractor: HtmlTextExtractor):
        self.extractor = extractor

    def process(self, markup: str) -> NormalizedContent:
        """Strip boilerplate, then render text and display markup."""
        markup = strip_gutenberg_boilerplate(markup)
        text = self.extractor.to_plain_text(markup)
        return NormalizedContent(
            html_content=self.extractor.to_display_markup(markup),
            text_content=text,
            word_count=count_words(text),
            image_count=self.extractor.count_images(markup),
        )

