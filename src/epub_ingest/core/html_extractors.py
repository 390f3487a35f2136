"""HTML backends: BeautifulSoup extraction and a regex fallback."""

import html
import re
import warnings
from collections import Counter

from bs4 import BeautifulSoup, NavigableString, Tag, XMLParsedAsHTMLWarning
from bs4.element import Comment, Declaration, Doctype, ProcessingInstruction

from epub_ingest.core.parser_factory import HtmlTextExtractor

# Suppress XML parsing warnings - EPUB files often use XHTML
warnings.filterwarnings("ignore", category=XMLParsedAsHTMLWarning)

BLOCK_TAGS = frozenset(
    {
        "p", "div", "h1", "h2", "h3", "h4", "h5", "h6", "li", "ul", "ol",
        "blockquote", "section", "article", "aside", "header", "footer",
        "pre", "dd", "dt", "dl", "figure", "figcaption", "table", "tr",
        "td", "th", "center", "address", "hr",
    }
)
SKIPPED_TAGS = frozenset({"script", "style", "head", "title", "noscript"})
HEADING_TAGS = ("h1", "h2", "h3", "title")

INLINE_WRAPPERS = {
    "b": "strong",
    "strong": "strong",
    "big": "strong",
    "i": "em",
    "em": "em",
    "cite": "em",
    "u": "u",
    "ins": "u",
}

# Minimum size, per unit, at which an inline font-size reads as a heading
LARGE_FONT_THRESHOLDS = {"em": 1.3, "rem": 1.3, "%": 130.0, "px": 20.0, "pt": 15.0}
LARGE_FONT_KEYWORDS = ("xx-large", "x-large", "large", "larger")

_WS = re.compile(r"\s+")
_FONT_SIZE = re.compile(r"font-size\s*:\s*([\d.]+)\s*(r?em|%|px|pt)?", re.IGNORECASE)
_FONT_KEYWORD = re.compile(
    r"font-size\s*:\s*(xx-large|x-large|larger|large)\b", re.IGNORECASE
)
_DISPLAY_TAG = re.compile(r"<(/?)(p|strong|em|u)>")
_EMPTY_ELEMENT = re.compile(r"<(p|strong|em|u)>\s*</\1>")


def is_large_font(style: str | None) -> bool:
    """True when an inline style asks for heading-sized text."""
    if not style:
        return False
    if _FONT_KEYWORD.search(style):
        return True
    match = _FONT_SIZE.search(style)
    if not match:
        return False
    try:
        size = float(match.group(1))
    except ValueError:
        return False
    unit = (match.group(2) or "px").lower()
    return size >= LARGE_FONT_THRESHOLDS[unit]


def is_large_font_size_attr(size: str | None) -> bool:
    """True for ``<font size>`` values of 5 and up, or relative +2 and up."""
    size = (size or "").strip()
    try:
        if size.startswith("+"):
            return 3 + int(size[1:]) >= 5
        return int(size) >= 5
    except ValueError:
        return False


def repair_display_markup(markup: str) -> str:
    """Balance <p>/<strong>/<em>/<u> and drop empty elements.

    Nested duplicates of the same tag collapse into one; stray closing tags
    are removed; inline tags left open at a paragraph boundary are closed.
    Text outside any paragraph is wrapped in one.
    """
    out: list[str] = []
    stack: list[str] = []
    collapsed: Counter = Counter()

    def close_through(name: str) -> None:
        while stack:
            top = stack.pop()
            out.append(f"</{top}>")
            if top == name:
                break

    position = 0
    for match in _DISPLAY_TAG.finditer(markup):
        text = markup[position:match.start()]
        position = match.end()
        if text.strip() and "p" not in stack:
            out.append("<p>")
            stack.append("p")
        out.append(text)

        closing, name = match.groups()
        if not closing:
            if name in stack:
                collapsed[name] += 1
                continue
            if name == "p":
                while stack:
                    out.append(f"</{stack.pop()}>")
            elif "p" not in stack:
                out.append("<p>")
                stack.append("p")
            out.append(f"<{name}>")
            stack.append(name)
        elif collapsed[name]:
            collapsed[name] -= 1
        elif name in stack:
            close_through(name)

    tail = markup[position:]
    if tail.strip() and "p" not in stack:
        out.append("<p>")
        stack.append("p")
    out.append(tail)
    while stack:
        out.append(f"</{stack.pop()}>")

    result = "".join(out)
    previous = None
    while previous != result:
        previous = result
        result = _EMPTY_ELEMENT.sub("", result)

    result = re.sub(r"<p>\s+", "<p>", result)
    result = re.sub(r"\s+</p>", "</p>", result)
    return re.sub(r"</p>\s+<p>", "</p><p>", result).strip()


def _clean_text(text: str) -> str:
    return _WS.sub(" ", html.unescape(text)).strip()


class SoupHtmlExtractor(HtmlTextExtractor):
    """Extract text and display markup with BeautifulSoup over lxml."""

    name = "soup"

    def to_plain_text(self, markup: str) -> str:
        soup = BeautifulSoup(markup, "lxml")
        for tag in soup(["script", "style", "head"]):
            tag.decompose()
        # get_text has already decoded entities once
        return _WS.sub(" ", soup.get_text(" ")).strip()

    def to_display_markup(self, markup: str) -> str:
        soup = BeautifulSoup(markup, "lxml")
        paragraphs: list[str] = []
        current: list[str] = []

        def flush() -> None:
            text = "".join(current).strip()
            if text:
                paragraphs.append(f"<p>{text}</p>")
            current.clear()

        def walk(node: Tag) -> None:
            for child in node.children:
                if isinstance(child, (Comment, Declaration, Doctype, ProcessingInstruction)):
                    continue
                if isinstance(child, NavigableString):
                    current.append(html.escape(_WS.sub(" ", str(child)), quote=False))
                    continue
                if not isinstance(child, Tag) or child.name in SKIPPED_TAGS:
                    continue
                if child.name == "br":
                    current.append(" ")
                elif child.name in BLOCK_TAGS:
                    flush()
                    walk(child)
                    flush()
                else:
                    wrapper = self._inline_wrapper(child)
                    if wrapper:
                        current.append(f"<{wrapper}>")
                        walk(child)
                        current.append(f"</{wrapper}>")
                    else:
                        walk(child)

        walk(soup.body or soup)
        flush()
        return repair_display_markup("".join(paragraphs))

    def _inline_wrapper(self, tag: Tag) -> str | None:
        if tag.name in INLINE_WRAPPERS:
            return INLINE_WRAPPERS[tag.name]
        if tag.name == "font" and is_large_font_size_attr(tag.get("size")):
            return "strong"
        if is_large_font(tag.get("style")):
            return "strong"
        return None

    def find_heading(self, markup: str) -> str | None:
        soup = BeautifulSoup(markup, "lxml")
        for name in HEADING_TAGS:
            element = soup.find(name)
            if element:
                text = _WS.sub(" ", element.get_text(" ", strip=True))
                if text:
                    return text
        return None

    def count_images(self, markup: str) -> int:
        soup = BeautifulSoup(markup, "lxml")
        return len(soup.find_all(["img", "image"]))


class RegexHtmlExtractor(HtmlTextExtractor):
    """Pattern-based extraction for markup too broken to parse.

    Styled spans are matched non-nested, so deeply nested inline styling
    loses its emphasis; text content is always kept.
    """

    name = "regex"

    _BOILERPLATE = re.compile(
        r"<(script|style|head|title|noscript)\b.*?</\1\s*>|<!--.*?-->|<!\[CDATA\[.*?\]\]>|<[!?][^>]*>",
        re.DOTALL | re.IGNORECASE,
    )
    _TAG = re.compile(r"<[^>]+>")
    _BLOCK = re.compile(
        r"</?(?:%s)\b[^>]*>" % "|".join(sorted(BLOCK_TAGS)), re.IGNORECASE
    )
    _BR = re.compile(r"<br\b[^>]*>", re.IGNORECASE)
    _STYLED = re.compile(
        r"<(span|font|div)\b([^>]*)>(.*?)</\1\s*>", re.DOTALL | re.IGNORECASE
    )
    _WRAPPER_OPEN = re.compile(
        r"<(%s)\b[^>]*>" % "|".join(INLINE_WRAPPERS), re.IGNORECASE
    )
    _WRAPPER_CLOSE = re.compile(r"</(%s)\s*>" % "|".join(INLINE_WRAPPERS), re.IGNORECASE)
    _KEPT = re.compile(r"(</?(?:strong|em|u)>)")
    _PARAGRAPH_BREAK = "\x00"

    def _strip_boilerplate(self, markup: str) -> str:
        return self._BOILERPLATE.sub(" ", markup)

    def to_plain_text(self, markup: str) -> str:
        return _clean_text(self._TAG.sub(" ", self._strip_boilerplate(markup)))

    def to_display_markup(self, markup: str) -> str:
        markup = self._strip_boilerplate(markup)

        def promote(match: re.Match) -> str:
            attrs = match.group(2)
            style = re.search(r"style\s*=\s*([\"'])(.*?)\1", attrs, re.DOTALL)
            size = re.search(r"size\s*=\s*([\"'])(.*?)\1", attrs)
            large = is_large_font(style.group(2) if style else None) or (
                match.group(1).lower() == "font"
                and is_large_font_size_attr(size.group(2) if size else None)
            )
            inner = match.group(3)
            if match.group(1).lower() == "div":
                inner = self._PARAGRAPH_BREAK + inner + self._PARAGRAPH_BREAK
            return f"<strong>{inner}</strong>" if large else inner

        markup = self._STYLED.sub(promote, markup)
        markup = self._BR.sub(" ", markup)
        markup = self._BLOCK.sub(self._PARAGRAPH_BREAK, markup)
        markup = self._WRAPPER_OPEN.sub(lambda m: f"<{INLINE_WRAPPERS[m.group(1).lower()]}>", markup)
        markup = self._WRAPPER_CLOSE.sub(lambda m: f"</{INLINE_WRAPPERS[m.group(1).lower()]}>", markup)

        pieces = []
        for piece in self._KEPT.split(markup):
            if self._KEPT.fullmatch(piece):
                pieces.append(piece)
            else:
                text = html.unescape(self._TAG.sub(" ", piece))
                pieces.append(html.escape(text, quote=False))

        paragraphs = []
        for block in "".join(pieces).split(self._PARAGRAPH_BREAK):
            text = _WS.sub(" ", block).strip()
            if text:
                paragraphs.append(f"<p>{text}</p>")
        return repair_display_markup("".join(paragraphs))

    def find_heading(self, markup: str) -> str | None:
        for name in HEADING_TAGS:
            pattern = rf"<{name}\b[^>]*>(.*?)</{name}\s*>"
            for match in re.finditer(pattern, markup, re.DOTALL | re.IGNORECASE):
                text = _clean_text(self._TAG.sub(" ", match.group(1)))
                if text:
                    return text
        return None

    def count_images(self, markup: str) -> int:
        return len(re.findall(r"<(?:[\w.-]+:)?(?:img|image)\b", markup, re.IGNORECASE))
