"""Heuristics separating logical content from front matter."""

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field

from epub_ingest.config import ParserConfig

log = logging.getLogger(__name__)

_NUMBER_WORDS = (
    r"one|two|three|four|five|six|seven|eight|nine|ten|eleven|twelve|"
    r"first|second|third|fourth|fifth|sixth|seventh|eighth|ninth|tenth"
)
_NUMERAL = rf"(?:[ivxlcdm]+|\d+|{_NUMBER_WORDS})"

# Whole-text patterns; a section matching any of these in full is front matter
STRUCTURAL_PATTERNS: dict[str, re.Pattern] = {
    "numeral": re.compile(rf"(?:chapter\s+)?{_NUMERAL}\s*[.:]?", re.IGNORECASE),
    "part_divider": re.compile(
        rf"(?:part|book|volume|section)\s+{_NUMERAL}(?:\s*[.:\-]?\s*[^.!?]{{0,80}})?",
        re.IGNORECASE,
    ),
    "contents": re.compile(
        r"(?:table\s+of\s+)?contents?(?:\s*[:.]?\s*[^.!?]*)?|toc", re.IGNORECASE
    ),
    "dedication": re.compile(
        r"(?:dedication\b.{0,300}|(?:dedicated\s+)?(?:to|for)\s+(?:my|our|the)\b[^.!?]{0,200}[.!]?)",
        re.IGNORECASE | re.DOTALL,
    ),
    "copyright": re.compile(
        r"(?=.*(?:copyright|©|\(c\)))"
        r"(?=.*(?:all rights reserved|isbn|first published|printed in|published by|licen[cs]e))"
        r".{0,3000}",
        re.IGNORECASE | re.DOTALL,
    ),
    # Author-name-only pages; capitalization is the signal, so case-sensitive
    "author_only": re.compile(r"(?:[Bb]y\s+)?[A-Z][\w.'\-]*(?:\s+[A-Z][\w.'\-]*){0,4}"),
}

FRONT_MATTER_KEYWORDS = frozenset(
    {
        "title", "author", "by", "part", "book", "volume", "chapter", "section",
        "contents", "copyright", "dedication", "dedicated", "edition", "published",
        "publisher", "press", "cover", "illustrated", "illustrations", "translated",
        "translator", "editor", "edited", "rights", "reserved", "isbn", "printed",
        "preface", "foreword", "prologue", "acknowledgments", "acknowledgements",
        "the", "of", "and", "a",
    }
)

FRONT_MATTER_TITLE = re.compile(
    rf"""(?:
        (?:front\s+)?cover(?:\s+(?:page|image))?
        | (?:half[\s\-]?)?title(?:\s+page)?
        | copyright(?:\s+(?:page|notice))?
        | dedication
        | (?:table\s+of\s+)?contents | toc
        | (?:part|book|volume)\s+{_NUMERAL}
        | untitled
    )""",
    re.IGNORECASE | re.VERBOSE,
)

_WORD = re.compile(r"[\w']+")
_IMAGE_TAG = re.compile(r"<(?:[\w.-]+:)?(?:img|image)\b", re.IGNORECASE)


def is_front_matter_title(title: str | None) -> bool:
    """True for TOC titles that name structure rather than content."""
    cleaned = (title or "").strip().strip(".:").strip()
    if not cleaned:
        return True
    return bool(FRONT_MATTER_TITLE.fullmatch(cleaned))


@dataclass(frozen=True)
class Candidate:
    """What the classifier sees of one section."""

    markup: str
    text: str
    word_count: int
    linear: bool = True
    image_count: int = 0
    known_titles: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class Rule:
    name: str
    matches: Callable[[Candidate, ParserConfig], bool]


def _too_short(candidate: Candidate, config: ParserConfig) -> bool:
    return candidate.word_count < config.front_matter_words


def _non_linear(candidate: Candidate, config: ParserConfig) -> bool:
    return not candidate.linear


def _structural(candidate: Candidate, config: ParserConfig) -> bool:
    text = candidate.text.strip()
    if any(pattern.fullmatch(text) for pattern in STRUCTURAL_PATTERNS.values()):
        return True
    # Title-only pages repeat the book's own title or author
    lowered = text.lower()
    return any(lowered == known.strip().lower() for known in candidate.known_titles if known)


def _keyword_dense(candidate: Candidate, config: ParserConfig) -> bool:
    words = _WORD.findall(candidate.text.lower())
    if not words:
        return False
    known = {
        word for title in candidate.known_titles for word in _WORD.findall(title.lower())
    }
    hits = sum(1 for word in words if word in FRONT_MATTER_KEYWORDS or word in known)
    return hits / len(words) > config.keyword_density


def _image_page(candidate: Candidate, config: ParserConfig) -> bool:
    if candidate.word_count >= config.image_page_words:
        return False
    return candidate.image_count / max(candidate.word_count, 1) > config.image_ratio


# Evaluated in order; the first matching rule decides
RULES: tuple[Rule, ...] = (
    Rule("too_short", _too_short),
    Rule("non_linear", _non_linear),
    Rule("structural", _structural),
    Rule("keyword_density", _keyword_dense),
    Rule("image_page", _image_page),
)


class FrontMatterClassifier:
    """Apply the front-matter rule table to candidate sections."""

    def __init__(self, config: ParserConfig | None = None, rules: tuple[Rule, ...] = RULES):
        self.config = config or ParserConfig()
        self.rules = rules

    def classify(self, candidate: Candidate) -> str | None:
        """Name of the first rule that flags the candidate, or None for content."""
        for rule in self.rules:
            if rule.matches(candidate, self.config):
                return rule.name
        return None

    def is_front_matter(
        self,
        markup: str,
        text: str,
        word_count: int,
        linear: bool = True,
        *,
        image_count: int | None = None,
        known_titles: tuple[str, ...] = (),
    ) -> bool:
        if image_count is None:
            image_count = len(_IMAGE_TAG.findall(markup))
        candidate = Candidate(
            markup=markup,
            text=text,
            word_count=word_count,
            linear=linear,
            image_count=image_count,
            known_titles=known_titles,
        )
        return self.classify(candidate) is not None
