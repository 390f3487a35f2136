"""Parser configuration."""

from dataclasses import dataclass
from typing import Literal

PARSER_ID = "epub-ingest-parser-v3.0"


@dataclass(frozen=True)
class ParserConfig:
    """Tunable policy for a parse.

    The thresholds are heuristics, not contracts: they decide what counts as
    front matter and what is too short to be a chapter.
    """

    # "soup" = lxml/BeautifulSoup with regex fallback, "regex" = regex only
    backend: Literal["soup", "regex"] = "soup"
    min_chapter_words: int = 50
    front_matter_words: int = 20
    keyword_density: float = 0.7
    image_ratio: float = 0.5
    image_page_words: int = 50
    embed_image_limit: int = 100_000
    words_per_minute: int = 200
    parser_id: str = PARSER_ID
    max_workers: int = 1

    def __post_init__(self) -> None:
        if self.backend not in ("soup", "regex"):
            raise ValueError(f"Unknown backend: {self.backend}. Use 'soup' or 'regex'.")
        if self.words_per_minute <= 0:
            raise ValueError("words_per_minute must be positive")
        if self.max_workers < 1:
            raise ValueError("max_workers must be at least 1")
