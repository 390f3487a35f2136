"""Parse a foreign/native book pair concurrently."""

import logging
from concurrent.futures import ThreadPoolExecutor

from epub_ingest.config import ParserConfig
from epub_ingest.core.epub_parser import EpubParser
from epub_ingest.core.parser_factory import ParserFactory
from epub_ingest.errors import FatalParseError
from epub_ingest.models.pair import PairResult, PairSide

log = logging.getLogger(__name__)


def _parse_side(parser: EpubParser, side: str, data: bytes, filename: str) -> PairSide:
    try:
        document = parser.parse(data, filename)
    except FatalParseError as e:
        log.error(f"Failed to parse {side} book {filename}: {e}")
        return PairSide(side=side, filename=filename, error=str(e))
    return PairSide(side=side, filename=filename, document=document)


def parse_pair(
    foreign: tuple[bytes, str],
    native: tuple[bytes, str],
    config: ParserConfig | None = None,
) -> PairResult:
    """Parse both books independently; one side failing leaves the other intact.

    Args:
        foreign: (archive bytes, filename) of the foreign-language book
        native: (archive bytes, filename) of the native-language book
        config: Parser policy shared by both sides

    Returns:
        PairResult holding each side's document or fatal error
    """
    parser = ParserFactory.create(config)
    with ThreadPoolExecutor(max_workers=2) as pool:
        foreign_future = pool.submit(_parse_side, parser, "foreign", *foreign)
        native_future = pool.submit(_parse_side, parser, "native", *native)
        result = PairResult(foreign=foreign_future.result(), native=native_future.result())

    log.info(f"Pair parsed: {result.summary()['successfullyParsed']}/2 sides succeeded")
    return result
