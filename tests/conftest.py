import pytest

from epub_factory import EpubBuilder

from epub_ingest.config import ParserConfig
from epub_ingest.core.parser_factory import ParserFactory


@pytest.fixture
def builder() -> EpubBuilder:
    return EpubBuilder()


@pytest.fixture
def parser():
    return ParserFactory.create(ParserConfig())


@pytest.fixture
def regex_parser():
    return ParserFactory.create(ParserConfig(backend="regex"))
