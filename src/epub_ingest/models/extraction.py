"""Data models for chapter extraction."""

import logging
from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel

from epub_ingest.models.epub import Chapter

log = logging.getLogger(__name__)


class AssemblyStrategy(str, Enum):
    """How chapter boundaries were found."""

    ANCHOR = "anchor"  # TOC anchors slice files into sections
    SPINE = "spine"  # one chapter per spine file


@dataclass(frozen=True)
class AnchorTarget:
    """An intended chapter boundary inside one spine file."""

    anchor: str
    title: str
    level: int = 1


class Section(BaseModel):
    """A candidate chapter cut from a spine file."""

    item_id: str
    href: str
    markup: str
    anchor: str | None = None
    title: str | None = None
    level: int = 1
    linear: bool = True
    located: bool = True  # False when the anchor was missing and markup is the whole file


@dataclass
class Diagnostics:
    """Non-fatal problems collected during one parse."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def warn(self, message: str) -> None:
        log.warning(message)
        self.warnings.append(message)

    def error(self, message: str) -> None:
        log.error(message)
        self.errors.append(message)

    def extend(self, warnings: list[str]) -> None:
        for message in warnings:
            self.warn(message)


class AssemblyResult(BaseModel):
    """Result of chapter assembly."""

    chapters: list[Chapter]
    strategy: AssemblyStrategy
    dropped: int = 0
