"""Data models for paired (foreign/native) parsing."""

from typing import Literal

from pydantic import BaseModel

from epub_ingest.models.epub import EpubDocument


class PairSide(BaseModel):
    """Outcome of parsing one side of a book pair."""

    side: Literal["foreign", "native"]
    filename: str
    document: EpubDocument | None = None
    error: str | None = None

    @property
    def parsed(self) -> bool:
        return self.document is not None


class PairResult(BaseModel):
    """Both sides of a book pair, parsed independently."""

    foreign: PairSide
    native: PairSide

    def summary(self) -> dict:
        """Counts for both sides, zero where a side failed."""
        sides = (self.foreign, self.native)

        def stat(side: PairSide, name: str) -> int:
            if side.document is None:
                return 0
            return getattr(side.document.structure, name)

        return {
            "foreignParsed": self.foreign.parsed,
            "nativeParsed": self.native.parsed,
            "foreignChapters": stat(self.foreign, "total_chapters"),
            "nativeChapters": stat(self.native, "total_chapters"),
            "foreignWords": stat(self.foreign, "word_count"),
            "nativeWords": stat(self.native, "word_count"),
            "foreignReadingTime": stat(self.foreign, "estimated_reading_time"),
            "nativeReadingTime": stat(self.native, "estimated_reading_time"),
            "foreignCoverFound": bool(
                self.foreign.document and self.foreign.document.resources.cover_image
            ),
            "nativeCoverFound": bool(
                self.native.document and self.native.document.resources.cover_image
            ),
            "foreignError": self.foreign.error,
            "nativeError": self.native.error,
            "bothSuccessful": all(side.parsed for side in sides),
            "successfullyParsed": sum(1 for side in sides if side.parsed),
            "failedToParse": sum(1 for side in sides if not side.parsed),
            "totalChapters": sum(stat(side, "total_chapters") for side in sides),
            "totalWords": sum(stat(side, "word_count") for side in sides),
        }
