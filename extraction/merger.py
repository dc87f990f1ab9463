"""Merge per-unit extraction results into one document."""
from typing import Dict, Iterable, Optional

from extraction.models import (
    ParsedDocument,
    ParsedChapter,
    UNKNOWN_TITLE,
    UNKNOWN_DESCRIPTION,
    UNKNOWN_LANGUAGE,
)


class DocumentMerger:
    """Accumulates unit results in chunk order.

    Metadata comes from the first non-null unit. Chapters are keyed by
    number; a number seen again appends its verses to the existing chapter
    without re-sorting them, so verse order inside a merged chapter follows
    chunk order.
    """

    def __init__(self):
        self._metadata_source: Optional[ParsedDocument] = None
        self._chapters: Dict[int, ParsedChapter] = {}
        self.units_seen = 0
        self.units_failed = 0

    def add(self, unit: Optional[ParsedDocument]) -> None:
        self.units_seen += 1
        if unit is None:
            self.units_failed += 1
            return

        if self._metadata_source is None:
            self._metadata_source = unit

        for chapter in unit.chapters:
            existing = self._chapters.get(chapter.number)
            if existing:
                existing.verses.extend(chapter.verses)
            else:
                # Copy so later appends never touch the caller's unit
                self._chapters[chapter.number] = chapter.model_copy(
                    update={"verses": list(chapter.verses)}
                )

    def result(self) -> ParsedDocument:
        source = self._metadata_source
        return ParsedDocument(
            title=(source and source.title) or UNKNOWN_TITLE,
            description=(source and source.description) or UNKNOWN_DESCRIPTION,
            language=(source and source.language) or UNKNOWN_LANGUAGE,
            chapters=sorted(self._chapters.values(), key=lambda c: c.number)
        )


def merge_documents(units: Iterable[Optional[ParsedDocument]]) -> ParsedDocument:
    """Merge an ordered sequence of unit results (None for failed units).

    Args:
        units: Unit results in chunk order

    Returns:
        Merged ParsedDocument
    """
    merger = DocumentMerger()
    for unit in units:
        merger.add(unit)
    return merger.result()
