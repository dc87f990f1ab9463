"""Incremental, duplicate-tolerant persistence of parsed books."""
from typing import Any, Dict, Set, Tuple

from utils.logger import setup_logger
from utils.errors import PersistenceConflict
from extraction.models import ParsedChapter, ParsedDocument, ParsedVerse

logger = setup_logger(__name__)

PLACEHOLDER_TITLE = "Processing..."


class Persister:
    """Writes one pipeline run's book, chapters and verses.

    Use one instance per run: the set of chapter numbers already inserted
    is scoped to the instance.
    """

    def __init__(self, db, reporter=None):
        """Initialize persister.

        Args:
            db: Database
            reporter: Optional ProcessingLogger for storage events
        """
        self.db = db
        self.reporter = reporter
        self._inserted_chapters: Set[int] = set()
        self.verses_written = 0
        self.conflicts = 0

    def _warn(self, message: str, metadata: Dict[str, Any]) -> None:
        if self.reporter:
            self.reporter.warn(message, metadata)
        else:
            logger.warning(message)

    def create_book_shell(self, document_id: str) -> Dict[str, Any]:
        """Create the placeholder book for a document before parsing.

        A book left behind by an earlier run of the same document is reused
        so that re-inserted chapters and verses collide on the same keys.

        Args:
            document_id: Document UUID

        Returns:
            Book row
        """
        existing = self.db.get_book_by_document(document_id)
        if existing:
            logger.info(f"Reusing existing book {existing['id']} for document {document_id}")
            return existing

        return self.db.insert_book(document_id=document_id, title=PLACEHOLDER_TITLE)

    def append_chapter(self, book_id: str, chapter: ParsedChapter) -> None:
        """Insert a chapter unless this run already stored its number."""
        if chapter.number in self._inserted_chapters:
            logger.debug(f"Chapter {chapter.number} already stored in this run")
            return

        try:
            self.db.insert_chapter(
                book_id=book_id,
                number=chapter.number,
                title=chapter.title,
                verse_count=len(chapter.verses)
            )
        except PersistenceConflict:
            self.conflicts += 1
            self._warn(
                f"Chapter {chapter.number} already exists, skipping",
                {"chapter_number": chapter.number}
            )

        self._inserted_chapters.add(chapter.number)

    def append_verse(self, book_id: str, chapter_number: int, verse: ParsedVerse) -> bool:
        """Insert a verse; a duplicate key is logged and skipped.

        Returns:
            True if a new verse was stored
        """
        try:
            self.db.insert_verse(
                book_id=book_id,
                chapter_number=chapter_number,
                verse_number=verse.number,
                original_text=verse.original_text,
                translation=verse.translation
            )
        except PersistenceConflict:
            self.conflicts += 1
            self._warn(
                f"Duplicate verse {chapter_number}:{verse.number}, skipping",
                {"chapter_number": chapter_number, "verse_number": verse.number}
            )
            return False

        self.verses_written += 1
        return True

    def append_document(self, book_id: str, parsed: ParsedDocument) -> Tuple[int, int]:
        """Store every chapter and verse of one unit result.

        Returns:
            (chapters seen, verses newly stored)
        """
        stored_verses = 0
        for chapter in parsed.chapters:
            self.append_chapter(book_id, chapter)
            for verse in chapter.verses:
                if self.append_verse(book_id, chapter.number, verse):
                    stored_verses += 1
            if self.reporter:
                self.reporter.chapter_stored(chapter.number, chapter.title, len(chapter.verses))

        return len(parsed.chapters), stored_verses

    def finalize_book(self, book_id: str, parsed: ParsedDocument) -> None:
        """Write merged metadata and totals onto the book."""
        self.db.update_book(
            book_id=book_id,
            title=parsed.title,
            description=parsed.description,
            language=parsed.language,
            total_chapters=parsed.chapter_count,
            total_verses=parsed.verse_count
        )

        for chapter in parsed.chapters:
            self.db.update_chapter_verse_count(book_id, chapter.number, len(chapter.verses))

        logger.info(
            f"Finalized book {book_id}: {parsed.chapter_count} chapters, {parsed.verse_count} verses"
        )
