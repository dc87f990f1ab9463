"""SQLite database operations for the pipeline."""
import sqlite3
import json
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, List, Dict, Any
from contextlib import contextmanager

from utils.logger import setup_logger
from utils.errors import PersistenceConflict
from ingestion.models import DocumentStatus, StoredDocument
import config

logger = setup_logger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


class Database:
    """Manages SQLite database operations."""

    def __init__(self, db_path: Path = config.DB_PATH):
        """Initialize database connection.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path
        self._initialize_schema()

    def _initialize_schema(self):
        """Create tables if they don't exist."""
        schema_path = Path(__file__).parent / "schema.sql"
        with open(schema_path, 'r') as f:
            schema_sql = f.read()

        with self._get_connection() as conn:
            conn.executescript(schema_sql)
            conn.commit()

        logger.debug(f"Database initialized at {self.db_path}")

    @contextmanager
    def _get_connection(self):
        """Context manager for database connections."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def _insert(self, sql: str, params: tuple) -> None:
        """Run an INSERT, translating uniqueness violations.

        Raises:
            PersistenceConflict: If the row collides with a unique key
        """
        with self._get_connection() as conn:
            try:
                conn.execute(sql, params)
                conn.commit()
            except sqlite3.IntegrityError as e:
                if "UNIQUE" in str(e):
                    raise PersistenceConflict(str(e)) from e
                raise

    # ==================== Documents ====================

    def insert_document(
        self,
        filename: str,
        file_type: str,
        size: int,
        raw_text_url: str,
        title: Optional[str] = None
    ) -> StoredDocument:
        """Insert a new document record in ``uploaded`` state.

        Args:
            filename: Original file name
            file_type: Media type
            size: Size in bytes
            raw_text_url: Storage reference (URL or inline data reference)
            title: Optional display title

        Returns:
            The stored document
        """
        document = StoredDocument(
            id=str(uuid.uuid4()),
            filename=filename,
            title=title,
            file_type=file_type,
            size=size,
            status=DocumentStatus.UPLOADED,
            raw_text_url=raw_text_url,
            uploaded_at=_now()
        )

        self._insert(
            """
            INSERT INTO documents (id, filename, title, file_type, size, status, raw_text_url, uploaded_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (document.id, document.filename, document.title, document.file_type,
             document.size, document.status.value, document.raw_text_url, document.uploaded_at)
        )

        logger.info(f"Inserted document: {filename} (ID: {document.id})")
        return document

    def get_document(self, document_id: str) -> Optional[StoredDocument]:
        """Retrieve a document by id.

        Args:
            document_id: Document UUID

        Returns:
            StoredDocument or None
        """
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM documents WHERE id = ?",
                (document_id,)
            ).fetchone()

        return StoredDocument(**dict(row)) if row else None

    def get_all_documents(self) -> List[StoredDocument]:
        """Get all registered documents, newest first."""
        with self._get_connection() as conn:
            rows = conn.execute("SELECT * FROM documents ORDER BY uploaded_at DESC").fetchall()
            return [StoredDocument(**dict(row)) for row in rows]

    def update_document_status(self, document_id: str, status: DocumentStatus) -> None:
        """Move a document to a new lifecycle status.

        Args:
            document_id: Document UUID
            status: Target status

        Raises:
            ValueError: If the document is missing or the transition goes backwards
        """
        document = self.get_document(document_id)
        if document is None:
            raise ValueError(f"Document not found: {document_id}")

        if not document.status.can_transition_to(status):
            raise ValueError(
                f"Invalid status transition for {document_id}: "
                f"{document.status.value} -> {status.value}"
            )

        with self._get_connection() as conn:
            conn.execute(
                "UPDATE documents SET status = ? WHERE id = ?",
                (status.value, document_id)
            )
            conn.commit()

    # ==================== Books ====================

    def insert_book(
        self,
        document_id: str,
        title: str,
        description: str = "",
        language: str = "",
        total_chapters: int = 0,
        total_verses: int = 0
    ) -> Dict[str, Any]:
        """Insert a book record.

        Returns:
            The stored book row

        Raises:
            PersistenceConflict: If the document already has a book
        """
        book_id = str(uuid.uuid4())

        self._insert(
            """
            INSERT INTO books (id, document_id, title, description, language,
                               total_chapters, total_verses, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (book_id, document_id, title, description, language,
             total_chapters, total_verses, _now())
        )

        logger.info(f"Inserted book: {title} (ID: {book_id})")
        return self.get_book(book_id)

    def get_book(self, book_id: str) -> Optional[Dict[str, Any]]:
        with self._get_connection() as conn:
            row = conn.execute("SELECT * FROM books WHERE id = ?", (book_id,)).fetchone()
            return dict(row) if row else None

    def get_book_by_document(self, document_id: str) -> Optional[Dict[str, Any]]:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM books WHERE document_id = ?",
                (document_id,)
            ).fetchone()
            return dict(row) if row else None

    def update_book(
        self,
        book_id: str,
        title: str,
        description: str,
        language: str,
        total_chapters: int,
        total_verses: int
    ) -> None:
        """Write final metadata and totals onto a book."""
        with self._get_connection() as conn:
            conn.execute(
                """
                UPDATE books
                SET title = ?, description = ?, language = ?,
                    total_chapters = ?, total_verses = ?, processed_at = ?
                WHERE id = ?
                """,
                (title, description, language, total_chapters, total_verses, _now(), book_id)
            )
            conn.commit()

    # ==================== Chapters & Verses ====================

    def insert_chapter(
        self,
        book_id: str,
        number: int,
        title: str,
        verse_count: int
    ) -> str:
        """Insert a chapter record.

        Returns:
            Chapter UUID

        Raises:
            PersistenceConflict: If (book_id, number) already exists
        """
        chapter_id = str(uuid.uuid4())
        self._insert(
            """
            INSERT INTO chapters (id, book_id, number, title, verse_count)
            VALUES (?, ?, ?, ?, ?)
            """,
            (chapter_id, book_id, number, title, verse_count)
        )
        return chapter_id

    def update_chapter_verse_count(self, book_id: str, number: int, verse_count: int) -> None:
        with self._get_connection() as conn:
            conn.execute(
                "UPDATE chapters SET verse_count = ? WHERE book_id = ? AND number = ?",
                (verse_count, book_id, number)
            )
            conn.commit()

    def get_chapters(self, book_id: str) -> List[Dict[str, Any]]:
        """Retrieve all chapters of a book ordered by number."""
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM chapters WHERE book_id = ? ORDER BY number",
                (book_id,)
            ).fetchall()
            return [dict(row) for row in rows]

    def insert_verse(
        self,
        book_id: str,
        chapter_number: int,
        verse_number: int,
        original_text: str,
        translation: str
    ) -> str:
        """Insert a verse record.

        Returns:
            Verse UUID

        Raises:
            PersistenceConflict: If (book_id, chapter_number, verse_number) already exists
        """
        verse_id = str(uuid.uuid4())
        self._insert(
            """
            INSERT INTO verses (id, book_id, chapter_number, verse_number, original_text, translation)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (verse_id, book_id, chapter_number, verse_number, original_text, translation)
        )
        return verse_id

    def get_verses(self, book_id: str, chapter_number: Optional[int] = None) -> List[Dict[str, Any]]:
        """Retrieve verses of a book, optionally limited to one chapter."""
        query = "SELECT * FROM verses WHERE book_id = ?"
        params: tuple = (book_id,)
        if chapter_number is not None:
            query += " AND chapter_number = ?"
            params += (chapter_number,)
        query += " ORDER BY chapter_number, verse_number"

        with self._get_connection() as conn:
            rows = conn.execute(query, params).fetchall()
            return [dict(row) for row in rows]

    def count_analyses(self, book_id: str) -> Dict[str, int]:
        """Count verses and how many have been analyzed."""
        with self._get_connection() as conn:
            row = conn.execute(
                """
                SELECT COUNT(*) AS total,
                       COALESCE(SUM(CASE WHEN analyzed = 1 THEN 1 ELSE 0 END), 0) AS completed
                FROM verses WHERE book_id = ?
                """,
                (book_id,)
            ).fetchone()
            return {"total": row["total"], "completed": row["completed"]}

    # ==================== Processing logs ====================

    def insert_log(
        self,
        document_id: str,
        level: str,
        message: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        """Append one processing log entry."""
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO processing_logs (document_id, level, message, metadata, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (document_id, level, message,
                 json.dumps(metadata, default=str) if metadata else None, _now())
            )
            conn.commit()

    def get_logs(self, document_id: str, limit: int = config.LOG_FETCH_LIMIT) -> List[Dict[str, Any]]:
        """Retrieve processing log entries in creation order."""
        with self._get_connection() as conn:
            rows = conn.execute(
                """
                SELECT id, document_id, level, message, metadata, created_at
                FROM processing_logs
                WHERE document_id = ?
                ORDER BY created_at ASC, id ASC
                LIMIT ?
                """,
                (document_id, limit)
            ).fetchall()

        logs = []
        for row in rows:
            entry = dict(row)
            entry["metadata"] = json.loads(entry["metadata"]) if entry["metadata"] else None
            logs.append(entry)
        return logs

    def get_latest_log(self, document_id: str, level: str) -> Optional[Dict[str, Any]]:
        """Retrieve the most recent log entry of one level."""
        with self._get_connection() as conn:
            row = conn.execute(
                """
                SELECT id, document_id, level, message, metadata, created_at
                FROM processing_logs
                WHERE document_id = ? AND level = ?
                ORDER BY created_at DESC, id DESC
                LIMIT 1
                """,
                (document_id, level)
            ).fetchone()

        if not row:
            return None
        entry = dict(row)
        entry["metadata"] = json.loads(entry["metadata"]) if entry["metadata"] else None
        return entry
