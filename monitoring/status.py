"""Derived processing status exposed to callers."""
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from utils.logger import setup_logger
from ingestion.models import ACTIVE_STATUSES, DocumentStatus
from monitoring.processing_logger import ProcessingLogEntry, get_logs_for_document
import config

logger = setup_logger(__name__)


class ProcessingStatus(str, Enum):
    UPLOADED = "uploaded"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


def derive_status(document_status: DocumentStatus, book_exists: bool) -> ProcessingStatus:
    """Collapse document status and book existence into one status.

    Args:
        document_status: The document's stored lifecycle status
        book_exists: Whether a book record exists for the document

    Returns:
        ProcessingStatus
    """
    if document_status == DocumentStatus.FAILED:
        return ProcessingStatus.FAILED
    if book_exists:
        return ProcessingStatus.COMPLETED
    if document_status in ACTIVE_STATUSES:
        return ProcessingStatus.PROCESSING
    return ProcessingStatus.UPLOADED


class DocumentSummary(BaseModel):
    filename: str
    file_type: str
    size: int
    uploaded_at: str


class BookSummary(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    language: Optional[str] = None
    total_chapters: int
    total_verses: int


class ChapterSummary(BaseModel):
    number: int
    title: Optional[str] = None
    verse_count: int


class AnalysisCounts(BaseModel):
    total: int = 0
    completed: int = 0


class StatusReport(BaseModel):
    """Status payload for one document."""
    document_id: str
    status: ProcessingStatus
    document: Optional[DocumentSummary] = None
    book: Optional[BookSummary] = None
    chapters: List[ChapterSummary] = Field(default_factory=list)
    analyses: AnalysisCounts = Field(default_factory=AnalysisCounts)
    logs: List[ProcessingLogEntry] = Field(default_factory=list)
    error: Optional[str] = None


def get_processing_status(
    db,
    document_id: str,
    log_limit: int = config.LOG_FETCH_LIMIT
) -> StatusReport:
    """Build the status payload for a document.

    Args:
        db: Database
        document_id: Document UUID
        log_limit: Maximum number of log entries to include

    Returns:
        StatusReport; an unknown document yields status ``failed`` with an error
    """
    document = db.get_document(document_id)
    if document is None:
        return StatusReport(
            document_id=document_id,
            status=ProcessingStatus.FAILED,
            error="Document not found"
        )

    book = db.get_book_by_document(document_id)

    chapters: List[ChapterSummary] = []
    analyses = AnalysisCounts()
    if book:
        chapters = [ChapterSummary(**row) for row in db.get_chapters(book["id"])]
        analyses = AnalysisCounts(**db.count_analyses(book["id"]))

    status = derive_status(document.status, book is not None)

    error = None
    logs = get_logs_for_document(db, document_id, limit=log_limit)
    if status == ProcessingStatus.FAILED:
        latest = db.get_latest_log(document_id, "error")
        error = latest["message"] if latest else "Processing failed"

    return StatusReport(
        document_id=document_id,
        status=status,
        document=DocumentSummary(
            filename=document.filename,
            file_type=document.file_type,
            size=document.size,
            uploaded_at=document.uploaded_at
        ),
        book=BookSummary(**book) if book else None,
        chapters=chapters,
        analyses=analyses,
        logs=logs,
        error=error
    )
