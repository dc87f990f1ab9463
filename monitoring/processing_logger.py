"""Per-document processing log, persisted for status consumers."""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from utils.logger import setup_logger
from ingestion.models import PDFProgress
import config

logger = setup_logger(__name__)

LOG_LEVELS = ("info", "debug", "warn", "error")

_PYTHON_LEVELS = {
    "info": "info",
    "debug": "debug",
    "warn": "warning",
    "error": "error",
}


class ProcessingLogEntry(BaseModel):
    """One timestamped diagnostic event for a document."""
    id: int
    document_id: str
    level: str
    message: str
    metadata: Optional[Dict[str, Any]] = None
    created_at: str


class ProcessingLogger:
    """Writes structured progress events for one document.

    Every event goes to the console logger and to the processing_logs
    table. Logging never raises: a failed write is reported on the console
    and the pipeline carries on.
    """

    def __init__(self, document_id: str, db):
        self.document_id = document_id
        self.db = db

    def log(self, level: str, message: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        if level not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {level}")

        suffix = f" {metadata}" if metadata else ""
        getattr(logger, _PYTHON_LEVELS[level])(f"[{self.document_id}] {message}{suffix}")

        try:
            self.db.insert_log(self.document_id, level, message, metadata)
        except Exception as e:
            logger.error(f"Failed to write processing log for {self.document_id}: {e}")

    def info(self, message: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        self.log("info", message, metadata)

    def debug(self, message: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        self.log("debug", message, metadata)

    def warn(self, message: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        self.log("warn", message, metadata)

    def error(self, message: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        self.log("error", message, metadata)

    # Structured events

    def llm_request(self, model: str, prompt_length: int, **options: Any) -> None:
        self.info(f"LLM Request → {model}", {"model": model, "prompt_length": prompt_length, **options})

    def llm_response(self, model: str, response_length: int, duration_ms: int) -> None:
        self.info(
            f"LLM Response ← {model} ({duration_ms}ms)",
            {"model": model, "response_length": response_length, "duration_ms": duration_ms}
        )

    def chunk_processing(self, chunk_index: int, total_chunks: int, chunk_size: int) -> None:
        self.info(
            f"Processing chunk {chunk_index + 1}/{total_chunks}",
            {"chunk_index": chunk_index, "total_chunks": total_chunks, "chunk_size": chunk_size}
        )

    def chapter_stored(self, number: int, title: str, verse_count: int) -> None:
        self.info(
            f"Stored chapter {number}: {title} ({verse_count} verses)",
            {"chapter_number": number, "title": title, "verse_count": verse_count}
        )

    def parse_result(self, chapters: int, verses: int) -> None:
        self.info(f"Parsed: {chapters} chapters, {verses} verses", {"chapters": chapters, "verses": verses})

    def pdf_progress(self, progress: PDFProgress) -> None:
        self.debug(f"PDF {progress.stage}: {progress.message}", progress.details or None)

    def pipeline_error(self, error: BaseException) -> None:
        self.error(
            f"Processing failed: {error}",
            {"error_type": type(error).__name__}
        )


def get_logs_for_document(
    db,
    document_id: str,
    limit: int = config.LOG_FETCH_LIMIT
) -> List[ProcessingLogEntry]:
    """Fetch a document's processing log in creation order.

    Returns an empty list if the log cannot be read.
    """
    try:
        rows = db.get_logs(document_id, limit=limit)
    except Exception as e:
        logger.error(f"Failed to fetch processing logs for {document_id}: {e}")
        return []
