"""End-to-end document ingestion pipeline."""
import threading
from contextlib import contextmanager
from typing import Any, Dict, Optional, Set

from utils.logger import setup_logger
from utils.errors import ConcurrentRunError, NotFoundError, PipelineError, UnknownError
from ingestion.models import DocumentStatus
from ingestion.chunker import chunk_text
from ingestion.text_acquirer import TextAcquirer
from extraction.merger import DocumentMerger
from extraction.prompts import PARSE_DOCUMENT_SYSTEM_PROMPT
from extraction.structure_extractor import StructureExtractor
from monitoring.processing_logger import ProcessingLogger
from storage.persister import Persister
import config

logger = setup_logger(__name__)

_active_runs: Set[str] = set()
_active_runs_lock = threading.Lock()


@contextmanager
def single_flight(document_id: str):
    """Hold the advisory per-document run guard for this process.

    Raises:
        ConcurrentRunError: If a run for the document is already active
    """
    with _active_runs_lock:
        if document_id in _active_runs:
            raise ConcurrentRunError(f"A pipeline run is already active for document {document_id}")
        _active_runs.add(document_id)
    try:
        yield
    finally:
        with _active_runs_lock:
            _active_runs.discard(document_id)


class IngestionPipeline:
    """Acquires, chunks, extracts, merges and persists one document."""

    def __init__(
        self,
        db,
        llm,
        acquirer: Optional[TextAcquirer] = None,
        max_chunk_size: int = config.MAX_CHUNK_SIZE,
        system_prompt: str = PARSE_DOCUMENT_SYSTEM_PROMPT
    ):
        """Initialize pipeline.

        Args:
            db: Database
            llm: Completion client with a ``complete`` method
            acquirer: TextAcquirer; one bound to ``db`` is created when omitted
            max_chunk_size: Maximum characters per extraction unit
            system_prompt: System prompt for structure extraction
        """
        self.db = db
        self.llm = llm
        self.acquirer = acquirer or TextAcquirer(db)
        self.max_chunk_size = max_chunk_size
        self.system_prompt = system_prompt

    def run(self, document_id: str) -> Dict[str, Any]:
        """Process a document into a finalized book.

        Args:
            document_id: Document UUID

        Returns:
            The finalized book row

        Raises:
            NotFoundError, FetchError, DecodeError: Terminal input failures
            ConcurrentRunError: Another run for this document is active
            UnknownError: Any other failure
        """
        with single_flight(document_id):
            reporter = ProcessingLogger(document_id, self.db)
            try:
                document = self.db.get_document(document_id)
                if document is None:
                    raise NotFoundError(f"Document not found: {document_id}")

                if document.status == DocumentStatus.COMPLETED:
                    book = self.db.get_book_by_document(document_id)
                    if book:
                        logger.info(f"Document {document_id} already completed, nothing to do")
                        return book

                return self._run(document_id, reporter)
            except Exception as e:
                reporter.pipeline_error(e)
                self._mark_failed(document_id)
                if isinstance(e, PipelineError):
                    raise
                raise UnknownError(str(e)) from e

    def _run(self, document_id: str, reporter: ProcessingLogger) -> Dict[str, Any]:
        self.db.update_document_status(document_id, DocumentStatus.PROCESSING)
        reporter.info("Processing started")

        text = self.acquirer.acquire(document_id, on_progress=reporter.pdf_progress)
        reporter.info(f"Acquired {len(text)} characters of text", {"characters": len(text)})

        persister = Persister(self.db, reporter)
        book = persister.create_book_shell(document_id)
        reporter.info("Created book record", {"book_id": book["id"]})

        self.db.update_document_status(document_id, DocumentStatus.PARSING)

        extractor = StructureExtractor(self.llm, reporter)
        merger = DocumentMerger()
        chunks = chunk_text(text, self.max_chunk_size)

        if chunks.is_single:
            parsed = extractor.extract_single(text, self.system_prompt)
            merger.add(parsed)
            persister.append_document(book["id"], parsed)
        else:
            reporter.info(
                f"Text is {len(text)} chars, chunking into {len(chunks)} pieces",
                {"characters": len(text), "chunks": len(chunks), "max_chunk_size": self.max_chunk_size}
            )
            for chunk in chunks:
                reporter.chunk_processing(chunk.index, chunk.total, len(chunk.text))
                parsed = extractor.extract_unit(chunk, self.system_prompt)
                merger.add(parsed)
                if parsed is not None:
                    persister.append_document(book["id"], parsed)

            if merger.units_failed:
                reporter.warn(
                    f"{merger.units_failed} of {merger.units_seen} chunks failed to parse",
                    {"failed_chunks": merger.units_failed, "total_chunks": merger.units_seen}
                )

        merged = merger.result()
        persister.finalize_book(book["id"], merged)
        reporter.parse_result(merged.chapter_count, merged.verse_count)

        self.db.update_document_status(document_id, DocumentStatus.COMPLETED)
        reporter.info(
            "Processing complete",
            {
                "book_id": book["id"],
                "title": merged.title,
                "verses_written": persister.verses_written,
                "duplicates_skipped": persister.conflicts,
            }
        )

        return self.db.get_book(book["id"])

    def _mark_failed(self, document_id: str) -> None:
        try:
            self.db.update_document_status(document_id, DocumentStatus.FAILED)
        except Exception as e:
            logger.error(f"Could not mark document {document_id} as failed: {e}")
