"""Pydantic models for ingestion module."""
from enum import Enum
from pydantic import BaseModel, Field
from typing import Dict, Any, Optional


class DocumentStatus(str, Enum):
    """Lifecycle status of an uploaded document."""
    UPLOADED = "uploaded"
    PROCESSING = "processing"
    PARSING = "parsing"
    COMPLETED = "completed"
    FAILED = "failed"

    def can_transition_to(self, target: "DocumentStatus") -> bool:
        """Check whether moving from this status to ``target`` is allowed.

        Statuses only move forward, except that any status may fail and a
        failed document may be picked up again for a retry.
        """
        if target == DocumentStatus.FAILED:
            return True
        if self == DocumentStatus.FAILED:
            return target == DocumentStatus.PROCESSING
        return _STATUS_ORDER[target] >= _STATUS_ORDER[self]


# PARSING is a sub-state of active work, so a stalled run may be resumed.
_STATUS_ORDER = {
    DocumentStatus.UPLOADED: 0,
    DocumentStatus.PROCESSING: 1,
    DocumentStatus.PARSING: 1,
    DocumentStatus.COMPLETED: 2,
}

ACTIVE_STATUSES = {DocumentStatus.PROCESSING, DocumentStatus.PARSING}


class StoredDocument(BaseModel):
    """An uploaded source file as recorded in the documents table."""
    id: str
    filename: str
    title: Optional[str] = None
    file_type: str
    size: int
    status: DocumentStatus = DocumentStatus.UPLOADED
    raw_text_url: Optional[str] = None
    uploaded_at: str = ""

    @property
    def is_pdf(self) -> bool:
        return self.file_type == "application/pdf"


class TextChunk(BaseModel):
    """A bounded, contiguous slice of a document's raw text."""
    text: str
    start: int
    end: int
    index: int
    total: int

    @property
    def label(self) -> str:
        """Human readable position, e.g. ``2/3``."""
        return f"{self.index + 1}/{self.total}"


class PDFProgress(BaseModel):
    """Progress notification emitted during PDF text extraction."""
    stage: str  # "loading" | "parsing" | "extracting" | "complete"
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)
