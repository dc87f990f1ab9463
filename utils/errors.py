"""Error taxonomy for the ingestion pipeline."""
from typing import Optional


class PipelineError(Exception):
    """Base class for all pipeline errors."""
    pass


class NotFoundError(PipelineError):
    """Raised when a referenced document (or its content reference) is absent."""
    pass


class FetchError(PipelineError):
    """Raised when source bytes cannot be retrieved from storage."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body_preview: str = ""
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body_preview = body_preview


class DecodeError(PipelineError):
    """Raised when PDF or text decoding fails."""
    pass


class ExtractionError(PipelineError):
    """Raised when the LLM returns no usable JSON for a unit."""
    pass


class PersistenceConflict(PipelineError):
    """Raised when an insert violates a uniqueness constraint."""
    pass


class ConcurrentRunError(PipelineError):
    """Raised when a pipeline run is already active for the same document."""
    pass


class UnknownError(PipelineError):
    """Wraps any unexpected failure that aborts a run."""
    pass
