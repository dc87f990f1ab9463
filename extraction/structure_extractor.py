"""Book/chapter/verse structure extraction using LLM."""
import time
from typing import Optional

from pydantic import ValidationError

from utils.logger import setup_logger
from utils.errors import ExtractionError
from extraction.models import ParsedDocument
from extraction.json_repair import parse_llm_json
from extraction.prompts import build_user_prompt
from ingestion.models import TextChunk
import config

logger = setup_logger(__name__)


class StructureExtractor:
    """Turns one unit of text into a ParsedDocument via the LLM."""

    def __init__(
        self,
        llm,
        reporter=None,
        max_tokens: int = config.LLM_MAX_TOKENS,
        temperature: float = config.LLM_TEMPERATURE
    ):
        """Initialize extractor.

        Args:
            llm: Object exposing ``complete(system_prompt, user_prompt,
                max_tokens=..., temperature=...) -> str``
            reporter: Optional ProcessingLogger for LLM events
            max_tokens: Output token budget per call
            temperature: Sampling temperature
        """
        self.llm = llm
        self.reporter = reporter
        self.max_tokens = max_tokens
        self.temperature = temperature

    @property
    def model_name(self) -> str:
        return getattr(self.llm, "model", type(self.llm).__name__)

    def extract(
        self,
        text: str,
        system_prompt: str,
        index: Optional[int] = None,
        total: Optional[int] = None
    ) -> ParsedDocument:
        """Extract the structure of one unit.

        Args:
            text: Unit text
            system_prompt: System instructions
            index: Zero-based chunk index, None for a whole document
            total: Total chunk count

        Returns:
            ParsedDocument for this unit

        Raises:
            ExtractionError: If the response holds no usable JSON
        """
        user_prompt = build_user_prompt(text, index, total)

        if self.reporter:
            self.reporter.llm_request(
                self.model_name,
                len(user_prompt),
                max_tokens=self.max_tokens,
                temperature=self.temperature
            )

        started = time.monotonic()
        response = self.llm.complete(
            system_prompt,
            user_prompt,
            max_tokens=self.max_tokens,
            temperature=self.temperature
        )
        duration_ms = int((time.monotonic() - started) * 1000)

        if self.reporter:
            self.reporter.llm_response(self.model_name, len(response), duration_ms)

        data = parse_llm_json(response)
        try:
            return ParsedDocument.model_validate(data)
        except ValidationError as e:
            logger.error(f"Response JSON does not match document shape. First 500 chars: {response[:500]}")
            raise ExtractionError(f"Invalid document structure: {e.error_count()} validation errors") from e

    def extract_unit(self, chunk: TextChunk, system_prompt: str) -> Optional[ParsedDocument]:
        """Extract one chunk of a multi-chunk document.

        A failed chunk is logged and contributes None so that the
        remaining chunks still get processed.
        """
        try:
            return self.extract(chunk.text, system_prompt, index=chunk.index, total=chunk.total)
        except ExtractionError as e:
            message = f"Failed to parse chunk {chunk.label}: {e}"
            if self.reporter:
                self.reporter.error(message, {"chunk_index": chunk.index, "total_chunks": chunk.total})
            else:
                logger.error(message)
            return None

    def extract_single(self, text: str, system_prompt: str) -> ParsedDocument:
        """Extract a document small enough to parse in one call.

        Falls back to an empty "Unknown" document when extraction fails.
        """
        try:
            return self.extract(text, system_prompt)
        except ExtractionError as e:
            message = f"Failed to parse document: {e}"
            if self.reporter:
                self.reporter.error(message)
            else:
                logger.error(message)
            return ParsedDocument.empty()
