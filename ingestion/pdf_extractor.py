"""PDF text extraction module."""
import time
from typing import Callable, Optional

import fitz  # PyMuPDF

from utils.logger import setup_logger
from utils.errors import DecodeError
from ingestion.models import PDFProgress

logger = setup_logger(__name__)

ProgressCallback = Callable[[PDFProgress], None]


class PDFExtractor:
    """Extracts text from PDF byte streams."""

    def extract_text(
        self,
        data: bytes,
        on_progress: Optional[ProgressCallback] = None
    ) -> str:
        """Extract the text of every page, merged into one string.

        Args:
            data: Raw PDF bytes
            on_progress: Optional callback receiving PDFProgress events

        Returns:
            Extracted text, pages joined by blank lines

        Raises:
            DecodeError: If the bytes cannot be opened as a PDF
        """
        def report(stage: str, message: str, **details) -> None:
            logger.debug(f"[PDF] {stage}: {message}")
            if on_progress:
                on_progress(PDFProgress(stage=stage, message=message, details=details))

        report("loading", "Opening PDF byte stream", buffer_size=len(data))

        start_parse = time.monotonic()
        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except Exception as e:
            raise DecodeError(f"Failed to open PDF: {e}") from e
        parse_ms = int((time.monotonic() - start_parse) * 1000)

        try:
            page_count = doc.page_count
            report(
                "parsing",
                f"PDF loaded: {page_count} pages",
                num_pages=page_count,
                parse_time_ms=parse_ms
            )

            report("extracting", f"Extracting text from {page_count} pages...")
            start_extract = time.monotonic()
            pages = [page.get_text() for page in doc]
            extract_ms = int((time.monotonic() - start_extract) * 1000)
        except Exception as e:
            raise DecodeError(f"Failed to extract text from PDF: {e}") from e
        finally:
            doc.close()

        text = "\n\n".join(pages)

        report(
            "complete",
            f"Extraction complete: {len(text)} characters",
            characters=len(text),
            extract_time_ms=extract_ms,
            total_time_ms=parse_ms + extract_ms
        )

        return text
