"""Resolve a document's storage reference into raw text."""
import base64
import binascii
from typing import Optional

import httpx

from utils.logger import setup_logger
from utils.errors import NotFoundError, FetchError, DecodeError
from ingestion.models import StoredDocument
from ingestion.pdf_extractor import PDFExtractor, ProgressCallback
import config

logger = setup_logger(__name__)

# Process-wide HTTP client, created on first remote fetch and never closed.
_http_client: Optional[httpx.Client] = None


def get_http_client() -> httpx.Client:
    """Return the shared HTTP client, creating it on first use."""
    global _http_client
    if _http_client is None:
        _http_client = httpx.Client(
            timeout=config.FETCH_TIMEOUT_SECONDS,
            follow_redirects=True
        )
    return _http_client


class TextAcquirer:
    """Loads document bytes from storage and decodes them to text."""

    def __init__(
        self,
        db,
        pdf_extractor: Optional[PDFExtractor] = None,
        http_client: Optional[httpx.Client] = None
    ):
        """Initialize acquirer.

        Args:
            db: Database used to look up documents
            pdf_extractor: Extractor for PDF byte streams
            http_client: HTTP client for remote references; the shared
                client is used when omitted
        """
        self.db = db
        self.pdf_extractor = pdf_extractor or PDFExtractor()
        self.http_client = http_client

    def acquire(
        self,
        document_id: str,
        on_progress: Optional[ProgressCallback] = None
    ) -> str:
        """Resolve and decode the text of a document.

        Args:
            document_id: Document UUID
            on_progress: Receives PDF extraction progress events

        Returns:
            Decoded UTF-8 text

        Raises:
            NotFoundError: No document, or no storage reference
            FetchError: Remote storage could not be read
            DecodeError: Content could not be decoded
        """
        document = self.db.get_document(document_id)
        if document is None or not document.raw_text_url:
            raise NotFoundError(f"Document not found: {document_id}")

        data = self.load_bytes(document)
        logger.info(f"Loaded {len(data)} bytes for {document.filename} ({document.file_type})")

        if document.is_pdf:
            text = self.pdf_extractor.extract_text(data, on_progress=on_progress)
        else:
            try:
                text = data.decode("utf-8")
            except UnicodeDecodeError as e:
                raise DecodeError(f"Document is not valid UTF-8 text: {e}") from e

        if not text.strip():
            raise DecodeError("Document contains no extractable text")

        return text

    def load_bytes(self, document: StoredDocument) -> bytes:
        """Fetch the raw bytes behind a document's storage reference."""
        reference = document.raw_text_url

        if reference.startswith("data:"):
            return self._decode_inline(reference)

        if reference.startswith(("http://", "https://")):
            return self._fetch_remote(reference)

        raise FetchError(f"Unsupported storage reference for document {document.id}")

    def _decode_inline(self, reference: str) -> bytes:
        """Decode a legacy ``data:<mime>;base64,<payload>`` reference."""
        header, _, payload = reference.partition(",")
        if not header.endswith(";base64"):
            raise DecodeError("Inline storage reference is not base64 encoded")
        try:
            return base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as e:
            raise DecodeError(f"Invalid base64 payload: {e}") from e

    def _fetch_remote(self, url: str) -> bytes:
        """Download bytes from remote storage."""
        client = self.http_client or get_http_client()

        try:
            response = client.get(url)
        except httpx.HTTPError as e:
            raise FetchError(f"Failed to fetch document: {e}") from e

        if not response.is_success:
            preview = response.text[:config.ERROR_BODY_PREVIEW_CHARS]
            logger.error(f"Storage fetch failed with HTTP {response.status_code}: {preview}")
            raise FetchError(
                f"Failed to fetch document: HTTP {response.status_code} - {preview}",
                status_code=response.status_code,
                body_preview=preview
            )

        return response.content
