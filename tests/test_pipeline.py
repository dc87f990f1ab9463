"""End-to-end pipeline tests with a fake LLM."""
import httpx
import pytest
from conftest import FakeLLM, document_json, chapter

from ingestion.models import DocumentStatus
from ingestion.text_acquirer import TextAcquirer
from monitoring.status import ProcessingStatus, get_processing_status
from pipeline.orchestrator import IngestionPipeline, single_flight
from storage.persister import Persister
from utils.errors import ConcurrentRunError, FetchError, NotFoundError, UnknownError


def log_messages(db, document_id, level=None):
    return [
        log["message"] for log in db.get_logs(document_id, limit=1000)
        if level is None or log["level"] == level
    ]


def test_three_chunks_with_failed_middle(db, text_document):
    """Test 60k chars at 25k: chunk 2 fails, chunks 1 and 3 give chapters 1 and 2."""
    document = text_document("a" * 60000)
    llm = FakeLLM([
        document_json(title="Chunk One Title", chapters=[chapter(1, [1, 2])]),
        "The model rambled and returned no JSON at all.",
        document_json(title="Chunk Three Title", chapters=[chapter(2, [1])]),
    ])

    book = IngestionPipeline(db, llm, max_chunk_size=25000).run(document.id)

    assert len(llm.calls) == 3
    assert "(part 1 of 3)" in llm.calls[0]["user_prompt"]
    assert "(part 3 of 3)" in llm.calls[2]["user_prompt"]
    assert book["title"] == "Chunk One Title"
    assert book["total_chapters"] == 2
    assert book["total_verses"] == 3
    assert [c["number"] for c in db.get_chapters(book["id"])] == [1, 2]
    assert len(db.get_verses(book["id"])) == 3
    assert any("chunk 2" in message for message in log_messages(db, document.id, "error"))
    assert db.get_document(document.id).status == DocumentStatus.COMPLETED


def test_chapter_spanning_chunks(db, text_document):
    """Test that a chapter continued in the next chunk is stored once with all verses."""
    document = text_document("b" * 20)
    llm = FakeLLM([
        document_json(chapters=[chapter(1, [1, 2])]),
        document_json(chapters=[chapter(1, [3]), chapter(2, [1])]),
    ])

    book = IngestionPipeline(db, llm, max_chunk_size=10).run(document.id)

    chapters = db.get_chapters(book["id"])
    assert [(c["number"], c["verse_count"]) for c in chapters] == [(1, 3), (2, 1)]
    assert [v["verse_number"] for v in db.get_verses(book["id"], chapter_number=1)] == [1, 2, 3]


def test_chunk_with_null_fields_is_kept(db, text_document):
    """Test that a chunk whose JSON carries nulls still contributes its chapter."""
    document = text_document("e" * 20)
    llm = FakeLLM([
        document_json(chapters=[chapter(1, [1])]),
        '{"chapters": [{"number": 2, "title": null, '
        '"verses": [{"number": 1, "originalText": "b", "translation": null}]}]}',
    ])

    book = IngestionPipeline(db, llm, max_chunk_size=10).run(document.id)

    assert book["total_chapters"] == 2
    verse = db.get_verses(book["id"], chapter_number=2)[0]
    assert verse["original_text"] == "b"
    assert verse["translation"] == ""
    assert log_messages(db, document.id, "error") == []


def test_single_unit(db, text_document):
    """Test a short document parsed in one call."""
    document = text_document("Chapter 1\n1. Verse")
    llm = FakeLLM([document_json(title="Short", chapters=[chapter(1, [1])])])

    book = IngestionPipeline(db, llm).run(document.id)

    assert len(llm.calls) == 1
    assert llm.calls[0]["user_prompt"].startswith("Parse this religious text:\n\n")
    assert book["title"] == "Short"
    assert book["total_verses"] == 1

    report = get_processing_status(db, document.id)
    assert report.status == ProcessingStatus.COMPLETED
    assert report.chapters[0].title == "Chapter 1"


def test_single_unit_failure_still_creates_book(db, text_document):
    """Test that a failed single parse yields an empty Unknown book."""
    document = text_document("Some text")

    book = IngestionPipeline(db, FakeLLM(["no json"])).run(document.id)

    assert book["title"] == "Unknown"
    assert book["description"] == "No description"
    assert book["total_chapters"] == 0
    assert db.get_document(document.id).status == DocumentStatus.COMPLETED


def test_progress_trace(db, text_document):
    """Test that the log stream records the chunk-by-chunk story."""
    document = text_document("c" * 20)
    llm = FakeLLM([
        document_json(chapters=[chapter(1, [1])]),
        document_json(chapters=[chapter(2, [1])]),
    ])

    IngestionPipeline(db, llm, max_chunk_size=10).run(document.id)

    messages = log_messages(db, document.id)
    assert messages[0] == "Processing started"
    assert "Processing chunk 1/2" in messages
    assert "Processing chunk 2/2" in messages
    assert "Stored chapter 2: Chapter 2 (1 verses)" in messages
    assert "Parsed: 2 chapters, 2 verses" in messages
    assert messages[-1] == "Processing complete"
    assert messages.index("Stored chapter 1: Chapter 1 (1 verses)") < messages.index("Processing chunk 2/2")


def test_missing_document(db):
    """Test that an unknown document raises NotFoundError."""
    with pytest.raises(NotFoundError):
        IngestionPipeline(db, FakeLLM([])).run("nope")


def test_fetch_failure_marks_failed(db):
    """Test that a storage failure aborts the run, logs it and fails the document."""
    document = db.insert_document("a.txt", "text/plain", 1, "https://storage.example.com/a.txt")
    client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(500, text="boom")))
    pipeline = IngestionPipeline(db, FakeLLM([]), acquirer=TextAcquirer(db, http_client=client))

    with pytest.raises(FetchError):
        pipeline.run(document.id)

    assert db.get_document(document.id).status == DocumentStatus.FAILED
    assert db.get_book_by_document(document.id) is None
    errors = log_messages(db, document.id, "error")
    assert any("HTTP 500" in message for message in errors)

    report = get_processing_status(db, document.id)
    assert report.status == ProcessingStatus.FAILED
    assert "HTTP 500" in report.error


def test_unexpected_error_wrapped(db, text_document):
    """Test that an error outside the taxonomy becomes UnknownError."""
    document = text_document("text")
    llm = FakeLLM([RuntimeError("provider exploded")])

    with pytest.raises(UnknownError):
        IngestionPipeline(db, llm).run(document.id)

    assert db.get_document(document.id).status == DocumentStatus.FAILED
    assert any("provider exploded" in m for m in log_messages(db, document.id, "error"))


def test_retry_after_failure_tolerates_duplicates(db, text_document):
    """Test that re-running a failed document reuses the book and skips stored verses."""
    document = text_document("d" * 20)
    book = Persister(db).create_book_shell(document.id)
    db.insert_chapter(book["id"], 1, "Chapter 1", 2)
    db.insert_verse(book["id"], 1, 1, "original 1:1", "translation 1:1")
    db.update_document_status(document.id, DocumentStatus.FAILED)

    llm = FakeLLM([
        document_json(chapters=[chapter(1, [1, 2])]),
        document_json(chapters=[chapter(2, [1])]),
    ])
    result = IngestionPipeline(db, llm, max_chunk_size=10).run(document.id)

    assert result["id"] == book["id"]
    assert len(db.get_verses(book["id"])) == 3
    assert result["total_verses"] == 3
    assert any("Duplicate verse 1:1" in m for m in log_messages(db, document.id, "warn"))
    assert db.get_document(document.id).status == DocumentStatus.COMPLETED


def test_completed_document_not_reprocessed(db, text_document):
    """Test that running a completed document returns its book without LLM calls."""
    document = text_document("text")
    first = IngestionPipeline(db, FakeLLM([document_json(title="Done")])).run(document.id)

    llm = FakeLLM([])
    second = IngestionPipeline(db, llm).run(document.id)

    assert second["id"] == first["id"]
    assert llm.calls == []


def test_concurrent_run_rejected(db, text_document):
    """Test that a second run for the same document is refused while one is active."""
    document = text_document("text")

    with single_flight(document.id):
        with pytest.raises(ConcurrentRunError):
            IngestionPipeline(db, FakeLLM([])).run(document.id)

    # Guard is released afterwards
    book = IngestionPipeline(db, FakeLLM([document_json()])).run(document.id)
    assert book["title"] == "Test Book"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
