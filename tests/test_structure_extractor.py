"""Test per-unit structure extraction."""
import pytest
from conftest import FakeLLM, document_json, chapter

from extraction.structure_extractor import StructureExtractor
from ingestion.chunker import chunk_text
from monitoring.processing_logger import ProcessingLogger
from utils.errors import ExtractionError

SYSTEM_PROMPT = "Parse scripture."


def test_single_document_prompt_and_options():
    """Test the whole-document prompt and the call options."""
    llm = FakeLLM([document_json(chapters=[chapter(1, [1, 2])])])
    extractor = StructureExtractor(llm, max_tokens=16000, temperature=0.2)

    parsed = extractor.extract("1:1 text", SYSTEM_PROMPT)

    call = llm.calls[0]
    assert call["system_prompt"] == SYSTEM_PROMPT
    assert call["user_prompt"] == "Parse this religious text:\n\n1:1 text"
    assert call["max_tokens"] == 16000
    assert call["temperature"] == 0.2
    assert parsed.title == "Test Book"
    assert parsed.verse_count == 2


def test_chunk_prompt_states_position():
    """Test that chunk prompts state part i of n."""
    llm = FakeLLM([document_json()] * 3)
    extractor = StructureExtractor(llm)

    for chunk in chunk_text("abcdefghi", max_size=3):
        extractor.extract_unit(chunk, SYSTEM_PROMPT)

    assert "(part 2 of 3)" in llm.calls[1]["user_prompt"]
    assert "def" in llm.calls[1]["user_prompt"]
    assert "Return chapters and verses found in this section." in llm.calls[1]["user_prompt"]


def test_noisy_response_is_repaired():
    """Test extraction from a response wrapped in prose with a hex escape."""
    response = 'Sure!\n{"title": "\\x41tharva", "chapters": []}\nHope this helps.'
    extractor = StructureExtractor(FakeLLM([response]))

    assert extractor.extract("text", SYSTEM_PROMPT).title == "Atharva"


def test_no_json_raises():
    """Test that a response without JSON raises ExtractionError."""
    extractor = StructureExtractor(FakeLLM(["I cannot do that."]))

    with pytest.raises(ExtractionError):
        extractor.extract("text", SYSTEM_PROMPT)


def test_wrong_shape_raises():
    """Test that JSON not matching the document shape raises ExtractionError."""
    extractor = StructureExtractor(FakeLLM(['{"chapters": [{"title": "no number"}]}']))

    with pytest.raises(ExtractionError):
        extractor.extract("text", SYSTEM_PROMPT)


def test_null_fields_accepted():
    """Test that null titles and verse texts are stored as empty strings."""
    response = (
        '{"title": null, "description": null, "language": null, "chapters": ['
        '{"number": 2, "title": null, "verses": ['
        '{"number": 1, "originalText": "b", "translation": null},'
        '{"number": 2, "originalText": null}]},'
        '{"number": 3, "title": "Empty", "verses": null}]}'
    )
    extractor = StructureExtractor(FakeLLM([response]))

    parsed = extractor.extract("text", SYSTEM_PROMPT)

    assert parsed.title is None
    assert parsed.chapters[0].title == ""
    assert parsed.chapters[0].verses[0].original_text == "b"
    assert parsed.chapters[0].verses[0].translation == ""
    assert parsed.chapters[0].verses[1].original_text == ""
    assert parsed.chapters[1].verses == []
    assert parsed.verse_count == 2


def test_failed_chunk_returns_none_and_logs(db, text_document):
    """Test that a failed chunk is logged with its position and yields None."""
    document = text_document("abcdef")
    reporter = ProcessingLogger(document.id, db)
    extractor = StructureExtractor(FakeLLM(["garbage", "garbage"]), reporter)
    chunk = list(chunk_text("abcdef", max_size=3))[1]

    assert extractor.extract_unit(chunk, SYSTEM_PROMPT) is None

    errors = [log for log in db.get_logs(document.id) if log["level"] == "error"]
    assert len(errors) == 1
    assert "chunk 2/2" in errors[0]["message"]


def test_empty_llm_response_fails_chunk():
    """Test that an ExtractionError raised by the client is isolated to the chunk."""
    extractor = StructureExtractor(FakeLLM([ExtractionError("No response from LLM")]))
    chunk = list(chunk_text("abcdef", max_size=3))[0]

    assert extractor.extract_unit(chunk, SYSTEM_PROMPT) is None


def test_single_failure_degrades_to_unknown():
    """Test that a failed whole-document parse returns the Unknown placeholder."""
    extractor = StructureExtractor(FakeLLM(["no json here"]))

    parsed = extractor.extract_single("text", SYSTEM_PROMPT)

    assert parsed.title == "Unknown"
    assert parsed.chapters == []


def test_llm_events_logged(db, text_document):
    """Test that request and response events are written to the processing log."""
    document = text_document("text")
    reporter = ProcessingLogger(document.id, db)
    extractor = StructureExtractor(FakeLLM([document_json()]), reporter)

    extractor.extract("text", SYSTEM_PROMPT)

    messages = [log["message"] for log in db.get_logs(document.id)]
    assert messages[0] == "LLM Request → fake-model"
    assert messages[1].startswith("LLM Response ← fake-model (")
    assert "duration_ms" in db.get_logs(document.id)[1]["metadata"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
