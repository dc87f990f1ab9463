"""Shared fixtures for the pipeline tests."""
import base64
import json

import pytest

from storage.database import Database


class FakeLLM:
    """Stands in for the completion client; replays canned responses."""

    model = "fake-model"

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def complete(self, system_prompt, user_prompt, max_tokens=16000, temperature=0.3):
        self.calls.append({
            "system_prompt": system_prompt,
            "user_prompt": user_prompt,
            "max_tokens": max_tokens,
            "temperature": temperature,
        })
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def document_json(title="Test Book", chapters=None, language="Sanskrit", description="A test text"):
    """Serialize a document in the shape the model is asked to return."""
    return json.dumps({
        "title": title,
        "description": description,
        "language": language,
        "chapters": chapters or [],
    })


def chapter(number, verses, title=None):
    return {
        "number": number,
        "title": title or f"Chapter {number}",
        "verses": [
            {"number": v, "originalText": f"original {number}:{v}", "translation": f"translation {number}:{v}"}
            for v in verses
        ],
    }


def inline_reference(data: bytes, file_type: str = "text/plain") -> str:
    return f"data:{file_type};base64,{base64.b64encode(data).decode('ascii')}"


@pytest.fixture
def db(tmp_path):
    return Database(db_path=tmp_path / "test.db")


@pytest.fixture
def text_document(db):
    """Register a plain-text document and return a factory for it."""
    def _make(text: str, file_type: str = "text/plain"):
        data = text.encode("utf-8")
        return db.insert_document(
            filename="scripture.txt",
            file_type=file_type,
            size=len(data),
            raw_text_url=inline_reference(data, file_type)
        )
    return _make
