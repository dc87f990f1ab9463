"""Test chunker functionality."""
import math

import pytest
from ingestion.chunker import chunk_text


def test_single_chunk():
    """Test that a short text becomes exactly one chunk equal to the text."""
    text = "1:1 In the beginning was the word."
    chunks = list(chunk_text(text, max_size=1000))

    assert len(chunks) == 1
    assert chunks[0].text == text
    assert chunks[0].start == 0
    assert chunks[0].end == len(text)
    assert chunks[0].index == 0
    assert chunks[0].total == 1


def test_text_exactly_max_size_is_single():
    """Test that the boundary length still fits in one chunk."""
    seq = chunk_text("x" * 100, max_size=100)

    assert seq.is_single
    assert len(list(seq)) == 1


def test_sixty_thousand_chars():
    """Test that 60,000 characters at 25,000 split 25k/25k/10k."""
    seq = chunk_text("a" * 60000, max_size=25000)
    chunks = list(seq)

    assert len(seq) == 3
    assert [len(c.text) for c in chunks] == [25000, 25000, 10000]
    assert [c.index for c in chunks] == [0, 1, 2]
    assert all(c.total == 3 for c in chunks)
    assert not seq.is_single


@pytest.mark.parametrize("length,max_size", [(1, 1), (7, 3), (100, 10), (101, 10), (999, 250)])
def test_chunks_reassemble_text(length, max_size):
    """Test that concatenating chunks reproduces the text and counts match."""
    text = "".join(chr(ord("a") + i % 26) for i in range(length))
    chunks = list(chunk_text(text, max_size=max_size))

    assert "".join(c.text for c in chunks) == text
    assert len(chunks) == math.ceil(length / max_size)

    # Contiguous and non-overlapping
    for previous, current in zip(chunks, chunks[1:]):
        assert previous.end == current.start


def test_sequence_is_restartable():
    """Test that iterating twice yields the same chunks."""
    seq = chunk_text("abcdefghij", max_size=4)

    first = [c.text for c in seq]
    second = [c.text for c in seq]

    assert first == second == ["abcd", "efgh", "ij"]


def test_invalid_max_size():
    """Test that a non-positive max size is rejected."""
    with pytest.raises(ValueError):
        chunk_text("text", max_size=0)


def test_chunk_label():
    """Test the one-based position label."""
    chunks = list(chunk_text("abcdef", max_size=2))
    assert chunks[1].label == "2/3"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
