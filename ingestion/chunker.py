"""Fixed-size text chunking module."""
import math
from typing import Iterator

from ingestion.models import TextChunk
import config


class ChunkSequence:
    """Lazy, restartable sequence of fixed-size chunks over a text.

    Chunks are contiguous and non-overlapping; concatenating them in order
    reproduces the original text. Boundaries are not aligned to paragraphs
    or verses, so structures spanning two chunks are left for the merge step
    to reassemble.
    """

    def __init__(self, text: str, max_size: int = config.MAX_CHUNK_SIZE):
        """Initialize chunk sequence.

        Args:
            text: Full document text
            max_size: Maximum chunk length in characters

        Raises:
            ValueError: If max_size is not positive
        """
        if max_size <= 0:
            raise ValueError(f"max_size must be positive, got {max_size}")

        self.text = text
        self.max_size = max_size
        self.total = math.ceil(len(text) / max_size)

    def __len__(self) -> int:
        return self.total

    def __iter__(self) -> Iterator[TextChunk]:
        start = 0
        index = 0
        while start < len(self.text):
            end = min(start + self.max_size, len(self.text))
            yield TextChunk(
                text=self.text[start:end],
                start=start,
                end=end,
                index=index,
                total=self.total
            )
            start = end
            index += 1

    @property
    def is_single(self) -> bool:
        """True when the whole text fits in one chunk."""
        return len(self.text) <= self.max_size


def chunk_text(text: str, max_size: int = config.MAX_CHUNK_SIZE) -> ChunkSequence:
    """Split text into ordered chunks of at most ``max_size`` characters.

    Args:
        text: Input text
        max_size: Maximum chunk length in characters

    Returns:
        ChunkSequence that can be iterated any number of times
    """
    return ChunkSequence(text, max_size)
