"""Fixed-size character chunking with overlap."""

import logging
from typing import List

from components.knowledge_service.models import DocumentChunk
from shared.errors import ConfigurationError

logger = logging.getLogger(__name__)


class TextChunker:
    """Splits text into overlapping windows of ``chunk_size`` characters.

    Chunk ``i`` starts at ``i * (chunk_size - chunk_overlap)``. The final chunk
    ends at the end of the text and may be shorter than ``chunk_size``.
    """

    def __init__(self, chunk_size: int = 1000, chunk_overlap: int = 200):
        if chunk_size <= 0:
            raise ConfigurationError(f"chunk_size must be positive, got {chunk_size}")
        if chunk_overlap < 0:
            raise ConfigurationError(
                f"chunk_overlap must be non-negative, got {chunk_overlap}"
            )
        if chunk_overlap >= chunk_size:
            raise ConfigurationError(
                f"chunk_overlap ({chunk_overlap}) must be smaller than "
                f"chunk_size ({chunk_size})"
            )
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap

    @property
    def stride(self) -> int:
        return self.chunk_size - self.chunk_overlap

    def chunk(self, text: str) -> List[DocumentChunk]:
        """Split ``text`` into ordered chunks. Empty text yields no chunks."""
        length = len(text)
        chunks: List[DocumentChunk] = []
        start = 0

        while start < length:
            end = min(start + self.chunk_size, length)
            piece = text[start:end]
            chunks.append(
                DocumentChunk(
                    chunk_id=len(chunks),
                    text=piece,
                    size=len(piece),
                    start_char=start,
                    end_char=end,
                )
            )
            if end >= length:
                break
            start += self.stride

        logger.debug(f"Split {length} characters into {len(chunks)} chunks")
        return chunks
