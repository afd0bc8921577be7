"""Fixed-size overlapping text chunking."""

from .chunker import TextChunker

__all__ = ["TextChunker"]
