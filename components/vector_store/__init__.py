"""In-memory snapshot vector index backed by ChromaDB."""

from .vector_store import VectorEntry, VectorStore

__all__ = ["VectorEntry", "VectorStore"]
