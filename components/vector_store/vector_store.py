"""Vector store management for document embeddings and semantic search.

Searches run against an immutable in-memory snapshot; ChromaDB is the durable
backing store and is read once at start-up. Writers serialise on a lock, build
a new snapshot, persist it, and publish it with a single reference assignment,
so readers always see either the whole pre-write or the whole post-write state.
"""

import logging
import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import chromadb
import numpy as np
from chromadb.config import Settings
from components.knowledge_service.models import (
    DocumentInfo,
    ProcessedDocument,
    SearchResult,
    VectorStoreStats,
)
from shared.errors import (
    DimensionMismatchError,
    IndexConsistencyError,
    InvalidInputError,
    PersistenceError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VectorEntry:
    """One indexed chunk: its unit vector plus a back-reference to its document."""

    document_id: str
    chunk_index: int
    text: str
    file_name: str
    file_type: str
    chunk_size: int
    seq: int
    embedding: np.ndarray = field(repr=False, compare=False)

    @property
    def record_id(self) -> str:
        return f"{self.document_id}::{self.chunk_index}::{self.seq}"


@dataclass(frozen=True)
class _Snapshot:
    entries: Tuple[VectorEntry, ...]
    documents: Mapping[str, DocumentInfo]
    matrix: np.ndarray

    @classmethod
    def build(
        cls,
        entries: Sequence[VectorEntry],
        documents: Dict[str, DocumentInfo],
        dimension: int,
    ) -> "_Snapshot":
        if entries:
            matrix = np.vstack([e.embedding for e in entries]).astype(np.float32)
        else:
            matrix = np.zeros((0, dimension), dtype=np.float32)
        matrix.setflags(write=False)
        return cls(tuple(entries), MappingProxyType(dict(documents)), matrix)


def _normalize_rows(vectors: np.ndarray) -> np.ndarray:
    norms = np.linalg.norm(vectors, axis=1, keepdims=True)
    if np.any(norms == 0):
        raise InvalidInputError("Embedding vectors must have non-zero norm")
    return (vectors / norms).astype(np.float32)


class VectorStore:
    """Owns every indexed vector and answers cosine-similarity queries."""

    def __init__(
        self,
        dimension: int,
        persist_directory: str = "data/vector_store",
        collection_name: str = "knora_chunks",
        embedding_model_name: str = "",
    ):
        """Initialize the vector store.

        Args:
            dimension: Vector dimension every entry and query must have
            persist_directory: Directory to persist the ChromaDB data
            collection_name: Name of the ChromaDB collection
            embedding_model_name: Reported by stats()
        """
        if dimension <= 0:
            raise InvalidInputError(f"dimension must be positive, got {dimension}")

        self.dimension = dimension
        self.persist_directory = Path(persist_directory)
        self.collection_name = collection_name
        self.embedding_model_name = embedding_model_name

        self._write_lock = threading.Lock()
        self._next_seq = 0

        # Ensure the persist directory exists
        self.persist_directory.mkdir(parents=True, exist_ok=True)

        self.client = chromadb.PersistentClient(
            path=str(self.persist_directory),
            settings=Settings(anonymized_telemetry=False, allow_reset=True),
        )
        self.collection = self._open_collection()
        self._snapshot = self._load_snapshot()
        logger.info(
            f"Vector store ready at {self.persist_directory}: "
            f"{len(self._snapshot.entries)} vectors, "
            f"{len(self._snapshot.documents)} documents"
        )

    def _open_collection(self) -> Any:
        return self.client.get_or_create_collection(
            name=self.collection_name,
            metadata={"description": "KnoRa document chunks"},
        )

    def _load_snapshot(self) -> _Snapshot:
        """Rebuild the in-memory snapshot from the persisted collection."""
        records = self.collection.get(include=["embeddings", "documents", "metadatas"])
        ids = records.get("ids") or []
        if len(ids) == 0:
            return _Snapshot.build([], {}, self.dimension)

        embeddings = np.asarray(records["embeddings"], dtype=np.float32)
        if embeddings.ndim != 2 or embeddings.shape[1] != self.dimension:
            actual = embeddings.shape[1] if embeddings.ndim == 2 else 0
            logger.error(
                f"Persisted vectors in {self.persist_directory} have dimension "
                f"{actual}, configured model produces {self.dimension}"
            )
            raise DimensionMismatchError(self.dimension, actual)

        texts = records.get("documents") or [""] * len(ids)
        metadatas = records.get("metadatas") or [{}] * len(ids)

        entries = []
        file_sizes: Dict[str, int] = {}
        for text, metadata, vector in zip(texts, metadatas, embeddings):
            document_id = str(metadata["document_id"])
            entries.append(
                VectorEntry(
                    document_id=document_id,
                    chunk_index=int(metadata["chunk_index"]),
                    text=str(text or ""),
                    file_name=str(metadata.get("file_name", "")),
                    file_type=str(metadata.get("file_type", "")),
                    chunk_size=int(metadata.get("chunk_size", len(text or ""))),
                    seq=int(metadata["seq"]),
                    embedding=vector,
                )
            )
            file_sizes[document_id] = int(metadata.get("file_size", 0))

        entries.sort(key=lambda e: e.seq)
        documents: Dict[str, DocumentInfo] = {}
        for entry in entries:
            info = documents.get(entry.document_id)
            documents[entry.document_id] = DocumentInfo(
                file_path=entry.document_id,
                file_name=entry.file_name,
                file_type=entry.file_type,
                file_size=file_sizes[entry.document_id],
                num_chunks=(info.num_chunks if info else 0) + 1,
            )

        self._next_seq = entries[-1].seq + 1
        snapshot = _Snapshot.build(entries, documents, self.dimension)
        self.verify_integrity(snapshot)
        return snapshot

    @staticmethod
    def _metadata(entry: VectorEntry, file_size: int) -> Dict[str, Any]:
        return {
            "document_id": entry.document_id,
            "file_name": entry.file_name,
            "file_type": entry.file_type,
            "file_size": file_size,
            "chunk_index": entry.chunk_index,
            "chunk_size": entry.chunk_size,
            "seq": entry.seq,
        }

    def insert(self, document: ProcessedDocument, embeddings: np.ndarray) -> int:
        """Index every chunk of ``document``, replacing any previous version.

        The write is all-or-nothing: on any failure the store is unchanged.

        Args:
            document: The processed document; its file_path is its identity
            embeddings: One vector per chunk, in chunk order

        Returns:
            Number of vectors indexed for the document
        """
        vectors = np.asarray(embeddings, dtype=np.float32)
        if document.num_chunks == 0:
            raise InvalidInputError(f"Document {document.file_name} has no chunks")
        if vectors.ndim != 2 or vectors.shape[0] != document.num_chunks:
            raise InvalidInputError(
                f"Expected {document.num_chunks} embeddings for "
                f"{document.file_name}, got {vectors.shape[0] if vectors.ndim else 0}"
            )
        if vectors.shape[1] != self.dimension:
            raise DimensionMismatchError(self.dimension, vectors.shape[1])
        unit = _normalize_rows(vectors)

        document_id = document.file_path

        with self._write_lock:
            current = self._snapshot
            seq = self._next_seq
            new_entries = [
                VectorEntry(
                    document_id=document_id,
                    chunk_index=chunk.chunk_id,
                    text=chunk.text,
                    file_name=document.file_name,
                    file_type=document.file_type,
                    chunk_size=chunk.size,
                    seq=seq + i,
                    embedding=unit[i],
                )
                for i, chunk in enumerate(document.chunks)
            ]
            old_ids = [
                e.record_id for e in current.entries if e.document_id == document_id
            ]

            entries = [e for e in current.entries if e.document_id != document_id]
            entries.extend(new_entries)
            documents = dict(current.documents)
            documents[document_id] = DocumentInfo(
                file_path=document_id,
                file_name=document.file_name,
                file_type=document.file_type,
                file_size=document.file_size,
                num_chunks=document.num_chunks,
            )
            snapshot = _Snapshot.build(entries, documents, self.dimension)
            self.verify_integrity(snapshot)

            self._persist_replace(new_entries, document.file_size, old_ids)

            self._next_seq = seq + len(new_entries)
            self._snapshot = snapshot

        action = "Replaced" if old_ids else "Indexed"
        logger.info(f"{action} {len(new_entries)} chunks for {document_id}")
        return len(new_entries)

    def _batch_size(self) -> int:
        return max(1, int(self.client.get_max_batch_size()))

    def _add_entries(self, entries: List[VectorEntry], file_size: int) -> None:
        """Add entries in slices ChromaDB accepts; on failure remove what was added."""
        size = self._batch_size()
        added: List[str] = []
        try:
            for start in range(0, len(entries), size):
                batch = entries[start : start + size]
                ids = [e.record_id for e in batch]
                self.collection.add(
                    ids=ids,
                    embeddings=[e.embedding.tolist() for e in batch],
                    documents=[e.text for e in batch],
                    metadatas=[self._metadata(e, file_size) for e in batch],
                )
                added.extend(ids)
        except Exception as e:
            logger.error(f"Error persisting chunks to vector store: {e}")
            if added:
                self._rollback(added)
            raise PersistenceError(f"Failed to persist vectors: {e}") from e

    def _delete_ids(self, ids: List[str]) -> None:
        size = self._batch_size()
        for start in range(0, len(ids), size):
            self.collection.delete(ids=ids[start : start + size])

    def _rollback(self, ids: List[str]) -> None:
        try:
            self._delete_ids(ids)
        except Exception as rollback_error:
            logger.critical(
                f"Rollback failed, persisted index may hold stale chunks: "
                f"{rollback_error}"
            )

    def _persist_replace(
        self, new_entries: List[VectorEntry], file_size: int, old_ids: List[str]
    ) -> None:
        self._add_entries(new_entries, file_size)

        if not old_ids:
            return
        try:
            self._delete_ids(old_ids)
        except Exception as e:
            logger.error(f"Error removing replaced chunks, rolling back: {e}")
            self._rollback([entry.record_id for entry in new_entries])
            raise PersistenceError(f"Failed to replace vectors: {e}") from e

    def search(
        self,
        query_vector: np.ndarray,
        k: int = 5,
        score_threshold: float = 0.0,
    ) -> List[SearchResult]:
        """Search for the chunks most similar to ``query_vector``.

        Args:
            query_vector: Query embedding of the store's dimension
            k: Maximum number of results to return
            score_threshold: Minimum cosine similarity for a result

        Returns:
            Up to ``k`` results by descending similarity; ties keep insertion order
        """
        if k <= 0:
            raise InvalidInputError(f"k must be positive, got {k}")

        snapshot = self._snapshot
        q = np.asarray(query_vector, dtype=np.float32).ravel()
        if q.shape[0] != self.dimension:
            raise DimensionMismatchError(self.dimension, q.shape[0])
        if not snapshot.entries:
            return []

        norm = float(np.linalg.norm(q))
        if norm == 0.0:
            raise InvalidInputError("Query vector must have non-zero norm")

        scores = np.clip(snapshot.matrix @ (q / norm), -1.0, 1.0)
        order = np.argsort(-scores, kind="stable")

        results: List[SearchResult] = []
        for idx in order:
            score = float(scores[idx])
            if score < score_threshold:
                break
            entry = snapshot.entries[idx]
            results.append(
                SearchResult(
                    file_path=entry.document_id,
                    file_name=entry.file_name,
                    file_type=entry.file_type,
                    chunk_id=entry.chunk_index,
                    chunk_size=entry.chunk_size,
                    text=entry.text,
                    similarity_score=score,
                )
            )
            if len(results) == k:
                break
        return results

    def delete(self, document_id: str) -> bool:
        """Remove every chunk of a document.

        Returns:
            True if the document was indexed, False if there was nothing to remove
        """
        with self._write_lock:
            current = self._snapshot
            if document_id not in current.documents:
                logger.info(f"Delete requested for unindexed document: {document_id}")
                return False

            ids = [e.record_id for e in current.entries if e.document_id == document_id]
            entries = [e for e in current.entries if e.document_id != document_id]
            documents = dict(current.documents)
            del documents[document_id]
            snapshot = _Snapshot.build(entries, documents, self.dimension)
            self.verify_integrity(snapshot)

            try:
                self._delete_ids(ids)
            except Exception as e:
                logger.error(f"Error removing chunks for {document_id}: {e}")
                raise PersistenceError(f"Failed to delete vectors: {e}") from e

            self._snapshot = snapshot

        logger.info(f"Removed {len(ids)} chunks from {document_id}")
        return True

    def clear(self) -> None:
        """Clear all data from the vector store.

        Once the collection is dropped the empty snapshot is published, even if
        re-creating the collection fails.
        """
        with self._write_lock:
            try:
                self.client.delete_collection(name=self.collection_name)
            except Exception as e:
                logger.error(f"Error clearing vector store: {e}")
                raise PersistenceError(f"Failed to clear vector store: {e}") from e
            self._snapshot = _Snapshot.build([], {}, self.dimension)

            try:
                self.collection = self._open_collection()
            except Exception as e:
                logger.error(f"Error re-creating collection after clear: {e}")
                raise PersistenceError(
                    f"Vector store cleared but collection could not be re-created: {e}"
                ) from e
        logger.info("Cleared all data from vector store")

    def verify_integrity(self, snapshot: Optional[_Snapshot] = None) -> None:
        """Check that the entry count matches the documents' chunk counts."""
        snapshot = snapshot or self._snapshot
        expected = sum(d.num_chunks for d in snapshot.documents.values())
        actual = len(snapshot.entries)
        if expected != actual or snapshot.matrix.shape[0] != actual:
            logger.critical(
                f"Vector index inconsistent: {actual} entries, "
                f"{expected} chunks across {len(snapshot.documents)} documents"
            )
            raise IndexConsistencyError(
                f"Index holds {actual} entries but documents account for {expected}"
            )

    def list_documents(self) -> List[DocumentInfo]:
        return list(self._snapshot.documents.values())

    def get_chunk_count(self, document_id: Optional[str] = None) -> int:
        """Number of indexed chunks, in total or for one document."""
        snapshot = self._snapshot
        if document_id is None:
            return len(snapshot.entries)
        info = snapshot.documents.get(document_id)
        return info.num_chunks if info else 0

    def storage_size_mb(self) -> float:
        total = 0
        for root, _dirs, files in os.walk(self.persist_directory):
            for name in files:
                try:
                    total += os.path.getsize(os.path.join(root, name))
                except OSError:
                    # file vanished during the walk
                    continue
        return round(total / (1024 * 1024), 2)

    def stats(self) -> VectorStoreStats:
        snapshot = self._snapshot
        return VectorStoreStats(
            total_vectors=len(snapshot.entries),
            total_documents=len(snapshot.documents),
            embedding_model=self.embedding_model_name,
            dimension=self.dimension,
            store_path=str(self.persist_directory),
            documents=list(snapshot.documents.values()),
            storage_size_mb=self.storage_size_mb(),
        )
