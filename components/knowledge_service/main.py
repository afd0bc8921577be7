"""
This service encapsulates all the business logic of the retrieval engine.
It is completely decoupled from any web framework (like FastAPI) and serves as the
single owner of the engine's components.

Responsibilities:
- Ingesting uploaded files into the vector index.
- Semantic search and grounded answer generation.
- Index maintenance (delete, clear, stats).
- Upload directory accounting and cleanup.
"""

import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, BinaryIO, Dict, List, Optional

import numpy as np
from components.answering import SUPPORTED_MODELS, AnswerOrchestrator, TextGenerator
from components.document_processing import (
    MAX_FILE_SIZE_BYTES,
    DocumentProcessor,
    supported_formats,
    validate_filename,
)
from components.embedding_system import EmbeddingModel
from components.retrieval import Retriever
from components.storage_lifecycle import StorageManager
from components.vector_store import VectorStore
from shared.cache import BoundedCache
from shared.cancellation import CancellationToken, check_cancelled
from shared.config import Config
from shared.errors import EmbeddingUnavailableError, EngineError, InvalidInputError

from .models import (
    AnswerRecord,
    AskResult,
    CleanupResult,
    LLMModel,
    ProcessedDocument,
    SearchResult,
    StorageInfo,
    SupportedFormat,
    VectorStoreStats,
)

logger = logging.getLogger(__name__)

UPLOAD_READ_SIZE = 1024 * 1024


class KnowledgeService:
    """The central service for all ingestion and query logic."""

    def __init__(
        self,
        config: Config,
        vector_store: VectorStore,
        embedding_model: EmbeddingModel,
        generator: TextGenerator,
        processor: DocumentProcessor,
        storage_manager: Optional[StorageManager] = None,
    ):
        """
        Initializes the KnowledgeService with its required dependencies.

        Args:
            config: The application's configuration object.
            vector_store: The index every read and write goes through.
            embedding_model: Embeds chunks at ingestion and queries at search.
            generator: Language model used for answers.
            processor: Extracts and chunks uploaded files.
            storage_manager: Upload directory manager; built from config if omitted.
        """
        self.config = config
        self.vector_store = vector_store
        self.embedding_model = embedding_model
        self.generator = generator
        self.processor = processor
        self.upload_dir = Path(config.paths.upload_dir)
        self.storage_manager = storage_manager or StorageManager(str(self.upload_dir))
        self._commit_lock = threading.Lock()
        self.retriever = Retriever(
            embedding_model,
            vector_store,
            default_k=config.retrieval.default_k,
            default_score_threshold=config.retrieval.score_threshold,
        )
        self.orchestrator = AnswerOrchestrator(
            generator,
            prompts=config.prompts,
            max_context_chunks=config.retrieval.max_context_chunks,
            response_cache=BoundedCache(
                config.generation_model.response_cache_size, name="response cache"
            ),
        )

    def _embed_chunks(self, document: ProcessedDocument) -> np.ndarray:
        try:
            return self.embedding_model.embed([c.text for c in document.chunks])
        except EngineError:
            raise
        except Exception as e:
            logger.error(f"Embedding failed for {document.file_name}: {e}")
            raise EmbeddingUnavailableError(f"Embedding failed: {e}") from e

    def ingest_file(
        self, file_path: str, original_name: Optional[str] = None
    ) -> ProcessedDocument:
        """
        Processes a file on disk and indexes its chunks.

        Embedding runs before the index write lock is taken, so concurrent
        searches are never blocked by a slow embedding model.

        Returns:
            The processed document.
        """
        document = self.processor.process_file(file_path, original_name)
        embeddings = self._embed_chunks(document)
        self.vector_store.insert(document, embeddings)
        return document

    def ingest_upload(self, filename: str, stream: BinaryIO) -> ProcessedDocument:
        """
        Stores an uploaded file under ``upload_<name>`` and indexes it.

        The upload is streamed into a temporary file in the upload directory
        with the size ceiling enforced while reading. It replaces
        ``upload_<name>`` only after it has been indexed, so a failed upload
        leaves any earlier file of the same name untouched.
        """
        validate_filename(filename)
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        stored_path = self.upload_dir / f"upload_{filename}"

        incoming = tempfile.NamedTemporaryFile(
            dir=self.upload_dir, prefix=".incoming_", delete=False
        )
        temp_path = Path(incoming.name)
        try:
            written = 0
            with incoming as out:
                while True:
                    block = stream.read(UPLOAD_READ_SIZE)
                    if not block:
                        break
                    written += len(block)
                    if written > MAX_FILE_SIZE_BYTES:
                        raise InvalidInputError(
                            f"File too large "
                            f"(max {MAX_FILE_SIZE_BYTES // (1024 * 1024)}MB)"
                        )
                    out.write(block)
            if written == 0:
                raise InvalidInputError("Uploaded file is empty")
            logger.info(f"Received upload {filename} ({written} bytes)")

            document = self.processor.process_file(
                str(temp_path), original_name=filename
            ).model_copy(update={"file_path": str(stored_path)})
            embeddings = self._embed_chunks(document)

            # Index write and rename commit together so same-name uploads agree.
            with self._commit_lock:
                self.vector_store.insert(document, embeddings)
                os.replace(temp_path, stored_path)
            logger.info(f"Stored upload {filename} at {stored_path}")
            return document
        except Exception:
            temp_path.unlink(missing_ok=True)
            logger.warning(f"Discarded upload {filename} after failure")
            raise

    def search(
        self,
        query: str,
        k: Optional[int] = None,
        score_threshold: Optional[float] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[SearchResult]:
        return self.retriever.retrieve(query, k, score_threshold, cancel_token)

    def answer(
        self,
        query: str,
        retrieved_chunks: List[SearchResult],
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> AnswerRecord:
        if not query or not query.strip():
            raise InvalidInputError("Query cannot be empty")
        params = self.config.generation_model.parameters
        return self.orchestrator.answer(
            query,
            retrieved_chunks,
            max_tokens=int(max_tokens or params.get("max_tokens", 8192)),
            temperature=float(
                params.get("temperature", 1.0) if temperature is None else temperature
            ),
            cancel_token=cancel_token,
        )

    def ask(
        self,
        query: str,
        k: Optional[int] = None,
        score_threshold: Optional[float] = None,
        generate_answer: bool = True,
        cancel_token: Optional[CancellationToken] = None,
    ) -> AskResult:
        """
        Retrieves chunks and, when any are found, generates an answer from them.

        An empty retrieval yields an empty result without calling the model.
        """
        results = self.search(query, k, score_threshold, cancel_token)
        if not generate_answer or not results:
            return AskResult(query=query, results=results)

        check_cancelled(cancel_token, "retrieved")
        record = self.answer(query, results, cancel_token=cancel_token)
        return AskResult(query=query, results=results, answer=record)

    def delete_document(self, file_path: str) -> bool:
        if not file_path:
            raise InvalidInputError("file_path is required")
        return self.vector_store.delete(file_path)

    def clear_index(self) -> None:
        self.vector_store.clear()

    def index_stats(self) -> VectorStoreStats:
        return self.vector_store.stats()

    def storage_stats(self) -> StorageInfo:
        return self.storage_manager.stats()

    def cleanup_storage(self) -> CleanupResult:
        return self.storage_manager.cleanup()

    def supported_formats(self) -> List[SupportedFormat]:
        return supported_formats()

    def list_models(self) -> List[LLMModel]:
        return list(SUPPORTED_MODELS)

    def model_info(self) -> Dict[str, Any]:
        info: Dict[str, Any] = {
            "provider": self.generator.provider,
            "model": self.generator.model_name,
            "supports_streaming": True,
            "max_tokens": self.config.generation_model.parameters.get(
                "max_tokens", 8192
            ),
        }
        model_info = getattr(self.generator, "model_info", None)
        if callable(model_info):
            info.update(model_info())
        info["cache"] = self.orchestrator.cache_stats()
        return info
