"""Query-side retrieval: embed the query and search the vector store."""

import logging
from typing import List, Optional

from components.embedding_system import EmbeddingModel
from components.knowledge_service.models import SearchResult
from components.vector_store import VectorStore
from shared.cancellation import CancellationToken, check_cancelled
from shared.errors import EmbeddingUnavailableError, EngineError, InvalidInputError

logger = logging.getLogger(__name__)


class Retriever:
    """Turns a natural-language query into ranked chunks."""

    def __init__(
        self,
        embedding_model: EmbeddingModel,
        vector_store: VectorStore,
        default_k: int = 5,
        default_score_threshold: float = 0.0,
    ):
        self.embedding_model = embedding_model
        self.vector_store = vector_store
        self.default_k = default_k
        self.default_score_threshold = default_score_threshold

    def retrieve(
        self,
        query_text: str,
        k: Optional[int] = None,
        score_threshold: Optional[float] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[SearchResult]:
        """
        Retrieve up to ``k`` chunks relevant to ``query_text``.

        Input is validated before the embedding model is called. An empty
        result is a normal outcome, not an error.

        Raises:
            InvalidInputError: Blank query or non-positive k.
            EmbeddingUnavailableError: The embedding model failed.
            QueryCancelledError: The token was cancelled between stages.
        """
        if not query_text or not query_text.strip():
            raise InvalidInputError("Query cannot be empty")
        k = self.default_k if k is None else k
        if k <= 0:
            raise InvalidInputError(f"k must be positive, got {k}")
        threshold = (
            self.default_score_threshold if score_threshold is None else score_threshold
        )

        try:
            query_vector = self.embedding_model.embed([query_text])[0]
        except EngineError:
            raise
        except Exception as e:
            logger.error(f"Embedding failed for query: {e}")
            raise EmbeddingUnavailableError(f"Embedding failed: {e}") from e
        check_cancelled(cancel_token, "embed")

        results = self.vector_store.search(query_vector, k=k, score_threshold=threshold)
        check_cancelled(cancel_token, "search")

        if not results:
            logger.info(
                f"No chunks matched query '{query_text}' (k={k}, threshold={threshold})"
            )
        else:
            logger.debug(f"Retrieved {len(results)} chunks for query '{query_text}'")
        return results
