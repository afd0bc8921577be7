import hashlib
import importlib
import logging
import re
from typing import Any, List, Optional, Protocol, cast

import numpy as np
from shared.cache import BoundedCache, hash_key
from shared.config import EmbeddingModelConfig
from shared.errors import ConfigurationError, EmbeddingUnavailableError

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r"[^\w]+", re.UNICODE)


class EmbeddingModel(Protocol):
    """Protocol for embedding models."""

    model_name: str

    @property
    def dimension(self) -> int:
        """Length of every vector this model produces."""
        ...

    def embed(self, texts: List[str]) -> np.ndarray:
        """Embed texts into a float32 array of shape (len(texts), dimension)."""
        ...


class SentenceTransformersEmbedding:
    """Wrapper for SentenceTransformers embedding models.

    The model is loaded on first use so that start-up does not block on a
    download when the dimension is already configured.
    """

    def __init__(self, model_name: str, dimension: Optional[int] = None):
        self.model_name = model_name
        self._dimension = dimension
        self._model: Any = None

    def _load(self) -> Any:
        if self._model is None:
            try:
                from sentence_transformers import SentenceTransformer

                self._model = SentenceTransformer(self.model_name)
                logger.info(f"Loaded SentenceTransformers model: {self.model_name}")
            except Exception as e:
                logger.error(f"Failed to load embedding model {self.model_name}: {e}")
                raise EmbeddingUnavailableError(
                    f"Could not load embedding model '{self.model_name}': {e}"
                ) from e
        return self._model

    @property
    def dimension(self) -> int:
        if self._dimension is None:
            self._dimension = int(self._load().get_sentence_embedding_dimension())
        return self._dimension

    def embed(self, texts: List[str]) -> np.ndarray:
        model = self._load()
        try:
            vectors = model.encode(
                texts, normalize_embeddings=True, convert_to_numpy=True
            )
        except Exception as e:
            logger.error(f"Error generating SentenceTransformers embeddings: {e}")
            raise EmbeddingUnavailableError(f"Embedding failed: {e}") from e
        return np.asarray(vectors, dtype=np.float32).reshape(len(texts), -1)


class OpenAIEndpointEmbedding:
    """Wrapper for OpenAI-compatible API endpoints."""

    def __init__(
        self,
        model_name: str,
        endpoint_url: str,
        api_key: str,
        dimension: Optional[int] = None,
    ):
        from openai import OpenAI

        self.model_name = model_name
        self._dimension = dimension
        self.client = OpenAI(api_key=api_key, base_url=endpoint_url)
        logger.info(
            f"Initialized OpenAI-compatible client for {model_name} at {endpoint_url}"
        )

    @property
    def dimension(self) -> int:
        if self._dimension is None:
            self._dimension = int(self.embed(["dimension probe"]).shape[1])
        return self._dimension

    def embed(self, texts: List[str]) -> np.ndarray:
        from openai import APIConnectionError, APITimeoutError, RateLimitError

        try:
            response = self.client.embeddings.create(model=self.model_name, input=texts)
        except (APIConnectionError, APITimeoutError, RateLimitError) as e:
            logger.error(f"Transient error from embedding endpoint: {e}")
            raise EmbeddingUnavailableError(
                f"Embedding endpoint unavailable: {e}", transient=True
            ) from e
        except Exception as e:
            logger.error(f"Error getting embeddings from OpenAI endpoint: {e}")
            raise EmbeddingUnavailableError(f"Embedding endpoint failed: {e}") from e

        vectors = [item.embedding for item in response.data]
        return np.asarray(vectors, dtype=np.float32).reshape(len(texts), -1)


class HashingEmbedding:
    """Deterministic term-frequency embedding over hashed token buckets.

    Needs no model download, so it serves offline deployments and tests.
    Tokens are lower-cased word characters longer than two characters.
    """

    def __init__(self, dimension: int = 384, model_name: str = "hashing-tf"):
        if dimension <= 0:
            raise ConfigurationError(f"dimension must be positive, got {dimension}")
        self.model_name = model_name
        self._dimension = dimension

    @property
    def dimension(self) -> int:
        return self._dimension

    @staticmethod
    def tokenize(text: str) -> List[str]:
        return [t for t in _TOKEN_RE.split(text.lower()) if len(t) > 2]

    def _bucket(self, token: str) -> int:
        digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
        return int.from_bytes(digest, "little") % self._dimension

    def _embed_one(self, text: str) -> np.ndarray:
        vector = np.zeros(self._dimension, dtype=np.float32)
        tokens = self.tokenize(text)
        for token in tokens:
            vector[self._bucket(token)] += 1.0 / len(tokens)

        norm = float(np.linalg.norm(vector))
        if norm == 0.0:
            # no usable tokens; fixed non-zero direction
            vector[: min(5, self._dimension)] = 0.1
            norm = float(np.linalg.norm(vector))
        return vector / norm

    def embed(self, texts: List[str]) -> np.ndarray:
        if not texts:
            return np.zeros((0, self._dimension), dtype=np.float32)
        return np.vstack([self._embed_one(t) for t in texts])


class CachedEmbeddingModel:
    """Memoises per-text embeddings of another model in a bounded LRU cache."""

    def __init__(self, model: EmbeddingModel, max_size: int = 1000):
        self.model = model
        self.model_name = model.model_name
        self.cache: BoundedCache[np.ndarray] = BoundedCache(
            max_size, name="embedding cache"
        )

    @property
    def dimension(self) -> int:
        return self.model.dimension

    def embed(self, texts: List[str]) -> np.ndarray:
        keys = [hash_key(self.model_name, t) for t in texts]
        found = [self.cache.get(k) for k in keys]
        missing = [i for i, vec in enumerate(found) if vec is None]

        if missing:
            fresh = self.model.embed([texts[i] for i in missing])
            for row, i in enumerate(missing):
                found[i] = fresh[row]
                self.cache.put(keys[i], fresh[row])

        if not texts:
            return np.zeros((0, self.dimension), dtype=np.float32)
        return np.vstack(cast(List[np.ndarray], found))

    def stats(self) -> dict:
        return self.cache.stats()


def create_embedding_model(config: EmbeddingModelConfig) -> EmbeddingModel:
    """Factory function to create embedding models based on configuration."""
    model: EmbeddingModel

    if config.wrapper_class:
        try:
            module_path, class_name = config.wrapper_class.rsplit(".", 1)
            module = importlib.import_module(module_path)
            wrapper_class = getattr(module, class_name)
        except (ImportError, AttributeError, ValueError) as e:
            logger.error(f"Failed to load wrapper class '{config.wrapper_class}': {e}")
            raise ConfigurationError(
                f"Could not load wrapper class '{config.wrapper_class}'"
            ) from e
        model = cast(EmbeddingModel, wrapper_class(config))

    else:
        provider = config.provider.lower()

        if provider == "sentence_transformers":
            model = SentenceTransformersEmbedding(config.model_name, config.dimension)

        elif provider == "openai_endpoint":
            if not config.endpoint_url or not config.api_key:
                raise ConfigurationError(
                    "endpoint_url and api_key are required for openai_endpoint provider"
                )
            model = OpenAIEndpointEmbedding(
                config.model_name,
                config.endpoint_url,
                config.api_key,
                config.dimension,
            )

        elif provider == "hashing":
            model = HashingEmbedding(
                dimension=config.dimension or 384, model_name=config.model_name
            )

        else:
            raise ConfigurationError(
                f"Unsupported embedding provider: {provider}. "
                f"Supported providers: sentence_transformers, openai_endpoint, hashing"
            )

    if config.cache_size > 0:
        return CachedEmbeddingModel(model, max_size=config.cache_size)
    return model
