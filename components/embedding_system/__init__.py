"""Embedding providers behind a single EmbeddingModel interface."""

from .custom_embedding import CustomEmbeddingWrapperBase
from .embedding_factory import (
    CachedEmbeddingModel,
    EmbeddingModel,
    HashingEmbedding,
    OpenAIEndpointEmbedding,
    SentenceTransformersEmbedding,
    create_embedding_model,
)

__all__ = [
    "CachedEmbeddingModel",
    "CustomEmbeddingWrapperBase",
    "EmbeddingModel",
    "HashingEmbedding",
    "OpenAIEndpointEmbedding",
    "SentenceTransformersEmbedding",
    "create_embedding_model",
]
