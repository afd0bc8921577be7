from abc import ABC, abstractmethod
from typing import List

import numpy as np
from shared.config import EmbeddingModelConfig


class CustomEmbeddingWrapperBase(ABC):
    """
    Abstract base class for pluggable embedding model wrappers.

    Subclasses are loaded through ``embedding_model.wrapper_class`` in app.toml
    and receive the embedding section of the configuration.
    """

    model_name: str

    @abstractmethod
    def __init__(self, config: EmbeddingModelConfig):
        """
        Initializes the custom wrapper.
        Args:
            config: The embedding model configuration from app.toml.
        """
        pass

    @property
    @abstractmethod
    def dimension(self) -> int:
        pass

    @abstractmethod
    def embed(self, texts: List[str]) -> np.ndarray:
        """Return a float32 array of shape (len(texts), dimension)."""
        pass
