"""Error taxonomy shared by every engine component.

Each error carries a kind so callers can pick user messaging and retry
eligibility without inspecting the concrete exception class.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Broad category of an engine failure."""

    VALIDATION = "validation"
    CAPABILITY = "capability"
    CONFIGURATION = "configuration"
    INTERNAL = "internal"
    CANCELLED = "cancelled"


class EngineError(Exception):
    """Base class for all errors raised by the retrieval engine."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def retryable(self) -> bool:
        """Whether a caller may retry the failed operation."""
        return False

    def to_dict(self) -> dict:
        return {"success": False, "error_kind": self.kind.value, "message": self.message}


class InvalidInputError(EngineError):
    """Raised when a request is rejected before reaching any capability."""

    kind = ErrorKind.VALIDATION


class NoContextError(InvalidInputError):
    """Raised when answer generation is requested without retrieved chunks."""


class ConfigurationError(EngineError):
    """Raised for invalid engine configuration."""

    kind = ErrorKind.CONFIGURATION


class DimensionMismatchError(ConfigurationError):
    """Raised when two vectors of different dimension are compared or stored."""

    def __init__(self, expected: int, actual: int):
        super().__init__(
            f"Embedding dimension mismatch: expected {expected}, got {actual}"
        )
        self.expected = expected
        self.actual = actual


class CapabilityError(EngineError):
    """Raised when an external capability (embedding, generation) fails."""

    kind = ErrorKind.CAPABILITY

    def __init__(self, message: str, transient: bool = False):
        super().__init__(message)
        self.transient = transient

    @property
    def retryable(self) -> bool:
        return self.transient


class EmbeddingUnavailableError(CapabilityError):
    """Raised when the embedding provider cannot produce vectors."""


class GenerationError(CapabilityError):
    """Raised when the language model call fails."""


class EmptyGenerationError(GenerationError):
    """Raised when the language model returns no text."""


class PersistenceError(EngineError):
    """Raised when the vector index cannot be written to disk."""

    kind = ErrorKind.INTERNAL


class IndexConsistencyError(EngineError):
    """Raised when the vector index breaks its entry-count invariant."""

    kind = ErrorKind.INTERNAL


class QueryCancelledError(EngineError):
    """Raised when a caller cancelled the operation."""

    kind = ErrorKind.CANCELLED
