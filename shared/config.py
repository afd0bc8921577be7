"""Configuration management for the KnoRa retrieval server."""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import toml
from pydantic import BaseModel, Field, model_validator

logger = logging.getLogger(__name__)


class PathsConfig(BaseModel):
    """Configuration for file paths."""

    upload_dir: str = Field(
        default="data/uploads", description="Directory where uploaded files are kept"
    )
    database_dir: str = Field(
        default="data/vector_store",
        description="Directory to store the ChromaDB vector database",
    )


class IndexingConfig(BaseModel):
    """Configuration for document chunking."""

    chunk_size: int = Field(default=1000, gt=0, description="Characters per chunk")
    chunk_overlap: int = Field(
        default=200, ge=0, description="Characters shared by consecutive chunks"
    )

    @model_validator(mode="after")
    def _check_overlap(self) -> "IndexingConfig":
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError(
                f"chunk_overlap ({self.chunk_overlap}) must be smaller than "
                f"chunk_size ({self.chunk_size})"
            )
        return self


class RetrievalConfig(BaseModel):
    """Configuration for search and answer context."""

    default_k: int = Field(default=5, gt=0, description="Default number of results")
    score_threshold: float = Field(
        default=0.0, description="Default minimum similarity score"
    )
    max_context_chunks: int = Field(
        default=5, gt=0, description="Chunks placed in the answer prompt"
    )


class ServerConfig(BaseModel):
    """Configuration for the server."""

    host: str = Field(default="127.0.0.1", description="Server host")
    port: int = Field(default=8000, description="Server port")
    cors_origins: List[str] = Field(
        default_factory=lambda: ["*"], description="Allowed CORS origins"
    )


class EmbeddingModelConfig(BaseModel):
    """Configuration for embedding models."""

    provider: str = Field(
        default="sentence_transformers",
        description="Embedding provider: sentence_transformers, openai_endpoint, or hashing",
    )
    model_name: str = Field(
        default="all-MiniLM-L6-v2", description="Model name or identifier"
    )
    dimension: Optional[int] = Field(
        default=None,
        description="Vector dimension; inferred from the model when omitted",
    )
    endpoint_url: Optional[str] = Field(
        default=None, description="API endpoint URL for openai_endpoint provider"
    )
    api_key: Optional[str] = Field(
        default=None, description="API key for openai_endpoint provider"
    )
    wrapper_class: Optional[str] = Field(
        default=None,
        description="Dotted path of a custom embedding class taking this config",
    )
    cache_size: int = Field(
        default=1000, ge=0, description="Embeddings kept in memory (0 disables)"
    )


class GenerationModelConfig(BaseModel):
    """Configuration for text generation models."""

    model_name: str = Field(
        default="groq/openai/gpt-oss-120b", description="LiteLLM model identifier"
    )
    api_key: Optional[str] = Field(
        default=None,
        description="Provider API key; LiteLLM falls back to the environment",
    )
    timeout_seconds: float = Field(default=60.0, gt=0)
    parameters: Dict[str, Any] = Field(
        default_factory=lambda: {"temperature": 1.0, "max_tokens": 8192},
        description="Default parameters passed to litellm.completion()",
    )
    response_cache_size: int = Field(
        default=100, ge=0, description="Answers kept in memory (0 disables)"
    )


class RetryConfig(BaseModel):
    """Bounded retry policy applied by request handlers."""

    max_attempts: int = Field(default=3, ge=1)
    initial_backoff_seconds: float = Field(default=0.5, ge=0)
    max_backoff_seconds: float = Field(default=8.0, ge=0)


class LoggingConfig(BaseModel):
    """Configuration for log output."""

    level: str = Field(default="INFO", description="Root log level")


class Config(BaseModel):
    """Main configuration model."""

    paths: PathsConfig = Field(default_factory=PathsConfig)
    indexing: IndexingConfig = Field(default_factory=IndexingConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    embedding_model: EmbeddingModelConfig = Field(default_factory=EmbeddingModelConfig)
    generation_model: GenerationModelConfig = Field(
        default_factory=GenerationModelConfig
    )
    retry: RetryConfig = Field(default_factory=RetryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    prompts: Dict[str, Any] = Field(
        default_factory=dict, description="Loaded prompts from prompts.toml"
    )

    @classmethod
    def load_from_file(cls, config_path: str) -> "Config":
        """Load configuration from a TOML file."""
        config_file = Path(config_path)
        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_file, "r") as f:
            config_data = toml.load(f)

        return cls(**config_data)

    def get_upload_path(self) -> Path:
        """Get the upload directory as a Path object."""
        return Path(self.paths.upload_dir).expanduser().resolve()


def load_config(
    config_dir: Optional[str] = None,
    app_config_path: Optional[str] = None,
    prompts_config_path: Optional[str] = None,
) -> Config:
    """Load all configurations, handling CLI overrides."""
    base_dir = Path(config_dir) if config_dir else Path("config")

    app_path = Path(app_config_path) if app_config_path else base_dir / "app.toml"
    prompts_path = (
        Path(prompts_config_path) if prompts_config_path else base_dir / "prompts.toml"
    )

    try:
        logger.info(f"Loading app config from: {app_path}")
        with open(app_path, "r") as f:
            app_data = toml.load(f)
    except FileNotFoundError:
        logger.error(f"Application config file not found at {app_path}. Aborting.")
        raise

    try:
        logger.info(f"Loading prompts from: {prompts_path}")
        with open(prompts_path, "r") as f:
            prompts_data = toml.load(f)
    except FileNotFoundError:
        logger.warning(
            f"Prompts config file not found at {prompts_path}. Using built-in prompts."
        )
        prompts_data = {}

    config = Config(**app_data)
    config.prompts = prompts_data

    return config
