"""Test fixtures and configuration."""

import logging
import sys

import pytest
from components.answering import GenerationParams, Prompt
from components.knowledge_service.main import KnowledgeService
from shared.config import Config, EmbeddingModelConfig, IndexingConfig, PathsConfig
from shared.initializer import build_service


# --- This function enables logging visibility during tests ---
def pytest_configure(config):
    """Configure logging to be visible for all tests."""
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(levelname)s:%(name)s:%(message)s",
        stream=sys.stdout,
    )


# -----------------------------------------------------------


class RecordingGenerator:
    """Answers with a fixed string and keeps every prompt it was given."""

    model_name = "recording"
    provider = "test"

    def __init__(self):
        self.prompts = []

    def generate(self, prompt: Prompt, params: GenerationParams) -> str:
        self.prompts.append(prompt)
        return "Grounded answer."


@pytest.fixture
def integration_config(tmp_path) -> Config:
    """Configuration with the offline hashing embedder and temp directories."""
    return Config(
        paths=PathsConfig(
            upload_dir=str(tmp_path / "uploads"),
            database_dir=str(tmp_path / "vector_store"),
        ),
        indexing=IndexingConfig(chunk_size=1000, chunk_overlap=200),
        embedding_model=EmbeddingModelConfig(
            provider="hashing", dimension=384, cache_size=0
        ),
    )


@pytest.fixture
def recording_generator() -> RecordingGenerator:
    return RecordingGenerator()


@pytest.fixture
def knowledge_service(integration_config, recording_generator) -> KnowledgeService:
    """A fully wired service built the same way the server builds it."""
    return build_service(integration_config, generator=recording_generator)
