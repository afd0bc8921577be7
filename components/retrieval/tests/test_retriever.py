"""Tests for the Retriever."""

from unittest.mock import Mock

import numpy as np
import pytest
from components.chunking import TextChunker
from components.embedding_system import HashingEmbedding
from components.knowledge_service.models import ProcessedDocument, SearchResult
from components.retrieval import Retriever
from components.vector_store import VectorStore
from shared.cancellation import CancellationToken
from shared.errors import (
    EmbeddingUnavailableError,
    InvalidInputError,
    QueryCancelledError,
)


def result(score: float) -> SearchResult:
    return SearchResult(
        file_path="/docs/a.txt",
        file_name="a.txt",
        file_type=".txt",
        chunk_id=0,
        chunk_size=5,
        text="hello",
        similarity_score=score,
    )


@pytest.fixture
def embedding_model():
    return HashingEmbedding(dimension=32)


@pytest.fixture
def mock_store():
    store = Mock(spec=VectorStore)
    store.search.return_value = [result(0.9)]
    return store


@pytest.fixture
def retriever(embedding_model, mock_store):
    return Retriever(embedding_model, mock_store, default_k=4, default_score_threshold=0.2)


class TestRetriever:
    def test_defaults_applied(self, retriever, mock_store):
        results = retriever.retrieve("what is solar power")

        assert results == [result(0.9)]
        _, kwargs = mock_store.search.call_args
        assert kwargs["k"] == 4
        assert kwargs["score_threshold"] == 0.2

    def test_explicit_arguments(self, retriever, mock_store):
        retriever.retrieve("query text", k=2, score_threshold=0.0)
        _, kwargs = mock_store.search.call_args
        assert kwargs["k"] == 2
        assert kwargs["score_threshold"] == 0.0

    @pytest.mark.parametrize("query", ["", "   ", "\n"])
    def test_blank_query_rejected_before_embedding(self, mock_store, query):
        embedder = Mock()
        retriever = Retriever(embedder, mock_store)

        with pytest.raises(InvalidInputError):
            retriever.retrieve(query)
        embedder.embed.assert_not_called()

    @pytest.mark.parametrize("k", [0, -3])
    def test_non_positive_k_rejected_before_embedding(self, mock_store, k):
        embedder = Mock()
        retriever = Retriever(embedder, mock_store)

        with pytest.raises(InvalidInputError):
            retriever.retrieve("valid query", k=k)
        embedder.embed.assert_not_called()

    def test_embedding_failure_surfaces_as_unavailable(self, mock_store):
        embedder = Mock()
        embedder.embed.side_effect = RuntimeError("model crashed")
        retriever = Retriever(embedder, mock_store)

        with pytest.raises(EmbeddingUnavailableError, match="model crashed"):
            retriever.retrieve("valid query")
        mock_store.search.assert_not_called()

    def test_engine_errors_pass_through_unchanged(self, mock_store):
        embedder = Mock()
        embedder.embed.side_effect = EmbeddingUnavailableError("offline", transient=True)
        retriever = Retriever(embedder, mock_store)

        with pytest.raises(EmbeddingUnavailableError) as excinfo:
            retriever.retrieve("valid query")
        assert excinfo.value.retryable is True

    def test_empty_result_is_not_an_error(self, retriever, mock_store, caplog):
        mock_store.search.return_value = []
        with caplog.at_level("INFO"):
            assert retriever.retrieve("nothing matches") == []
        assert any("No chunks matched" in r.message for r in caplog.records)

    def test_cancelled_before_search(self, retriever, mock_store):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(QueryCancelledError, match="embed"):
            retriever.retrieve("query", cancel_token=token)
        mock_store.search.assert_not_called()

    def test_cancelled_during_search(self, retriever, mock_store):
        token = CancellationToken()

        def cancel_then_return(*args, **kwargs):
            token.cancel()
            return [result(0.5)]

        mock_store.search.side_effect = cancel_then_return

        with pytest.raises(QueryCancelledError, match="search"):
            retriever.retrieve("query", cancel_token=token)


def test_retrieve_against_real_store(tmp_path):
    embedder = HashingEmbedding(dimension=64)
    store = VectorStore(dimension=64, persist_directory=str(tmp_path / "db"))

    text = "photosynthesis converts sunlight into chemical energy in plants"
    chunks = TextChunker(1000, 200).chunk(text)
    document = ProcessedDocument(
        file_path="/docs/bio.txt",
        file_name="bio.txt",
        file_type=".txt",
        file_size=len(text),
        text=text,
        chunks=chunks,
    )
    store.insert(document, embedder.embed([c.text for c in chunks]))

    results = Retriever(embedder, store).retrieve("sunlight plants energy", k=3)

    assert len(results) == 1
    assert results[0].file_name == "bio.txt"
    assert results[0].similarity_score > 0.3
    assert np.isfinite(results[0].similarity_score)
