"""Tests for AnswerOrchestrator."""

import pytest
from components.answering import AnswerOrchestrator, GenerationParams, Prompt
from components.knowledge_service.models import SearchResult
from shared.cache import BoundedCache
from shared.cancellation import CancellationToken
from shared.errors import (
    EmptyGenerationError,
    GenerationError,
    NoContextError,
    QueryCancelledError,
)


class StubGenerator:
    """Returns a canned reply and records every prompt it receives."""

    model_name = "stub-model"
    provider = "stub"

    def __init__(self, reply="Grounded answer.", on_generate=None):
        self.reply = reply
        self.on_generate = on_generate
        self.prompts = []
        self.params = []

    def generate(self, prompt: Prompt, params: GenerationParams) -> str:
        self.prompts.append(prompt)
        self.params.append(params)
        if self.on_generate:
            self.on_generate()
        if isinstance(self.reply, Exception):
            raise self.reply
        return self.reply


def chunk(doc: str, idx: int, text: str, score: float = 0.8) -> SearchResult:
    return SearchResult(
        file_path=f"/docs/{doc}",
        file_name=doc,
        file_type=".txt",
        chunk_id=idx,
        chunk_size=len(text),
        text=text,
        similarity_score=score,
    )


@pytest.fixture
def generator():
    return StubGenerator()


@pytest.fixture
def orchestrator(generator):
    return AnswerOrchestrator(generator, max_context_chunks=5)


class TestAnswer:
    def test_builds_labelled_context_in_ranking_order(self, orchestrator, generator):
        chunks = [chunk("a.txt", 0, "first"), chunk("b.txt", 3, "second")]

        record = orchestrator.answer("What?", chunks, max_tokens=256, temperature=0.2)

        assert record.context_used == "[Source 1] first\n\n[Source 2] second"
        assert "[Source 1] first" in generator.prompts[0].user
        assert "User Question: What?" in generator.prompts[0].user
        assert generator.params[0] == GenerationParams(max_tokens=256, temperature=0.2)
        assert record.answer == "Grounded answer."
        assert record.model_used == "stub-model"
        assert record.llm_type == "stub"

    def test_one_generator_call(self, orchestrator, generator):
        orchestrator.answer("q", [chunk("a.txt", 0, "x")])
        assert len(generator.prompts) == 1

    def test_sources_are_distinct_documents_first_seen(self, orchestrator):
        chunks = [
            chunk("b.txt", 2, "one", 0.9),
            chunk("a.txt", 0, "two", 0.8),
            chunk("b.txt", 5, "three", 0.7),
        ]
        record = orchestrator.answer("q", chunks)

        assert [s.file_name for s in record.sources] == ["b.txt", "a.txt"]
        assert record.sources[0].chunk_id == 2
        assert record.num_sources == 2

    def test_only_included_chunks_become_sources(self, generator):
        orchestrator = AnswerOrchestrator(generator, max_context_chunks=2)
        chunks = [
            chunk("a.txt", 0, "one"),
            chunk("a.txt", 1, "two"),
            chunk("c.txt", 0, "three"),
        ]
        record = orchestrator.answer("q", chunks)

        assert "three" not in record.context_used
        assert [s.file_name for s in record.sources] == ["a.txt"]

    def test_no_context_is_validation_error(self, orchestrator, generator):
        with pytest.raises(NoContextError):
            orchestrator.answer("q", [])
        assert generator.prompts == []

    def test_empty_generation(self):
        orchestrator = AnswerOrchestrator(StubGenerator(reply="   "))
        with pytest.raises(EmptyGenerationError):
            orchestrator.answer("q", [chunk("a.txt", 0, "x")])

    def test_generation_error_propagates(self):
        error = GenerationError("rate limited", transient=True)
        orchestrator = AnswerOrchestrator(StubGenerator(reply=error))
        with pytest.raises(GenerationError) as excinfo:
            orchestrator.answer("q", [chunk("a.txt", 0, "x")])
        assert excinfo.value.retryable

    def test_prompts_from_config(self, generator):
        prompts = {
            "answer": {
                "system_prompt": "Be brief.",
                "user_template": "Q={query}\nC={context}",
            }
        }
        orchestrator = AnswerOrchestrator(generator, prompts=prompts)
        orchestrator.answer("why", [chunk("a.txt", 0, "because")])

        assert generator.prompts[0].system == "Be brief."
        assert generator.prompts[0].user == "Q=why\nC=[Source 1] because"

    def test_braces_in_chunk_text_are_kept(self, orchestrator, generator):
        orchestrator.answer("q", [chunk("a.json", 0, '{"key": "value"}')])
        assert '{"key": "value"}' in generator.prompts[0].user


class TestResponseCache:
    def test_repeat_question_served_from_cache(self, orchestrator, generator):
        chunks = [chunk("a.txt", 0, "x")]
        first = orchestrator.answer("q", chunks)
        second = orchestrator.answer("q", chunks)

        assert len(generator.prompts) == 1
        assert first.answer == second.answer
        assert orchestrator.cache_stats()["hits"] == 1

    def test_different_context_misses_cache(self, orchestrator, generator):
        orchestrator.answer("q", [chunk("a.txt", 0, "x")])
        orchestrator.answer("q", [chunk("a.txt", 0, "y")])
        assert len(generator.prompts) == 2

    def test_disabled_cache(self, generator):
        orchestrator = AnswerOrchestrator(
            generator, response_cache=BoundedCache(0, name="off")
        )
        chunks = [chunk("a.txt", 0, "x")]
        orchestrator.answer("q", chunks)
        orchestrator.answer("q", chunks)
        assert len(generator.prompts) == 2


class TestCancellation:
    def test_cancelled_before_generation_skips_model(self, orchestrator, generator):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(QueryCancelledError):
            orchestrator.answer("q", [chunk("a.txt", 0, "x")], cancel_token=token)
        assert generator.prompts == []

    def test_cancelled_during_generation_discards_result(self):
        token = CancellationToken()
        generator = StubGenerator(on_generate=token.cancel)
        orchestrator = AnswerOrchestrator(generator)
        chunks = [chunk("a.txt", 0, "x")]

        with pytest.raises(QueryCancelledError):
            orchestrator.answer("q", chunks, cancel_token=token)

        # The in-flight result was not cached; a fresh query calls the model again.
        orchestrator.answer("q", chunks)
        assert len(generator.prompts) == 2
