"""Builds a grounded prompt from retrieved chunks and asks the language model."""

import logging
from typing import Any, Dict, List, Optional, Sequence

from components.knowledge_service.models import AnswerRecord, AnswerSource, SearchResult
from shared.cache import BoundedCache, hash_key
from shared.cancellation import CancellationToken, check_cancelled
from shared.errors import EmptyGenerationError, NoContextError

from .generator import GenerationParams, Prompt, TextGenerator

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "You are an expert AI assistant specializing in document analysis and "
    "knowledge extraction. Provide accurate, well-structured answers based "
    "solely on the provided context, and clearly state when the context is "
    "insufficient to answer the question."
)

DEFAULT_USER_TEMPLATE = (
    "Context Information:\n{context}\n\n"
    "User Question: {query}\n\n"
    "Please provide a comprehensive answer based on the context above. If the "
    "context doesn't contain sufficient information, clearly state this limitation."
)


class AnswerOrchestrator:
    """Turns a query plus ranked chunks into an AnswerRecord with one model call."""

    def __init__(
        self,
        generator: TextGenerator,
        prompts: Optional[Dict[str, Any]] = None,
        max_context_chunks: int = 5,
        response_cache: Optional[BoundedCache[str]] = None,
    ):
        answer_prompts = (prompts or {}).get("answer", {})
        self.generator = generator
        self.system_prompt: str = answer_prompts.get(
            "system_prompt", DEFAULT_SYSTEM_PROMPT
        )
        self.user_template: str = answer_prompts.get(
            "user_template", DEFAULT_USER_TEMPLATE
        )
        self.max_context_chunks = max_context_chunks
        self.response_cache = response_cache or BoundedCache(100, name="response cache")

    def build_context(self, chunks: Sequence[SearchResult]) -> str:
        return "\n\n".join(
            f"[Source {i}] {chunk.text}" for i, chunk in enumerate(chunks, start=1)
        )

    @staticmethod
    def distinct_sources(chunks: Sequence[SearchResult]) -> List[AnswerSource]:
        """Documents referenced by ``chunks``, in first-seen order."""
        seen = set()
        sources = []
        for chunk in chunks:
            if chunk.file_path in seen:
                continue
            seen.add(chunk.file_path)
            sources.append(
                AnswerSource(
                    file_name=chunk.file_name,
                    file_path=chunk.file_path,
                    similarity_score=chunk.similarity_score,
                    chunk_id=chunk.chunk_id,
                )
            )
        return sources

    def answer(
        self,
        query: str,
        retrieved_chunks: Sequence[SearchResult],
        max_tokens: int = 8192,
        temperature: float = 1.0,
        cancel_token: Optional[CancellationToken] = None,
    ) -> AnswerRecord:
        """
        Generate an answer grounded in ``retrieved_chunks``.

        Only the first ``max_context_chunks`` chunks, in ranking order, are placed
        in the prompt; the sources list covers exactly those chunks.

        Raises:
            NoContextError: No chunks were supplied.
            GenerationError: The language model failed.
            EmptyGenerationError: The language model returned no text.
            QueryCancelledError: The token was cancelled before or during generation.
        """
        if not retrieved_chunks:
            raise NoContextError(
                "No relevant context was retrieved for this question; "
                "upload documents or broaden the query"
            )

        included = list(retrieved_chunks[: self.max_context_chunks])
        context = self.build_context(included)
        sources = self.distinct_sources(included)

        cache_key = hash_key(self.generator.model_name, query, context)
        answer = self.response_cache.get(cache_key)

        if answer is None:
            check_cancelled(cancel_token, "generate")
            prompt = Prompt(
                system=self.system_prompt,
                user=self.user_template.format(context=context, query=query),
            )
            answer = self.generator.generate(
                prompt, GenerationParams(max_tokens=max_tokens, temperature=temperature)
            )
            check_cancelled(cancel_token, "generated")
            if not answer or not answer.strip():
                logger.error(f"Model {self.generator.model_name} returned no text")
                raise EmptyGenerationError("The language model returned an empty answer")
            self.response_cache.put(cache_key, answer)
        else:
            logger.debug(f"Response cache hit for query '{query}'")

        return AnswerRecord(
            query=query,
            answer=answer,
            sources=sources,
            context_used=context,
            num_sources=len(sources),
            llm_type=self.generator.provider,
            model_used=self.generator.model_name,
        )

    def cache_stats(self) -> Dict[str, Any]:
        return self.response_cache.stats()
