"""Language-model capability used for answer generation."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

import litellm
from components.knowledge_service.models import LLMModel
from shared.config import GenerationModelConfig
from shared.errors import GenerationError

logger = logging.getLogger(__name__)

SUPPORTED_MODELS: List[LLMModel] = [
    LLMModel(id="openai/gpt-oss-120b", name="OpenAI GPT-OSS 120B", max_tokens=8192),
    LLMModel(
        id="llama-3.1-70b-versatile", name="LLaMA 3.1 70B Versatile", max_tokens=8192
    ),
    LLMModel(id="llama-3.1-8b-instant", name="LLaMA 3.1 8B Instant", max_tokens=8192),
    LLMModel(id="mixtral-8x7b-32768", name="Mixtral 8x7B", max_tokens=32768),
    LLMModel(id="gemma2-9b-it", name="Gemma2 9B IT", max_tokens=8192),
]

_TRANSIENT_EXCEPTIONS = (
    litellm.Timeout,
    litellm.APIConnectionError,
    litellm.RateLimitError,
    litellm.ServiceUnavailableError,
    litellm.InternalServerError,
)


@dataclass(frozen=True)
class Prompt:
    system: str
    user: str


@dataclass(frozen=True)
class GenerationParams:
    max_tokens: int = 8192
    temperature: float = 1.0


class TextGenerator(Protocol):
    """Anything that turns a prompt into text."""

    model_name: str
    provider: str

    def generate(self, prompt: Prompt, params: GenerationParams) -> str: ...


def _is_transient(error: Exception) -> bool:
    if isinstance(error, _TRANSIENT_EXCEPTIONS):
        return True
    status = getattr(error, "status_code", None)
    return isinstance(status, int) and (status in (408, 429) or status >= 500)


def _split_model_name(model_name: str) -> tuple:
    provider, _, model = model_name.partition("/")
    if not model:
        return "", provider
    return provider, model


def max_tokens_for(model_id: str) -> int:
    for model in SUPPORTED_MODELS:
        if model.id == model_id:
            return model.max_tokens
    return GenerationParams.max_tokens


class LiteLLMGenerator:
    """TextGenerator backed by ``litellm.completion``.

    ``model_name`` uses the LiteLLM ``provider/model`` form, for example
    ``groq/openai/gpt-oss-120b``.
    """

    def __init__(self, config: GenerationModelConfig):
        self.config = config
        self.full_model_name = config.model_name
        self.provider, self.model_name = _split_model_name(config.model_name)
        self.provider = self.provider or "litellm"
        logger.info(f"Using generation model {self.full_model_name}")

    def generate(self, prompt: Prompt, params: GenerationParams) -> str:
        extra: Dict[str, Any] = {
            k: v
            for k, v in self.config.parameters.items()
            if k not in ("max_tokens", "temperature")
        }
        if self.config.api_key:
            extra["api_key"] = self.config.api_key

        try:
            response = litellm.completion(
                model=self.full_model_name,
                messages=[
                    {"role": "system", "content": prompt.system},
                    {"role": "user", "content": prompt.user},
                ],
                max_tokens=params.max_tokens,
                temperature=params.temperature,
                timeout=self.config.timeout_seconds,
                **extra,
            )
        except Exception as e:
            transient = _is_transient(e)
            logger.error(
                f"Generation call to {self.full_model_name} failed "
                f"({'transient' if transient else 'permanent'}): {e}"
            )
            raise GenerationError(
                f"Language model request failed: {e}", transient=transient
            ) from e

        content: Optional[str] = response.choices[0].message.content
        return content or ""

    def model_info(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "model": self.model_name,
            "supports_streaming": True,
            "max_tokens": max_tokens_for(self.model_name),
        }
