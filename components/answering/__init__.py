"""Answer generation: prompt assembly and the language-model capability."""

from .generator import (
    SUPPORTED_MODELS,
    GenerationParams,
    LiteLLMGenerator,
    Prompt,
    TextGenerator,
)
from .orchestrator import AnswerOrchestrator

__all__ = [
    "SUPPORTED_MODELS",
    "AnswerOrchestrator",
    "GenerationParams",
    "LiteLLMGenerator",
    "Prompt",
    "TextGenerator",
]
