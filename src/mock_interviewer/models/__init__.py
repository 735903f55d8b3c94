"""
Models module for LLM client abstraction.

Provides the dialogue-generation provider backed by a local Ollama model.
"""

from mock_interviewer.models.llm_client import (
    DEFAULT_OLLAMA_MODEL,
    LLMClient,
    LLMClientBase,
    LLMResponse,
    Message,
    OllamaError,
    turns_to_messages,
)

__all__ = [
    "LLMClient",
    "LLMClientBase",
    "LLMResponse",
    "Message",
    "OllamaError",
    "DEFAULT_OLLAMA_MODEL",
    "turns_to_messages",
]
