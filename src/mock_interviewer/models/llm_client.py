"""
LLM client abstraction.

Provides the dialogue-generation provider used by the interviewer agent.
Generation runs a local Ollama model through the `ollama` CLI.
"""

import asyncio
import logging
import subprocess
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel, Field

from mock_interviewer.config import get_settings
from mock_interviewer.errors import GenerationFailed
from mock_interviewer.schemas import ConversationTurn, TurnRole

logger = logging.getLogger(__name__)

# Default model for Ollama
DEFAULT_OLLAMA_MODEL = "llama3:8b"

# Conversation roles mapped onto chat roles.
_CHAT_ROLES: dict[TurnRole, str] = {
    TurnRole.SYSTEM: "system",
    TurnRole.INTERVIEWER: "assistant",
    TurnRole.CANDIDATE: "user",
}


class Message(BaseModel):
    """A message in a conversation."""

    role: str = Field(..., description="Role of the speaker (system, user, assistant)")
    content: str = Field(..., description="Message content")


class LLMResponse(BaseModel):
    """Response from an LLM."""

    content: str = Field(..., description="Generated text content")
    finish_reason: str = Field(default="stop", description="Reason for completion")
    model: str = Field(default="", description="Model used for generation")
    raw_response: dict[str, Any] = Field(
        default_factory=dict,
        description="Raw response details",
    )


class OllamaError(Exception):
    """Exception raised when Ollama CLI fails."""

    def __init__(self, message: str, return_code: int | None = None, stderr: str = "") -> None:
        super().__init__(message)
        self.return_code = return_code
        self.stderr = stderr


def turns_to_messages(
    system_instruction: str,
    turns: Sequence[ConversationTurn],
) -> list[Message]:
    """
    Build chat messages from a system instruction and conversation turns.

    Blank turns are skipped.

    Args:
        system_instruction: Instruction placed first as a system message.
        turns: Ordered conversation turns.

    Returns:
        Chat messages in conversation order.
    """
    messages = [Message(role="system", content=system_instruction.strip())]
    for turn in turns:
        content = turn.content.strip()
        if not content:
            continue
        messages.append(Message(role=_CHAT_ROLES[turn.role], content=content))
    return messages


class LLMClientBase(ABC):
    """Abstract base class for LLM clients."""

    @abstractmethod
    async def chat(self, messages: list[Message]) -> LLMResponse:
        """
        Generate a chat completion.

        Args:
            messages: Conversation history.

        Returns:
            Generated response; finish_reason is "error" on failure.
        """
        ...

    async def generate(
        self,
        system_instruction: str,
        turns: Sequence[ConversationTurn] = (),
    ) -> str:
        """
        Generate the next utterance for a conversation.

        Args:
            system_instruction: Instruction for this generation.
            turns: Ordered conversation turns (may be empty).

        Returns:
            Generated text, stripped of whitespace.

        Raises:
            GenerationFailed: If the model failed or returned nothing.
        """
        response = await self.chat(turns_to_messages(system_instruction, turns))
        if response.finish_reason == "error":
            error = response.raw_response.get("error", "unknown error")
            raise GenerationFailed(f"Generation failed: {error}")

        text = response.content.strip()
        if not text:
            raise GenerationFailed("Generation returned empty output")
        return text


class LLMClient(LLMClientBase):
    """
    Ollama-based LLM client.

    All generation happens through subprocess calls to `ollama run`, each
    bounded by a timeout and retried on failure.
    """

    def __init__(
        self,
        model: str | None = None,
        max_retries: int | None = None,
        timeout: int | None = None,
    ) -> None:
        """
        Initialize the Ollama LLM client.

        Args:
            model: Model name (defaults to settings.llm_model_name).
            max_retries: Number of retries on failure (defaults to settings).
            timeout: Timeout in seconds per Ollama call (defaults to settings).
        """
        settings = get_settings()
        self._model = model or settings.llm_model_name or DEFAULT_OLLAMA_MODEL
        self._max_retries = settings.llm_max_retries if max_retries is None else max_retries
        self._timeout = timeout or settings.llm_timeout

        logger.info(f"Initialized Ollama LLM client with model: {self._model}")

    @property
    def model(self) -> str:
        """Get the model name."""
        return self._model

    def _build_prompt_from_messages(self, messages: list[Message]) -> str:
        """
        Build a single prompt string from a list of messages.

        Args:
            messages: List of conversation messages.

        Returns:
            Formatted prompt string.
        """
        prompt_parts: list[str] = []

        for msg in messages:
            role = msg.role.lower()
            content = msg.content.strip()
            prompt_parts.append(f"[{role.upper()}]\n{content}\n")

        # Final marker tells the model where its reply starts
        prompt_parts.append("[ASSISTANT]\n")

        return "\n".join(prompt_parts)

    def _run_ollama_sync(self, prompt: str) -> str:
        """
        Run Ollama CLI synchronously with retry logic.

        Args:
            prompt: The prompt to send to the model.

        Returns:
            The model's response text, stripped of whitespace.

        Raises:
            OllamaError: If Ollama fails after all retries.
        """
        cmd = ["ollama", "run", self._model]

        last_error: OllamaError | None = None
        attempts = 0

        while attempts <= self._max_retries:
            attempts += 1
            try:
                logger.debug(f"Running Ollama (attempt {attempts}): {' '.join(cmd)}")

                process = subprocess.run(
                    cmd,
                    input=prompt,
                    capture_output=True,
                    text=True,
                    timeout=self._timeout,
                )

                if process.returncode != 0:
                    error_msg = process.stderr.strip() or f"Exit code: {process.returncode}"
                    logger.warning(f"Ollama failed (attempt {attempts}): {error_msg}")
                    last_error = OllamaError(
                        f"Ollama exited with code {process.returncode}",
                        return_code=process.returncode,
                        stderr=process.stderr,
                    )
                    continue

                response = process.stdout.strip()
                logger.debug(f"Ollama response length: {len(response)} chars")
                return response

            except subprocess.TimeoutExpired:
                logger.warning(f"Ollama timed out after {self._timeout}s (attempt {attempts})")
                last_error = OllamaError(f"Ollama timed out after {self._timeout} seconds")

            except FileNotFoundError as e:
                error_msg = "Ollama CLI not found. Please install Ollama: https://ollama.ai"
                logger.error(error_msg)
                raise OllamaError(error_msg) from e

            except OSError as e:
                logger.warning(f"Ollama error (attempt {attempts}): {e}")
                last_error = OllamaError(str(e))

        raise last_error or OllamaError("Ollama failed after all retries")

    async def chat(self, messages: list[Message]) -> LLMResponse:
        """
        Generate a chat completion using Ollama.

        Args:
            messages: Conversation history.

        Returns:
            Generated response.
        """
        prompt = self._build_prompt_from_messages(messages)

        try:
            response_text = await asyncio.to_thread(self._run_ollama_sync, prompt)
            return LLMResponse(
                content=response_text,
                finish_reason="stop",
                model=self._model,
                raw_response={"prompt": prompt, "response": response_text},
            )

        except OllamaError as e:
            logger.error(f"Ollama chat failed: {e}")
            return LLMResponse(
                content="",
                finish_reason="error",
                model=self._model,
                raw_response={"error": str(e)},
            )
