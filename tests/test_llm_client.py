import subprocess

import pytest

from mock_interviewer.errors import GenerationFailed
from mock_interviewer.models import llm_client as llm_module
from mock_interviewer.models.llm_client import (
    LLMClient,
    LLMResponse,
    Message,
    OllamaError,
    turns_to_messages,
)
from mock_interviewer.schemas import ConversationTurn, TurnRole


class _Completed:
    def __init__(self, returncode: int = 0, stdout: str = "", stderr: str = "") -> None:
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


def test_turns_to_messages_maps_roles_and_skips_blank() -> None:
    turns = [
        ConversationTurn(role=TurnRole.SYSTEM, content="Preamble."),
        ConversationTurn(role=TurnRole.INTERVIEWER, content="Hello?"),
        ConversationTurn(role=TurnRole.CANDIDATE, content="   "),
        ConversationTurn(role=TurnRole.CANDIDATE, content=" Hi. "),
    ]

    messages = turns_to_messages("  Be an interviewer.  ", turns)

    assert [(m.role, m.content) for m in messages] == [
        ("system", "Be an interviewer."),
        ("system", "Preamble."),
        ("assistant", "Hello?"),
        ("user", "Hi."),
    ]


def test_prompt_marks_roles_and_ends_with_assistant() -> None:
    client = LLMClient(model="test-model", max_retries=0, timeout=5)
    prompt = client._build_prompt_from_messages(
        [Message(role="system", content="sys"), Message(role="user", content="hi")]
    )

    assert prompt.startswith("[SYSTEM]\nsys")
    assert "[USER]\nhi" in prompt
    assert prompt.rstrip().endswith("[ASSISTANT]")


@pytest.mark.asyncio
async def test_generate_returns_stripped_text() -> None:
    client = LLMClient(model="test-model")

    async def fake_chat(messages: list[Message]) -> LLMResponse:
        assert messages[0].role == "system"
        return LLMResponse(content="  Tell me about caching.  \n", model="test")

    client.chat = fake_chat  # type: ignore[assignment]

    assert await client.generate("instruction") == "Tell me about caching."


@pytest.mark.asyncio
async def test_generate_raises_on_error_response() -> None:
    client = LLMClient(model="test-model")

    async def fake_chat(messages: list[Message]) -> LLMResponse:
        return LLMResponse(content="", finish_reason="error", raw_response={"error": "ollama down"})

    client.chat = fake_chat  # type: ignore[assignment]

    with pytest.raises(GenerationFailed, match="ollama down"):
        await client.generate("instruction")


@pytest.mark.asyncio
async def test_generate_raises_on_empty_output() -> None:
    client = LLMClient(model="test-model")

    async def fake_chat(messages: list[Message]) -> LLMResponse:
        return LLMResponse(content="   ")

    client.chat = fake_chat  # type: ignore[assignment]

    with pytest.raises(GenerationFailed, match="empty"):
        await client.generate("instruction")


def test_one_automatic_retry(monkeypatch) -> None:
    calls = []

    def fake_run(cmd, **kwargs):
        calls.append(cmd)
        if len(calls) == 1:
            return _Completed(returncode=1, stderr="model loading")
        return _Completed(stdout=" answer \n")

    monkeypatch.setattr(llm_module.subprocess, "run", fake_run)
    client = LLMClient(model="test-model", max_retries=1, timeout=5)

    assert client._run_ollama_sync("prompt") == "answer"
    assert calls == [["ollama", "run", "test-model"]] * 2


def test_timeouts_exhaust_retries(monkeypatch) -> None:
    calls = []

    def fake_run(cmd, **kwargs):
        calls.append(kwargs["timeout"])
        raise subprocess.TimeoutExpired(cmd, kwargs["timeout"])

    monkeypatch.setattr(llm_module.subprocess, "run", fake_run)
    client = LLMClient(model="test-model", max_retries=1, timeout=7)

    with pytest.raises(OllamaError, match="timed out"):
        client._run_ollama_sync("prompt")
    assert calls == [7, 7]


def test_missing_cli_is_not_retried(monkeypatch) -> None:
    calls = []

    def fake_run(cmd, **kwargs):
        calls.append(cmd)
        raise FileNotFoundError("ollama")

    monkeypatch.setattr(llm_module.subprocess, "run", fake_run)
    client = LLMClient(model="test-model", max_retries=3, timeout=5)

    with pytest.raises(OllamaError, match="not found"):
        client._run_ollama_sync("prompt")
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_chat_failure_surfaces_as_generation_failed(monkeypatch) -> None:
    def fake_run(cmd, **kwargs):
        return _Completed(returncode=2, stderr="boom")

    monkeypatch.setattr(llm_module.subprocess, "run", fake_run)
    client = LLMClient(model="test-model", max_retries=1, timeout=5)

    response = await client.chat([Message(role="user", content="hi")])
    assert response.finish_reason == "error"

    with pytest.raises(GenerationFailed):
        await client.generate("instruction")
