from datetime import datetime, timezone

import pytest

from mock_interviewer.agents import DialogueGenerator
from mock_interviewer.evaluation import parse_evaluation
from mock_interviewer.io import TextInterface, format_evaluation, render_history
from mock_interviewer.models.llm_client import LLMClientBase, LLMResponse, Message
from mock_interviewer.orchestrator import ConversationOrchestrator, InterviewContext, InterviewSession, SessionState


class ScriptedLLM(LLMClientBase):
    async def chat(self, messages: list[Message]) -> LLMResponse:
        system = messages[0].content
        if system.startswith("You are Rachel"):
            return LLMResponse(content="Hi, I'm Rachel. How are you?")
        if system.startswith("You are evaluating"):
            return LLMResponse(content="• Correctness: 7/10 – Fine.\nOverall Feedback: Keep practicing.")
        return LLMResponse(content="What is a hash map?")


def _feed(lines):
    answers = iter(lines)

    def read(prompt: str) -> str:
        try:
            return next(answers)
        except StopIteration:
            raise EOFError

    return read


@pytest.mark.asyncio
async def test_text_session_runs_to_evaluation() -> None:
    output: list[str] = []
    orchestrator = ConversationOrchestrator(dialogue=DialogueGenerator(llm_client=ScriptedLLM()))
    interface = TextInterface(
        orchestrator,
        input_fn=_feed(["Acme", "Backend Engineer", "L4", "I'm well.", "   ", "quit"]),
        output_fn=output.append,
    )

    await interface.run()

    text = "\n".join(output)
    assert "Interviewer: Hi, I'm Rachel. How are you?" in text
    assert "Interviewer: What is a hash map?" in text
    assert "Please type an answer." in text
    assert text.count("Interviewer: What is a hash map?") == 1
    assert "• Correctness: 7/10 – Fine." in text
    assert "Overall Feedback: Keep practicing." in text
    assert orchestrator.state == SessionState.CLOSED
    assert interface.result is not None
    assert interface.result.session.context.company == "Acme"


@pytest.mark.asyncio
async def test_end_of_input_closes_session() -> None:
    output: list[str] = []
    orchestrator = ConversationOrchestrator(dialogue=DialogueGenerator(llm_client=ScriptedLLM()))
    interface = TextInterface(
        orchestrator,
        context=InterviewContext(company="Acme", role="Backend Engineer", level="L4"),
        input_fn=_feed([]),
        output_fn=output.append,
    )

    await interface.run()

    assert orchestrator.state == SessionState.CLOSED
    assert any("Evaluation unavailable" in line for line in output)


def test_format_evaluation_lists_scored_categories() -> None:
    evaluation = parse_evaluation("Clarity & Structure: 6/10 – Wandered.\nOverall Feedback: Tighten up.")

    rendered = format_evaluation(evaluation)

    assert rendered.splitlines()[0] == "• Clarity & Structure: 6/10 – Wandered."
    assert rendered.endswith("Overall Feedback: Tighten up.")


def test_history_report() -> None:
    def session(day: int, role: str, text: str) -> InterviewSession:
        evaluation = parse_evaluation(text)
        return InterviewSession(
            context=InterviewContext(company="Acme", role=role, level="L4"),
            evaluation=evaluation.with_defaults(),
            evaluation_available=not evaluation.is_empty,
            created_at=datetime(2024, 5, day, tzinfo=timezone.utc),
        )

    sessions = [
        session(3, "Data Engineer", "Correctness: 9/10"),
        session(1, "Backend Engineer", "Correctness: 5/10"),
    ]

    report = render_history(sessions)

    assert report.index("2024-05-01") < report.index("2024-05-03")
    assert "Backend Engineer - L4: Correctness 5," in report
    assert "Backend Engineer: 1" in report
    assert "Data Engineer: 1" in report
    assert render_history([]) == "No interview sessions found."
