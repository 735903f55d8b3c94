"""
Text-based interview interface.

Provides a command-line interface for conducting mock interviews via text
input/output, plus the plain-text history report.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence

from mock_interviewer.errors import GenerationFailed, StorageError, TranscriptionFailed
from mock_interviewer.evaluation import (
    EvaluationResult,
    RubricCategory,
    bucket_averages,
    role_distribution,
    score_trend,
)
from mock_interviewer.orchestrator.interview_orchestrator import ConversationOrchestrator
from mock_interviewer.schemas import CloseOutcome, InterviewContext, InterviewSession, SessionState

QUIT_WORDS = ("quit", "exit", "end")


class InterviewInterface(ABC):
    """Abstract base class for interview interfaces."""

    @abstractmethod
    async def run(self) -> None:
        """Run the interview interface."""
        ...

    @abstractmethod
    async def send_message(self, message: str) -> None:
        """
        Send a message to the user.

        Args:
            message: Message to display.
        """
        ...

    @abstractmethod
    async def receive_input(self) -> str:
        """
        Receive input from the user.

        Returns:
            User's input string.
        """
        ...


def format_evaluation(evaluation: EvaluationResult, available: bool = True) -> str:
    """Render an evaluation as the rubric bullet list."""
    if not available:
        return "Evaluation unavailable: no rubric scores could be read from the model output."
    lines = []
    for category in RubricCategory:
        entry = evaluation.get(category)
        if entry is None:
            continue
        line = f"• {category.value}: {entry.score_text}"
        if entry.explanation:
            line += f" – {entry.explanation}"
        lines.append(line)
    if evaluation.overall_summary:
        lines.append("")
        lines.append(f"Overall Feedback: {evaluation.overall_summary}")
    return "\n".join(lines)


def render_history(sessions: Sequence[InterviewSession]) -> str:
    """
    Render a user's session history report.

    Args:
        sessions: Stored sessions, most recent first.

    Returns:
        Trend, per role/level averages and role counts as plain text.
    """
    if not sessions:
        return "No interview sessions found."

    lines = ["Score trend (oldest first):"]
    trend = score_trend(reversed(sessions))
    if not trend:
        lines.append("  no scored sessions yet")
    for point in trend:
        when = point.created_at.strftime("%Y-%m-%d %H:%M") if point.created_at else "unknown"
        lines.append(f"  {when}  {point.mean:.1f}/10")

    lines.append("")
    lines.append("Average scores by role and level:")
    for bucket, averages in sorted(bucket_averages(sessions).items()):
        scores = ", ".join(f"{category.value} {score}" for category, score in averages.items())
        lines.append(f"  {bucket}: {scores}")

    lines.append("")
    lines.append("Sessions per role:")
    for role, count in sorted(role_distribution(sessions).items()):
        lines.append(f"  {role}: {count}")

    return "\n".join(lines)


class TextInterface(InterviewInterface):
    """
    Command-line text interface for interviews.

    Provides a simple REPL; typed answers are submitted as transcripts.
    """

    def __init__(
        self,
        orchestrator: ConversationOrchestrator,
        context: InterviewContext | None = None,
        input_fn: Callable[[str], str] = input,
        output_fn: Callable[[str], None] = print,
    ) -> None:
        """
        Initialize the text interface.

        Args:
            orchestrator: Conversation orchestrator to drive.
            context: Interview context; prompted for if None.
            input_fn: Line reader (defaults to input()).
            output_fn: Line writer (defaults to print()).
        """
        self._orchestrator = orchestrator
        self._context = context
        self._input = input_fn
        self._output = output_fn
        self._result: CloseOutcome | None = None

    @property
    def result(self) -> CloseOutcome | None:
        return self._result

    async def run(self) -> None:
        """Run the interactive interview session."""
        self._output("\n" + "=" * 60)
        self._output("Mock Interview")
        self._output("=" * 60 + "\n")

        context = self._context or await self._get_context()

        try:
            opening = await self._orchestrator.start(context)
        except GenerationFailed as e:
            await self.send_message(f"Could not start the interview: {e}")
            return
        await self.send_message(f"Interviewer: {opening.interviewer_text}")

        while self._orchestrator.state == SessionState.AWAITING_RESPONSE:
            answer = await self.receive_input()

            if answer.strip().lower() in QUIT_WORDS:
                self._output("\nEnding interview...")
                await self._finish()
                break

            try:
                outcome = await self._orchestrator.submit_transcript(answer)
            except TranscriptionFailed:
                await self.send_message("Please type an answer.")
                continue
            except GenerationFailed as e:
                await self.send_message(f"The interviewer is stuck ({e}). Send your answer again.")
                continue
            await self.send_message(f"Interviewer: {outcome.interviewer_text}")
            if outcome.evaluation is not None:
                await self.send_message(format_evaluation(outcome.evaluation))

    async def _finish(self) -> None:
        try:
            self._result = await self._orchestrator.close()
        except GenerationFailed as e:
            await self.send_message(f"Evaluation failed ({e}). Type quit to try again.")
            return
        except StorageError as e:
            await self.send_message(f"Session could not be saved: {e}")

        session = self._orchestrator.session
        if session is not None:
            self._output("\n" + "-" * 60)
            self._output("Evaluation")
            self._output("-" * 60)
            await self.send_message(format_evaluation(session.evaluation, session.evaluation_available))

    async def send_message(self, message: str) -> None:
        """
        Display a message to the terminal.

        Args:
            message: Message to display.
        """
        self._output(f"\n{message}\n")

    async def receive_input(self) -> str:
        """
        Get input from the terminal.

        Returns:
            User's input string.
        """
        return await self._get_input("You: ")

    async def _get_input(self, prompt: str) -> str:
        try:
            return self._input(prompt)
        except EOFError:
            return "exit"

    async def _get_context(self) -> InterviewContext:
        self._output("Please enter the interview details:")
        company = await self._get_input("Company: ")
        role = await self._get_input("Role: ")
        level = await self._get_input("Level: ")
        return InterviewContext.from_value({"company": company, "role": role, "level": level})
