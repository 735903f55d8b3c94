"""
Interview state management.

Tracks the ordered turns of one session. Turns are append-only while the
session is open; the orchestrator is the only writer.
"""

from uuid import UUID, uuid4

from mock_interviewer.schemas import (
    ConversationTurn,
    InterviewContext,
    TurnRole,
)


class InterviewState:
    """
    Manages the mutable conversation of an interview session.

    This class owns the turn list and the context for the session's
    lifetime and exposes read-only views of them.
    """

    def __init__(self, context: InterviewContext) -> None:
        """
        Initialize interview state.

        Args:
            context: Interview context (company, role, level).
        """
        self._session_id: UUID = uuid4()
        self._context = context
        self._turns: list[ConversationTurn] = []

    @property
    def session_id(self) -> UUID:
        """Get the unique session identifier."""
        return self._session_id

    @property
    def context(self) -> InterviewContext:
        """Get the interview context."""
        return self._context

    @property
    def turns(self) -> list[ConversationTurn]:
        """Get all conversation turns."""
        return self._turns.copy()

    @property
    def last_turn(self) -> ConversationTurn | None:
        return self._turns[-1] if self._turns else None

    def add_turn(self, role: TurnRole, content: str) -> ConversationTurn:
        """
        Add a new conversation turn.

        Args:
            role: Role of the speaker.
            content: Content of the turn.

        Returns:
            The created ConversationTurn.
        """
        turn = ConversationTurn(role=role, content=content)
        self._turns.append(turn)
        return turn

    def add_candidate_turn(self, content: str) -> tuple[ConversationTurn, bool]:
        """
        Append a candidate answer unless it repeats the latest candidate turn.

        A recording resubmitted after a failed step, or after a reply the
        caller never received, transcribes to the same text; it must not
        appear twice in the transcript. Interviewer turns in between do not
        make it a new answer.

        Args:
            content: Transcribed answer.

        Returns:
            The candidate turn and whether it was a duplicate.
        """
        previous = self.last_candidate_turn
        if previous is not None and previous.content == content:
            return previous, True
        return self.add_turn(TurnRole.CANDIDATE, content), False

    @property
    def last_candidate_turn(self) -> ConversationTurn | None:
        for turn in reversed(self._turns):
            if turn.role == TurnRole.CANDIDATE:
                return turn
        return None

    def reply_to(self, answer: ConversationTurn) -> ConversationTurn | None:
        """The interviewer turn that followed `answer`, if one was generated."""
        for index, turn in enumerate(self._turns):
            if turn is answer:
                following = self._turns[index + 1 : index + 2]
                if following and following[0].role == TurnRole.INTERVIEWER:
                    return following[0]
                return None
        return None

    def candidate_answers(self) -> list[ConversationTurn]:
        """Candidate turns with some non-whitespace content."""
        return [
            turn
            for turn in self._turns
            if turn.role == TurnRole.CANDIDATE and turn.content.strip()
        ]

