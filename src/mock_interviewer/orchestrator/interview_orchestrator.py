"""
Conversation orchestrator.

Drives one mock interview session through its states, coordinating the
transcription client, the interviewer agent, speech synthesis, the evaluation
parser and the session store.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import Any, Protocol
from uuid import UUID

from mock_interviewer.agents import DialogueGenerator
from mock_interviewer.config import get_settings
from mock_interviewer.errors import (
    EvaluationUnparseable,
    GenerationFailed,
    SessionBusy,
    SessionStateError,
    StorageError,
    SynthesisDegraded,
    TranscriptionFailed,
)
from mock_interviewer.evaluation import EvaluationParser, EvaluationResult
from mock_interviewer.orchestrator.interview_state import InterviewState
from mock_interviewer.schemas import (
    CloseOutcome,
    ConversationTurn,
    InterviewContext,
    InterviewSession,
    SessionState,
    TurnOutcome,
    TurnRole,
)
from mock_interviewer.voice.transcription import TranscriptionClient
from mock_interviewer.voice.tts import TTSProvider


class SessionStore(Protocol):
    """Durable storage for closed sessions."""

    async def save_session(self, session: InterviewSession) -> str:
        """Persist a session and return its id; raises StorageError."""
        ...

    async def load_recent_sessions(self, user_id: str, limit: int = 20) -> list[InterviewSession]:
        """Sessions of one user, most recent first; raises StorageError."""
        ...


class ConversationOrchestrator:
    """
    Orchestrates a single mock interview session.

    The orchestrator is the only writer of the session's turns. At most one
    turn-producing operation runs at a time; a second concurrent request is
    rejected with SessionBusy rather than queued.
    """

    def __init__(
        self,
        dialogue: DialogueGenerator | None = None,
        transcription: TranscriptionClient | None = None,
        synthesizer: TTSProvider | None = None,
        parser: EvaluationParser | None = None,
        store: SessionStore | None = None,
        user_id: str | None = None,
        evaluate_each_turn: bool | None = None,
    ) -> None:
        """
        Initialize the conversation orchestrator.

        Args:
            dialogue: Interviewer agent. Creates default if None.
            transcription: Client used by submit_audio. Text-only sessions may omit it.
            synthesizer: Speech synthesis provider. Sessions are text-only if None.
            parser: Evaluation parser. Creates default if None.
            store: Session store used on close and by save().
            user_id: Opaque id of the candidate's account.
            evaluate_each_turn: Score every answer as it arrives (uses config if None).
        """
        self._logger = logging.getLogger(__name__)
        settings = get_settings()

        self._dialogue = dialogue or DialogueGenerator()
        self._transcription = transcription
        self._synthesizer = synthesizer
        self._parser = parser or EvaluationParser()
        self._store = store
        self._user_id = user_id
        self._evaluate_each_turn = (
            settings.evaluate_each_turn if evaluate_each_turn is None else evaluate_each_turn
        )

        self._state = SessionState.UNINITIALIZED
        self._conversation: InterviewState | None = None
        self._session: InterviewSession | None = None
        self._saved_id: str | None = None
        self._busy = False
        self._cancel = asyncio.Event()

    @property
    def state(self) -> SessionState:
        """Get the current session state."""
        return self._state

    @property
    def session_id(self) -> UUID | None:
        """Get the current session identifier."""
        return self._conversation.session_id if self._conversation else None

    @property
    def context(self) -> InterviewContext | None:
        return self._conversation.context if self._conversation else None

    @property
    def turns(self) -> list[ConversationTurn]:
        """Get all conversation turns so far."""
        return self._conversation.turns if self._conversation else []

    @property
    def session(self) -> InterviewSession | None:
        """Get the closed session record, if the session has closed."""
        return self._session

    @property
    def saved_id(self) -> str | None:
        return self._saved_id

    @property
    def is_busy(self) -> bool:
        return self._busy

    @property
    def is_abandoned(self) -> bool:
        return self._cancel.is_set()

    @contextmanager
    def _exclusive(self, operation: str, *allowed: SessionState) -> Iterator[None]:
        """
        Claim the single in-flight slot for an operation.

        The check and the claim happen before the first await, so two
        coroutines of the same session can never both pass.
        """
        if self._busy:
            raise SessionBusy(f"Cannot {operation}: another operation is in progress")
        if allowed and self._state not in allowed:
            raise SessionStateError(f"Cannot {operation} in state '{self._state.value}'")
        self._busy = True
        try:
            yield
        finally:
            self._busy = False

    def _require_live(self, operation: str) -> InterviewState:
        if self._conversation is None:
            raise SessionStateError(f"Cannot {operation}: session has not started")
        if self._cancel.is_set():
            raise SessionStateError(f"Cannot {operation}: session was abandoned")
        return self._conversation

    async def start(
        self,
        context: InterviewContext | Mapping[str, Any] | None,
    ) -> TurnOutcome:
        """
        Start the session and produce the interviewer's opening.

        Args:
            context: Company, role and level (model or mapping).

        Returns:
            The opening turn.

        Raises:
            InvalidContext: If company, role or level is missing.
            GenerationFailed: If the opening could not be generated; the
                session stays uninitialized and start() may be retried.
        """
        with self._exclusive("start", SessionState.UNINITIALIZED):
            interview_context = InterviewContext.from_value(context)
            self._logger.info(
                f"Starting interview: {interview_context.role} at "
                f"{interview_context.company}, level {interview_context.level}"
            )
            return await self._introduce(InterviewState(interview_context))

    async def reset(self) -> TurnOutcome:
        """
        Restart the conversation with the same context.

        Discards all turns, assigns a new session id and produces a fresh
        opening. If the opening fails the previous conversation is kept.

        Returns:
            The new opening turn.
        """
        with self._exclusive("reset"):
            if self._conversation is None:
                raise SessionStateError("Cannot reset: session has not started")

            self._logger.info(f"Resetting session {self._conversation.session_id}")
            previous_cancel = self._cancel
            self._cancel = asyncio.Event()
            try:
                outcome = await self._introduce(InterviewState(self._conversation.context))
            except GenerationFailed:
                self._cancel = previous_cancel
                raise
            self._session = None
            self._saved_id = None
            return outcome

    async def _introduce(self, conversation: InterviewState) -> TurnOutcome:
        """Record the preamble and opening on a fresh conversation, then swap it in."""
        previous_state = self._state
        self._state = SessionState.INTRODUCING

        conversation.add_turn(TurnRole.SYSTEM, conversation.context.preamble())
        try:
            opening = await self._dialogue.opening(conversation.context)
        except GenerationFailed as e:
            self._logger.error(f"Opening generation failed: {e}")
            self._state = previous_state
            raise

        conversation.add_turn(TurnRole.INTERVIEWER, opening)
        self._conversation = conversation
        audio, degraded = await self._speak(opening)
        self._state = SessionState.AWAITING_RESPONSE

        return TurnOutcome(
            interviewer_text=opening,
            audio=audio,
            synthesis_degraded=degraded,
        )

    async def submit_audio(self, audio: bytes) -> TurnOutcome:
        """
        Process a recorded candidate answer.

        Args:
            audio: Recorded audio bytes.

        Returns:
            The candidate's transcript and the interviewer's next question.

        Raises:
            TranscriptionFailed: Transcription failed, timed out or was
                cancelled; no turn is appended.
            GenerationFailed: The next question could not be generated; the
                answer is kept and resubmitting it regenerates.
        """
        with self._exclusive("submit audio", SessionState.AWAITING_RESPONSE):
            self._require_live("submit audio")
            if self._transcription is None:
                raise SessionStateError("Cannot submit audio: no transcription client configured")

            try:
                text = await self._transcription.submit(audio, cancel=self._cancel)
            except TranscriptionFailed as e:
                self._logger.warning(f"Transcription failed: {e}")
                raise

            return await self._respond(text)

    async def submit_transcript(self, text: str) -> TurnOutcome:
        """
        Process a candidate answer that is already text.

        Args:
            text: Candidate answer.

        Returns:
            The candidate's answer and the interviewer's next question.
        """
        with self._exclusive("submit transcript", SessionState.AWAITING_RESPONSE):
            self._require_live("submit transcript")
            answer = (text or "").strip()
            if not answer:
                raise TranscriptionFailed("Answer is empty")
            return await self._respond(answer)

    async def _respond(self, answer: str) -> TurnOutcome:
        conversation = self._conversation
        assert conversation is not None

        turn, duplicate = conversation.add_candidate_turn(answer)
        reply = conversation.reply_to(turn) if duplicate else None
        if reply is not None:
            self._logger.info("Answer repeats an answered candidate turn; replaying its reply")
            audio, degraded = await self._speak(reply.content)
            return TurnOutcome(
                interviewer_text=reply.content,
                candidate_text=answer,
                audio=audio,
                synthesis_degraded=degraded,
                duplicate_answer=True,
            )
        if duplicate:
            self._logger.info("Answer repeats the previous candidate turn; regenerating question")

        self._state = SessionState.GENERATING
        try:
            question = await self._dialogue.next_question(conversation.context, conversation.turns)
            conversation.add_turn(TurnRole.INTERVIEWER, question)
            audio, degraded = await self._speak(question)
            evaluation = await self._evaluate_answer(turn) if self._evaluate_each_turn else None
        except GenerationFailed as e:
            self._logger.error(f"Question generation failed: {e}")
            raise
        finally:
            self._state = SessionState.AWAITING_RESPONSE

        return TurnOutcome(
            interviewer_text=question,
            candidate_text=answer,
            audio=audio,
            synthesis_degraded=degraded,
            duplicate_answer=duplicate,
            evaluation=evaluation,
        )

    async def _speak(self, text: str) -> tuple[bytes | None, bool]:
        """Synthesize an utterance; failure leaves the turn text-only."""
        if self._synthesizer is None:
            return None, False
        try:
            return await self._synthesizer.synthesize(text), False
        except SynthesisDegraded as e:
            self._logger.warning(f"Speech synthesis degraded, continuing text-only: {e}")
            return None, True

    async def _evaluate_answer(self, answer: ConversationTurn) -> EvaluationResult | None:
        conversation = self._conversation
        assert conversation is not None
        try:
            raw = await self._dialogue.evaluate(conversation.context, [answer], single_answer=True)
        except GenerationFailed as e:
            self._logger.warning(f"Per-answer evaluation failed: {e}")
            return None

        result = self._parser.parse(raw)
        if result.is_empty:
            self._logger.warning("Per-answer evaluation produced no rubric categories")
            return None
        return result

    async def close(self) -> CloseOutcome:
        """
        End the session and evaluate the candidate.

        The closed session is handed to the store when one is configured.

        Returns:
            The closed session and its evaluation.

        Raises:
            GenerationFailed: Evaluation could not be generated; the session
                returns to awaiting a response.
            StorageError: The store rejected the session. The session is
                closed and kept in memory; call save() to retry.
        """
        with self._exclusive("close", SessionState.AWAITING_RESPONSE):
            conversation = self._require_live("close")
            self._state = SessionState.CLOSING

            answers = conversation.candidate_answers()
            raw_evaluation = ""
            evaluation = EvaluationResult()
            if not answers:
                self._logger.info("No candidate answers; skipping evaluation")
            else:
                try:
                    raw_evaluation = await self._dialogue.evaluate(conversation.context, answers)
                except GenerationFailed as e:
                    self._logger.error(f"Evaluation generation failed: {e}")
                    self._state = SessionState.AWAITING_RESPONSE
                    raise
                try:
                    evaluation = self._parser.parse(raw_evaluation, strict=True)
                except EvaluationUnparseable as e:
                    self._logger.warning(f"{e}; storing default scores")

            self._session = InterviewSession(
                session_id=conversation.session_id,
                user_id=self._user_id,
                context=conversation.context,
                transcript=conversation.turns,
                evaluation=evaluation.with_defaults(),
                evaluation_available=not evaluation.is_empty,
                raw_evaluation=raw_evaluation,
            )
            self._state = SessionState.CLOSED
            self._logger.info(
                f"Closed session {conversation.session_id} with {len(answers)} answer(s)"
            )

            saved_id = await self._save() if self._store is not None else None
            return CloseOutcome(session=self._session, evaluation=evaluation, saved_id=saved_id)

    async def save(self) -> str:
        """
        Persist the closed session.

        Idempotent: once saved, returns the stored id without writing again.

        Returns:
            Store id of the session.

        Raises:
            StorageError: The store failed; the session stays in memory.
        """
        with self._exclusive("save", SessionState.CLOSED):
            if self._store is None:
                raise SessionStateError("Cannot save: no session store configured")
            return await self._save()

    async def _save(self) -> str:
        assert self._session is not None and self._store is not None
        if self._saved_id is not None:
            return self._saved_id
        try:
            self._saved_id = await self._store.save_session(self._session)
        except StorageError as e:
            self._logger.error(f"Saving session {self._session.session_id} failed: {e}")
            raise
        self._logger.info(f"Saved session {self._saved_id}")
        return self._saved_id

    def abandon(self) -> None:
        """
        Abandon the session.

        Any in-flight transcription stops with TranscriptionCancelled and
        later turn requests are rejected until reset().
        """
        if not self._cancel.is_set():
            self._logger.info("Session abandoned")
        self._cancel.set()
