"""
Pydantic schemas shared across the interview pipeline.

Defines data models for interview context, turns, outcomes and the
persisted session record.
"""

from collections.abc import Mapping
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from mock_interviewer.errors import InvalidContext
from mock_interviewer.evaluation.rubric import EvaluationResult


def _now_utc() -> datetime:
    """Get current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


class SessionState(str, Enum):
    """States of the conversation state machine."""

    UNINITIALIZED = "uninitialized"
    INTRODUCING = "introducing"
    AWAITING_RESPONSE = "awaiting_response"
    GENERATING = "generating"
    CLOSING = "closing"
    CLOSED = "closed"


class TurnRole(str, Enum):
    """Role of the speaker in a conversation turn."""

    SYSTEM = "system"
    INTERVIEWER = "interviewer"
    CANDIDATE = "candidate"


class InterviewContext(BaseModel):
    """Company, role and level the interview is conducted for."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    company: str = Field(..., min_length=1, description="Company the candidate is interviewing with")
    role: str = Field(..., min_length=1, description="Position being interviewed for")
    level: str = Field(..., min_length=1, description="Seniority level, e.g. L4")

    @classmethod
    def from_value(cls, value: "InterviewContext | Mapping[str, Any] | None") -> "InterviewContext":
        """
        Build a context from a model or a mapping.

        Args:
            value: Context model, mapping with company/role/level, or None.

        Returns:
            Validated context.

        Raises:
            InvalidContext: If any field is missing or blank.
        """
        if isinstance(value, InterviewContext):
            return value
        if value is None:
            raise InvalidContext("Interview context is required (company, role, level)")
        try:
            return cls.model_validate(dict(value))
        except ValidationError as e:
            missing = sorted({str(err["loc"][0]) for err in e.errors() if err.get("loc")})
            raise InvalidContext(
                f"Interview context is missing required fields: {', '.join(missing)}"
            ) from e

    def preamble(self) -> str:
        """System preamble recorded at the start of every session."""
        return (
            f"This is a mock interview for a {self.role} position at {self.company}, "
            f"level: {self.level}."
        )


class ConversationTurn(BaseModel):
    """A single turn in the interview conversation."""

    model_config = ConfigDict(frozen=True)

    turn_id: UUID = Field(default_factory=uuid4, description="Unique turn identifier")
    role: TurnRole = Field(..., description="Role of the speaker")
    content: str = Field(..., description="Content of the turn")
    timestamp: datetime = Field(default_factory=_now_utc, description="When the turn occurred")


class TurnOutcome(BaseModel):
    """What one turn-producing operation produced."""

    interviewer_text: str = Field(..., description="Interviewer utterance for this turn")
    candidate_text: str | None = Field(default=None, description="Transcribed candidate answer")
    audio: bytes | None = Field(default=None, description="Synthesized interviewer audio")
    synthesis_degraded: bool = Field(
        default=False,
        description="Speech synthesis failed and the turn is text-only",
    )
    duplicate_answer: bool = Field(
        default=False,
        description="The answer repeated the previous candidate turn and was not re-appended",
    )
    evaluation: EvaluationResult | None = Field(
        default=None,
        description="Per-answer evaluation when enabled",
    )


class InterviewSession(BaseModel):
    """Closed interview session handed to the session store."""

    model_config = ConfigDict(frozen=True)

    session_id: UUID = Field(default_factory=uuid4, description="Unique session identifier")
    user_id: str | None = Field(default=None, description="Opaque id of the candidate's account")
    context: InterviewContext = Field(..., description="Interview context")
    transcript: list[ConversationTurn] = Field(default_factory=list, description="Ordered turns")
    evaluation: EvaluationResult = Field(
        default_factory=EvaluationResult,
        description="Rubric scores with all six categories present",
    )
    evaluation_available: bool = Field(
        default=False,
        description="False when the evaluation text yielded no categories",
    )
    raw_evaluation: str = Field(default="", description="Unparsed evaluation text")
    created_at: datetime = Field(default_factory=_now_utc, description="When the session closed")


class CloseOutcome(BaseModel):
    """Result of closing a session."""

    session: InterviewSession = Field(..., description="The closed session record")
    evaluation: EvaluationResult = Field(..., description="Evaluation as parsed, before defaults")
    saved_id: str | None = Field(default=None, description="Store id when the session was saved")
