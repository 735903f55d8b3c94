"""
Orchestrator module for managing interview flow and coordination.
"""

from mock_interviewer.orchestrator.interview_orchestrator import (
    ConversationOrchestrator,
    SessionStore,
)
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

__all__ = [
    "ConversationOrchestrator",
    "SessionStore",
    "InterviewState",
    "CloseOutcome",
    "ConversationTurn",
    "InterviewContext",
    "InterviewSession",
    "SessionState",
    "TurnOutcome",
    "TurnRole",
]
