"""
Exception hierarchy for the interview pipeline.

Every failure that crosses a component boundary is one of these types, so
callers can tell a retryable step failure from a caller error.
"""


class InterviewError(Exception):
    """Base class for all interview pipeline errors."""


class InvalidContext(InterviewError, ValueError):
    """Company, role or level is missing or blank."""


class TranscriptionFailed(InterviewError):
    """The transcription provider failed or returned no usable text."""


class TranscriptionTimeout(TranscriptionFailed):
    """Polling hit the attempt cap before the job reached a terminal state."""


class TranscriptionCancelled(TranscriptionFailed):
    """The owning session was abandoned while a transcription was pending."""


class GenerationFailed(InterviewError):
    """The dialogue-generation provider failed after its retries."""


class SynthesisDegraded(InterviewError):
    """Speech synthesis failed; the session continues text-only."""


class SessionBusy(InterviewError):
    """A turn-producing operation is already in flight for this session."""


class SessionStateError(InterviewError, RuntimeError):
    """The operation is not valid in the session's current state."""


class EvaluationUnparseable(InterviewError):
    """Evaluation text produced no recognisable rubric categories."""


class StorageError(InterviewError):
    """The session store failed to persist or load sessions."""
