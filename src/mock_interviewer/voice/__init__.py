"""Voice subsystem.

Recorded audio -> transcription -> orchestrator -> speech synthesis.

The orchestrator remains the single authority for interview flow; nothing in
this package touches conversation state.
"""

from mock_interviewer.voice.stt import (
    STTConfig,
    STTProvider,
    TranscriptionResult,
    WhisperSTT,
)
from mock_interviewer.voice.transcription import (
    AssemblyAIProvider,
    JobState,
    TranscriptionClient,
    TranscriptionProvider,
    TranscriptionStatus,
    WhisperJobProvider,
)
from mock_interviewer.voice.tts import PiperTTS, TTSConfig, TTSProvider, concat_wavs

__all__ = [
    "STTConfig",
    "STTProvider",
    "TranscriptionResult",
    "WhisperSTT",
    "AssemblyAIProvider",
    "JobState",
    "TranscriptionClient",
    "TranscriptionProvider",
    "TranscriptionStatus",
    "WhisperJobProvider",
    "PiperTTS",
    "TTSConfig",
    "TTSProvider",
    "concat_wavs",
]
