"""Speech-to-text for recorded answers (offline).

Answers arrive as encoded audio bytes, the same payload a hosted provider
receives. `faster-whisper` decodes them in memory, so nothing is staged on
disk.
"""

from __future__ import annotations

import asyncio
import io
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class STTConfig:
    model_size: str = "small"
    # Default to CPU to avoid hard crashes when CUDA/cuDNN aren't present.
    device: str = "cpu"  # cpu|cuda|auto
    compute_type: str | None = None  # e.g. int8, float16
    language: str | None = "en"
    vad_filter: bool = True
    # Segments Whisper itself rates as probably silent are not part of the answer.
    no_speech_threshold: float = 0.6


@dataclass(frozen=True)
class TranscriptionResult:
    """Text of one recorded answer."""

    text: str
    language: str | None = None
    duration_s: float | None = None
    dropped_segments: int = 0


class STTProvider(ABC):
    @abstractmethod
    async def transcribe(self, audio: bytes) -> TranscriptionResult:
        """
        Transcribe one recorded answer.

        Args:
            audio: Encoded audio (wav, webm, mp3, ...).

        Returns:
            The answer text with silent segments removed.
        """
        ...


class WhisperSTT(STTProvider):
    """faster-whisper wrapper."""

    def __init__(self, config: STTConfig | None = None) -> None:
        self._config = config or STTConfig()
        self._model = None

    @property
    def config(self) -> STTConfig:
        return self._config

    def _load_model(self):
        if self._model is not None:
            return self._model

        try:
            from faster_whisper import WhisperModel  # type: ignore
        except ImportError as e:  # pragma: no cover
            raise RuntimeError(
                "faster-whisper is required for local transcription. "
                "Install with: pip install -e '.[voice]'"
            ) from e

        device = self._config.device
        if device == "auto":
            device = "cpu"

        kwargs = {}
        if self._config.compute_type:
            kwargs["compute_type"] = self._config.compute_type

        logger.info(f"Loading whisper model '{self._config.model_size}' on {device}")
        self._model = WhisperModel(self._config.model_size, device=device, **kwargs)
        return self._model

    def _transcribe_sync(self, audio: bytes) -> TranscriptionResult:
        model = self._load_model()
        segments, info = model.transcribe(
            io.BytesIO(audio),
            language=self._config.language,
            vad_filter=self._config.vad_filter,
        )

        kept: list[str] = []
        dropped = 0
        for segment in segments:
            text = (segment.text or "").strip()
            if not text:
                continue
            if (getattr(segment, "no_speech_prob", 0.0) or 0.0) > self._config.no_speech_threshold:
                dropped += 1
                continue
            kept.append(text)

        if dropped:
            logger.debug(f"Dropped {dropped} low-confidence segment(s)")
        return TranscriptionResult(
            text=" ".join(kept),
            language=getattr(info, "language", None),
            duration_s=getattr(info, "duration", None),
            dropped_segments=dropped,
        )

    async def transcribe(self, audio: bytes) -> TranscriptionResult:
        return await asyncio.to_thread(self._transcribe_sync, audio)
