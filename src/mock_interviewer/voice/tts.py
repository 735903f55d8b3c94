"""Text-to-speech (offline).

Default implementation uses `piper` via subprocess. Long utterances are split
into sentence chunks, synthesized one by one, and joined into a single WAV.
"""

from __future__ import annotations

import asyncio
import io
import logging
import re
import shutil
import subprocess
import tempfile
import wave
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

from mock_interviewer.config import get_settings
from mock_interviewer.errors import SynthesisDegraded

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TTSConfig:
    piper_bin: str = "piper"
    model_path: str | None = None  # path to *.onnx
    speaker_id: int | None = None
    max_chars_per_chunk: int = 350
    timeout_s: float = 60.0

    @classmethod
    def from_settings(cls) -> TTSConfig:
        settings = get_settings()
        return cls(
            piper_bin=settings.piper_bin,
            model_path=settings.piper_model,
            timeout_s=settings.piper_timeout,
        )


class TTSProvider(ABC):
    @abstractmethod
    async def synthesize(self, text: str) -> bytes:
        """
        Render text as audio.

        Returns:
            WAV bytes (empty for blank text).

        Raises:
            SynthesisDegraded: If synthesis failed.
        """
        ...


def concat_wavs(paths: list[Path]) -> bytes:
    """Join WAV files that share one format into a single WAV payload."""
    if not paths:
        return b""
    buf = io.BytesIO()
    with wave.open(buf, "wb") as out:
        for idx, path in enumerate(paths):
            with wave.open(str(path), "rb") as src:
                if idx == 0:
                    out.setparams(src.getparams())
                out.writeframes(src.readframes(src.getnframes()))
    return buf.getvalue()


class PiperTTS(TTSProvider):
    def __init__(self, config: TTSConfig | None = None) -> None:
        self._config = config or TTSConfig.from_settings()
        self._validated_piper_path: str | None = None

    @property
    def config(self) -> TTSConfig:
        return self._config

    def is_available(self) -> tuple[bool, str]:
        try:
            _ = self._require_piper()
            return True, "ok"
        except RuntimeError as e:
            return False, str(e)

    def _looks_like_piper_tts(self, piper_path: str) -> bool:
        try:
            r = subprocess.run(
                [piper_path, "--help"],
                check=False,
                text=True,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                timeout=5,
            )
        except (OSError, subprocess.TimeoutExpired):
            return False

        out = (r.stdout or "").lower()
        # Piper TTS CLI typically supports these flags.
        return ("--model" in out or "--output_file" in out) and "application options" not in out

    def _require_piper(self) -> str:
        if self._validated_piper_path:
            return self._validated_piper_path

        p = shutil.which(self._config.piper_bin)
        if not p:
            raise RuntimeError(
                "piper CLI not found. Install piper (binary) and ensure it's on PATH, "
                "or set PIPER_BIN."
            )
        if not self._looks_like_piper_tts(p):
            raise RuntimeError(
                "Found a `piper` binary, but it does not look like the Piper TTS CLI "
                "(common on Linux: /usr/bin/piper is a GTK app). Set PIPER_BIN to the Piper TTS binary."
            )
        if not self._config.model_path:
            raise RuntimeError("Piper model path not configured. Set PIPER_MODEL=/path/to/voice.onnx.")

        self._validated_piper_path = p
        return p

    def _chunk_text(self, text: str) -> list[str]:
        t = (text or "").strip()
        if not t:
            return []

        # Split on sentence-ish boundaries, then re-pack into chunks.
        parts = [p.strip() for p in re.split(r"(?<=[.!?])\s+", t) if p.strip()]
        chunks: list[str] = []
        current = ""
        for p in parts:
            if not current:
                current = p
                continue
            if len(current) + 1 + len(p) <= self._config.max_chars_per_chunk:
                current = current + " " + p
            else:
                chunks.append(current)
                current = p
        if current:
            chunks.append(current)

        return chunks

    def _run_piper(self, piper_bin: str, chunk: str, wav_path: Path) -> None:
        cmd = [piper_bin, "--model", str(self._config.model_path), "--output_file", str(wav_path)]
        if self._config.speaker_id is not None:
            cmd += ["--speaker", str(self._config.speaker_id)]

        try:
            subprocess.run(
                cmd,
                input=chunk,
                text=True,
                check=True,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                timeout=self._config.timeout_s,
            )
        except subprocess.TimeoutExpired as e:
            raise SynthesisDegraded(
                f"piper timed out after {self._config.timeout_s:.1f}s. "
                f"model={self._config.model_path!s}"
            ) from e
        except subprocess.CalledProcessError as e:
            stderr = (e.stderr or "").strip()
            raise SynthesisDegraded(
                f"piper failed (exit={e.returncode}). stderr={stderr or '<empty>'}"
            ) from e
        except OSError as e:
            raise SynthesisDegraded(f"piper could not be started: {e}") from e

    async def synthesize(self, text: str) -> bytes:
        chunks = self._chunk_text(text)
        if not chunks:
            return b""

        try:
            piper_bin = await asyncio.to_thread(self._require_piper)
        except RuntimeError as e:
            raise SynthesisDegraded(str(e)) from e

        with tempfile.TemporaryDirectory(prefix="mock_interviewer_tts_") as tmp:
            wavs: list[Path] = []
            for idx, chunk in enumerate(chunks):
                wav_path = Path(tmp) / f"chunk_{idx:02d}.wav"
                await asyncio.to_thread(self._run_piper, piper_bin, chunk, wav_path)
                wavs.append(wav_path)

            try:
                audio = concat_wavs(wavs)
            except (OSError, EOFError, wave.Error) as e:
                raise SynthesisDegraded(f"piper produced unreadable audio: {e}") from e

        logger.debug(f"Synthesized {len(chunks)} chunk(s), {len(audio)} bytes")
        return audio
