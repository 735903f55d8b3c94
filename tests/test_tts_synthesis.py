import io
import subprocess
import threading
import wave

import pytest

from mock_interviewer.errors import SynthesisDegraded
from mock_interviewer.voice import tts as tts_module
from mock_interviewer.voice.tts import PiperTTS, TTSConfig


class _Completed:
    def __init__(self, stdout: str = "") -> None:
        self.returncode = 0
        self.stdout = stdout
        self.stderr = ""


def _write_wav(path: str, frames: bytes) -> None:
    with wave.open(path, "wb") as w:
        w.setnchannels(1)
        w.setsampwidth(2)
        w.setframerate(16000)
        w.writeframes(frames)


@pytest.fixture
def fake_piper(monkeypatch):
    """Piper stand-in that writes one short WAV per chunk."""
    chunks: list[str] = []

    def fake_run(cmd, **kwargs):
        if "--help" in cmd:
            return _Completed(stdout="usage: piper --model MODEL --output_file FILE")
        chunks.append(kwargs["input"])
        out = cmd[cmd.index("--output_file") + 1]
        _write_wav(out, b"\x01\x00" * 10)
        return _Completed()

    monkeypatch.setattr(tts_module.shutil, "which", lambda name: f"/opt/piper/{name}")
    monkeypatch.setattr(tts_module.subprocess, "run", fake_run)
    return chunks


def test_chunking_packs_sentences() -> None:
    tts = PiperTTS(TTSConfig(model_path="voice.onnx", max_chars_per_chunk=30))

    chunks = tts._chunk_text("First sentence here. Second one. A third, longer sentence follows!")

    assert chunks == ["First sentence here.", "Second one.", "A third, longer sentence follows!"]
    assert tts._chunk_text("   ") == []


@pytest.mark.asyncio
async def test_synthesize_joins_chunks_into_one_wav(fake_piper) -> None:
    tts = PiperTTS(TTSConfig(model_path="voice.onnx", max_chars_per_chunk=20))

    audio = await tts.synthesize("Hello there. How are you doing today?")

    assert fake_piper == ["Hello there.", "How are you doing today?"]
    with wave.open(io.BytesIO(audio), "rb") as w:
        assert w.getnframes() == 20
        assert w.getframerate() == 16000


@pytest.mark.asyncio
async def test_blank_text_yields_no_audio(fake_piper) -> None:
    assert await PiperTTS(TTSConfig(model_path="voice.onnx")).synthesize("  ") == b""
    assert fake_piper == []


@pytest.mark.asyncio
async def test_missing_binary_is_degraded(monkeypatch) -> None:
    monkeypatch.setattr(tts_module.shutil, "which", lambda name: None)
    tts = PiperTTS(TTSConfig(model_path="voice.onnx"))

    with pytest.raises(SynthesisDegraded, match="not found"):
        await tts.synthesize("Hello.")
    assert tts.is_available()[0] is False


@pytest.mark.asyncio
async def test_missing_model_is_degraded(fake_piper) -> None:
    with pytest.raises(SynthesisDegraded, match="model path"):
        await PiperTTS(TTSConfig(model_path=None)).synthesize("Hello.")


@pytest.mark.asyncio
async def test_piper_timeout_is_degraded(monkeypatch) -> None:
    def fake_run(cmd, **kwargs):
        if "--help" in cmd:
            return _Completed(stdout="--model --output_file")
        raise subprocess.TimeoutExpired(cmd, kwargs["timeout"])

    monkeypatch.setattr(tts_module.shutil, "which", lambda name: "/opt/piper/piper")
    monkeypatch.setattr(tts_module.subprocess, "run", fake_run)

    with pytest.raises(SynthesisDegraded, match="timed out"):
        await PiperTTS(TTSConfig(model_path="voice.onnx", timeout_s=1.0)).synthesize("Hello.")


@pytest.mark.asyncio
async def test_gtk_piper_is_rejected(monkeypatch) -> None:
    monkeypatch.setattr(tts_module.shutil, "which", lambda name: "/usr/bin/piper")
    monkeypatch.setattr(
        tts_module.subprocess,
        "run",
        lambda cmd, **kwargs: _Completed(stdout="Application Options: --display"),
    )

    with pytest.raises(SynthesisDegraded, match="does not look like"):
        await PiperTTS(TTSConfig(model_path="voice.onnx")).synthesize("Hello.")


@pytest.mark.asyncio
async def test_piper_check_runs_off_the_event_loop(monkeypatch, fake_piper) -> None:
    loop_thread = threading.get_ident()
    check_threads: list[int] = []

    def fake_which(name):
        check_threads.append(threading.get_ident())
        return f"/opt/piper/{name}"

    monkeypatch.setattr(tts_module.shutil, "which", fake_which)

    await PiperTTS(TTSConfig(model_path="voice.onnx")).synthesize("Hello.")

    assert check_threads and loop_thread not in check_threads
