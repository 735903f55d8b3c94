#!/usr/bin/env python

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path

from mock_interviewer.agents import DialogueGenerator
from mock_interviewer.config import get_settings
from mock_interviewer.db import SqlSessionStore, create_engine, create_schema, create_session_factory
from mock_interviewer.errors import GenerationFailed, StorageError, TranscriptionFailed
from mock_interviewer.io.text_interface import format_evaluation
from mock_interviewer.models.llm_client import LLMClient
from mock_interviewer.orchestrator.interview_orchestrator import ConversationOrchestrator
from mock_interviewer.schemas import CloseOutcome, InterviewContext, TurnOutcome
from mock_interviewer.voice.stt import STTConfig, WhisperSTT
from mock_interviewer.voice.transcription import (
    AssemblyAIProvider,
    TranscriptionClient,
    TranscriptionProvider,
    WhisperJobProvider,
)
from mock_interviewer.voice.tts import PiperTTS, TTSConfig

logger = logging.getLogger("mock_interview")


def _flag(v: str) -> bool:
    return (v or "").strip().lower() in {"1", "true", "yes", "y", "on"}


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Run a mock interview over recorded answers")
    p.add_argument("answers", nargs="*", help="Recorded answer files, in order")

    p.add_argument("--company", default=os.getenv("MOCK_INTERVIEW_COMPANY"))
    p.add_argument("--role", default=os.getenv("MOCK_INTERVIEW_ROLE"))
    p.add_argument("--level", default=os.getenv("MOCK_INTERVIEW_LEVEL"))
    p.add_argument("--user-id", default=os.getenv("MOCK_INTERVIEW_USER_ID"))

    p.add_argument(
        "--artifacts-dir",
        default=os.getenv("MOCK_INTERVIEW_ARTIFACTS_DIR", "data/interviews"),
        help="Where to store interview artifacts (default: MOCK_INTERVIEW_ARTIFACTS_DIR or data/interviews)",
    )
    p.add_argument(
        "--store",
        default=os.getenv("MOCK_INTERVIEW_STORE", "false"),
        help="Persist the session to DATABASE_URL (default: MOCK_INTERVIEW_STORE or false)",
    )
    p.add_argument(
        "--evaluate-each-turn",
        default=os.getenv("MOCK_INTERVIEW_EVALUATE_EACH_TURN", "false"),
        help="Score every answer (default: MOCK_INTERVIEW_EVALUATE_EACH_TURN or false)",
    )

    # Transcription
    p.add_argument(
        "--transcriber",
        default=os.getenv("MOCK_INTERVIEW_TRANSCRIBER", "whisper"),
        choices=["whisper", "assemblyai"],
        help="Transcription provider (default: MOCK_INTERVIEW_TRANSCRIBER or 'whisper')",
    )
    p.add_argument(
        "--stt-model",
        default=os.getenv("MOCK_INTERVIEW_STT_MODEL", "small"),
        help="faster-whisper model size (default: MOCK_INTERVIEW_STT_MODEL or 'small')",
    )
    p.add_argument(
        "--stt-device",
        default=os.getenv("MOCK_INTERVIEW_STT_DEVICE", "cpu"),
        choices=["cpu", "cuda", "auto"],
        help="STT device (default: MOCK_INTERVIEW_STT_DEVICE or 'cpu')",
    )

    # TTS
    p.add_argument(
        "--tts-enabled",
        default=os.getenv("MOCK_INTERVIEW_TTS_ENABLED", "true"),
        help="Synthesize interviewer audio (default: MOCK_INTERVIEW_TTS_ENABLED or true)",
    )
    p.add_argument(
        "--piper-bin",
        default=os.getenv("MOCK_INTERVIEW_PIPER_BIN", "piper"),
        help="Path/name of Piper TTS binary (default: MOCK_INTERVIEW_PIPER_BIN or 'piper')",
    )
    p.add_argument(
        "--piper-model",
        default=os.getenv("MOCK_INTERVIEW_PIPER_MODEL", None),
        help="Path to Piper .onnx model (default: MOCK_INTERVIEW_PIPER_MODEL)",
    )
    p.add_argument(
        "--piper-timeout",
        type=float,
        default=float(os.getenv("MOCK_INTERVIEW_PIPER_TIMEOUT_S", "60") or "60"),
        help="Timeout (seconds) per Piper synthesis chunk (default: MOCK_INTERVIEW_PIPER_TIMEOUT_S or 60)",
    )

    return p


def _build_provider(args) -> TranscriptionProvider:
    if args.transcriber == "assemblyai":
        return AssemblyAIProvider()
    return WhisperJobProvider(WhisperSTT(STTConfig(model_size=args.stt_model, device=args.stt_device)))


async def _build_tts(args) -> PiperTTS | None:
    tts = PiperTTS(TTSConfig(piper_bin=args.piper_bin, model_path=args.piper_model, timeout_s=args.piper_timeout))
    ok, reason = await asyncio.to_thread(tts.is_available)
    if not ok:
        logger.warning(f"Speech synthesis disabled: {reason}")
        return None
    return tts


def _write_audio(session_dir: Path, index: int, outcome: TurnOutcome) -> str | None:
    if not outcome.audio:
        return None
    path = session_dir / f"interviewer_{index:02d}.wav"
    path.write_bytes(outcome.audio)
    return str(path)


def _log_turn(session_dir: Path, *, role: str, text: str, audio_path: str | None) -> None:
    rec = {"role": role, "text": text, "audio": audio_path}
    with (session_dir / "turns.jsonl").open("a", encoding="utf-8") as f:
        f.write(json.dumps(rec, ensure_ascii=False) + "\n")


def _write_result(session_dir: Path, result: CloseOutcome) -> None:
    session = result.session
    data = {
        "session_id": str(session.session_id),
        "user_id": session.user_id,
        "context": session.context.model_dump(),
        "created_at": session.created_at.isoformat(),
        "transcript": [turn.model_dump(mode="json") for turn in session.transcript],
        "evaluation": session.evaluation.to_record(),
        "evaluation_available": session.evaluation_available,
        "raw_evaluation": session.raw_evaluation,
        "saved_id": result.saved_id,
    }
    (session_dir / "result.json").write_text(json.dumps(data, indent=2, default=str), encoding="utf-8")


async def _answer(orchestrator: ConversationOrchestrator, audio: bytes) -> TurnOutcome | None:
    try:
        return await orchestrator.submit_audio(audio)
    except TranscriptionFailed as e:
        logger.warning(f"Skipping answer: {e}")
        return None
    except GenerationFailed:
        # The answer is kept; resubmitting regenerates the question without duplicating it.
        logger.warning("Question generation failed; retrying once")
        return await orchestrator.submit_audio(audio)


async def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)

    settings = get_settings()
    logging.basicConfig(level=getattr(logging, settings.log_level), stream=sys.stdout)

    context = InterviewContext.from_value(
        {"company": args.company or "", "role": args.role or "", "level": args.level or ""}
    )

    if not _flag(args.store):
        await _run(args, context, store=None)
        return

    engine = create_engine(settings.database_url)
    try:
        await create_schema(engine)
        await _run(args, context, store=SqlSessionStore(create_session_factory(engine)))
    finally:
        await engine.dispose()


async def _run(args, context: InterviewContext, store: SqlSessionStore | None) -> None:
    settings = get_settings()
    provider = _build_provider(args)
    tts = await _build_tts(args) if _flag(args.tts_enabled) else None

    llm_client = LLMClient(model=settings.llm_model_name, timeout=settings.llm_timeout)
    orchestrator = ConversationOrchestrator(
        dialogue=DialogueGenerator(llm_client=llm_client),
        transcription=TranscriptionClient(provider),
        synthesizer=tts,
        store=store,
        user_id=args.user_id,
        evaluate_each_turn=_flag(args.evaluate_each_turn),
    )

    try:
        opening = await orchestrator.start(context)
        session_dir = Path(args.artifacts_dir) / str(orchestrator.session_id)
        session_dir.mkdir(parents=True, exist_ok=True)

        print(f"Interviewer: {opening.interviewer_text}")
        _log_turn(session_dir, role="interviewer", text=opening.interviewer_text,
                  audio_path=_write_audio(session_dir, 0, opening))

        for index, answer_path in enumerate(args.answers, start=1):
            outcome = await _answer(orchestrator, Path(answer_path).read_bytes())
            if outcome is None:
                continue
            print(f"You: {outcome.candidate_text}")
            print(f"Interviewer: {outcome.interviewer_text}")
            _log_turn(session_dir, role="candidate", text=outcome.candidate_text or "", audio_path=answer_path)
            _log_turn(session_dir, role="interviewer", text=outcome.interviewer_text,
                      audio_path=_write_audio(session_dir, index, outcome))

        try:
            result = await orchestrator.close()
        except StorageError as e:
            logger.error(f"Session not saved: {e}")
            result = CloseOutcome(session=orchestrator.session, evaluation=orchestrator.session.evaluation)

        _write_result(session_dir, result)
        print(format_evaluation(result.session.evaluation, result.session.evaluation_available))
        print(f"Artifacts: {session_dir}")
    finally:
        await provider.close()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        raise SystemExit(0)
