import json

import pytest

from mock_interviewer.evaluation import parse_evaluation
from mock_interviewer.schemas import CloseOutcome, ConversationTurn, InterviewContext, InterviewSession, TurnRole


def test_voice_runner_env_defaults_are_used(monkeypatch):
    monkeypatch.setenv("MOCK_INTERVIEW_COMPANY", "Acme")
    monkeypatch.setenv("MOCK_INTERVIEW_ROLE", "Backend Engineer")
    monkeypatch.setenv("MOCK_INTERVIEW_LEVEL", "L4")
    monkeypatch.setenv("MOCK_INTERVIEW_PIPER_BIN", "/tmp/piper")
    monkeypatch.setenv("MOCK_INTERVIEW_PIPER_MODEL", "/tmp/voice.onnx")
    monkeypatch.setenv("MOCK_INTERVIEW_STT_MODEL", "base")
    monkeypatch.setenv("MOCK_INTERVIEW_TRANSCRIBER", "assemblyai")

    from scripts.mock_interview import build_parser

    args = build_parser().parse_args(["answer1.wav", "answer2.wav"])
    assert args.answers == ["answer1.wav", "answer2.wav"]
    assert args.company == "Acme"
    assert args.role == "Backend Engineer"
    assert args.level == "L4"
    assert args.piper_bin == "/tmp/piper"
    assert args.piper_model == "/tmp/voice.onnx"
    assert args.stt_model == "base"
    assert args.transcriber == "assemblyai"


def test_voice_runner_flags_override_env(monkeypatch):
    monkeypatch.setenv("MOCK_INTERVIEW_COMPANY", "Acme")

    from scripts.mock_interview import _flag, build_parser

    args = build_parser().parse_args(["--company", "Globex", "--tts-enabled", "no"])
    assert args.company == "Globex"
    assert _flag(args.tts_enabled) is False
    assert _flag("YES") is True


@pytest.mark.asyncio
async def test_voice_runner_rejects_missing_context(monkeypatch):
    for name in ("MOCK_INTERVIEW_COMPANY", "MOCK_INTERVIEW_ROLE", "MOCK_INTERVIEW_LEVEL"):
        monkeypatch.delenv(name, raising=False)

    from mock_interviewer.errors import InvalidContext
    from scripts import mock_interview

    with pytest.raises(InvalidContext, match="company"):
        await mock_interview.main(["--role", "Backend Engineer", "--level", "L4"])


def test_voice_runner_writes_result_json(tmp_path):
    from scripts.mock_interview import _write_result

    session = InterviewSession(
        user_id="user-1",
        context=InterviewContext(company="Acme", role="Backend Engineer", level="L4"),
        transcript=[ConversationTurn(role=TurnRole.CANDIDATE, content="I would use a hash map.")],
        evaluation=parse_evaluation("Correctness: 8/10 – Good.").with_defaults(),
        evaluation_available=True,
    )
    _write_result(tmp_path, CloseOutcome(session=session, evaluation=session.evaluation, saved_id="db-1"))

    data = json.loads((tmp_path / "result.json").read_text(encoding="utf-8"))
    assert data["context"]["company"] == "Acme"
    assert data["evaluation"]["Correctness"]["score"] == "8/10"
    assert data["transcript"][0]["role"] == "candidate"
    assert data["saved_id"] == "db-1"


class _FakeEngine:
    def __init__(self) -> None:
        self.disposed = False

    async def dispose(self) -> None:
        self.disposed = True


class _EmptyStore:
    def __init__(self, session_factory) -> None:
        self.session_factory = session_factory

    async def load_recent_sessions(self, user_id: str, limit: int = 20):
        return []


@pytest.mark.asyncio
async def test_history_report_disposes_engine(monkeypatch, capsys):
    from mock_interviewer import main as main_module

    engine = _FakeEngine()

    async def fake_create_schema(e):
        assert e is engine

    monkeypatch.setattr(main_module, "create_engine", lambda url: engine)
    monkeypatch.setattr(main_module, "create_schema", fake_create_schema)
    monkeypatch.setattr(main_module, "create_session_factory", lambda e: "factory")
    monkeypatch.setattr(main_module, "SqlSessionStore", _EmptyStore)

    await main_module.run_interview(["--history", "user-1"])

    assert "No interview sessions found." in capsys.readouterr().out
    assert engine.disposed


@pytest.mark.asyncio
async def test_voice_runner_disposes_engine_when_schema_fails(monkeypatch):
    from mock_interviewer.errors import StorageError
    from scripts import mock_interview

    engine = _FakeEngine()

    async def failing_create_schema(e):
        raise StorageError("database unavailable")

    monkeypatch.setattr(mock_interview, "create_engine", lambda url: engine)
    monkeypatch.setattr(mock_interview, "create_schema", failing_create_schema)

    with pytest.raises(StorageError):
        await mock_interview.main(
            ["--company", "Acme", "--role", "Backend Engineer", "--level", "L4", "--store", "yes"]
        )
    assert engine.disposed


@pytest.mark.asyncio
async def test_voice_runner_skips_tts_when_piper_is_missing(monkeypatch):
    from mock_interviewer.voice import tts as tts_module
    from scripts.mock_interview import _build_tts, build_parser

    monkeypatch.setattr(tts_module.shutil, "which", lambda name: None)
    args = build_parser().parse_args(["--piper-model", "/tmp/voice.onnx"])

    assert await _build_tts(args) is None
