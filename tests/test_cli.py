"""Tests for the command-line interface.

WHY: The CLI is a thin shell over EditorSession, but its contract
(stdout carries results, stderr carries status, exit code 1 on failure)
is what scripts rely on.

HOW: main() is called with an explicit argv pointing --storage at a
catalog file in tmp_path. The collaborator service is replaced with the
shared fake via monkeypatch, so "transcribe" and "ask" run offline.
"""

from __future__ import annotations

import json

import pytest

from tests.conftest import SAMPLE_SEGMENTS, make_fake_service
from transcript_editor.cli import build_parser, main
from transcript_editor.core.models import EditMode, Session
from transcript_editor.storage.catalog import JsonFileStorage

STORAGE_KEY = "transcript-editor-storage"


@pytest.fixture
def storage_path(tmp_path):
    path = tmp_path / "storage.json"
    JsonFileStorage(path).set(STORAGE_KEY, {
        "sessions": [
            Session(
                id="s1",
                name="interview.mp3",
                date=1_700_000_000.0,
                segments=list(SAMPLE_SEGMENTS),
            ).to_dict()
        ],
        "language": "es",
    })
    return path


@pytest.fixture
def fake_service(monkeypatch):
    service = make_fake_service()
    monkeypatch.setattr("transcript_editor.editor.TranscriptService", lambda: service)
    return service


def _run(storage_path, *args):
    main(["--storage", str(storage_path)] + list(args))


def _stored_sessions(storage_path):
    data = json.loads(storage_path.read_text(encoding="utf-8"))
    return data[STORAGE_KEY]["sessions"]


class TestParser:
    def test_subcommands(self):
        parser = build_parser()
        args = parser.parse_args(["refine", "s1", "--mode", "CLEANED"])
        assert args.command == "refine"
        assert args.mode == "CLEANED"

    def test_invalid_mode_rejected(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["refine", "s1", "--mode", "POETIC"])

    def test_export_defaults(self):
        args = build_parser().parse_args(["export", "s1"])
        assert args.format == "plain_text"
        assert args.timecodes is True


class TestSessionsCommand:
    def test_lists_sessions(self, storage_path, capsys):
        _run(storage_path, "sessions")
        out = capsys.readouterr().out
        assert "s1" in out
        assert "interview.mp3" in out

    def test_empty_catalog(self, tmp_path, capsys):
        _run(tmp_path / "empty.json", "sessions")
        assert "No saved sessions." in capsys.readouterr().err


class TestExportCommand:
    def test_export_to_stdout(self, storage_path, capsys):
        _run(storage_path, "export", "s1", "--no-timecodes")
        out = capsys.readouterr().out
        assert out.startswith("Ana: Good morning and welcome.")

    def test_export_to_directory(self, storage_path, tmp_path):
        _run(storage_path, "export", "s1", "--format", "markdown", "--output-dir", str(tmp_path))
        assert (tmp_path / "interview.md").read_text(encoding="utf-8").startswith("**Ana**")

    def test_unknown_session_exits_1(self, storage_path, capsys):
        with pytest.raises(SystemExit) as excinfo:
            _run(storage_path, "export", "nope")
        assert excinfo.value.code == 1
        assert "Session not found" in capsys.readouterr().err


class TestCollaboratorCommands:
    def test_transcribe_saves_session(self, tmp_path, fake_service, capsys):
        media = tmp_path / "talk.mp3"
        media.write_bytes(b"fake audio")
        storage_path = tmp_path / "storage.json"

        _run(storage_path, "transcribe", str(media), "--format", "plain_text")

        captured = capsys.readouterr()
        assert captured.out.startswith("[00:00] Ana:")
        assert "Session:" in captured.err
        sessions = _stored_sessions(storage_path)
        assert len(sessions) == 1
        assert sessions[0]["name"] == "talk.mp3"

    def test_transcribe_missing_file(self, tmp_path, fake_service):
        with pytest.raises(SystemExit) as excinfo:
            _run(tmp_path / "s.json", "transcribe", str(tmp_path / "missing.mp3"))
        assert excinfo.value.code == 1

    def test_refine_persists_mode(self, storage_path, fake_service):
        _run(storage_path, "refine", "s1", "--mode", "JOURNALISTIC")
        assert _stored_sessions(storage_path)[0]["editMode"] == EditMode.JOURNALISTIC.value

    def test_refine_failure_exits_1(self, storage_path, fake_service, capsys):
        fake_service.refine.side_effect = RuntimeError("boom")
        with pytest.raises(SystemExit):
            _run(storage_path, "refine", "s1", "--mode", "CLEANED")
        assert "Refinement failed" in capsys.readouterr().err

    def test_ask_prints_answer(self, storage_path, fake_service, capsys):
        _run(storage_path, "ask", "s1", "Who is speaking?")
        assert capsys.readouterr().out.strip() == "Two speakers: Ana and Jon."


class TestDeleteCommand:
    def test_delete(self, storage_path):
        _run(storage_path, "delete", "s1")
        assert _stored_sessions(storage_path) == []

    def test_delete_unknown(self, storage_path):
        with pytest.raises(SystemExit):
            _run(storage_path, "delete", "nope")
