"""Command-line interface for the transcript editor.

WHY: Not every edit needs the HTTP API. Transcribing a recording,
listing what has been saved, exporting a session or asking a quick
question about it are one-shot tasks that fit a terminal and a pipe.

HOW: argparse subcommands each build an EditorSession over the JSON
catalog file (--storage) and drive it the same way the HTTP layer does.
Async editor calls run via asyncio.run(). Status messages go to stderr,
results (exports, answers, session lists) go to stdout. Commands that
change a session end with the editor's teardown flush.

RULES:
- Subcommands: transcribe, sessions, export, refine, ask, delete, serve
- Status output goes to stderr (not stdout)
- Unknown session ids and failed actions exit with status 1
- --verbose switches logging to DEBUG
- Python 3.9 compatible (no match/case, no X | Y unions)
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from transcript_editor.config import (
    DEFAULT_LANGUAGE,
    STORAGE_PATH,
)
from transcript_editor.core.models import EditMode, Language, ProcessingStatus
from transcript_editor.editor import EditorSession
from transcript_editor.errors import TranscriptEditorError
from transcript_editor.formatters import FORMATTERS
from transcript_editor.storage.catalog import JsonFileStorage


def _status(msg: str) -> None:
    """Print a status message to stderr so stdout stays pipeable."""
    print(msg, file=sys.stderr, flush=True)


def _fail(msg: str) -> None:
    print("Error: {}".format(msg), file=sys.stderr)
    sys.exit(1)


def _open_editor(args: argparse.Namespace) -> EditorSession:
    return EditorSession.create(JsonFileStorage(Path(args.storage)))


def _load(editor: EditorSession, session_id: str) -> None:
    if editor.load_session(session_id) is None:
        _fail("Session not found: {}".format(session_id))


def _check_processing(editor: EditorSession) -> None:
    processing = editor.state.processing
    if processing.status is ProcessingStatus.ERROR:
        _fail(processing.message or "Operation failed.")


def _write_export(editor: EditorSession, args: argparse.Namespace) -> None:
    output = editor.export(args.format, include_timecodes=args.timecodes)
    if args.output_dir:
        output_dir = Path(args.output_dir).resolve()
        if not output_dir.is_dir():
            _fail("Output directory does not exist: {}".format(output_dir))
        path = output_dir / output.filename_for(editor.state.file_name)
        path.write_text(output.content, encoding="utf-8")
        _status("Saved: {}".format(path))
    else:
        sys.stdout.write(output.content)
        if not output.content.endswith("\n"):
            sys.stdout.write("\n")


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------


async def _transcribe(args: argparse.Namespace) -> None:
    input_path = Path(args.input_file).resolve()
    if not input_path.is_file():
        _fail("File not found: {}".format(input_path))

    editor = _open_editor(args)
    if args.language:
        editor.state.language = Language(args.language)
    editor.service.validate_media_size(input_path.stat().st_size)

    _status("Transcribing {} ({})...".format(input_path.name, editor.state.language.display_name))
    await editor.open_media(input_path.read_bytes(), input_path.name)
    _check_processing(editor)
    await editor.shutdown()

    _status("  {} segments, speakers: {}".format(
        len(editor.segments), ", ".join(editor.speakers) or "-"
    ))
    _status("Session: {}".format(editor.state.session_id))
    if args.format:
        _write_export(editor, args)


def _sessions(args: argparse.Namespace) -> None:
    editor = _open_editor(args)
    sessions = editor.persistence.list_sessions()
    if not sessions:
        _status("No saved sessions.")
        return
    for session in sessions:
        print("{}  {}  {:>4} segments  {:<12}  {}".format(
            session.id,
            datetime.fromtimestamp(session.date).strftime("%Y-%m-%d %H:%M"),
            len(session.segments),
            session.edit_mode.value,
            session.name,
        ))


def _export(args: argparse.Namespace) -> None:
    editor = _open_editor(args)
    _load(editor, args.session_id)
    _write_export(editor, args)


async def _refine(args: argparse.Namespace) -> None:
    editor = _open_editor(args)
    _load(editor, args.session_id)
    mode = EditMode(args.mode)
    _status("Refining {} to {}...".format(args.session_id, mode.value))
    changed = await editor.refine(mode)
    _check_processing(editor)
    if not changed:
        _status("  Nothing to do (already {}).".format(editor.state.edit_mode.value))
    await editor.shutdown()
    _status("Done.")


async def _ask(args: argparse.Namespace) -> None:
    editor = _open_editor(args)
    _load(editor, args.session_id)
    reply = await editor.ask(args.question)
    if reply is None:
        _fail("The session has no transcript to ask about.")
    if reply.is_error:
        _fail(reply.content)
    print(reply.content)


def _delete(args: argparse.Namespace) -> None:
    editor = _open_editor(args)
    if not editor.delete_session(args.session_id):
        _fail("Session not found: {}".format(args.session_id))
    _status("Deleted {}".format(args.session_id))


def _serve(args: argparse.Namespace) -> None:
    import uvicorn

    from transcript_editor.server.app import create_app

    app = create_app(_open_editor(args))
    uvicorn.run(app, host=args.host, port=args.port)


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def _add_export_options(parser: argparse.ArgumentParser, default: Optional[str]) -> None:
    parser.add_argument(
        "--format",
        default=default,
        choices=sorted(FORMATTERS),
        help="Export format (default: %(default)s).",
    )
    parser.add_argument(
        "--timecodes",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Include segment start times where the format supports it (default: %(default)s).",
    )
    parser.add_argument(
        "--output-dir",
        default=None,
        help="Write the export to this directory instead of stdout.",
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser; separate from main() so tests can inspect it."""
    parser = argparse.ArgumentParser(
        prog="transcript_editor",
        description="Transcribe recordings into speaker-attributed segments, "
                    "refine and query them, and export saved sessions.",
    )
    parser.add_argument(
        "--storage",
        default=str(STORAGE_PATH),
        help="Path to the saved-session catalog (default: %(default)s).",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("transcribe", help="Transcribe a media file into a new session.")
    p.add_argument("input_file", help="Path to the audio or video file.")
    p.add_argument(
        "--language",
        default=None,
        choices=[lang.value for lang in Language],
        help="Transcript language (default: saved preference or {}).".format(DEFAULT_LANGUAGE),
    )
    _add_export_options(p, default=None)

    sub.add_parser("sessions", help="List saved sessions, newest first.")

    p = sub.add_parser("export", help="Export a saved session.")
    p.add_argument("session_id")
    _add_export_options(p, default="plain_text")

    p = sub.add_parser("refine", help="Refine a saved session to an edit mode.")
    p.add_argument("session_id")
    p.add_argument(
        "--mode",
        required=True,
        choices=[m.value for m in EditMode],
        help="Target edit mode.",
    )

    p = sub.add_parser("ask", help="Ask a question about a saved session.")
    p.add_argument("session_id")
    p.add_argument("question")

    p = sub.add_parser("delete", help="Delete a saved session.")
    p.add_argument("session_id")

    p = sub.add_parser("serve", help="Run the HTTP API.")
    p.add_argument("--host", default="127.0.0.1")
    p.add_argument("--port", type=int, default=8000)

    return parser


_ASYNC_COMMANDS = {"transcribe": _transcribe, "refine": _refine, "ask": _ask}
_SYNC_COMMANDS = {"sessions": _sessions, "export": _export, "delete": _delete, "serve": _serve}


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for ``python -m transcript_editor`` and the console script."""
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command in _ASYNC_COMMANDS:
            asyncio.run(_ASYNC_COMMANDS[args.command](args))
        else:
            _SYNC_COMMANDS[args.command](args)
    except KeyboardInterrupt:
        _status("\nCancelled by user.")
        sys.exit(130)
    except TranscriptEditorError as e:
        _fail(e.user_message)


if __name__ == "__main__":
    main()
