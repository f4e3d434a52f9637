"""FastAPI application exposing one editor session over HTTP.

WHY: A browser front end (or curl, or a notebook) needs to drive the
editor without embedding Python: upload media, edit segments, undo,
refine, ask questions, export, and manage saved sessions.

HOW: create_app() builds a FastAPI app around a single EditorSession
kept on ``app.state.editor``. Routes live on one APIRouter and reach
the editor through a dependency. Media uploads are validated up front
and transcribed in a BackgroundTasks callable; clients poll GET /state.
The lifespan starts the autosave loop and performs the teardown flush.

RULES:
- One active session per app instance
- 404 for unknown segment/session ids, 409 when a long-running call is
  already active, 413 for oversized media, 423 for a segment locked by
  an in-flight correction
- Every segment edit made through the API is a commit point
- Python 3.9+ compatible (no match/case, no PEP 604 unions)
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Annotated, List, Optional

from fastapi import (
    APIRouter,
    BackgroundTasks,
    Depends,
    FastAPI,
    File,
    HTTPException,
    Request,
    UploadFile,
)
from fastapi.responses import JSONResponse, Response

from transcript_editor import __version__
from transcript_editor.config import STORAGE_PATH
from transcript_editor.editor import EditorSession, resolve_mime_type
from transcript_editor.errors import (
    FileTooLargeError,
    InputValidationError,
    OperationInProgressError,
    SegmentLockedError,
    StorageError,
)
from transcript_editor.formatters import FORMATTERS
from transcript_editor.server.models import (
    AskRequest,
    ChatMessageModel,
    EditorStateResponse,
    ErrorResponse,
    FlushResponse,
    FormatInfo,
    HealthResponse,
    LanguageRequest,
    ProcessingStateModel,
    RefineRequest,
    SegmentModel,
    SegmentPatchRequest,
    SessionSummary,
    SplitRequest,
)
from transcript_editor.storage.catalog import JsonFileStorage

logger = logging.getLogger(__name__)

router = APIRouter()


def get_editor(request: Request) -> EditorSession:
    return request.app.state.editor


EditorDep = Annotated[EditorSession, Depends(get_editor)]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _state_response(editor: EditorSession) -> EditorStateResponse:
    state = editor.state
    return EditorStateResponse(
        session_id=state.session_id,
        file_name=state.file_name,
        edit_mode=state.edit_mode,
        language=state.language,
        processing=ProcessingStateModel(
            status=state.processing.status,
            message=state.processing.message,
        ),
        segments=[SegmentModel.from_segment(s) for s in state.segments],
        can_undo=editor.history.can_undo,
        can_redo=editor.history.can_redo,
        correcting_ids=sorted(editor.correcting_ids),
        save_status=editor.persistence.save_status.value,
        dirty=editor.persistence.dirty,
    )


def _require_segment(editor: EditorSession, segment_id: str) -> None:
    if editor.store.get(segment_id) is None:
        raise HTTPException(status_code=404, detail="Segment not found: {}".format(segment_id))


async def _run_open_media(
    editor: EditorSession, media: bytes, file_name: str, mime_type: Optional[str]
) -> None:
    """Background wrapper: a gate rejection here is logged, not raised."""
    try:
        await editor.open_media(media, file_name, mime_type)
    except OperationInProgressError:
        logger.warning("Skipped transcription of %s: another operation is running", file_name)


# ---------------------------------------------------------------------------
# Endpoints: state and media
# ---------------------------------------------------------------------------


@router.get(
    "/state",
    response_model=EditorStateResponse,
    tags=["editor"],
    summary="Get the active session",
    description="Segments, edit mode, processing status, undo/redo availability and save status.",
)
async def get_state(editor: EditorDep) -> EditorStateResponse:
    return _state_response(editor)


@router.post(
    "/media",
    response_model=EditorStateResponse,
    status_code=202,
    tags=["editor"],
    summary="Upload media to transcribe",
    description=(
        "Starts a new session from an audio or video file and transcribes it "
        "in the background. If the active session already has segments the "
        "file is only attached. Poll GET /state for progress."
    ),
    responses={
        400: {"model": ErrorResponse, "description": "Unsupported file type"},
        409: {"model": ErrorResponse, "description": "Another operation is running"},
        413: {"model": ErrorResponse, "description": "File exceeds the upload limit"},
    },
)
async def upload_media(
    editor: EditorDep,
    background_tasks: BackgroundTasks,
    file: Annotated[UploadFile, File(description="Audio or video file to transcribe")],
) -> EditorStateResponse:
    # Sanitize filename to prevent path traversal
    filename = Path(file.filename or "upload").name
    content = await file.read()

    try:
        editor.service.validate_media_size(len(content))
        mime_type = resolve_mime_type(filename)
    except FileTooLargeError as exc:
        raise HTTPException(status_code=413, detail=str(exc))
    except InputValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    if editor.state.is_busy:
        raise HTTPException(status_code=409, detail="Another operation is still running")

    background_tasks.add_task(_run_open_media, editor, content, filename, mime_type)
    return _state_response(editor)


# ---------------------------------------------------------------------------
# Endpoints: segments
# ---------------------------------------------------------------------------


@router.patch(
    "/segments/{segment_id}",
    response_model=EditorStateResponse,
    tags=["segments"],
    summary="Edit a segment's text and/or speaker",
    responses={404: {"model": ErrorResponse}, 423: {"model": ErrorResponse}},
)
async def patch_segment(
    segment_id: str, body: SegmentPatchRequest, editor: EditorDep
) -> EditorStateResponse:
    _require_segment(editor, segment_id)
    if body.text is not None:
        editor.edit_text(segment_id, body.text)
    if body.speaker is not None:
        editor.edit_speaker(segment_id, body.speaker)
    if body.text is not None or body.speaker is not None:
        editor.commit()
    return _state_response(editor)


@router.delete(
    "/segments/{segment_id}",
    response_model=EditorStateResponse,
    tags=["segments"],
    summary="Delete a segment",
    responses={404: {"model": ErrorResponse}, 423: {"model": ErrorResponse}},
)
async def delete_segment(segment_id: str, editor: EditorDep) -> EditorStateResponse:
    _require_segment(editor, segment_id)
    editor.delete_segment(segment_id)
    return _state_response(editor)


@router.post(
    "/segments/{segment_id}/merge",
    response_model=EditorStateResponse,
    tags=["segments"],
    summary="Merge a segment into its predecessor",
    description="No-op for the first segment.",
    responses={404: {"model": ErrorResponse}, 423: {"model": ErrorResponse}},
)
async def merge_segment(segment_id: str, editor: EditorDep) -> EditorStateResponse:
    _require_segment(editor, segment_id)
    editor.merge_segment(segment_id)
    return _state_response(editor)


@router.post(
    "/segments/{segment_id}/split",
    response_model=EditorStateResponse,
    tags=["segments"],
    summary="Split a segment at a character offset",
    responses={404: {"model": ErrorResponse}, 423: {"model": ErrorResponse}},
)
async def split_segment(
    segment_id: str, body: SplitRequest, editor: EditorDep
) -> EditorStateResponse:
    _require_segment(editor, segment_id)
    editor.split_segment(segment_id, body.cursor_position)
    return _state_response(editor)


@router.post(
    "/segments/{segment_id}/correct",
    response_model=EditorStateResponse,
    tags=["segments"],
    summary="Correct one segment's text",
    description="Falls back to the original text if the service fails.",
    responses={404: {"model": ErrorResponse}},
)
async def correct_segment(segment_id: str, editor: EditorDep) -> EditorStateResponse:
    _require_segment(editor, segment_id)
    await editor.correct_segment(segment_id)
    return _state_response(editor)


# ---------------------------------------------------------------------------
# Endpoints: whole-transcript actions
# ---------------------------------------------------------------------------


@router.post(
    "/refine",
    response_model=EditorStateResponse,
    tags=["editor"],
    summary="Refine the transcript to an edit mode",
    responses={409: {"model": ErrorResponse}},
)
async def refine(body: RefineRequest, editor: EditorDep) -> EditorStateResponse:
    await editor.refine(body.mode)
    return _state_response(editor)


@router.post(
    "/undo",
    response_model=EditorStateResponse,
    tags=["editor"],
    summary="Undo",
    responses={409: {"model": ErrorResponse}},
)
async def undo(editor: EditorDep) -> EditorStateResponse:
    editor.undo()
    return _state_response(editor)


@router.post(
    "/redo",
    response_model=EditorStateResponse,
    tags=["editor"],
    summary="Redo",
    responses={409: {"model": ErrorResponse}},
)
async def redo(editor: EditorDep) -> EditorStateResponse:
    editor.redo()
    return _state_response(editor)


@router.post(
    "/ask",
    response_model=Optional[ChatMessageModel],
    tags=["assistant"],
    summary="Ask a question about the transcript",
    description="Returns null when the question is ignored (empty transcript or a question already pending).",
)
async def ask(body: AskRequest, editor: EditorDep) -> Optional[ChatMessageModel]:
    reply = await editor.ask(body.question)
    return ChatMessageModel.from_message(reply) if reply else None


@router.get(
    "/chat",
    response_model=List[ChatMessageModel],
    tags=["assistant"],
    summary="Conversation log for the active session",
)
async def chat(editor: EditorDep) -> List[ChatMessageModel]:
    return [ChatMessageModel.from_message(m) for m in editor.chat]


@router.put(
    "/language",
    response_model=EditorStateResponse,
    tags=["editor"],
    summary="Set the transcript language preference",
)
async def set_language(body: LanguageRequest, editor: EditorDep) -> EditorStateResponse:
    editor.set_language(body.language)
    return _state_response(editor)


# ---------------------------------------------------------------------------
# Endpoints: export
# ---------------------------------------------------------------------------


@router.get(
    "/formats",
    response_model=List[FormatInfo],
    tags=["export"],
    summary="List export formats",
)
async def list_formats() -> List[FormatInfo]:
    return [FormatInfo(key=key, name=cls().name) for key, cls in FORMATTERS.items()]


@router.get(
    "/export/{format_key}",
    tags=["export"],
    summary="Export the active transcript",
    responses={404: {"model": ErrorResponse, "description": "Unknown format"}},
)
async def export(format_key: str, editor: EditorDep, timecodes: bool = True) -> Response:
    if format_key not in FORMATTERS:
        raise HTTPException(status_code=404, detail="Unknown export format: {}".format(format_key))
    output = editor.export(format_key, include_timecodes=timecodes)
    filename = output.filename_for(editor.state.file_name)
    return Response(
        content=output.content,
        media_type=output.media_type,
        headers={"Content-Disposition": 'attachment; filename="{}"'.format(filename)},
    )


# ---------------------------------------------------------------------------
# Endpoints: saved sessions
# ---------------------------------------------------------------------------


@router.get(
    "/sessions",
    response_model=List[SessionSummary],
    tags=["sessions"],
    summary="List saved sessions, newest first",
)
async def list_sessions(editor: EditorDep) -> List[SessionSummary]:
    return [SessionSummary.from_session(s) for s in editor.persistence.list_sessions()]


@router.post(
    "/sessions/{session_id}/load",
    response_model=EditorStateResponse,
    tags=["sessions"],
    summary="Make a saved session the active one",
    responses={404: {"model": ErrorResponse}},
)
async def load_session(session_id: str, editor: EditorDep) -> EditorStateResponse:
    if editor.load_session(session_id) is None:
        raise HTTPException(status_code=404, detail="Session not found: {}".format(session_id))
    return _state_response(editor)


@router.delete(
    "/sessions/{session_id}",
    status_code=204,
    tags=["sessions"],
    summary="Delete a saved session",
    responses={404: {"model": ErrorResponse}},
)
async def delete_session(session_id: str, editor: EditorDep) -> Response:
    if not editor.delete_session(session_id):
        raise HTTPException(status_code=404, detail="Session not found: {}".format(session_id))
    return Response(status_code=204)


@router.post(
    "/sessions/flush",
    response_model=FlushResponse,
    tags=["sessions"],
    summary="Save the active session now if it has unsaved changes",
)
async def flush(editor: EditorDep) -> FlushResponse:
    saved = editor.flush()
    return FlushResponse(saved=saved, save_status=editor.persistence.save_status.value)


@router.get("/health", response_model=HealthResponse, tags=["health"], summary="Health check")
async def health() -> HealthResponse:
    return HealthResponse(status="ok", version=__version__)


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------


def _error_handler(status_code: int):  # noqa: ANN202
    async def handler(request: Request, exc: Exception) -> JSONResponse:
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})

    return handler


def create_app(editor: Optional[EditorSession] = None, autosave: bool = True) -> FastAPI:
    """Build the API around ``editor`` (default: one backed by STORAGE_PATH)."""
    if editor is None:
        editor = EditorSession.create(JsonFileStorage(STORAGE_PATH))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if autosave:
            editor.start_autosave()
        yield
        await editor.shutdown()

    app = FastAPI(
        lifespan=lifespan,
        title="Transcript Editor API",
        description=(
            "Edit speaker-attributed transcript segments: transcribe media, "
            "merge/split/delete segments with undo/redo, refine with AI, "
            "ask questions, export, and manage saved sessions."
        ),
        version=__version__,
    )
    app.state.editor = editor
    app.include_router(router)
    app.add_exception_handler(SegmentLockedError, _error_handler(423))
    app.add_exception_handler(OperationInProgressError, _error_handler(409))
    app.add_exception_handler(StorageError, _error_handler(500))
    return app
