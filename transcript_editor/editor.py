"""Editor session: the coordinator behind every user action.

WHY: A user action touches several components at once. A split mutates
the store, becomes an undo step, and marks the session dirty. A refine
must also respect the processing gate, report progress, and survive
the collaborator failing. Putting that choreography in one place keeps
the components themselves small and single-purpose.

HOW: EditorSession receives the EditorState, HistoryManager,
TranscriptService, and SessionPersistence explicitly. Manual edits go
straight to the SegmentStore; structural edits commit to history at
once, while text and speaker edits are batched until commit() is
called. Long-running collaborator calls (transcribe, refine) pass the
processing gate, record the session generation before suspending, and
drop their result if the active session changed in the meantime.

RULES:
- Only one long-running call per session; a second raises
  OperationInProgressError and leaves state untouched
- A long-running call always ends in COMPLETED or ERROR, never stuck busy
- Collaborator failures do not raise out of transcribe/refine; they
  set an ERROR state whose message names the failed action
- Per-segment corrections may overlap on different ids; each locks its
  own segment until it resolves, and refine/undo/redo raise
  OperationInProgressError while any correction is running
- delete, merge and split are commit points; text/speaker edits commit
  on commit(), after a correction, and after a refine
"""

from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import List, Optional

from transcript_editor.api.service import TranscriptService
from transcript_editor.config import DEFAULT_LANGUAGE, SUPPORTED_MEDIA_TYPES
from transcript_editor.core import segments as segment_ops
from transcript_editor.core.history import HistoryEntry, HistoryManager
from transcript_editor.core.models import (
    ChatMessage,
    EditMode,
    Language,
    ProcessingStatus,
    Session,
    TranscriptSegment,
    new_session_id,
)
from transcript_editor.core.segments import Segments
from transcript_editor.core.state import EditorState
from transcript_editor.errors import (
    OperationInProgressError,
    TranscriptEditorError,
    UnsupportedMediaError,
)
from transcript_editor.formatters import FORMATTERS
from transcript_editor.formatters.base import FormatterOutput
from transcript_editor.storage.catalog import KeyValueStorage
from transcript_editor.storage.persistence import SessionPersistence

logger = logging.getLogger(__name__)


def _failure_message(action: str, exc: BaseException) -> str:
    if isinstance(exc, TranscriptEditorError):
        return "{} failed: {}".format(action, exc.user_message)
    return "{} failed.".format(action)


def resolve_mime_type(file_name: str, mime_type: Optional[str] = None) -> str:
    """Pick the media type from an explicit value or the file extension."""
    if mime_type:
        return mime_type
    ext = Path(file_name).suffix.lower()
    if ext not in SUPPORTED_MEDIA_TYPES:
        raise UnsupportedMediaError(
            "Unsupported file type '{}'. Supported formats: {}".format(
                ext, ", ".join(sorted(SUPPORTED_MEDIA_TYPES))
            )
        )
    return SUPPORTED_MEDIA_TYPES[ext]


class EditorSession:
    """One active transcript session and the actions a user can take on it."""

    def __init__(
        self,
        state: EditorState,
        history: HistoryManager,
        service: TranscriptService,
        persistence: SessionPersistence,
    ) -> None:
        self.state = state
        self.history = history
        self.service = service
        self.persistence = persistence
        self.chat: List[ChatMessage] = []
        self._asking = False

    @classmethod
    def create(
        cls,
        storage: KeyValueStorage,
        service: Optional[TranscriptService] = None,
    ) -> EditorSession:
        """Wire a fresh editor around ``storage`` with default components."""
        state = EditorState(language=Language(DEFAULT_LANGUAGE))
        persistence = SessionPersistence(state, storage)
        return cls(
            state=state,
            history=HistoryManager(),
            service=service or TranscriptService(),
            persistence=persistence,
        )

    @property
    def store(self) -> segment_ops.SegmentStore:
        return self.state.store

    @property
    def segments(self) -> Segments:
        return self.state.segments

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Drop the active session and return to an idle, empty editor."""
        self.state.reset()
        self.history.reset((), EditMode.RAW)
        self.chat = []
        self.persistence.mark_clean()

    def load_session(self, session_id: str) -> Optional[Session]:
        """Adopt a saved session and reseed history from it."""
        session = self.persistence.load(session_id)
        if session is None:
            return None
        self.state.adopt(session)
        self.history.reset(session.segments, session.edit_mode)
        self.chat = []
        logger.info("Loaded session %s (%s)", session.id, session.name)
        return session

    def delete_session(self, session_id: str) -> bool:
        deleted = self.persistence.delete(session_id)
        if deleted and self.state.session_id == session_id:
            self.reset()
        return deleted

    def set_language(self, language: Language) -> None:
        self.state.language = language
        self.persistence.save_preferences()

    # ------------------------------------------------------------------
    # Long-running collaborator calls
    # ------------------------------------------------------------------

    def _begin(self, status: ProcessingStatus, message: str) -> None:
        if self.state.is_busy:
            raise OperationInProgressError(
                "Cannot start {}: {} is still running".format(
                    status.value, self.state.processing.status.value
                )
            )
        self.state.set_processing(status, message)

    def _check_no_corrections(self, action: str) -> None:
        if self.store.locked_ids:
            raise OperationInProgressError(
                "Cannot {} while segment corrections are running".format(action)
            )

    def _fail(self, action: str, exc: BaseException) -> None:
        logger.exception("%s failed", action)
        self.state.set_processing(
            ProcessingStatus.ERROR, _failure_message(action, exc), detail=str(exc)
        )

    async def open_media(
        self,
        media: bytes,
        file_name: str,
        mime_type: Optional[str] = None,
    ) -> bool:
        """Start a session from a media file and transcribe it.

        If the active session already has segments, the file is only
        attached (its name recorded) and nothing is transcribed. Both
        paths are refused while another long-running call is active.

        Returns:
            True if new segments were installed.
        """
        if self.state.session_id and self.state.segments:
            if self.state.is_busy:
                raise OperationInProgressError(
                    "Cannot attach media: {} is still running".format(
                        self.state.processing.status.value
                    )
                )
            self.state.file_name = file_name
            self.state.set_processing(ProcessingStatus.COMPLETED)
            return False

        self._begin(ProcessingStatus.UPLOADING, "Processing file...")
        self.state.begin_session(new_session_id(), file_name)
        self.history.reset((), EditMode.RAW)
        self.chat = []
        generation = self.state.session_generation

        try:
            resolved = resolve_mime_type(file_name, mime_type)
            self.state.set_processing(ProcessingStatus.TRANSCRIBING, "Transcribing media...")
            transcript = await self.service.transcribe(media, resolved, self.state.language)
        except Exception as exc:
            if generation == self.state.session_generation:
                self._fail("Transcription", exc)
            return False

        if generation != self.state.session_generation:
            logger.info("Discarding transcription for a session that is no longer active")
            return False

        self.store.replace_all(transcript)
        self.state.edit_mode = EditMode.RAW
        self.history.reset(transcript, EditMode.RAW)
        self.state.set_processing(ProcessingStatus.COMPLETED)
        self.persistence.mark_dirty()
        self.persistence.flush()
        return True

    async def refine(self, mode: EditMode) -> bool:
        """Rewrite the whole transcript at ``mode`` and commit the result.

        Returns:
            True if the refined segments were installed.
        """
        if mode == self.state.edit_mode or not self.state.segments:
            return False

        self._check_no_corrections("refine")
        self._begin(ProcessingStatus.REFINING, "Refining text...")
        generation = self.state.session_generation
        try:
            refined = await self.service.refine(self.state.segments, mode, self.state.language)
        except Exception as exc:
            if generation == self.state.session_generation:
                self._fail("Refinement", exc)
            return False

        if generation != self.state.session_generation:
            logger.info("Discarding refine result for a session that is no longer active")
            return False

        self.store.replace_all(refined)
        self.state.edit_mode = mode
        self.history.commit(self.state.segments, mode)
        self.state.set_processing(ProcessingStatus.COMPLETED)
        return True

    async def correct_segment(self, segment_id: str) -> bool:
        """Run the per-segment correction; the segment is read-only meanwhile.

        Refine and undo/redo are refused while any correction runs. The
        result is still discarded if the segment's text changed under it.

        Returns:
            True if the correction was applied (even if the text came
            back unchanged).
        """
        segment = self.store.get(segment_id)
        if segment is None or self.store.is_locked(segment_id):
            return False

        generation = self.state.session_generation
        self.store.lock(segment_id)
        try:
            corrected = await self.service.correct_segment(segment.text, self.state.language)
        finally:
            self.store.unlock(segment_id)

        current = self.store.get(segment_id)
        if (
            generation != self.state.session_generation
            or current is None
            or current.text != segment.text
        ):
            logger.info("Discarding correction for segment %s", segment_id)
            return False

        before = self.state.segments
        if self.store.edit_text(segment_id, corrected) is not before:
            self.commit()
        return True

    @property
    def correcting_ids(self) -> frozenset:
        return self.store.locked_ids

    async def ask(self, question: str) -> Optional[ChatMessage]:
        """Ask the assistant about the transcript and log both turns.

        Returns:
            The assistant's reply (flagged ``is_error`` on failure), or
            None if the question was ignored.
        """
        if not question.strip() or self._asking or not self.state.segments:
            return None

        self.chat.append(ChatMessage(id=uuid.uuid4().hex, role="user", content=question))
        generation = self.state.session_generation
        self._asking = True
        try:
            answer = await self.service.query(self.state.segments, question, self.state.language)
            reply = ChatMessage(id=uuid.uuid4().hex, role="assistant", content=answer)
        except Exception as exc:
            logger.exception("Transcript query failed")
            reply = ChatMessage(
                id=uuid.uuid4().hex,
                role="assistant",
                content=_failure_message("Question", exc),
                is_error=True,
            )
        finally:
            self._asking = False

        if generation != self.state.session_generation:
            return None
        self.chat.append(reply)
        return reply

    # ------------------------------------------------------------------
    # Manual edits
    # ------------------------------------------------------------------

    def commit(self) -> HistoryEntry:
        """Record the current state as an undo step (e.g. on focus loss)."""
        return self.history.commit(self.state.segments, self.state.edit_mode)

    def edit_text(self, segment_id: str, new_text: str, commit: bool = False) -> Segments:
        result = self.store.edit_text(segment_id, new_text)
        if commit:
            self.commit()
        return result

    def edit_speaker(self, segment_id: str, new_speaker: str, commit: bool = False) -> Segments:
        result = self.store.edit_speaker(segment_id, new_speaker)
        if commit:
            self.commit()
        return result

    def delete_segment(self, segment_id: str) -> Segments:
        return self._structural(self.store.delete, segment_id)

    def merge_segment(self, segment_id: str) -> Segments:
        return self._structural(self.store.merge, segment_id)

    def split_segment(self, segment_id: str, cursor_position: int) -> Segments:
        return self._structural(self.store.split, segment_id, cursor_position)

    def _structural(self, operation, *args) -> Segments:  # noqa: ANN001
        before = self.state.segments
        result = operation(*args)
        if result is not before:
            self.commit()
        return result

    def undo(self) -> Optional[HistoryEntry]:
        self._check_no_corrections("undo")
        return self._apply(self.history.undo())

    def redo(self) -> Optional[HistoryEntry]:
        self._check_no_corrections("redo")
        return self._apply(self.history.redo())

    def _apply(self, entry: Optional[HistoryEntry]) -> Optional[HistoryEntry]:
        if entry is not None:
            self.store.replace_all(entry.segments)
            self.state.edit_mode = entry.edit_mode
        return entry

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    def export(self, format_key: str = "plain_text", include_timecodes: bool = True) -> FormatterOutput:
        if format_key not in FORMATTERS:
            raise ValueError(
                "Unknown export format '{}'. Available: {}".format(
                    format_key, ", ".join(sorted(FORMATTERS))
                )
            )
        formatter = FORMATTERS[format_key](include_timecodes=include_timecodes)
        return formatter.format(self.state.segments)

    def search(self, term: str) -> List[TranscriptSegment]:
        return segment_ops.search(self.state.segments, term)

    def active_segment_index(self, seconds: float) -> int:
        return segment_ops.active_index_at(self.state.segments, seconds)

    @property
    def speakers(self) -> List[str]:
        return segment_ops.known_speakers(self.state.segments)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def flush(self) -> bool:
        return self.persistence.flush()

    def start_autosave(self, interval: Optional[float] = None):  # noqa: ANN201
        if interval is None:
            return self.persistence.start_autosave()
        return self.persistence.start_autosave(interval)

    async def shutdown(self) -> bool:
        """Stop autosave and flush one last time."""
        return await self.persistence.shutdown()
