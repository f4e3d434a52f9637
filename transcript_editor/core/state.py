"""Injectable state container for the active editing session.

WHY: The store, history, persistence manager, and outer surfaces all
need to read (and a few need to change) the same active session. An
explicit container passed to each of them replaces a shared global.

HOW: EditorState holds the session id, file name, SegmentStore, edit
mode, language, and processing state. Changes to segments, edit mode,
or file name are announced to change listeners with the field name;
the persistence manager listens to mark the session dirty.

RULES:
- Exactly one SegmentStore per EditorState; reset() clears it in place
- Listeners fire only for real changes
- session_generation increments whenever the active session is replaced,
  so async work started for an older session can detect it is stale
"""

from __future__ import annotations

from typing import Callable, List, Optional

from transcript_editor.core.models import (
    EditMode,
    Language,
    ProcessingState,
    ProcessingStatus,
    Session,
)
from transcript_editor.core.segments import SegmentStore, Segments

ChangeListener = Callable[[str], None]


class EditorState:
    """Active session state shared by the editing components."""

    def __init__(
        self,
        store: Optional[SegmentStore] = None,
        language: Language = Language.ES,
    ) -> None:
        self.store = store or SegmentStore()
        self.session_id: Optional[str] = None
        self._file_name = ""
        self._edit_mode = EditMode.RAW
        self.language = language
        self.processing = ProcessingState()
        self.session_generation = 0
        self._listeners: List[ChangeListener] = []
        self.store.subscribe(self._on_segments_changed)

    # -- observers -----------------------------------------------------

    def subscribe(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def _notify(self, field_name: str) -> None:
        for listener in self._listeners:
            listener(field_name)

    def _on_segments_changed(self, _segments: Segments) -> None:
        self._notify("segments")

    # -- fields --------------------------------------------------------

    @property
    def segments(self) -> Segments:
        return self.store.segments

    @property
    def file_name(self) -> str:
        return self._file_name

    @file_name.setter
    def file_name(self, value: str) -> None:
        if value != self._file_name:
            self._file_name = value
            self._notify("file_name")

    @property
    def edit_mode(self) -> EditMode:
        return self._edit_mode

    @edit_mode.setter
    def edit_mode(self, value: EditMode) -> None:
        if value != self._edit_mode:
            self._edit_mode = value
            self._notify("edit_mode")

    def set_processing(
        self,
        status: ProcessingStatus,
        message: Optional[str] = None,
        detail: Optional[str] = None,
    ) -> None:
        self.processing = ProcessingState(status=status, message=message, detail=detail)

    @property
    def is_busy(self) -> bool:
        return self.processing.status.is_busy

    # -- lifecycle -----------------------------------------------------

    def begin_session(self, session_id: str, file_name: str = "") -> None:
        """Start a fresh session with no segments yet."""
        self.session_generation += 1
        self.session_id = session_id
        self._file_name = file_name
        self._edit_mode = EditMode.RAW
        self.store.replace_all(())

    def adopt(self, session: Session) -> None:
        """Make a stored session the active one."""
        self.session_generation += 1
        self.session_id = session.id
        self._file_name = session.name
        self.language = session.language
        self._edit_mode = session.edit_mode
        self.store.replace_all(session.segments)
        self.set_processing(ProcessingStatus.COMPLETED)

    def reset(self) -> None:
        """Return to an empty, idle state with no active session."""
        self.session_generation += 1
        self.session_id = None
        self._file_name = ""
        self._edit_mode = EditMode.RAW
        self.store.replace_all(())
        self.set_processing(ProcessingStatus.IDLE)
