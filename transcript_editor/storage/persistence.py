"""Session persistence: dirty tracking, periodic flush, and the saved catalog.

WHY: Editing sessions can run for hours. Work must survive a crash or
a closed terminal without the user ever pressing "save", and a failed
write (full disk, unserialisable value) must not take the editor down
with it.

HOW: SessionPersistence listens to the EditorState and sets ``dirty``
when segments, edit mode or file name change for a session that has an
id. flush() upserts the active session into the in-memory catalog
(newest first) and writes the whole catalog plus the language
preference under one storage key. An asyncio task calls flush() on a
fixed interval; shutdown() stops it and makes one last attempt.

RULES:
- flush() is a no-op when clean, when there is no active session id, or
  when the active session has no segments
- A successful flush clears ``dirty``; a failed one leaves it set,
  keeps the previous catalog, and reports SaveStatus.ERROR
- flush() is not reentrant: a call made while one is running returns False
- delete() rewrites the catalog immediately; resetting the editor when
  the active session is deleted is the caller's job
"""

from __future__ import annotations

import asyncio
import copy
import enum
import logging
import time
from collections.abc import Callable
from datetime import datetime
from typing import Dict, List, Optional

from transcript_editor.config import AUTOSAVE_INTERVAL_S, STORAGE_KEY
from transcript_editor.core.models import Language, Session
from transcript_editor.core.state import EditorState
from transcript_editor.errors import StorageError
from transcript_editor.storage.catalog import KeyValueStorage

logger = logging.getLogger(__name__)

_DIRTYING_FIELDS = frozenset({"segments", "edit_mode", "file_name"})


class SaveStatus(str, enum.Enum):
    IDLE = "idle"
    SAVING = "saving"
    SAVED = "saved"
    ERROR = "error"


def default_session_name(when: datetime) -> str:
    return "Transcript {}".format(when.strftime("%Y-%m-%d %H:%M"))


class SessionPersistence:
    """Catalog of saved sessions plus best-effort saving of the active one.

    Args:
        state: The active-session container to watch and snapshot.
        storage: Key-value backend; the whole catalog lives under ``key``.
        key: Storage key for the catalog record.
        clock: Returns epoch seconds; injectable for tests.
    """

    def __init__(
        self,
        state: EditorState,
        storage: KeyValueStorage,
        key: str = STORAGE_KEY,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.state = state
        self.storage = storage
        self.key = key
        self._clock = clock
        self.catalog: Dict[str, Session] = {}
        self.dirty = False
        self.save_status = SaveStatus.IDLE
        self.last_error: Optional[str] = None
        self._flushing = False
        self._autosave_task: Optional[asyncio.Task] = None

        self._load()
        state.subscribe(self._on_state_changed)

    # ------------------------------------------------------------------
    # Catalog I/O
    # ------------------------------------------------------------------

    def _load(self) -> None:
        record = self.storage.get(self.key)
        if not record:
            return
        try:
            sessions = [Session.from_dict(s) for s in record.get("sessions", [])]
            language = record.get("language")
            if language:
                self.state.language = Language(language)
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise StorageError("Stored catalog is corrupt: {}".format(exc)) from exc
        self.catalog = {s.id: s for s in sessions}
        logger.info("Loaded %d saved sessions", len(self.catalog))

    def _write(self, catalog: Dict[str, Session]) -> None:
        self.storage.set(
            self.key,
            {
                "sessions": [s.to_dict() for s in catalog.values()],
                "language": self.state.language.value,
            },
        )

    def save_preferences(self) -> None:
        """Persist the language preference alongside the unchanged catalog."""
        self._write(self.catalog)

    # ------------------------------------------------------------------
    # Dirty tracking and flushing
    # ------------------------------------------------------------------

    def _on_state_changed(self, field_name: str) -> None:
        if field_name in _DIRTYING_FIELDS:
            self.mark_dirty()

    def mark_dirty(self) -> None:
        if self.state.session_id is None:
            return
        self.dirty = True
        if self.save_status is not SaveStatus.ERROR:
            self.save_status = SaveStatus.IDLE

    def mark_clean(self) -> None:
        """Forget unsaved changes (the active session was discarded)."""
        self.dirty = False
        self.save_status = SaveStatus.IDLE

    def flush(self) -> bool:
        """Save the active session if it has unsaved changes.

        Returns:
            True if a catalog write happened and succeeded.
        """
        session_id = self.state.session_id
        if not self.dirty or session_id is None or not self.state.segments:
            return False
        if self._flushing:
            logger.debug("Flush already in progress for %s; skipping", session_id)
            return False

        self._flushing = True
        self.save_status = SaveStatus.SAVING
        try:
            now = self._clock()
            record = Session(
                id=session_id,
                name=self.state.file_name or default_session_name(datetime.fromtimestamp(now)),
                date=now,
                segments=list(self.state.segments),
                language=self.state.language,
                edit_mode=self.state.edit_mode,
            )
            catalog = {session_id: record}
            catalog.update((k, v) for k, v in self.catalog.items() if k != session_id)
            self._write(catalog)
        except StorageError as exc:
            logger.error("Saving session %s failed: %s", session_id, exc)
            self.save_status = SaveStatus.ERROR
            self.last_error = str(exc)
            return False
        finally:
            self._flushing = False

        self.catalog = catalog
        self.dirty = False
        self.save_status = SaveStatus.SAVED
        self.last_error = None
        logger.info("Saved session %s (%d segments)", session_id, len(record.segments))
        return True

    # ------------------------------------------------------------------
    # Catalog operations
    # ------------------------------------------------------------------

    def list_sessions(self) -> List[Session]:
        """Saved sessions, newest first."""
        return sorted(self.catalog.values(), key=lambda s: s.date, reverse=True)

    def load(self, session_id: str) -> Optional[Session]:
        """Return a copy of a stored session, or None if unknown."""
        session = self.catalog.get(session_id)
        return copy.deepcopy(session) if session is not None else None

    def delete(self, session_id: str) -> bool:
        """Remove a session from the catalog and persist the change."""
        if session_id not in self.catalog:
            return False
        catalog = {k: v for k, v in self.catalog.items() if k != session_id}
        self._write(catalog)
        self.catalog = catalog
        logger.info("Deleted saved session %s", session_id)
        return True

    # ------------------------------------------------------------------
    # Autosave
    # ------------------------------------------------------------------

    async def _autosave_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            self.flush()

    def start_autosave(self, interval: float = AUTOSAVE_INTERVAL_S) -> asyncio.Task:
        """Start the periodic flush on the running event loop."""
        if self._autosave_task is None or self._autosave_task.done():
            self._autosave_task = asyncio.create_task(self._autosave_loop(interval))
        return self._autosave_task

    async def shutdown(self) -> bool:
        """Stop autosave and make the teardown flush attempt."""
        task = self._autosave_task
        self._autosave_task = None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        return self.flush()
