"""Linear undo/redo history of (segments, edit mode) snapshots.

WHY: Users undo whole editing steps (a merge, a finished retype, a
refine pass), not keystrokes. The history therefore records explicit
commit points chosen by the caller, and each entry must be isolated
from the live store so later edits cannot leak into it.

HOW: A list of HistoryEntry plus a cursor. commit() drops every entry
after the cursor, deep-copies the snapshot and appends it. undo() and
redo() move the cursor and return the entry now under it.

RULES:
- The stack is seeded with exactly one entry when a session starts
- Committing after an undo discards the redo branch (no branching)
- undo at the oldest entry and redo at the newest are silent no-ops
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from transcript_editor.core.models import EditMode, TranscriptSegment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HistoryEntry:
    """Immutable snapshot of the editable state at a commit point."""

    segments: Tuple[TranscriptSegment, ...]
    edit_mode: EditMode


class HistoryManager:
    """Undo/redo stack with a cursor pointing at the current snapshot."""

    def __init__(
        self,
        segments: Sequence[TranscriptSegment] = (),
        edit_mode: EditMode = EditMode.RAW,
    ) -> None:
        self._stack: List[HistoryEntry] = []
        self._cursor = -1
        self.reset(segments, edit_mode)

    def reset(self, segments: Sequence[TranscriptSegment], edit_mode: EditMode) -> HistoryEntry:
        """Discard everything and seed a single entry (new or loaded session)."""
        entry = self._snapshot(segments, edit_mode)
        self._stack = [entry]
        self._cursor = 0
        return entry

    def commit(self, segments: Sequence[TranscriptSegment], edit_mode: EditMode) -> HistoryEntry:
        entry = self._snapshot(segments, edit_mode)
        del self._stack[self._cursor + 1:]
        self._stack.append(entry)
        self._cursor = len(self._stack) - 1
        logger.debug("History commit %d (%d segments, %s)", self._cursor, len(entry.segments), edit_mode.value)
        return entry

    def undo(self) -> Optional[HistoryEntry]:
        if not self.can_undo:
            return None
        self._cursor -= 1
        return self._stack[self._cursor]

    def redo(self) -> Optional[HistoryEntry]:
        if not self.can_redo:
            return None
        self._cursor += 1
        return self._stack[self._cursor]

    @property
    def can_undo(self) -> bool:
        return self._cursor > 0

    @property
    def can_redo(self) -> bool:
        return self._cursor < len(self._stack) - 1

    @property
    def current(self) -> HistoryEntry:
        return self._stack[self._cursor]

    @property
    def cursor(self) -> int:
        return self._cursor

    def __len__(self) -> int:
        return len(self._stack)

    @staticmethod
    def _snapshot(segments: Sequence[TranscriptSegment], edit_mode: EditMode) -> HistoryEntry:
        return HistoryEntry(segments=tuple(copy.deepcopy(list(segments))), edit_mode=edit_mode)
