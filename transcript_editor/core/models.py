"""Data model dataclasses for transcript segments, sessions, and state.

WHY: The store, history, persistence, collaborator layer, and
formatters all exchange the same handful of shapes. Defining them once,
with explicit to_dict/from_dict at the storage boundary, keeps the wire
format (camelCase keys) out of the rest of the code.

HOW: Frozen dataclasses for values that must never be aliased between
history snapshots (TranscriptSegment), plain dataclasses for records
that are rebuilt on every save (Session). String enums serialise
cleanly to JSON.

RULES:
- TranscriptSegment.id is immutable and unique within a session
- start_time is always an "MM:SS" string
- Session.segments keeps the order the user sees
- Session.date is epoch seconds of the last successful save
"""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

UNKNOWN_SPEAKER = "?"
"""Placeholder speaker for segments created by a split."""


def new_segment_id() -> str:
    """Return a fresh, session-unique segment id."""
    return "seg-{}".format(uuid.uuid4().hex)


def new_session_id() -> str:
    return uuid.uuid4().hex


class EditMode(str, enum.Enum):
    """Transformation level applied to the whole transcript."""

    RAW = "RAW"
    CLEANED = "CLEANED"
    JOURNALISTIC = "JOURNALISTIC"


class Language(str, enum.Enum):
    """Transcript languages the collaborator is prompted for."""

    ES = "es"
    EU = "eu"

    @property
    def display_name(self) -> str:
        return {"es": "Spanish", "eu": "Basque"}[self.value]


class ProcessingStatus(str, enum.Enum):
    """Session-level processing states.

    RULES:
    - UPLOADING, TRANSCRIBING and REFINING are busy states; while one is
      active no other long-running collaborator call may start
    - COMPLETED and ERROR are terminal for a given call
    """

    IDLE = "idle"
    UPLOADING = "uploading"
    TRANSCRIBING = "transcribing"
    REFINING = "refining"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_busy(self) -> bool:
        return self in _BUSY_STATUSES


_BUSY_STATUSES = frozenset(
    {ProcessingStatus.UPLOADING, ProcessingStatus.TRANSCRIBING, ProcessingStatus.REFINING}
)


@dataclass(frozen=True)
class ProcessingState:
    """Current processing status plus an optional human-readable message.

    ``detail`` keeps the raw error text for diagnostics; ``message`` is
    what the user sees.
    """

    status: ProcessingStatus = ProcessingStatus.IDLE
    message: Optional[str] = None
    detail: Optional[str] = None


@dataclass(frozen=True)
class TranscriptSegment:
    """One attributed, timestamped unit of transcript text.

    WHY: Frozen so a snapshot can never be mutated through a live
    reference held by the store or the UI.

    RULES:
    - id: opaque, immutable, unique within the session
    - speaker: free-form label ("S1", "Ana", "?")
    - start_time: "MM:SS" offset into the media
    - text: may be empty (e.g. after a split at the very end)
    """

    id: str
    speaker: str
    start_time: str
    text: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "id": self.id,
            "speaker": self.speaker,
            "startTime": self.start_time,
            "text": self.text,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> TranscriptSegment:
        return cls(
            id=str(data["id"]),
            speaker=str(data.get("speaker", UNKNOWN_SPEAKER)),
            start_time=str(data.get("startTime", "00:00")),
            text=str(data.get("text", "")),
        )


@dataclass
class Session:
    """A saved transcript session as stored in the catalog.

    RULES:
    - id: stable catalog key, assigned when a source file is accepted
    - name: display name; defaults to a dated label when no file name is set
    - date: epoch seconds of the last save, used for newest-first listing
    - segments/language/edit_mode: the editable state at save time
    """

    id: str
    name: str
    date: float
    segments: List[TranscriptSegment] = field(default_factory=list)
    language: Language = Language.ES
    edit_mode: EditMode = EditMode.RAW

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "date": self.date,
            "segments": [s.to_dict() for s in self.segments],
            "language": self.language.value,
            "editMode": self.edit_mode.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Session:
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            date=float(data.get("date", 0.0)),
            segments=[TranscriptSegment.from_dict(s) for s in data.get("segments", [])],
            language=Language(data.get("language", Language.ES.value)),
            edit_mode=EditMode(data.get("editMode", EditMode.RAW.value)),
        )


@dataclass(frozen=True)
class ChatMessage:
    """One turn of the conversational assistant log."""

    id: str
    role: str  # "user" or "assistant"
    content: str
    is_error: bool = False
