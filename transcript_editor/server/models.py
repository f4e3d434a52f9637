"""Pydantic request/response models for the HTTP API.

WHY: The FastAPI endpoints need typed schemas for request validation,
response serialisation, and automatic OpenAPI documentation.

HOW: Each endpoint pair (request + response) has its own model. Domain
enums (EditMode, Language, ProcessingStatus) are reused directly so the
API cannot drift from the core. Segment fields use the stored wire
name ``startTime`` through an alias.

RULES:
- All models use Field(description=...) for OpenAPI documentation
- Response models never expose raw collaborator error details
- Python 3.9+ compatible (no PEP 604 unions, use Optional from typing)
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from transcript_editor.core.models import (
    ChatMessage,
    EditMode,
    Language,
    ProcessingStatus,
    Session,
    TranscriptSegment,
)

# ---------------------------------------------------------------------------
# Shared
# ---------------------------------------------------------------------------


class SegmentModel(BaseModel):
    """One transcript segment."""

    id: str = Field(description="Stable segment identifier.")
    speaker: str = Field(description="Speaker label ('?' when unresolved).")
    start_time: str = Field(alias="startTime", description="Start offset as MM:SS.")
    text: str = Field(description="Segment text.")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_segment(cls, segment: TranscriptSegment) -> SegmentModel:
        return cls(
            id=segment.id,
            speaker=segment.speaker,
            start_time=segment.start_time,
            text=segment.text,
        )


class ProcessingStateModel(BaseModel):
    status: ProcessingStatus = Field(description="Current processing status.")
    message: Optional[str] = Field(default=None, description="Human-readable status message.")


class ChatMessageModel(BaseModel):
    id: str = Field(description="Message identifier.")
    role: str = Field(description="'user' or 'assistant'.")
    content: str = Field(description="Message text.")
    is_error: bool = Field(default=False, description="True when the assistant call failed.")

    @classmethod
    def from_message(cls, message: ChatMessage) -> ChatMessageModel:
        return cls(
            id=message.id,
            role=message.role,
            content=message.content,
            is_error=message.is_error,
        )


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class SegmentPatchRequest(BaseModel):
    """Text and/or speaker change for one segment; applied and committed."""

    text: Optional[str] = Field(default=None, description="New segment text.")
    speaker: Optional[str] = Field(default=None, description="New speaker label.")


class SplitRequest(BaseModel):
    cursor_position: int = Field(ge=0, description="Character offset to split at.")


class RefineRequest(BaseModel):
    mode: EditMode = Field(description="Target edit mode.")


class AskRequest(BaseModel):
    question: str = Field(min_length=1, description="Free-text question about the transcript.")


class LanguageRequest(BaseModel):
    language: Language = Field(description="Transcript language.")


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class EditorStateResponse(BaseModel):
    """Snapshot of the active session as the editor sees it."""

    session_id: Optional[str] = Field(default=None, description="Active session id, if any.")
    file_name: str = Field(description="Source media file name.")
    edit_mode: EditMode = Field(description="Current edit mode.")
    language: Language = Field(description="Transcript language.")
    processing: ProcessingStateModel = Field(description="Processing state.")
    segments: List[SegmentModel] = Field(description="Ordered segments.")
    can_undo: bool = Field(description="Whether undo is available.")
    can_redo: bool = Field(description="Whether redo is available.")
    correcting_ids: List[str] = Field(description="Segments locked by an in-flight correction.")
    save_status: str = Field(description="idle, saving, saved or error.")
    dirty: bool = Field(description="Unsaved changes exist.")


class SessionSummary(BaseModel):
    id: str = Field(description="Saved session id.")
    name: str = Field(description="Display name.")
    date: float = Field(description="Last save time (Unix epoch seconds).")
    segment_count: int = Field(description="Number of segments.")
    language: Language = Field(description="Transcript language.")
    edit_mode: EditMode = Field(description="Edit mode at save time.")

    @classmethod
    def from_session(cls, session: Session) -> SessionSummary:
        return cls(
            id=session.id,
            name=session.name,
            date=session.date,
            segment_count=len(session.segments),
            language=session.language,
            edit_mode=session.edit_mode,
        )


class FlushResponse(BaseModel):
    saved: bool = Field(description="True if a catalog write happened.")
    save_status: str = Field(description="idle, saving, saved or error.")


class FormatInfo(BaseModel):
    key: str = Field(description="Format identifier used in export URLs.")
    name: str = Field(description="Human-readable format name.")


class ErrorResponse(BaseModel):
    """Standard error response body."""

    detail: str = Field(description="Human-readable error description.")


class HealthResponse(BaseModel):
    status: str = Field(description="Service health status.", json_schema_extra={"example": "ok"})
    version: str = Field(description="API version string.", json_schema_extra={"example": "0.1.0"})
