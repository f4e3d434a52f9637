"""Collaborator request schema and response dataclasses.

WHY: The inference collaborator returns a generic "candidates → content
→ parts → text" envelope, and structured calls (transcribe, refine)
carry a JSON array inside that text. Both layers must be checked before
anything reaches the segment store; a silently accepted half-answer is
worse than an explicit error.

HOW: GenerateResponse.from_dict() unwraps the envelope. parse_raw_segments()
decodes the JSON text and validates it against TRANSCRIPT_SCHEMA with
jsonschema, the same schema sent to the collaborator as its requested
response shape. Valid items become RawSegment objects (no id yet).

RULES:
- Empty or non-JSON text raises MalformedResponseError
- A top-level value that is not an array of {speaker, startTime, text}
  objects raises MalformedResponseError
- startTime values that are not "MM:SS" are normalised, never rejected
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import jsonschema

from transcript_editor.core.timecode import normalize_timecode
from transcript_editor.errors import MalformedResponseError

TRANSCRIPT_SCHEMA: Dict[str, Any] = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "speaker": {"type": "STRING", "description": "Speaker identifier"},
            "startTime": {"type": "STRING", "description": "Start time in MM:SS format"},
            "text": {"type": "STRING", "description": "Transcribed text"},
        },
        "required": ["speaker", "startTime", "text"],
    },
}
"""Response schema in the collaborator's (OpenAPI-subset) dialect."""

_VALIDATION_SCHEMA: Dict[str, Any] = {
    "type": "array",
    "items": {
        "type": "object",
        "properties": {
            "speaker": {"type": "string"},
            "startTime": {"type": "string"},
            "text": {"type": "string"},
        },
        "required": ["speaker", "startTime", "text"],
    },
}
"""The same shape in standard JSON Schema, for local validation."""


@dataclass(frozen=True)
class RawSegment:
    """A segment as returned by the collaborator, before an id is attached."""

    speaker: str
    start_time: str
    text: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> RawSegment:
        return cls(
            speaker=data["speaker"],
            start_time=normalize_timecode(data["startTime"]),
            text=data["text"],
        )


@dataclass
class GenerateResponse:
    """Unwrapped generateContent response.

    RULES:
    - text concatenates every text part of the first candidate
    - block_reason is set when the prompt was refused outright
    """

    text: str
    finish_reason: Optional[str] = None
    block_reason: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> GenerateResponse:
        feedback = data.get("promptFeedback") or {}
        candidates = data.get("candidates") or []
        if not candidates:
            return cls(text="", block_reason=feedback.get("blockReason"))

        first = candidates[0]
        parts = (first.get("content") or {}).get("parts") or []
        text = "".join(p.get("text", "") for p in parts if isinstance(p, dict))
        return cls(
            text=text,
            finish_reason=first.get("finishReason"),
            block_reason=feedback.get("blockReason"),
        )


def parse_raw_segments(text: str) -> List[RawSegment]:
    """Decode and validate a JSON array of segments.

    Args:
        text: The JSON text returned by a structured collaborator call.

    Returns:
        RawSegment objects in collaborator order.
    """
    if not text or not text.strip():
        raise MalformedResponseError("Collaborator returned an empty response")

    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedResponseError("Collaborator returned invalid JSON: {}".format(exc)) from exc

    try:
        jsonschema.validate(instance=data, schema=_VALIDATION_SCHEMA)
    except jsonschema.ValidationError as exc:
        raise MalformedResponseError(
            "Collaborator response does not match the segment schema: {}".format(exc.message)
        ) from exc

    return [RawSegment.from_dict(item) for item in data]
