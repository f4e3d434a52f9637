"""JSON export: a direct structural dump of the segment sequence.

RULES:
- Keys use the stored wire names: id, speaker, startTime, text
- Pretty-printed with two-space indent, non-ASCII kept as-is
- Output suffix: ".json"; media type: "application/json"
"""

from __future__ import annotations

import json
from typing import Sequence

from transcript_editor.core.models import TranscriptSegment
from transcript_editor.formatters.base import BaseFormatter, FormatterOutput


class JSONFormatter(BaseFormatter):
    def __init__(self, include_timecodes: bool = True) -> None:
        self.include_timecodes = include_timecodes

    @property
    def name(self) -> str:
        return "JSON"

    def format(self, segments: Sequence[TranscriptSegment]) -> FormatterOutput:
        content = json.dumps([s.to_dict() for s in segments], indent=2, ensure_ascii=False)
        return FormatterOutput(suffix=".json", content=content, media_type="application/json")
