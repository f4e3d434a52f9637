"""Plain text export: one ``speaker: text`` paragraph per segment.

RULES:
- With timecodes (the default) each paragraph starts with ``[MM:SS] ``
- Paragraphs are separated by a blank line
- Output suffix: ".txt"; media type: "text/plain"
"""

from __future__ import annotations

from typing import Sequence

from transcript_editor.core.models import TranscriptSegment
from transcript_editor.formatters.base import BaseFormatter, FormatterOutput


class PlainTextFormatter(BaseFormatter):
    def __init__(self, include_timecodes: bool = True) -> None:
        self.include_timecodes = include_timecodes

    @property
    def name(self) -> str:
        return "Plain Text"

    def format(self, segments: Sequence[TranscriptSegment]) -> FormatterOutput:
        paragraphs = []
        for segment in segments:
            prefix = "[{}] ".format(segment.start_time) if self.include_timecodes else ""
            paragraphs.append("{}{}: {}".format(prefix, segment.speaker, segment.text))

        return FormatterOutput(
            suffix=".txt",
            content="\n\n".join(paragraphs),
            media_type="text/plain",
        )
