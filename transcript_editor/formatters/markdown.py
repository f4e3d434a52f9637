"""Markdown export with a bold speaker header per paragraph.

WHY: Journalists paste transcripts into notes and CMS editors that
render Markdown; a bold speaker with its start time reads as an
interview layout without any further editing.

HOW: Each segment becomes ``**speaker** (MM:SS)`` on its own line
followed by the text. Paragraphs are separated by a blank line.

RULES:
- Start times are always shown (the header carries them)
- Segments with empty text still produce their header
- Output suffix: ".md"; media type: "text/markdown"
"""

from __future__ import annotations

from typing import Sequence

from transcript_editor.core.models import TranscriptSegment
from transcript_editor.formatters.base import BaseFormatter, FormatterOutput


class MarkdownFormatter(BaseFormatter):
    """Formatter that produces a lightweight-markup interview layout."""

    def __init__(self, include_timecodes: bool = True) -> None:
        # Accepted for a uniform constructor; the header always has the time.
        self.include_timecodes = include_timecodes

    @property
    def name(self) -> str:
        return "Markdown"

    def format(self, segments: Sequence[TranscriptSegment]) -> FormatterOutput:
        blocks = [
            "**{}** ({})\n{}".format(s.speaker, s.start_time, s.text).rstrip()
            for s in segments
        ]
        content = "\n\n".join(blocks)
        if content:
            content += "\n"
        return FormatterOutput(suffix=".md", content=content, media_type="text/markdown")
