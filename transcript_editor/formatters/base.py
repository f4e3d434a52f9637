"""Abstract base formatter and output container.

WHY: Every export consumes the same segment sequence but produces
different file content. This base class enforces a consistent interface
so the CLI and HTTP layers can work with any formatter generically.

HOW: BaseFormatter is an ABC with two requirements: a ``name`` property
and a ``format()`` method. FormatterOutput is a plain dataclass that
bundles a file suffix with its content and MIME type.

RULES:
- Formatting is pure and synchronous; no collaborator calls
- ``suffix`` starts with a dot, e.g. ``".txt"``
- The caller is responsible for prepending the source filename stem

To add a new export format:
1. Create a new file in formatters/
2. Subclass BaseFormatter
3. Implement format() and name
4. Register in FORMATTERS dict in formatters/__init__.py
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from transcript_editor.core.models import TranscriptSegment

DEFAULT_EXPORT_STEM = "transcript"


@dataclass
class FormatterOutput:
    """One exported file.

    Attributes:
        suffix: File suffix appended to the source stem, e.g. ``".md"``.
        content: The file content.
        media_type: MIME type for the content, e.g. ``"text/markdown"``.
    """

    suffix: str
    content: str
    media_type: str

    def filename_for(self, source_name: str) -> str:
        """``interview.mp3`` → ``interview.txt``; no source → ``transcript.txt``."""
        stem = Path(source_name).stem if source_name else ""
        return "{}{}".format(stem or DEFAULT_EXPORT_STEM, self.suffix)


class BaseFormatter(ABC):
    """Abstract base for all export formatters."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable format name, e.g. 'Plain Text'."""

    @abstractmethod
    def format(self, segments: Sequence[TranscriptSegment]) -> FormatterOutput:
        """Render the segment sequence as one export file."""
