"""Export formatter registry.

WHY: The CLI and HTTP layers need a single lookup to find the right
formatter by name. A central dict makes it trivial to add new formats:
create the formatter class, import it here, add one line.

HOW: FORMATTERS maps string keys to formatter *classes* (not instances).
Callers instantiate as needed:
``formatter = FORMATTERS["markdown"](include_timecodes=False)``.

RULES:
- Keys are snake_case identifiers (used in CLI flags and URLs)
- Every formatter accepts ``include_timecodes`` as a keyword argument
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from transcript_editor.formatters.json_dump import JSONFormatter
from transcript_editor.formatters.markdown import MarkdownFormatter
from transcript_editor.formatters.plain_text import PlainTextFormatter

if TYPE_CHECKING:
    from transcript_editor.formatters.base import BaseFormatter

FORMATTERS: dict[str, type[BaseFormatter]] = {
    "plain_text": PlainTextFormatter,
    "markdown": MarkdownFormatter,
    "json": JSONFormatter,
}
