"""Transcript Editor: resilient editing core for speaker-attributed transcripts.

WHY: A transcription service hands back timestamped, speaker-labelled
segments that almost always need hand correction. Editing them safely
means keeping segment identity stable across merges and splits, being
able to undo any edit, surviving flaky AI backends, and never losing
work to a crash.

HOW: Four cooperating pieces: the segment store (pure mutations over
an ordered sequence), the history manager (linear undo/redo of
snapshots), the resilient invoker (bounded exponential-backoff retry
around every collaborator call), and session persistence (dirty
tracking plus periodic flush of a session catalog). EditorSession wires
them together; the CLI and HTTP server are thin shells on top.

RULES:
- Segment mutations never modify a sequence in place
- Every collaborator call goes through the resilient invoker
- Only one long-running collaborator call may run per session
"""

__version__ = "0.1.0"
