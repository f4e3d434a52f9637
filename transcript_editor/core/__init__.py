"""Core editing model: segments, history, and the active-session container.

WHY: The core package holds the parts that must stay correct under
rapid edits: the segment data model, its pure mutations, and the
undo/redo history. Nothing here performs I/O or talks to a network.

HOW: models.py defines the data structures, segments.py the pure
operations and the SegmentStore, history.py the undo/redo stack,
state.py the EditorState container, timecode.py the "MM:SS" helpers.

RULES:
- No network or disk access in this package
- Mutations return new sequences; snapshots never alias live state
"""
