"""Segment store: pure mutations over the ordered transcript sequence.

WHY: Every edit the user makes (retype, relabel, delete, merge, split)
must produce a new sequence rather than mutate the old one, so that
history snapshots and in-flight collaborator calls never observe a
half-applied change. Keeping the operations as pure functions also
makes their invariants trivially testable.

HOW: Module-level functions take a sequence plus a segment id and
return a new list. SegmentStore owns the live sequence (as a tuple),
applies those functions, refuses edits to locked segments, and notifies
listeners whenever the sequence actually changes.

RULES:
- Unknown ids are a no-op: the sequence comes back unchanged
- merge(id) folds a segment into its predecessor with a single-space
  join; the predecessor keeps its id, speaker and start time
- merge on the first segment is a no-op
- split(id, pos) trims both halves independently; the new trailing
  segment gets a fresh id, the "?" speaker and the original start time
- split followed by merge does NOT restore the exact original text
  (trimming is applied); this asymmetry is intentional
- Id lookup is a linear scan; all operations are O(n)
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Callable, Iterable, List, Optional, Sequence, Set, Tuple

from transcript_editor.core.models import UNKNOWN_SPEAKER, TranscriptSegment, new_segment_id
from transcript_editor.core.timecode import parse_timecode
from transcript_editor.errors import SegmentLockedError

logger = logging.getLogger(__name__)

_LAST_SEGMENT_SPAN_S = 30
"""Assumed duration of the final segment when locating playback position."""

Segments = Tuple[TranscriptSegment, ...]
SegmentListener = Callable[[Segments], None]


# ---------------------------------------------------------------------------
# Pure operations
# ---------------------------------------------------------------------------


def index_of(segments: Sequence[TranscriptSegment], segment_id: str) -> int:
    """Return the position of ``segment_id`` or -1."""
    for i, segment in enumerate(segments):
        if segment.id == segment_id:
            return i
    return -1


def edit_text(
    segments: Sequence[TranscriptSegment], segment_id: str, new_text: str
) -> List[TranscriptSegment]:
    return [replace(s, text=new_text) if s.id == segment_id else s for s in segments]


def edit_speaker(
    segments: Sequence[TranscriptSegment], segment_id: str, new_speaker: str
) -> List[TranscriptSegment]:
    return [replace(s, speaker=new_speaker) if s.id == segment_id else s for s in segments]


def delete(segments: Sequence[TranscriptSegment], segment_id: str) -> List[TranscriptSegment]:
    return [s for s in segments if s.id != segment_id]


def merge(segments: Sequence[TranscriptSegment], segment_id: str) -> List[TranscriptSegment]:
    """Fold the segment into its predecessor.

    The merged text is ``prev.text + " " + current.text`` with no
    trimming, so merging onto an empty segment leaves a leading space.
    """
    index = index_of(segments, segment_id)
    result = list(segments)
    if index <= 0:
        return result

    previous = result[index - 1]
    current = result[index]
    result[index - 1] = replace(previous, text="{} {}".format(previous.text, current.text))
    del result[index]
    return result


def split(
    segments: Sequence[TranscriptSegment],
    segment_id: str,
    cursor_position: int,
    id_factory: Callable[[], str] = new_segment_id,
) -> List[TranscriptSegment]:
    """Split a segment at ``cursor_position`` (a character offset).

    Positions outside ``[0, len(text)]`` are clamped the way string
    slicing clamps them. An empty trailing half is still inserted.
    """
    index = index_of(segments, segment_id)
    result = list(segments)
    if index == -1:
        return result

    original = result[index]
    text_before = original.text[:cursor_position].strip()
    text_after = original.text[cursor_position:].strip()

    result[index] = replace(original, text=text_before)
    result.insert(
        index + 1,
        TranscriptSegment(
            id=id_factory(),
            speaker=UNKNOWN_SPEAKER,
            start_time=original.start_time,
            text=text_after,
        ),
    )
    return result


# ---------------------------------------------------------------------------
# Read helpers
# ---------------------------------------------------------------------------


def search(segments: Sequence[TranscriptSegment], term: str) -> List[TranscriptSegment]:
    """Case-insensitive substring match on text or speaker; blank term matches all."""
    if not term.strip():
        return list(segments)
    needle = term.lower()
    return [s for s in segments if needle in s.text.lower() or needle in s.speaker.lower()]


def active_index_at(segments: Sequence[TranscriptSegment], seconds: float) -> int:
    """Index of the segment playing at ``seconds``, or -1.

    Each segment spans from its own start to the next segment's start;
    the last one is assumed to last 30 seconds.
    """
    for i, segment in enumerate(segments):
        start = parse_timecode(segment.start_time)
        if i + 1 < len(segments):
            end = parse_timecode(segments[i + 1].start_time)
        else:
            end = start + _LAST_SEGMENT_SPAN_S
        if start <= seconds < end:
            return i
    return -1


def known_speakers(segments: Iterable[TranscriptSegment]) -> List[str]:
    """Unique speaker labels in order of first appearance."""
    seen: List[str] = []
    for segment in segments:
        if segment.speaker not in seen:
            seen.append(segment.speaker)
    return seen


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class SegmentStore:
    """Owner of the live segment sequence for one active session.

    WHY: Components must not share a global mutable list. The store is
    passed explicitly to whoever needs it and is the only place the live
    sequence changes.

    HOW: Holds an immutable tuple. Each mutator computes the next
    sequence with the pure functions above, swaps it in, and notifies
    listeners only if something changed. Segments under an in-flight
    correction are locked; touching them raises SegmentLockedError.

    RULES:
    - Mutators return the new sequence (the same tuple on a no-op)
    - Listeners are called after the swap with the new tuple
    - merge is refused if either the segment or its predecessor is locked
    """

    def __init__(
        self,
        segments: Optional[Iterable[TranscriptSegment]] = None,
        id_factory: Callable[[], str] = new_segment_id,
    ) -> None:
        self._segments: Segments = tuple(segments or ())
        self._locked: Set[str] = set()
        self._listeners: List[SegmentListener] = []
        self._id_factory = id_factory

    @property
    def segments(self) -> Segments:
        return self._segments

    def __len__(self) -> int:
        return len(self._segments)

    def get(self, segment_id: str) -> Optional[TranscriptSegment]:
        index = index_of(self._segments, segment_id)
        return self._segments[index] if index != -1 else None

    def subscribe(self, listener: SegmentListener) -> None:
        self._listeners.append(listener)

    # -- locking -------------------------------------------------------

    def lock(self, segment_id: str) -> None:
        self._locked.add(segment_id)

    def unlock(self, segment_id: str) -> None:
        self._locked.discard(segment_id)

    def is_locked(self, segment_id: str) -> bool:
        return segment_id in self._locked

    @property
    def locked_ids(self) -> frozenset:
        return frozenset(self._locked)

    def _check_unlocked(self, *segment_ids: str) -> None:
        for segment_id in segment_ids:
            if segment_id in self._locked:
                raise SegmentLockedError(segment_id)

    # -- mutation ------------------------------------------------------

    def replace_all(self, segments: Iterable[TranscriptSegment]) -> Segments:
        """Swap in a whole new sequence (transcription, refine, undo/redo)."""
        return self._commit(tuple(segments))

    def edit_text(self, segment_id: str, new_text: str) -> Segments:
        self._check_unlocked(segment_id)
        return self._commit(tuple(edit_text(self._segments, segment_id, new_text)))

    def edit_speaker(self, segment_id: str, new_speaker: str) -> Segments:
        self._check_unlocked(segment_id)
        return self._commit(tuple(edit_speaker(self._segments, segment_id, new_speaker)))

    def delete(self, segment_id: str) -> Segments:
        self._check_unlocked(segment_id)
        return self._commit(tuple(delete(self._segments, segment_id)))

    def merge(self, segment_id: str) -> Segments:
        index = index_of(self._segments, segment_id)
        if index > 0:
            self._check_unlocked(self._segments[index - 1].id, segment_id)
        return self._commit(tuple(merge(self._segments, segment_id)))

    def split(self, segment_id: str, cursor_position: int) -> Segments:
        self._check_unlocked(segment_id)
        return self._commit(
            tuple(split(self._segments, segment_id, cursor_position, self._id_factory))
        )

    def _commit(self, new_segments: Segments) -> Segments:
        if new_segments == self._segments:
            return self._segments
        self._segments = new_segments
        logger.debug("Segment sequence now has %d segments", len(new_segments))
        for listener in self._listeners:
            listener(new_segments)
        return new_segments
