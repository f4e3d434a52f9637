"""Shared test fixtures for the transcript_editor test suite.

WHY: Most test modules need the same small transcript, a predictable
id generator, and a fake collaborator service. Centralizing them keeps
the scenarios consistent across store, editor and HTTP tests.

HOW: Plain helpers build segments; fixtures hand out a fresh
EditorSession wired to in-memory storage and an AsyncMock-backed
service, so no test touches the network or the user's home directory.

RULES:
- Segment ids in fixtures are short and deterministic ("a", "b", ...)
- Fresh ids created during a test come from a counter ("new-1", ...)
- The fake service never sleeps; retry waits are recorded, not taken
"""

from __future__ import annotations

import itertools
from typing import List
from unittest.mock import AsyncMock, MagicMock

import pytest

from transcript_editor.core.history import HistoryManager
from transcript_editor.core.models import TranscriptSegment
from transcript_editor.core.segments import SegmentStore
from transcript_editor.core.state import EditorState
from transcript_editor.editor import EditorSession
from transcript_editor.storage.catalog import MemoryStorage
from transcript_editor.storage.persistence import SessionPersistence


def make_segment(
    segment_id: str,
    text: str = "",
    speaker: str = "S1",
    start_time: str = "00:00",
) -> TranscriptSegment:
    return TranscriptSegment(id=segment_id, speaker=speaker, start_time=start_time, text=text)


SAMPLE_SEGMENTS: List[TranscriptSegment] = [
    make_segment("a", "Good morning and welcome.", "Ana", "00:00"),
    make_segment("b", "Thanks for having me.", "Jon", "00:07"),
    make_segment("c", "Let's start with the budget.", "Ana", "00:15"),
]


def counter_ids(prefix: str = "new"):
    """Deterministic id factory: new-1, new-2, ..."""
    counter = itertools.count(1)
    return lambda: "{}-{}".format(prefix, next(counter))


def make_fake_service(segments=None) -> MagicMock:
    """A TranscriptService stand-in with async task methods."""
    service = MagicMock()
    service.validate_media_size = MagicMock()
    service.transcribe = AsyncMock(return_value=list(segments or SAMPLE_SEGMENTS))
    service.refine = AsyncMock(side_effect=lambda segs, mode, lang: list(segs))
    service.correct_segment = AsyncMock(side_effect=lambda text, lang: text.upper())
    service.query = AsyncMock(return_value="Two speakers: Ana and Jon.")
    return service


@pytest.fixture
def sample_segments() -> List[TranscriptSegment]:
    return list(SAMPLE_SEGMENTS)


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def fake_service() -> MagicMock:
    return make_fake_service()


@pytest.fixture
def editor(storage, fake_service) -> EditorSession:
    """An EditorSession over in-memory storage with a fake service."""
    state = EditorState(store=SegmentStore(id_factory=counter_ids()))
    persistence = SessionPersistence(state, storage, clock=lambda: 1_700_000_000.0)
    return EditorSession(
        state=state,
        history=HistoryManager(),
        service=fake_service,
        persistence=persistence,
    )
