"""Tests for the linear undo/redo history."""

from __future__ import annotations

from tests.conftest import SAMPLE_SEGMENTS, make_segment
from transcript_editor.core.history import HistoryManager
from transcript_editor.core.models import EditMode


def _make_history():
    return HistoryManager(SAMPLE_SEGMENTS, EditMode.RAW)


class TestHistoryManager:
    def test_fresh_history_has_nothing_to_undo(self):
        history = _make_history()
        assert len(history) == 1
        assert not history.can_undo
        assert not history.can_redo
        assert history.undo() is None
        assert history.redo() is None

    def test_k_commits_undo_then_redo(self):
        history = _make_history()
        snapshots = []
        for k in range(4):
            segs = [make_segment("a", "version {}".format(k))]
            history.commit(segs, EditMode.RAW)
            snapshots.append(tuple(segs))

        for _ in range(4):
            history.undo()
        assert history.current.segments == tuple(SAMPLE_SEGMENTS)
        assert history.undo() is None

        for _ in range(4):
            history.redo()
        assert history.current.segments == snapshots[-1]
        assert history.redo() is None

    def test_commit_after_undo_discards_redo_branch(self):
        history = _make_history()
        history.commit([make_segment("a", "one")], EditMode.RAW)
        history.commit([make_segment("a", "two")], EditMode.RAW)
        history.undo()

        history.commit([make_segment("a", "branch")], EditMode.CLEANED)

        assert not history.can_redo
        assert len(history) == 3
        assert history.current.edit_mode is EditMode.CLEANED
        assert history.undo().segments[0].text == "one"

    def test_snapshots_are_isolated_from_caller_list(self):
        history = _make_history()
        segs = [make_segment("a", "kept")]
        history.commit(segs, EditMode.RAW)
        segs.append(make_segment("b", "added later"))

        assert len(history.current.segments) == 1

    def test_reset_seeds_single_entry(self):
        history = _make_history()
        history.commit([], EditMode.CLEANED)
        history.reset([make_segment("z", "loaded")], EditMode.JOURNALISTIC)

        assert len(history) == 1
        assert history.cursor == 0
        assert history.current.edit_mode is EditMode.JOURNALISTIC
