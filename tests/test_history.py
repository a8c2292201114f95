"""Tests for undo/redo history."""

import pytest

from puzzlecore.engine import PuzzleHistory, HistoryManager
from puzzlecore.models.puzzles import PuzzleState, PuzzleMetadata, PuzzleKind


def make_state(step: int) -> PuzzleState:
    return PuzzleState(
        id="session-1",
        kind=PuzzleKind.SLIDING,
        payload={"size": 2, "grid": [1, 2, 3, 0], "target": [1, 2, 3, 0], "step": step},
        metadata=PuzzleMetadata(move_count=step, difficulty=1),
    )


class TestPuzzleHistory:
    """Tests for the cursor-based history."""

    @pytest.fixture
    def history(self):
        history = PuzzleHistory(capacity=50)
        for step in range(4):
            history.add_state(make_state(step))
        return history

    def test_boundaries_on_fresh_history(self):
        history = PuzzleHistory()
        history.add_state(make_state(0))

        assert not history.can_undo()
        assert not history.can_redo()
        assert history.undo() is None
        assert history.redo() is None
        assert history.current().payload["step"] == 0

    def test_empty_history(self):
        history = PuzzleHistory()

        assert history.current() is None
        assert history.undo() is None

    def test_undo_then_redo_reproduces_sequence(self, history):
        undone = [history.undo().payload["step"] for _ in range(3)]
        redone = [history.redo().payload["step"] for _ in range(3)]

        assert undone == [2, 1, 0]
        assert redone == [1, 2, 3]
        assert not history.can_redo()

    def test_can_undo_iff_cursor_not_zero(self, history):
        while history.can_undo():
            assert history.cursor > 0
            history.undo()

        assert history.cursor == 0
        assert history.undo() is None

    def test_can_redo_iff_cursor_not_last(self, history):
        history.undo()
        assert history.can_redo()
        assert history.cursor == len(history) - 2

        history.redo()
        assert not history.can_redo()
        assert history.cursor == len(history) - 1

    def test_add_after_undo_truncates_redo_branch(self, history):
        history.undo()
        history.undo()
        history.add_state(make_state(10))

        assert not history.can_redo()
        assert len(history) == 3
        assert history.current().payload["step"] == 10
        assert history.undo().payload["step"] == 1

    def test_capacity_evicts_oldest(self):
        history = PuzzleHistory(capacity=3)
        for step in range(5):
            history.add_state(make_state(step))

        assert len(history) == 3
        steps = []
        while history.can_undo():
            steps.append(history.undo().payload["step"])
        assert steps == [3, 2]

    def test_states_are_copied(self, history):
        original = make_state(20)
        history.add_state(original)
        original.payload["grid"][0] = 99

        returned = history.current()
        assert returned.payload["grid"][0] == 1

        returned.payload["grid"][0] = 42
        assert history.current().payload["grid"][0] == 1

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            PuzzleHistory(capacity=0)


class TestHistoryManager:
    """Tests for session-keyed histories."""

    def test_keyed_operations(self):
        manager = HistoryManager(capacity=10)
        manager.add_state("a", make_state(0))
        manager.add_state("a", make_state(1))
        manager.add_state("b", make_state(5))

        assert manager.can_undo("a")
        assert not manager.can_undo("b")
        assert manager.undo("a").payload["step"] == 0
        assert manager.can_redo("a")
        assert manager.redo("a").payload["step"] == 1

    def test_unknown_session(self):
        manager = HistoryManager()

        assert manager.undo("missing") is None
        assert manager.redo("missing") is None
        assert not manager.can_undo("missing")

    def test_clear(self):
        manager = HistoryManager()
        manager.add_state("a", make_state(0))
        manager.add_state("a", make_state(1))
        manager.clear("a")

        assert not manager.can_undo("a")
