"""Bounded undo/redo history of puzzle states."""

import logging
from typing import Dict, List, Optional

from ..models.puzzles import PuzzleState

logger = logging.getLogger(__name__)


class PuzzleHistory:
    """Linear state history with a cursor.

    States are deep-copied on the way in and on the way out. Adding a state
    after undoing discards the redo branch; once ``capacity`` is exceeded the
    oldest state is dropped.
    """

    def __init__(self, capacity: int = 50):
        if capacity < 1:
            raise ValueError("History capacity must be at least 1")
        self.capacity = capacity
        self._states: List[PuzzleState] = []
        self._cursor = -1

    def add_state(self, state: PuzzleState) -> None:
        del self._states[self._cursor + 1:]
        self._states.append(state.clone())
        if len(self._states) > self.capacity:
            self._states.pop(0)
        self._cursor = len(self._states) - 1

    def undo(self) -> Optional[PuzzleState]:
        if not self.can_undo():
            return None
        self._cursor -= 1
        return self._states[self._cursor].clone()

    def redo(self) -> Optional[PuzzleState]:
        if not self.can_redo():
            return None
        self._cursor += 1
        return self._states[self._cursor].clone()

    def can_undo(self) -> bool:
        return self._cursor > 0

    def can_redo(self) -> bool:
        return self._cursor < len(self._states) - 1

    def current(self) -> Optional[PuzzleState]:
        if self._cursor < 0:
            return None
        return self._states[self._cursor].clone()

    @property
    def cursor(self) -> int:
        return self._cursor

    def __len__(self) -> int:
        return len(self._states)


class HistoryManager:
    """Histories keyed by session id."""

    def __init__(self, capacity: int = 50):
        self.capacity = capacity
        self._histories: Dict[str, PuzzleHistory] = {}

    def history(self, session_id: str) -> PuzzleHistory:
        if session_id not in self._histories:
            self._histories[session_id] = PuzzleHistory(self.capacity)
        return self._histories[session_id]

    def add_state(self, session_id: str, state: PuzzleState) -> None:
        self.history(session_id).add_state(state)

    def undo(self, session_id: str) -> Optional[PuzzleState]:
        history = self._histories.get(session_id)
        return history.undo() if history else None

    def redo(self, session_id: str) -> Optional[PuzzleState]:
        history = self._histories.get(session_id)
        return history.redo() if history else None

    def can_undo(self, session_id: str) -> bool:
        history = self._histories.get(session_id)
        return history.can_undo() if history else False

    def can_redo(self, session_id: str) -> bool:
        history = self._histories.get(session_id)
        return history.can_redo() if history else False

    def clear(self, session_id: str) -> None:
        self._histories.pop(session_id, None)
