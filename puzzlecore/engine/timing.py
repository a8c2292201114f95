"""Session timers and score composition."""

import math
import time
from typing import Callable, Optional


class PuzzleTimer:
    """Pausable elapsed-time counter driven by an injectable monotonic clock."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._started_at: Optional[float] = None
        self._frozen_ms: Optional[int] = None

    def start(self) -> None:
        self._started_at = self._clock()
        self._frozen_ms = None

    def pause(self) -> None:
        if self._started_at is None or self._frozen_ms is not None:
            return
        self._frozen_ms = self._running_ms()

    def resume(self) -> None:
        if self._frozen_ms is None:
            return
        # Rebase so elapsed continues from the frozen value
        self._started_at = self._clock() - self._frozen_ms / 1000.0
        self._frozen_ms = None

    def elapsed_ms(self) -> int:
        if self._started_at is None:
            return 0
        if self._frozen_ms is not None:
            return self._frozen_ms
        return self._running_ms()

    def is_paused(self) -> bool:
        return self._frozen_ms is not None

    def _running_ms(self) -> int:
        return max(0, int((self._clock() - self._started_at) * 1000))


def time_bonus(elapsed_ms: int, target_ms: int, max_bonus: int = 1000) -> int:
    """Linear bonus for finishing under the target time."""
    if target_ms <= 0 or elapsed_ms > target_ms:
        return 0
    return math.floor((target_ms - elapsed_ms) / target_ms * max_bonus)


def moves_penalty(move_count: int, free_moves: int = 20, per_move: int = 10) -> int:
    return max(0, (move_count - free_moves) * per_move)


def final_score(base: int, bonus: int, moves_penalty: int, hints_used: int, hint_penalty: int = 50) -> int:
    return max(0, base + bonus - moves_penalty - hints_used * hint_penalty)
