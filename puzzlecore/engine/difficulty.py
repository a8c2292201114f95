"""Per-player adaptive difficulty."""

import logging
import math
import threading
from typing import Dict, Optional

from ..errors import ValidationError
from ..models.puzzles import DifficultyMetrics

logger = logging.getLogger(__name__)

TIME_NORMALIZER_S = 300.0
MOVES_NORMALIZER = 20.0
MIN_MULTIPLIER = 0.5
MAX_MULTIPLIER = 1.5


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class DifficultyAdjuster:
    """Keeps running metrics per player and derives a difficulty multiplier from them."""

    def __init__(self):
        self._metrics: Dict[str, DifficultyMetrics] = {}
        self._locks: Dict[str, threading.RLock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, player_id: str) -> threading.RLock:
        with self._registry_lock:
            if player_id not in self._locks:
                self._locks[player_id] = threading.RLock()
            return self._locks[player_id]

    def update_player_metrics(self, player_id: str, **partial) -> DifficultyMetrics:
        """Merge an external metrics report; unknown fields are rejected."""
        unknown = set(partial) - set(DifficultyMetrics.model_fields)
        if unknown:
            raise ValidationError(f"Unknown difficulty metric(s): {', '.join(sorted(unknown))}")

        with self._lock_for(player_id):
            current = self._metrics.get(player_id, DifficultyMetrics())
            updates = {key: value for key, value in partial.items() if value is not None}
            merged = DifficultyMetrics(**{**current.model_dump(), **updates})
            self._metrics[player_id] = merged
            return merged.model_copy()

    def record_session(
        self,
        player_id: str,
        solve_time_s: float,
        moves: int,
        solved: bool,
        hints_used: int = 0,
    ) -> DifficultyMetrics:
        """Fold one finished session into the player's running averages."""
        with self._lock_for(player_id):
            current = self._metrics.get(player_id, DifficultyMetrics())
            n = current.sessions_recorded

            def running(old: float, sample: float) -> float:
                return (old * n + sample) / (n + 1)

            updated = DifficultyMetrics(
                average_solve_time=running(current.average_solve_time, max(0.0, solve_time_s)),
                average_moves=running(current.average_moves, max(0, moves)),
                success_rate=running(current.success_rate, 1.0 if solved else 0.0),
                hints_usage_rate=running(current.hints_usage_rate, max(0, hints_used)),
                sessions_recorded=n + 1,
            )
            self._metrics[player_id] = updated
            logger.debug(f"Recorded session for {player_id}: {updated.sessions_recorded} total")
            return updated.model_copy()

    def optimal_difficulty(self, player_id: str, base: int) -> int:
        """Scale ``base`` by recent performance, clamped to half and one and a half times."""
        with self._lock_for(player_id):
            metrics = self._metrics.get(player_id)
            if metrics is None:
                return base

            time_score = min(metrics.average_solve_time / TIME_NORMALIZER_S, 2.0)
            move_score = min(metrics.average_moves / MOVES_NORMALIZER, 2.0)
            success_score = min(max(metrics.success_rate, 0.0), 2.0)

        performance = time_score * 0.3 + move_score * 0.3 + success_score * 0.4
        multiplier = min(max(performance, MIN_MULTIPLIER), MAX_MULTIPLIER)
        return round_half_up(base * multiplier)

    def get_metrics(self, player_id: str) -> Optional[DifficultyMetrics]:
        with self._lock_for(player_id):
            metrics = self._metrics.get(player_id)
            return metrics.model_copy() if metrics else None
