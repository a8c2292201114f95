"""Session orchestration for the puzzle engine."""

from .puzzle_engine import PuzzleEngine
from .rules import CauseEffectRule, CauseEffectEngine, reveal_forced_cells_rule
from .transitions import StateTransitionValidator, move_count_increases, dimensions_unchanged, identity_unchanged
from .history import PuzzleHistory, HistoryManager
from .timing import PuzzleTimer, time_bonus, moves_penalty, final_score
from .difficulty import DifficultyAdjuster
from .sessions import SessionRecord, SessionStore

__all__ = [
    "PuzzleEngine",
    "CauseEffectRule",
    "CauseEffectEngine",
    "reveal_forced_cells_rule",
    "StateTransitionValidator",
    "move_count_increases",
    "dimensions_unchanged",
    "identity_unchanged",
    "PuzzleHistory",
    "HistoryManager",
    "PuzzleTimer",
    "time_bonus",
    "moves_penalty",
    "final_score",
    "DifficultyAdjuster",
    "SessionRecord",
    "SessionStore",
]
