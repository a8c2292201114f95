"""Per-kind puzzle solvers."""

import random
from typing import Optional

from .base import PuzzleSolver, SolverRegistry, TransitionRule
from .sudoku import SudokuSolver, search_solutions
from .sliding import SlidingPuzzleSolver, is_solvable, manhattan
from ..config import settings


def default_registry(rng: Optional[random.Random] = None) -> SolverRegistry:
    """Registry holding the bundled solvers, configured from settings."""
    return SolverRegistry([
        SudokuSolver(
            size=settings.sudoku_grid_size,
            max_removal_attempts=settings.sudoku_removal_attempts,
            node_limit=settings.solver_node_limit,
            rng=rng,
        ),
        SlidingPuzzleSolver(search_node_limit=settings.sliding_search_node_limit, rng=rng),
    ])


__all__ = [
    "PuzzleSolver",
    "SolverRegistry",
    "TransitionRule",
    "SudokuSolver",
    "SlidingPuzzleSolver",
    "search_solutions",
    "is_solvable",
    "manhattan",
    "default_registry",
]
