"""Shared fixtures for the puzzle engine tests."""

import random
from typing import Dict, Any
from unittest.mock import Mock

import pytest

from puzzlecore.database import CacheManager, InMemoryAnalyticsStore
from puzzlecore.engine import PuzzleEngine
from puzzlecore.solvers import SolverRegistry, SudokuSolver, SlidingPuzzleSolver


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sudoku_solver(rng):
    return SudokuSolver(size=9, rng=rng)


@pytest.fixture
def small_sudoku_solver(rng):
    return SudokuSolver(size=4, rng=rng)


@pytest.fixture
def sliding_solver(rng):
    return SlidingPuzzleSolver(search_node_limit=20_000, rng=rng)


@pytest.fixture
def registry(small_sudoku_solver, sliding_solver):
    return SolverRegistry([small_sudoku_solver, sliding_solver])


@pytest.fixture
def store():
    return InMemoryAnalyticsStore()


@pytest.fixture
def mock_cache_manager():
    """Dict-backed stand-in for the Redis cache."""
    data: Dict[str, Any] = {}
    ttls: Dict[str, int] = {}

    cache = Mock(spec=CacheManager)

    def set_user(user_id, stats, ttl=None):
        data[f"user_stats:{user_id}"] = stats
        ttls[f"user_stats:{user_id}"] = ttl or 300
        return True

    def set_population(stats, ttl=None):
        data["population_stats"] = stats
        ttls["population_stats"] = ttl or 1800
        return True

    cache.cache_user_stats.side_effect = set_user
    cache.get_cached_user_stats.side_effect = lambda user_id: data.get(f"user_stats:{user_id}")
    cache.user_stats_ttl.side_effect = lambda user_id: ttls.get(f"user_stats:{user_id}", -2)
    cache.cache_population_stats.side_effect = set_population
    cache.get_cached_population_stats.side_effect = lambda: data.get("population_stats")
    cache.health_check.return_value = True
    cache.data = data
    cache.ttls = ttls
    return cache


@pytest.fixture
def engine(registry, clock):
    """Engine with small puzzles, a fake clock and no analysis."""
    return PuzzleEngine(registry=registry, clock=clock, history_capacity=50, auto_reveal_forced_cells=False)


def solve_sudoku_moves(state):
    """Moves that fill every empty cell with its solution value."""
    size = state.payload["size"]
    moves = []
    for idx, value in enumerate(state.payload["grid"]):
        if value == 0:
            row, col = divmod(idx, size)
            moves.append({"row": row, "col": col, "value": state.payload["solution"][idx]})
    return moves


@pytest.fixture
def sudoku_solution_moves():
    return solve_sudoku_moves
