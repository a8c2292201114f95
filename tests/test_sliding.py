"""Tests for the sliding puzzle solver."""

import pytest

from puzzlecore.errors import ValidationError
from puzzlecore.models.puzzles import Move, PuzzleKind, HintCategory
from puzzlecore.solvers import SlidingPuzzleSolver, is_solvable, manhattan
from puzzlecore.solvers.sliding import neighbours


def state_with_grid(solver, grid, difficulty=1):
    size = int(len(grid) ** 0.5)
    target = list(range(1, size * size)) + [0]
    return solver.new_state({"size": size, "grid": list(grid), "target": target}, difficulty)


class TestHelpers:
    """Tests for module-level helpers."""

    def test_neighbours_corner_and_centre(self):
        assert sorted(neighbours(0, 3)) == [1, 3]
        assert sorted(neighbours(4, 3)) == [1, 3, 5, 7]
        assert sorted(neighbours(8, 3)) == [5, 7]

    def test_manhattan(self):
        assert manhattan([1, 2, 3, 4, 5, 6, 7, 8, 0], 3) == 0
        assert manhattan([1, 2, 3, 4, 5, 6, 7, 0, 8], 3) == 1

    def test_solvability(self):
        assert is_solvable([1, 2, 3, 4, 5, 6, 7, 8, 0], 3)
        assert not is_solvable([2, 1, 3, 4, 5, 6, 7, 8, 0], 3)
        assert is_solvable(list(range(1, 16)) + [0], 4)
        assert not is_solvable([2, 1] + list(range(3, 16)) + [0], 4)


class TestSlidingGeneration:
    """Tests for puzzle generation."""

    @pytest.mark.parametrize("difficulty,size", [(1, 3), (2, 4), (5, 5), (6, 6), (10, 6)])
    def test_board_size(self, sliding_solver, difficulty, size):
        state = sliding_solver.generate(difficulty)

        assert state.payload["size"] == size
        assert sorted(state.payload["grid"]) == list(range(size * size))

    def test_generated_board_is_solvable_and_shuffled(self, sliding_solver):
        for difficulty in (1, 3, 5):
            state = sliding_solver.generate(difficulty)
            size = state.payload["size"]

            assert state.kind == PuzzleKind.SLIDING.value
            assert is_solvable(state.payload["grid"], size)
            assert not sliding_solver.is_solved(state)
            assert state.payload["target"] == list(range(1, size * size)) + [0]


class TestSlidingMoves:
    """Tests for move validation and execution."""

    @pytest.fixture
    def state(self, sliding_solver):
        # blank in the centre
        return state_with_grid(sliding_solver, [1, 2, 3, 4, 0, 5, 7, 8, 6])

    def test_adjacent_tile_moves(self, sliding_solver, state):
        move = Move(payload={"tile_index": 5})
        assert sliding_solver.validate_move(state, move)

        after = sliding_solver.execute_move(state, move)
        assert after.payload["grid"] == [1, 2, 3, 4, 5, 0, 7, 8, 6]
        assert after.metadata.move_count == 1
        assert state.payload["grid"][4] == 0

    def test_rejects_non_adjacent_and_blank(self, sliding_solver, state):
        assert not sliding_solver.validate_move(state, Move(payload={"tile_index": 0}))
        assert not sliding_solver.validate_move(state, Move(payload={"tile_index": 4}))
        assert not sliding_solver.validate_move(state, Move(payload={"tile_index": 9}))
        assert not sliding_solver.validate_move(state, Move(payload={"tile_index": -1}))

    def test_missing_field_raises(self, sliding_solver, state):
        with pytest.raises(ValidationError):
            sliding_solver.validate_move(state, Move(payload={"tile": 5}))

    def test_solving_sequence(self, sliding_solver, state):
        current = state
        for index in (5, 8):
            current = sliding_solver.execute_move(current, Move(payload={"tile_index": index}))

        assert sliding_solver.is_solved(current)

    def test_enumerate_moves(self, sliding_solver, state):
        indices = sorted(m.payload["tile_index"] for m in sliding_solver.enumerate_moves(state))
        assert indices == [1, 3, 5, 7]


class TestSlidingHints:
    """Tests for hint levels."""

    @pytest.fixture
    def state(self, sliding_solver):
        return state_with_grid(sliding_solver, [1, 2, 3, 4, 0, 5, 7, 8, 6])

    def test_level_one(self, sliding_solver, state):
        hint = sliding_solver.hint(state, 1)

        assert hint.category == HintCategory.DIRECTIONAL.value
        assert "4 tile(s)" in hint.content

    def test_level_two_prefers_distance_reduction(self, sliding_solver, state):
        hint = sliding_solver.hint(state, 2)

        assert hint.target == {"tile": 5, "tile_index": 5}
        assert hint.candidates == [2, 4, 5, 8]

    def test_level_three_follows_shortest_path(self, sliding_solver, state):
        hint = sliding_solver.hint(state, 3)

        assert hint.category == HintCategory.NEXT_MOVE.value
        assert hint.target == {"tile": 5, "tile_index": 5}

    def test_level_three_falls_back_to_greedy(self, rng):
        solver = SlidingPuzzleSolver(search_node_limit=1, rng=rng)
        state = solver.generate(6)
        hint = solver.hint(state, 3)

        assert solver.validate_move(state, Move(payload={"tile_index": hint.target["tile_index"]}))

    def test_invalid_level(self, sliding_solver, state):
        with pytest.raises(ValidationError):
            sliding_solver.hint(state, 5)


class TestSlidingScoringAndRules:
    """Tests for scores and transition invariants."""

    def test_score_by_difficulty(self, sliding_solver):
        assert sliding_solver.score(sliding_solver.generate(2)) == 2000
        assert sliding_solver.score(sliding_solver.generate(5)) == 3500

    def test_rules_accept_single_slide(self, sliding_solver):
        state = state_with_grid(sliding_solver, [1, 2, 3, 4, 0, 5, 7, 8, 6])
        after = sliding_solver.execute_move(state, Move(payload={"tile_index": 5}))

        assert all(rule(state, after) for rule in sliding_solver.transition_rules())

    def test_rules_reject_swap_of_two_tiles(self, sliding_solver):
        state = state_with_grid(sliding_solver, [1, 2, 3, 4, 0, 5, 7, 8, 6])
        tampered = state.clone()
        tampered.payload["grid"] = [2, 1, 3, 4, 0, 5, 7, 8, 6]

        assert not all(rule(state, tampered) for rule in sliding_solver.transition_rules())
