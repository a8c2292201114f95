"""Tests for the Sudoku solver."""

import pytest

from puzzlecore.errors import ValidationError
from puzzlecore.models.puzzles import Move, PuzzleKind, HintCategory
from puzzlecore.solvers import SudokuSolver, search_solutions


SMALL_SOLUTION = [
    1, 2, 3, 4,
    3, 4, 1, 2,
    2, 1, 4, 3,
    4, 3, 2, 1,
]


def apply(solver, state, **payload):
    move = Move(payload=payload)
    assert solver.validate_move(state, move)
    return solver.execute_move(state, move)


class TestSearch:
    """Tests for the bounded backtracking search."""

    def test_counts_up_to_limit(self):
        """An empty 4x4 grid has many completions; the search stops at the limit."""
        outcome = search_solutions([0] * 16, 4, 2, limit=2)

        assert outcome.solutions == 2
        assert not outcome.exhausted
        assert not outcome.is_unique

    def test_conflicting_grid_has_no_solutions(self):
        grid = [1, 1] + [0] * 14
        outcome = search_solutions(grid, 4, 2)

        assert outcome.solutions == 0
        assert outcome.first_solution is None

    def test_node_limit_marks_exhausted(self):
        outcome = search_solutions([0] * 81, 9, 3, limit=2, node_limit=5)

        assert outcome.exhausted
        assert not outcome.is_unique

    def test_solved_grid_is_unique(self):
        solved = [1, 2, 3, 4, 3, 4, 1, 2, 2, 1, 4, 3, 4, 3, 2, 1]
        outcome = search_solutions(solved, 4, 2)

        assert outcome.is_unique
        assert outcome.first_solution == solved


class TestSudokuGeneration:
    """Tests for puzzle generation."""

    def test_generate_classic_grid(self, sudoku_solver):
        """A 9x9 difficulty 5 puzzle has one solution and about 49 blanks."""
        state = sudoku_solver.generate(5)
        payload = state.payload

        assert state.kind == PuzzleKind.SUDOKU.value
        assert payload["size"] == 9
        assert payload["box_size"] == 3
        assert len(payload["grid"]) == 81
        assert 47 <= payload["grid"].count(0) <= 50
        assert payload["grid"] == payload["initial_grid"]
        assert sudoku_solver.has_unique_solution(payload["grid"])
        assert state.metadata.move_count == 0
        assert state.metadata.difficulty == 5

    def test_givens_agree_with_solution(self, sudoku_solver):
        state = sudoku_solver.generate(3)
        for given, answer in zip(state.payload["grid"], state.payload["solution"]):
            assert given == 0 or given == answer

    def test_removal_target_is_monotonic_and_capped(self, sudoku_solver):
        targets = [sudoku_solver.removal_target(d) for d in range(1, 11)]

        assert targets == sorted(targets)
        assert sudoku_solver.removal_target(5) == 49
        assert max(targets) <= 81 - 17

    @pytest.mark.parametrize("size", [4, 9])
    def test_generate_other_sizes(self, rng, size):
        solver = SudokuSolver(size=size, rng=rng)
        state = solver.generate(4)

        assert len(state.payload["solution"]) == size * size
        assert solver.has_unique_solution(state.payload["grid"])

    def test_rejects_non_square_size(self):
        with pytest.raises(ValueError):
            SudokuSolver(size=6)

    def test_unique_ids(self, small_sudoku_solver):
        assert small_sudoku_solver.generate(1).id != small_sudoku_solver.generate(1).id


class TestSudokuMoves:
    """Tests for move validation and execution."""

    @pytest.fixture
    def state(self, small_sudoku_solver):
        return small_sudoku_solver.generate(5)

    def first_empty(self, state):
        idx = state.payload["grid"].index(0)
        return divmod(idx, state.payload["size"]) + (state.payload["solution"][idx],)

    def test_valid_placement(self, small_sudoku_solver, state):
        row, col, value = self.first_empty(state)
        after = apply(small_sudoku_solver, state, row=row, col=col, value=value)

        assert after.payload["grid"][row * 4 + col] == value
        assert after.metadata.move_count == 1
        assert state.payload["grid"][row * 4 + col] == 0  # input untouched

    def test_rejects_given_cell(self, small_sudoku_solver, state):
        idx = next(i for i, v in enumerate(state.payload["grid"]) if v)
        row, col = divmod(idx, 4)

        assert not small_sudoku_solver.validate_move(state, Move(payload={"row": row, "col": col, "value": 0}))

    def test_rejects_out_of_range(self, small_sudoku_solver, state):
        assert not small_sudoku_solver.validate_move(state, Move(payload={"row": 4, "col": 0, "value": 1}))
        assert not small_sudoku_solver.validate_move(state, Move(payload={"row": 0, "col": -1, "value": 1}))

        row, col, _ = self.first_empty(state)
        assert not small_sudoku_solver.validate_move(state, Move(payload={"row": row, "col": col, "value": 5}))

    def test_rejects_conflict(self, small_sudoku_solver, state):
        row, col, options = small_sudoku_solver.easiest_cell(state.payload["grid"], 4, 2)
        conflicting = next(v for v in range(1, 5) if v not in options)

        assert not small_sudoku_solver.validate_move(
            state, Move(payload={"row": row, "col": col, "value": conflicting})
        )

    def test_clearing_a_cell(self, small_sudoku_solver, state):
        row, col, value = self.first_empty(state)
        filled = apply(small_sudoku_solver, state, row=row, col=col, value=value)
        cleared = apply(small_sudoku_solver, filled, row=row, col=col, value=0)

        assert cleared.payload["grid"][row * 4 + col] == 0
        assert cleared.metadata.move_count == 2

    @pytest.mark.parametrize("payload", [
        {"row": 0, "col": 0},
        {"row": "0", "col": 0, "value": 1},
        {"row": 0, "col": 0, "value": True},
    ])
    def test_malformed_payload_raises(self, small_sudoku_solver, state, payload):
        with pytest.raises(ValidationError):
            small_sudoku_solver.validate_move(state, Move(payload=payload))

    def test_applying_solution_solves(self, small_sudoku_solver, state, sudoku_solution_moves):
        current = state
        assert not small_sudoku_solver.is_solved(current)

        for payload in sudoku_solution_moves(state):
            current = apply(small_sudoku_solver, current, **payload)

        assert small_sudoku_solver.is_solved(current)
        assert current.payload["grid"] == state.payload["solution"]

    def test_enumerate_moves(self, small_sudoku_solver, state):
        moves = small_sudoku_solver.enumerate_moves(state)
        empty = state.payload["grid"].count(0)

        assert len(moves) >= empty
        assert all(small_sudoku_solver.validate_move(state, m) for m in moves)


class TestSudokuHints:
    """Tests for hint levels."""

    @pytest.fixture
    def state(self, sudoku_solver):
        return sudoku_solver.generate(4)

    def test_level_one_is_directional(self, sudoku_solver, state):
        hint = sudoku_solver.hint(state, 1)

        assert hint.level == 1
        assert hint.category == HintCategory.DIRECTIONAL.value
        assert str(state.payload["grid"].count(0)) in hint.content

    def test_level_two_points_at_cell(self, sudoku_solver, state):
        hint = sudoku_solver.hint(state, 2)
        row, col = hint.target["row"], hint.target["col"]

        assert state.payload["grid"][row * 9 + col] == 0
        assert hint.candidates == sudoku_solver.candidates(state.payload["grid"], 9, 3, row, col)

    def test_level_three_gives_solution_value(self, sudoku_solver, state):
        hint = sudoku_solver.hint(state, 3)
        row, col, value = hint.target["row"], hint.target["col"], hint.target["value"]

        assert value == state.payload["solution"][row * 9 + col]
        assert sudoku_solver.validate_move(state, Move(payload=hint.target))

    def test_level_three_flags_mistake_first(self, small_sudoku_solver):
        state = small_sudoku_solver.generate(8)
        grid = state.payload["grid"]
        for idx, value in enumerate(grid):
            if value:
                continue
            row, col = divmod(idx, 4)
            wrong = [v for v in small_sudoku_solver.candidates(grid, 4, 2, row, col)
                     if v != state.payload["solution"][idx]]
            if wrong:
                state = small_sudoku_solver.execute_move(
                    state, Move(payload={"row": row, "col": col, "value": wrong[0]})
                )
                hint = small_sudoku_solver.hint(state, 3)
                assert hint.target == {"row": row, "col": col, "value": 0}
                return
        pytest.skip("generated grid had no cell with a wrong candidate")

    def test_dead_end_keeps_requested_level(self, small_sudoku_solver):
        """A blocked cell is reported at level 2, and the mistake behind it at level 3."""
        grid = [
            0, 2, 3, 4,
            3, 4, 1, 2,
            2, 1, 4, 3,
            1, 3, 2, 1,
        ]
        state = small_sudoku_solver.new_state(
            {
                "size": 4,
                "box_size": 2,
                "grid": grid,
                "solution": list(SMALL_SOLUTION),
                "initial_grid": [0 if idx in (0, 12) else v for idx, v in enumerate(SMALL_SOLUTION)],
            },
            3,
        )

        elimination = small_sudoku_solver.hint(state, 2)
        assert elimination.level == 2
        assert elimination.category == HintCategory.ELIMINATION.value
        assert elimination.target == {"row": 0, "col": 0}
        assert elimination.candidates == []

        next_move = small_sudoku_solver.hint(state, 3)
        assert next_move.level == 3
        assert next_move.target == {"row": 3, "col": 0, "value": 0}

    def test_full_grid_with_mistake_at_level_two(self, small_sudoku_solver):
        grid = list(SMALL_SOLUTION)
        grid[12] = 1
        state = small_sudoku_solver.new_state(
            {
                "size": 4,
                "box_size": 2,
                "grid": grid,
                "solution": list(SMALL_SOLUTION),
                "initial_grid": [0 if idx == 12 else v for idx, v in enumerate(SMALL_SOLUTION)],
            },
            3,
        )

        hint = small_sudoku_solver.hint(state, 2)

        assert hint.level == 2
        assert hint.target == {"row": 3, "col": 0}

    def test_solved_grid_fallback_keeps_level(self, small_sudoku_solver):
        state = small_sudoku_solver.new_state(
            {
                "size": 4,
                "box_size": 2,
                "grid": list(SMALL_SOLUTION),
                "solution": list(SMALL_SOLUTION),
                "initial_grid": list(SMALL_SOLUTION),
            },
            3,
        )

        assert small_sudoku_solver.hint(state, 2).level == 2
        assert small_sudoku_solver.hint(state, 3).level == 3

    def test_hints_are_deterministic(self, sudoku_solver, state):
        assert sudoku_solver.hint(state, 2) == sudoku_solver.hint(state, 2)

    @pytest.mark.parametrize("level", [0, 4])
    def test_invalid_level(self, sudoku_solver, state, level):
        with pytest.raises(ValidationError):
            sudoku_solver.hint(state, level)


class TestSudokuScoringAndRules:
    """Tests for scores and transition invariants."""

    def test_score_by_difficulty(self, small_sudoku_solver):
        assert small_sudoku_solver.score(small_sudoku_solver.generate(5)) == 5000
        assert small_sudoku_solver.score(small_sudoku_solver.generate(1)) == 2600

    def test_transition_rules_accept_legal_move(self, small_sudoku_solver):
        state = small_sudoku_solver.generate(5)
        idx = state.payload["grid"].index(0)
        row, col = divmod(idx, 4)
        after = apply(small_sudoku_solver, state, row=row, col=col, value=state.payload["solution"][idx])

        assert all(rule(state, after) for rule in small_sudoku_solver.transition_rules())

    def test_transition_rules_reject_overwritten_given(self, small_sudoku_solver):
        state = small_sudoku_solver.generate(5)
        tampered = state.clone()
        idx = next(i for i, v in enumerate(state.payload["grid"]) if v)
        tampered.payload["grid"][idx] = 0

        assert not all(rule(state, tampered) for rule in small_sudoku_solver.transition_rules())
