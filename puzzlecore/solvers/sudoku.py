"""Sudoku solver: backtracking generation with a uniqueness guarantee."""

import logging
import math
import random
from dataclasses import dataclass
from typing import Dict, Any, List, Optional, Tuple

from .base import PuzzleSolver, TransitionRule
from ..errors import PuzzleEngineError
from ..models.puzzles import PuzzleKind, PuzzleState, Move, Hint, HintCategory, PuzzleResult

logger = logging.getLogger(__name__)


@dataclass
class SearchOutcome:
    """Result of a bounded backtracking search."""
    solutions: int
    exhausted: bool                 # node budget ran out before the search finished
    first_solution: Optional[List[int]] = None

    @property
    def is_unique(self) -> bool:
        return self.solutions == 1 and not self.exhausted


def box_index(row: int, col: int, box_size: int) -> int:
    return (row // box_size) * box_size + col // box_size


def search_solutions(
    grid: List[int],
    size: int,
    box_size: int,
    limit: int = 2,
    node_limit: int = 200_000,
    rng: Optional[random.Random] = None,
) -> SearchOutcome:
    """Count completions of ``grid`` up to ``limit`` with bitmask backtracking.

    Cells are chosen by minimum remaining values. When ``rng`` is given the
    candidate order is shuffled, which is how full grids are generated. The
    search stops after ``limit`` solutions or ``node_limit`` expansions.
    """
    full = (1 << size) - 1
    rows = [0] * size
    cols = [0] * size
    boxes = [0] * size
    work = list(grid)
    open_cells: List[Tuple[int, int, int, int]] = []

    for idx, value in enumerate(work):
        row, col = divmod(idx, size)
        box = box_index(row, col, box_size)
        if value:
            bit = 1 << (value - 1)
            if rows[row] & bit or cols[col] & bit or boxes[box] & bit:
                return SearchOutcome(solutions=0, exhausted=False)
            rows[row] |= bit
            cols[col] |= bit
            boxes[box] |= bit
        else:
            open_cells.append((idx, row, col, box))

    found = 0
    nodes = 0
    exhausted = False
    first: Optional[List[int]] = None

    def search() -> bool:
        # Returns True when the whole search should stop.
        nonlocal found, nodes, exhausted, first
        if not open_cells:
            found += 1
            if first is None:
                first = list(work)
            return found >= limit

        nodes += 1
        if nodes > node_limit:
            exhausted = True
            return True

        best_pos = -1
        best_mask = 0
        best_count = size + 1
        for pos, (_, row, col, box) in enumerate(open_cells):
            mask = full & ~(rows[row] | cols[col] | boxes[box])
            count = bin(mask).count("1")
            if count < best_count:
                best_pos, best_mask, best_count = pos, mask, count
                if count <= 1:
                    break
        if best_count == 0:
            return False

        last = len(open_cells) - 1
        open_cells[best_pos], open_cells[last] = open_cells[last], open_cells[best_pos]
        idx, row, col, box = open_cells.pop()

        bits = []
        mask = best_mask
        while mask:
            bit = mask & -mask
            bits.append(bit)
            mask ^= bit
        if rng is not None:
            rng.shuffle(bits)

        stop = False
        for bit in bits:
            rows[row] |= bit
            cols[col] |= bit
            boxes[box] |= bit
            work[idx] = bit.bit_length()
            stop = search()
            rows[row] &= ~bit
            cols[col] &= ~bit
            boxes[box] &= ~bit
            work[idx] = 0
            if stop:
                break

        open_cells.append((idx, row, col, box))
        open_cells[best_pos], open_cells[last] = open_cells[last], open_cells[best_pos]
        return stop

    search()
    return SearchOutcome(solutions=found, exhausted=exhausted, first_solution=first)


class SudokuSolver(PuzzleSolver):
    """Sudoku on any square grid whose side is a perfect square (4, 9, 16)."""

    kind = PuzzleKind.SUDOKU

    def __init__(
        self,
        size: int = 9,
        max_removal_attempts: int = 1000,
        node_limit: int = 200_000,
        rng: Optional[random.Random] = None,
    ):
        super().__init__(rng=rng)
        box_size = math.isqrt(size)
        if box_size < 2 or box_size * box_size != size:
            raise ValueError(f"Sudoku size must be a perfect square >= 4, got {size}")

        self.size = size
        self.box_size = box_size
        self.max_removal_attempts = max_removal_attempts
        self.node_limit = node_limit

    # Generation

    def removal_target(self, difficulty: int) -> int:
        """Cells to blank for a difficulty, monotonic and capped to keep a unique solution possible."""
        cells = self.size * self.size
        min_clues = cells // 5 + 1
        wanted = round(cells * (0.30 + 0.06 * max(1, difficulty)))
        return min(wanted, cells - min_clues)

    def generate(self, difficulty: int) -> PuzzleState:
        solution = self._complete_grid()
        target = self.removal_target(difficulty)
        grid, removed = self._remove_cells(solution, target)

        if removed < target:
            logger.info(f"Sudoku generation stopped at {removed}/{target} removals to keep the solution unique")

        return self.new_state(
            {
                "size": self.size,
                "box_size": self.box_size,
                "grid": grid,
                "solution": solution,
                "initial_grid": list(grid),
            },
            difficulty,
        )

    def _complete_grid(self) -> List[int]:
        empty = [0] * (self.size * self.size)
        for attempt in range(5):
            outcome = search_solutions(
                empty, self.size, self.box_size, limit=1, node_limit=self.node_limit, rng=self.rng
            )
            if outcome.first_solution is not None:
                return outcome.first_solution
            logger.warning(f"Full grid fill attempt {attempt + 1} exhausted its node budget")
        raise PuzzleEngineError(f"Could not fill a {self.size}x{self.size} Sudoku grid")

    def _remove_cells(self, solution: List[int], target: int) -> Tuple[List[int], int]:
        """Blank cells in random order, keeping only removals that leave one solution."""
        grid = list(solution)
        positions = list(range(len(grid)))
        self.rng.shuffle(positions)

        removed = 0
        attempts = 0
        for pos in positions:
            if removed >= target or attempts >= self.max_removal_attempts:
                break
            attempts += 1

            value = grid[pos]
            grid[pos] = 0
            outcome = search_solutions(grid, self.size, self.box_size, limit=2, node_limit=self.node_limit)
            if outcome.is_unique:
                removed += 1
            else:
                grid[pos] = value

        return grid, removed

    def has_unique_solution(self, grid: List[int]) -> bool:
        size = math.isqrt(len(grid))
        return search_solutions(grid, size, math.isqrt(size), limit=2, node_limit=self.node_limit).is_unique

    # Moves

    def validate_move(self, state: PuzzleState, move: Move) -> bool:
        row = self.read_int(move, "row")
        col = self.read_int(move, "col")
        value = self.read_int(move, "value")

        size = state.payload["size"]
        if not (0 <= row < size and 0 <= col < size):
            return False

        # Given cells can never be overwritten
        if state.payload["initial_grid"][row * size + col] != 0:
            return False

        if not 0 <= value <= size:
            return False

        if value == 0:
            return True

        return value in self.candidates(state.payload["grid"], size, state.payload["box_size"], row, col)

    def execute_move(self, state: PuzzleState, move: Move) -> PuzzleState:
        size = state.payload["size"]
        grid = list(state.payload["grid"])
        grid[move.payload["row"] * size + move.payload["col"]] = move.payload["value"]
        return self.advance(state, grid=grid)

    def is_solved(self, state: PuzzleState) -> bool:
        grid = state.payload["grid"]
        size = state.payload["size"]
        if 0 in grid:
            return False

        expected = set(range(1, size + 1))
        return all(set(unit) == expected for unit in self._units(grid, size, state.payload["box_size"]))

    def enumerate_moves(self, state: PuzzleState) -> List[Move]:
        grid = state.payload["grid"]
        size = state.payload["size"]
        box_size = state.payload["box_size"]

        moves = []
        for idx, value in enumerate(grid):
            if value != 0:
                continue
            row, col = divmod(idx, size)
            for candidate in self.candidates(grid, size, box_size, row, col):
                moves.append(self.make_move({"row": row, "col": col, "value": candidate}))
        return moves

    # Hints

    def hint(self, state: PuzzleState, level: int) -> Hint:
        self.check_hint_level(level)
        grid = state.payload["grid"]
        size = state.payload["size"]
        box_size = state.payload["box_size"]

        if level == 1:
            return self._directional_hint(grid, size, box_size)

        if level == 2:
            cell = self.easiest_cell(grid, size, box_size)
            if cell is None:
                return self._dead_end_hint(state)
            row, col, options = cell
            return Hint(
                level=2,
                content=f"Look at row {row + 1}, column {col + 1}. Only {len(options)} number(s) can go there.",
                category=HintCategory.ELIMINATION,
                target={"row": row, "col": col},
                candidates=options,
            )

        mistake = self._first_mistake(state)
        if mistake is not None:
            row, col, wrong = mistake
            return Hint(
                level=3,
                content=f"The {wrong} in row {row + 1}, column {col + 1} is wrong. Clear that cell.",
                category=HintCategory.NEXT_MOVE,
                target={"row": row, "col": col, "value": 0},
            )

        cell = self.easiest_cell(grid, size, box_size)
        if cell is None:
            return self.fallback_hint(level)
        row, col, _ = cell
        value = state.payload["solution"][row * size + col]
        return Hint(
            level=3,
            content=f"Try placing {value} in row {row + 1}, column {col + 1}.",
            category=HintCategory.NEXT_MOVE,
            target={"row": row, "col": col, "value": value},
            candidates=[value],
        )

    def _directional_hint(self, grid: List[int], size: int, box_size: int) -> Hint:
        empty = grid.count(0)
        if empty == 0:
            return Hint(
                level=1,
                content="Every cell is filled. Check each row, column and box for repeated numbers.",
                category=HintCategory.DIRECTIONAL,
            )

        labels = (
            [f"row {i + 1}" for i in range(size)]
            + [f"column {i + 1}" for i in range(size)]
            + [f"box {i + 1}" for i in range(size)]
        )
        open_counts = [unit.count(0) for unit in self._units(grid, size, box_size)]
        best = min((count, i) for i, count in enumerate(open_counts) if count > 0)[1]

        return Hint(
            level=1,
            content=(
                f"You have {empty} empty cells remaining. "
                f"Focus on {labels[best]}, it has only {open_counts[best]} empty cell(s) left."
            ),
            category=HintCategory.DIRECTIONAL,
        )

    def _dead_end_hint(self, state: PuzzleState) -> Hint:
        """Level-2 hint when no empty cell has a candidate left."""
        grid = state.payload["grid"]
        size = state.payload["size"]

        for idx, value in enumerate(grid):
            if value == 0:
                row, col = divmod(idx, size)
                return Hint(
                    level=2,
                    content=(
                        f"No number fits row {row + 1}, column {col + 1}. "
                        "Something already placed in its row, column or box is wrong."
                    ),
                    category=HintCategory.ELIMINATION,
                    target={"row": row, "col": col},
                )

        mistake = self._first_mistake(state)
        if mistake is None:
            return self.fallback_hint(2)
        row, col, wrong = mistake
        return Hint(
            level=2,
            content=f"Check row {row + 1}, column {col + 1}. The {wrong} there does not belong.",
            category=HintCategory.ELIMINATION,
            target={"row": row, "col": col},
        )

    def _first_mistake(self, state: PuzzleState) -> Optional[Tuple[int, int, int]]:
        size = state.payload["size"]
        solution = state.payload["solution"]
        initial = state.payload["initial_grid"]
        for idx, value in enumerate(state.payload["grid"]):
            if value and not initial[idx] and value != solution[idx]:
                row, col = divmod(idx, size)
                return row, col, value
        return None

    def easiest_cell(self, grid: List[int], size: int, box_size: int) -> Optional[Tuple[int, int, List[int]]]:
        """Empty cell with the fewest (but at least one) candidates, first in row-major order on ties."""
        best = None
        for idx, value in enumerate(grid):
            if value != 0:
                continue
            row, col = divmod(idx, size)
            options = self.candidates(grid, size, box_size, row, col)
            if options and (best is None or len(options) < len(best[2])):
                best = (row, col, options)
                if len(options) == 1:
                    break
        return best

    def candidates(self, grid: List[int], size: int, box_size: int, row: int, col: int) -> List[int]:
        """Values that can go in (row, col) without a row, column or box conflict."""
        used = set()
        for c in range(size):
            if c != col:
                used.add(grid[row * size + c])
        for r in range(size):
            if r != row:
                used.add(grid[r * size + col])
        top = (row // box_size) * box_size
        left = (col // box_size) * box_size
        for r in range(top, top + box_size):
            for c in range(left, left + box_size):
                if (r, c) != (row, col):
                    used.add(grid[r * size + c])
        return [value for value in range(1, size + 1) if value not in used]

    def _units(self, grid: List[int], size: int, box_size: int) -> List[List[int]]:
        rows = [grid[r * size:(r + 1) * size] for r in range(size)]
        cols = [[grid[r * size + c] for r in range(size)] for c in range(size)]
        boxes = []
        for b in range(size):
            top = (b // box_size) * box_size
            left = (b % box_size) * box_size
            boxes.append([
                grid[r * size + c]
                for r in range(top, top + box_size)
                for c in range(left, left + box_size)
            ])
        return rows + cols + boxes

    def has_conflicts(self, grid: List[int], size: int, box_size: int) -> bool:
        """True when any unit holds the same non-zero value twice."""
        for unit in self._units(grid, size, box_size):
            filled = [value for value in unit if value]
            if len(filled) != len(set(filled)):
                return True
        return False

    # Scoring

    def score(self, state: PuzzleState, result: Optional[PuzzleResult] = None) -> int:
        return round(2000 * (1 + state.metadata.difficulty * 0.3))

    # Transition invariants

    def transition_rules(self) -> List[TransitionRule]:
        return [self._givens_preserved, self._no_unit_conflicts, self._solution_unchanged]

    def _givens_preserved(self, before: PuzzleState, after: PuzzleState) -> bool:
        initial = before.payload["initial_grid"]
        if after.payload["initial_grid"] != initial:
            return False
        return all(
            given == 0 or current == given
            for given, current in zip(initial, after.payload["grid"])
        )

    def _no_unit_conflicts(self, before: PuzzleState, after: PuzzleState) -> bool:
        return not self.has_conflicts(after.payload["grid"], after.payload["size"], after.payload["box_size"])

    def _solution_unchanged(self, before: PuzzleState, after: PuzzleState) -> bool:
        return before.payload["solution"] == after.payload["solution"]

    def get_solver_metadata(self) -> Dict[str, Any]:
        metadata = super().get_solver_metadata()
        metadata.update({"size": self.size, "max_removal_attempts": self.max_removal_attempts})
        return metadata
