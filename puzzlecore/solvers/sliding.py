"""Sliding tile puzzle solver."""

import heapq
import logging
import random
from typing import Dict, Any, List, Optional, Tuple

from .base import PuzzleSolver, TransitionRule
from ..models.puzzles import PuzzleKind, PuzzleState, Move, Hint, HintCategory, PuzzleResult

logger = logging.getLogger(__name__)


def neighbours(index: int, size: int) -> List[int]:
    """Indices orthogonally adjacent to ``index``, in up/down/left/right order."""
    row, col = divmod(index, size)
    result = []
    if row > 0:
        result.append(index - size)
    if row < size - 1:
        result.append(index + size)
    if col > 0:
        result.append(index - 1)
    if col < size - 1:
        result.append(index + 1)
    return result


def manhattan(grid: List[int], size: int) -> int:
    """Sum of tile distances from their goal cells (blank excluded)."""
    total = 0
    for index, tile in enumerate(grid):
        if tile == 0:
            continue
        goal = tile - 1
        total += abs(index // size - goal // size) + abs(index % size - goal % size)
    return total


def is_solvable(grid: List[int], size: int) -> bool:
    """Inversion-parity test for reaching the ordering 1..n-1 followed by the blank."""
    tiles = [tile for tile in grid if tile != 0]
    inversions = sum(
        1
        for i in range(len(tiles))
        for j in range(i + 1, len(tiles))
        if tiles[i] > tiles[j]
    )
    if size % 2 == 1:
        return inversions % 2 == 0
    blank_row_from_bottom = size - grid.index(0) // size
    return (inversions + blank_row_from_bottom) % 2 == 1


class SlidingPuzzleSolver(PuzzleSolver):
    """N x N sliding puzzle whose goal is 1..N*N-1 with the blank last."""

    kind = PuzzleKind.SLIDING

    def __init__(self, search_node_limit: int = 20_000, rng: Optional[random.Random] = None):
        super().__init__(rng=rng)
        self.search_node_limit = search_node_limit

    def board_size(self, difficulty: int) -> int:
        return min(3 + max(0, difficulty) // 2, 6)

    def generate(self, difficulty: int) -> PuzzleState:
        size = self.board_size(difficulty)
        target = list(range(1, size * size)) + [0]

        # Random walks from the goal are always solvable
        grid = list(target)
        while grid == target:
            grid = self._shuffle(target, size, max(1, difficulty) * 100)

        return self.new_state({"size": size, "grid": grid, "target": target}, difficulty)

    def _shuffle(self, target: List[int], size: int, steps: int) -> List[int]:
        grid = list(target)
        blank = grid.index(0)
        previous = None
        for _ in range(steps):
            options = [i for i in neighbours(blank, size) if i != previous]
            choice = self.rng.choice(options)
            grid[blank], grid[choice] = grid[choice], grid[blank]
            previous, blank = blank, choice
        return grid

    def validate_move(self, state: PuzzleState, move: Move) -> bool:
        tile_index = self.read_int(move, "tile_index")
        grid = state.payload["grid"]
        size = state.payload["size"]

        if not 0 <= tile_index < size * size:
            return False
        if grid[tile_index] == 0:
            return False

        return tile_index in neighbours(grid.index(0), size)

    def execute_move(self, state: PuzzleState, move: Move) -> PuzzleState:
        grid = list(state.payload["grid"])
        tile_index = move.payload["tile_index"]
        blank = grid.index(0)
        grid[blank], grid[tile_index] = grid[tile_index], grid[blank]
        return self.advance(state, grid=grid)

    def is_solved(self, state: PuzzleState) -> bool:
        return state.payload["grid"] == state.payload["target"]

    def enumerate_moves(self, state: PuzzleState) -> List[Move]:
        grid = state.payload["grid"]
        blank = grid.index(0)
        return [
            self.make_move({"tile_index": index})
            for index in neighbours(blank, state.payload["size"])
        ]

    def hint(self, state: PuzzleState, level: int) -> Hint:
        self.check_hint_level(level)
        grid = state.payload["grid"]
        size = state.payload["size"]

        if self.is_solved(state):
            return Hint(level=1, content="The puzzle is already solved.", category=HintCategory.DIRECTIONAL)

        movable = neighbours(grid.index(0), size)

        if level == 1:
            misplaced = sum(1 for tile, goal in zip(grid, state.payload["target"]) if tile and tile != goal)
            return Hint(
                level=1,
                content=(
                    f"You can move {len(movable)} tile(s). {misplaced} tile(s) are out of place; "
                    "work on the top rows first."
                ),
                category=HintCategory.DIRECTIONAL,
            )

        if level == 2:
            index = self._greedy_move(grid, size)
            return Hint(
                level=2,
                content=f"Try moving tile number {grid[index]}. It will help position other tiles correctly.",
                category=HintCategory.ELIMINATION,
                target={"tile": grid[index], "tile_index": index},
                candidates=sorted(grid[i] for i in movable),
            )

        index = self.best_next_move(grid, size)
        return Hint(
            level=3,
            content=f"Move tile {grid[index]} at position {index + 1} into the empty space.",
            category=HintCategory.NEXT_MOVE,
            target={"tile": grid[index], "tile_index": index},
            candidates=[grid[index]],
        )

    def _greedy_move(self, grid: List[int], size: int) -> int:
        """Movable tile whose slide lowers the Manhattan distance most; lowest tile number on ties."""
        blank = grid.index(0)
        best: Optional[Tuple[int, int, int]] = None
        for index in neighbours(blank, size):
            moved = list(grid)
            moved[blank], moved[index] = moved[index], moved[blank]
            key = (manhattan(moved, size), grid[index], index)
            if best is None or key < best:
                best = key
        return best[2]

    def best_next_move(self, grid: List[int], size: int) -> int:
        """First move of a bounded A* search, or the greedy move when the budget runs out."""
        if not is_solvable(grid, size):
            return self._greedy_move(grid, size)

        path = self._a_star(grid, size)
        if path:
            return path[0]

        logger.debug(f"A* exceeded {self.search_node_limit} nodes on a {size}x{size} board")
        return self._greedy_move(grid, size)

    def _a_star(self, grid: List[int], size: int) -> Optional[List[int]]:
        goal = tuple(list(range(1, size * size)) + [0])
        start = tuple(grid)
        counter = 0
        start_h = manhattan(grid, size)
        # ties on f go to the node nearer the goal
        frontier = [(start_h, start_h, counter, start, 0)]
        best_g = {start: 0}
        parents: Dict[Tuple[int, ...], Tuple[Optional[Tuple[int, ...]], Optional[int]]] = {start: (None, None)}
        expanded = 0

        while frontier:
            _, _, _, current, g = heapq.heappop(frontier)
            if current == goal:
                return self._rebuild_path(parents, current)
            if g > best_g.get(current, g):
                continue

            expanded += 1
            if expanded > self.search_node_limit:
                return None

            blank = current.index(0)
            for index in neighbours(blank, size):
                nxt = list(current)
                nxt[blank], nxt[index] = nxt[index], nxt[blank]
                nxt_key = tuple(nxt)
                cost = g + 1
                if cost < best_g.get(nxt_key, cost + 1):
                    best_g[nxt_key] = cost
                    parents[nxt_key] = (current, index)
                    counter += 1
                    h = manhattan(nxt, size)
                    heapq.heappush(frontier, (cost + h, h, counter, nxt_key, cost))

        return None

    def _rebuild_path(self, parents, state) -> List[int]:
        moves = []
        while True:
            parent, index = parents[state]
            if parent is None:
                break
            moves.append(index)
            state = parent
        moves.reverse()
        return moves

    def score(self, state: PuzzleState, result: Optional[PuzzleResult] = None) -> int:
        return round(1000 * (1 + state.metadata.difficulty * 0.5))

    def transition_rules(self) -> List[TransitionRule]:
        return [self._tiles_preserved, self._single_slide]

    def _tiles_preserved(self, before: PuzzleState, after: PuzzleState) -> bool:
        target = before.payload["target"]
        return after.payload["target"] == target and sorted(after.payload["grid"]) == sorted(target)

    def _single_slide(self, before: PuzzleState, after: PuzzleState) -> bool:
        changed = [
            i for i, (old, new) in enumerate(zip(before.payload["grid"], after.payload["grid"]))
            if old != new
        ]
        if len(changed) != 2:
            return False
        first, second = changed
        if 0 not in (before.payload["grid"][first], before.payload["grid"][second]):
            return False
        return second in neighbours(first, before.payload["size"])

    def get_solver_metadata(self) -> Dict[str, Any]:
        metadata = super().get_solver_metadata()
        metadata["search_node_limit"] = self.search_node_limit
        return metadata
