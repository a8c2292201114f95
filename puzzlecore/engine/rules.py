"""Cause-effect rules applied after every accepted move."""

import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict, List

from ..models.puzzles import PuzzleKind, PuzzleState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CauseEffectRule:
    """When ``condition`` holds for a state, ``effect`` derives the next one.

    Effects must return a new state and leave their input untouched.
    """
    rule_id: str
    condition: Callable[[PuzzleState], bool]
    effect: Callable[[PuzzleState], PuzzleState]
    priority: int = 0


class CauseEffectEngine:
    """Per-kind rule lists, kept sorted by descending priority."""

    def __init__(self):
        self._rules: Dict[str, List[CauseEffectRule]] = {}

    def add_rule(self, kind: PuzzleKind, rule: CauseEffectRule) -> None:
        rules = self._rules.setdefault(PuzzleKind(kind).value, [])
        rules.append(rule)
        # sort is stable, so equal priorities keep insertion order
        rules.sort(key=lambda r: -r.priority)

    def remove_rule(self, kind: PuzzleKind, rule_id: str) -> bool:
        rules = self._rules.get(PuzzleKind(kind).value, [])
        remaining = [rule for rule in rules if rule.rule_id != rule_id]
        removed = len(remaining) != len(rules)
        if removed:
            self._rules[PuzzleKind(kind).value] = remaining
        return removed

    def rules_for(self, kind: PuzzleKind) -> List[CauseEffectRule]:
        return list(self._rules.get(PuzzleKind(kind).value, []))

    def apply(self, kind: PuzzleKind, state: PuzzleState) -> PuzzleState:
        """Single ordered pass; each fired rule's output feeds the next condition."""
        current = state
        for rule in self.rules_for(kind):
            if rule.condition(current):
                logger.debug(f"Applying rule {rule.rule_id} to {current.id}")
                current = rule.effect(current)
        return current


def _forced_cells(state: PuzzleState) -> List[int]:
    """Indices of empty Sudoku cells whose only candidate is the solution value."""
    payload = state.payload
    grid = payload["grid"]
    solution = payload["solution"]
    size = payload["size"]
    box_size = payload.get("box_size") or math.isqrt(size)

    forced = []
    for idx, value in enumerate(grid):
        if value:
            continue
        row, col = divmod(idx, size)
        used = set(grid[row * size:(row + 1) * size])
        used.update(grid[r * size + col] for r in range(size))
        top = (row // box_size) * box_size
        left = (col // box_size) * box_size
        used.update(
            grid[r * size + c]
            for r in range(top, top + box_size)
            for c in range(left, left + box_size)
        )
        # A wrong entry elsewhere can leave a single candidate that is not the answer
        if size - len(used - {0}) == 1 and solution[idx] not in used:
            forced.append(idx)
    return forced


def reveal_forced_cells_rule(priority: int = 0) -> CauseEffectRule:
    """Fill every forced Sudoku cell with its solution value in one pass."""

    def condition(state: PuzzleState) -> bool:
        return bool(_forced_cells(state))

    def effect(state: PuzzleState) -> PuzzleState:
        new_state = state.clone()
        grid = new_state.payload["grid"]
        solution = new_state.payload["solution"]
        for idx in _forced_cells(state):
            grid[idx] = solution[idx]
        return new_state

    return CauseEffectRule(
        rule_id="reveal_forced_cells",
        condition=condition,
        effect=effect,
        priority=priority,
    )
