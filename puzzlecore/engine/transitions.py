"""Predicates that every accepted state transition must satisfy."""

from typing import Dict, List

from ..models.puzzles import PuzzleKind, PuzzleState
from ..solvers.base import TransitionRule


def move_count_increases(before: PuzzleState, after: PuzzleState) -> bool:
    return after.metadata.move_count > before.metadata.move_count


def dimensions_unchanged(before: PuzzleState, after: PuzzleState) -> bool:
    return (
        after.payload.get("size") == before.payload.get("size")
        and len(after.payload.get("grid", [])) == len(before.payload.get("grid", []))
    )


def identity_unchanged(before: PuzzleState, after: PuzzleState) -> bool:
    return after.id == before.id and after.kind == before.kind


DEFAULT_RULES: List[TransitionRule] = [move_count_increases, dimensions_unchanged, identity_unchanged]


class StateTransitionValidator:
    """Ordered predicate lists per puzzle kind, combined with logical AND."""

    def __init__(self):
        self._rules: Dict[str, List[TransitionRule]] = {}

    def add_rule(self, kind: PuzzleKind, rule: TransitionRule) -> None:
        self._rules.setdefault(PuzzleKind(kind).value, []).append(rule)

    def rules_for(self, kind: PuzzleKind) -> List[TransitionRule]:
        return list(self._rules.get(PuzzleKind(kind).value, []))

    def validate_transition(self, kind: PuzzleKind, before: PuzzleState, after: PuzzleState) -> bool:
        """True when every registered predicate accepts; vacuously True with none."""
        return all(rule(before, after) for rule in self.rules_for(kind))

    def failing_rule(self, kind: PuzzleKind, before: PuzzleState, after: PuzzleState) -> str:
        """Name of the first rejecting predicate, for error messages."""
        for rule in self.rules_for(kind):
            if not rule(before, after):
                return getattr(rule, "__name__", repr(rule))
        return ""
