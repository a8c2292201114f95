"""Base solver class and the kind-to-solver registry."""

import logging
import random
from abc import ABC, abstractmethod
from typing import Callable, Dict, Any, Iterable, List, Optional
from uuid import uuid4

from ..errors import ConfigurationError, ValidationError
from ..models.puzzles import (
    PuzzleKind, PuzzleState, PuzzleMetadata, Move, Hint, HintCategory, PuzzleResult, utcnow
)

logger = logging.getLogger(__name__)

TransitionRule = Callable[[PuzzleState, PuzzleState], bool]


class PuzzleSolver(ABC):
    """Stateless algorithm set for one puzzle kind.

    Every method that produces a state returns a new object; inputs are never
    mutated. Randomness only enters through ``self.rng`` so generation can be
    seeded.
    """

    kind: PuzzleKind

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    @abstractmethod
    def generate(self, difficulty: int) -> PuzzleState:
        """Create a fresh puzzle at the given difficulty."""

    @abstractmethod
    def validate_move(self, state: PuzzleState, move: Move) -> bool:
        """Return True when the move is legal for the current payload."""

    @abstractmethod
    def execute_move(self, state: PuzzleState, move: Move) -> PuzzleState:
        """Apply a validated move and return the resulting state."""

    @abstractmethod
    def is_solved(self, state: PuzzleState) -> bool:
        pass

    @abstractmethod
    def hint(self, state: PuzzleState, level: int) -> Hint:
        """Deterministic hint; higher levels are more specific."""

    @abstractmethod
    def score(self, state: PuzzleState, result: Optional[PuzzleResult] = None) -> int:
        """Base score for the state. Depends on difficulty, never on wall-clock time."""

    @abstractmethod
    def enumerate_moves(self, state: PuzzleState) -> List[Move]:
        pass

    def transition_rules(self) -> List[TransitionRule]:
        """Kind-specific invariants that must hold across every accepted move."""
        return []

    def new_state(self, payload: Dict[str, Any], difficulty: int) -> PuzzleState:
        """Wrap a freshly generated payload in a state with zeroed metadata."""
        now = utcnow()
        return PuzzleState(
            id=f"{self.kind.value}-{uuid4().hex}",
            kind=self.kind,
            payload=payload,
            metadata=PuzzleMetadata(
                move_count=0,
                time_spent_ms=0,
                difficulty=difficulty,
                created_at=now,
                last_modified_at=now,
            ),
        )

    def advance(self, state: PuzzleState, **payload_updates: Any) -> PuzzleState:
        """Copy of ``state`` with updated payload keys and one more move counted."""
        new_state = state.clone()
        new_state.payload.update(payload_updates)
        new_state.metadata.move_count = state.metadata.move_count + 1
        new_state.metadata.last_modified_at = utcnow()
        return new_state

    def read_int(self, move: Move, key: str) -> int:
        """Fetch an integer field from a move payload or raise ValidationError."""
        if key not in move.payload:
            raise ValidationError(f"Move payload for {self.kind.value} is missing '{key}'")

        value = move.payload[key]
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(f"Move field '{key}' must be an integer, got {value!r}")
        return value

    def check_hint_level(self, level: int) -> None:
        if level not in (1, 2, 3):
            raise ValidationError(f"Hint level must be 1, 2 or 3, got {level}")

    def fallback_hint(self, level: int = 1) -> Hint:
        return Hint(
            level=level,
            content="Keep working on the puzzle systematically!",
            category=HintCategory.DIRECTIONAL,
        )

    def make_move(self, payload: Dict[str, Any], actor_id: Optional[str] = None) -> Move:
        return Move(payload=payload, actor_id=actor_id)

    def get_solver_metadata(self) -> Dict[str, Any]:
        """Get metadata about this solver."""
        return {
            "solver_name": self.__class__.__name__,
            "kind": self.kind.value,
            "transition_rules": len(self.transition_rules()),
        }


class SolverRegistry:
    """Maps puzzle kinds to solver instances.

    Adding a puzzle kind means registering another solver here.
    """

    def __init__(self, solvers: Iterable[PuzzleSolver] = ()):
        self._solvers: Dict[PuzzleKind, PuzzleSolver] = {}
        for solver in solvers:
            self.register(solver)

    def register(self, solver: PuzzleSolver) -> None:
        if solver.kind in self._solvers:
            logger.warning(f"Replacing solver for kind {solver.kind.value}")
        self._solvers[solver.kind] = solver

    def get(self, kind: Any) -> PuzzleSolver:
        """Resolve a solver, raising ConfigurationError for unknown kinds."""
        try:
            resolved = PuzzleKind(kind)
        except ValueError:
            raise ConfigurationError(f"Unknown puzzle kind: {kind!r}")

        solver = self._solvers.get(resolved)
        if solver is None:
            raise ConfigurationError(f"No solver registered for puzzle kind: {resolved.value}")
        return solver

    def kinds(self) -> List[PuzzleKind]:
        return list(self._solvers)

    def __contains__(self, kind: Any) -> bool:
        try:
            return PuzzleKind(kind) in self._solvers
        except ValueError:
            return False

    def __len__(self) -> int:
        return len(self._solvers)
