"""Puzzle data models for the puzzle engine."""

from enum import Enum
from typing import Dict, List, Optional, Any
from datetime import datetime, timezone
from uuid import uuid4
from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


class PuzzleKind(str, Enum):
    """Puzzle variants understood by the engine."""
    SUDOKU = "sudoku"
    SLIDING = "sliding-puzzle"


class HintCategory(str, Enum):
    """What kind of help a hint gives."""
    DIRECTIONAL = "directional"  # Level 1: where to look
    ELIMINATION = "elimination"  # Level 2: a cell/tile with reduced candidates
    PATTERN = "pattern"
    NEXT_MOVE = "next-move"      # Level 3: the move itself


class SessionStatus(str, Enum):
    """Lifecycle of a puzzle session."""
    CREATED = "created"
    IN_PROGRESS = "in_progress"
    SOLVED = "solved"
    ABANDONED = "abandoned"


class PuzzleMetadata(BaseModel):
    """Bookkeeping carried alongside every puzzle state."""

    move_count: int = Field(default=0, ge=0, description="Accepted moves so far")
    time_spent_ms: int = Field(default=0, ge=0, description="Elapsed play time when the state was produced")
    difficulty: int = Field(..., ge=0, description="Difficulty the puzzle was generated at")
    created_at: datetime = Field(default_factory=utcnow)
    last_modified_at: datetime = Field(default_factory=utcnow)


class PuzzleState(BaseModel):
    """A puzzle instance at one point in time.

    The payload is kind-specific. Sudoku payloads hold ``size``, ``box_size``,
    ``grid``, ``solution`` and ``initial_grid``; sliding payloads hold
    ``size``, ``grid`` and ``target``. Grids are flat row-major lists.
    """

    model_config = ConfigDict(use_enum_values=True)

    id: str = Field(..., description="Session identifier")
    kind: PuzzleKind = Field(..., description="Puzzle variant")
    payload: Dict[str, Any] = Field(..., description="Kind-specific grid and solution data")
    metadata: PuzzleMetadata

    def clone(self) -> "PuzzleState":
        """Deep copy, so callers can never alias engine-held state."""
        return self.model_copy(deep=True)


class Move(BaseModel):
    """A single player action. Never mutated after creation."""

    id: str = Field(default_factory=lambda: uuid4().hex)
    payload: Dict[str, Any] = Field(..., description="Kind-specific move data")
    timestamp: datetime = Field(default_factory=utcnow)
    actor_id: Optional[str] = Field(None, description="Player submitting the move")


class Hint(BaseModel):
    """Help for the current state, more specific as the level rises."""

    model_config = ConfigDict(use_enum_values=True)

    level: int = Field(..., ge=1, le=3)
    content: str
    category: HintCategory
    target: Optional[Dict[str, int]] = Field(None, description="Cell or tile the hint points at")
    candidates: List[int] = Field(default_factory=list)


class PuzzleResult(BaseModel):
    """Score breakdown for a session, computed on demand."""

    solved: bool
    base_score: int
    time_bonus: int
    moves_penalty: int
    hints_used: int
    total_score: int
    elapsed_ms: int = 0


class DifficultyMetrics(BaseModel):
    """Running performance summary for one player."""

    average_solve_time: float = Field(default=0.0, ge=0.0, description="Seconds")
    average_moves: float = Field(default=0.0, ge=0.0)
    success_rate: float = Field(default=0.0, ge=0.0, le=1.0)
    hints_usage_rate: float = Field(default=0.0, ge=0.0)
    sessions_recorded: int = Field(default=0, ge=0)
