"""Request and response models exchanged with the transport layer."""

from typing import Dict, Optional, Any
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field

from .puzzles import PuzzleKind, PuzzleState, PuzzleResult, SessionStatus, DifficultyMetrics
from .analysis import StatisticalAnalysisResult


class CreatePuzzleRequest(BaseModel):
    """Request model for puzzle generation endpoint."""

    model_config = ConfigDict(use_enum_values=True)

    kind: PuzzleKind = Field(..., description="Puzzle variant to generate")
    difficulty: int = Field(5, ge=1, le=10, description="Requested difficulty before player adjustment")
    player_id: Optional[str] = Field(None, description="Player to adapt difficulty for")


class MoveRequest(BaseModel):
    """A move submitted for an existing session."""

    payload: Dict[str, Any] = Field(..., description="Kind-specific move data")
    actor_id: Optional[str] = Field(None, description="Player making the move")


class HintRequest(BaseModel):
    level: int = Field(1, ge=1, le=3, description="1 = directional, 3 = next move")


class SolutionMetadata(BaseModel):
    """Client-reported facts about a solution attempt, used for anti-cheat analysis."""

    moves_submitted: Optional[int] = Field(None, ge=0)
    solution_time_ms: Optional[int] = Field(None, ge=0)
    errors_count: Optional[int] = Field(None, ge=0)
    client_started_at: Optional[datetime] = None
    client_finished_at: Optional[datetime] = None


class SolutionCheckRequest(BaseModel):
    """Full solution attempt for a session."""

    state: Optional[PuzzleState] = Field(None, description="Client copy of the final state, if any")
    solution_metadata: Optional[SolutionMetadata] = None


class PlayerMetricsUpdate(BaseModel):
    """Partial difficulty metrics report for a player."""

    average_solve_time: Optional[float] = Field(None, ge=0.0)
    average_moves: Optional[float] = Field(None, ge=0.0)
    success_rate: Optional[float] = Field(None, ge=0.0, le=1.0)
    hints_usage_rate: Optional[float] = Field(None, ge=0.0)


class PuzzleStateResponse(BaseModel):
    """Response model for anything returning a session's current state."""

    model_config = ConfigDict(use_enum_values=True)

    state: PuzzleState
    status: SessionStatus
    can_undo: bool
    can_redo: bool
    hints_used: int = 0


class DifficultyResponse(BaseModel):
    player_id: str
    base_difficulty: int
    optimal_difficulty: int
    metrics: Optional[DifficultyMetrics] = None


class SolutionOutcome(BaseModel):
    """Result of submitting a solution attempt."""

    model_config = ConfigDict(use_enum_values=True)

    session_id: str
    status: SessionStatus
    result: PuzzleResult
    analysis: Optional[StatisticalAnalysisResult] = None
    flagged_for_review: bool = False
    message: Optional[str] = None


class HistoryResponse(BaseModel):
    """Undo/redo position for a session."""

    session_id: str
    cursor: int
    length: int
    capacity: int
    can_undo: bool
    can_redo: bool
