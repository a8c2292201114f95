"""Data models for the puzzle engine."""

from .puzzles import (
    PuzzleKind,
    HintCategory,
    SessionStatus,
    PuzzleMetadata,
    PuzzleState,
    Move,
    Hint,
    PuzzleResult,
    DifficultyMetrics,
)
from .analysis import (
    CompletionRecord,
    PopulationAggregate,
    PerformanceMetrics,
    UserStatistics,
    PopulationStatistics,
    OutlierDetection,
    TrendAnalysis,
    AnomalyScore,
    RiskAssessment,
    StatisticalAnalysisResult,
)
from .requests import (
    CreatePuzzleRequest,
    MoveRequest,
    HintRequest,
    SolutionMetadata,
    SolutionCheckRequest,
    PlayerMetricsUpdate,
    PuzzleStateResponse,
    DifficultyResponse,
    SolutionOutcome,
    HistoryResponse,
)

__all__ = [
    "PuzzleKind",
    "HintCategory",
    "SessionStatus",
    "PuzzleMetadata",
    "PuzzleState",
    "Move",
    "Hint",
    "PuzzleResult",
    "DifficultyMetrics",
    "CompletionRecord",
    "PopulationAggregate",
    "PerformanceMetrics",
    "UserStatistics",
    "PopulationStatistics",
    "OutlierDetection",
    "TrendAnalysis",
    "AnomalyScore",
    "RiskAssessment",
    "StatisticalAnalysisResult",
    "CreatePuzzleRequest",
    "MoveRequest",
    "HintRequest",
    "SolutionMetadata",
    "SolutionCheckRequest",
    "PlayerMetricsUpdate",
    "PuzzleStateResponse",
    "DifficultyResponse",
    "SolutionOutcome",
    "HistoryResponse",
]
