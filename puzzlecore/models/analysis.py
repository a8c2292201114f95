"""Statistical analysis models for completion records and anomaly reports."""

from enum import Enum
from typing import Dict, List, Optional, Tuple
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field

from .puzzles import utcnow


class CompletionRecord(BaseModel):
    """One finished (or abandoned) attempt as stored by the analytics store."""

    puzzle_id: str
    user_id: str
    kind: Optional[str] = None
    completion_time_ms: int = Field(..., ge=0)
    attempts_count: int = Field(default=1, ge=0)
    is_completed: bool = True
    difficulty_rating: int = Field(default=1, ge=0)
    hints_used: int = Field(default=0, ge=0)
    score: float = 0.0
    completed_at: datetime = Field(default_factory=utcnow)

    @property
    def time_seconds(self) -> float:
        return self.completion_time_ms / 1000.0

    @property
    def accuracy(self) -> float:
        """Hint-free completions count as fully accurate."""
        return 1.0 if self.hints_used == 0 else 0.5


class PopulationAggregate(BaseModel):
    """Aggregate over all completions in the population window."""

    total_users: int = 0
    total_completions: int = 0
    mean_score: float = 0.0
    score_std: float = 0.0
    mean_time: float = Field(default=0.0, description="Seconds")
    time_std: float = 0.0
    mean_accuracy: float = 0.0
    accuracy_std: float = 0.0
    score_histogram: List[int] = Field(default_factory=list)
    time_histogram: List[int] = Field(default_factory=list)
    accuracy_histogram: List[int] = Field(default_factory=list)


class PerformanceMetrics(BaseModel):
    """A single performance sample."""

    score: float
    time: float = Field(..., ge=0.0, description="Seconds")
    accuracy: float = Field(default=1.0, ge=0.0, le=1.0)
    efficiency: float = 0.0
    moves: Optional[int] = None
    hints_used: Optional[int] = None
    errors_count: Optional[int] = None
    reported_moves: Optional[int] = Field(None, description="Move count claimed by the client")
    reported_time: Optional[float] = Field(None, ge=0.0, description="Seconds claimed by the client")


class UserStatistics(BaseModel):
    """Summary of a user's recent completions."""

    user_id: str
    total_solutions: int
    average_time: float
    time_std: float = 0.0
    average_score: float
    score_std: float = 0.0
    accuracy_rate: float
    improvement_rate: float = 0.0
    consistency_score: float = 1.0
    skill_level: float = 1.0
    recent_scores: List[float] = Field(default_factory=list, description="Newest first")
    last_updated: datetime = Field(default_factory=utcnow)


class PopulationStatistics(BaseModel):
    """Population baseline used for outlier detection."""

    total_users: int = 0
    total_completions: int = 0
    average_performance: PerformanceMetrics = Field(
        default_factory=lambda: PerformanceMetrics(score=0.0, time=0.0, accuracy=0.0)
    )
    score_std: float = 0.0
    time_std: float = 0.0
    accuracy_std: float = 0.0
    performance_distribution: List[int] = Field(default_factory=list)
    time_distribution: List[int] = Field(default_factory=list)
    accuracy_distribution: List[int] = Field(default_factory=list)
    low_confidence: bool = False
    last_updated: datetime = Field(default_factory=utcnow)


class TrendDirection(str, Enum):
    IMPROVING = "improving"
    DECLINING = "declining"
    STABLE = "stable"


class ComparisonBasis(str, Enum):
    USER = "user"
    POPULATION = "population"
    BOTH = "both"


class OutlierType(str, Enum):
    HIGH_SCORE = "high_score"
    LOW_SCORE = "low_score"
    FAST_TIME = "fast_time"
    SLOW_TIME = "slow_time"
    HIGH_ACCURACY = "high_accuracy"
    LOW_ACCURACY = "low_accuracy"
    PERSONAL_SCORE_ANOMALY = "personal_score_anomaly"
    PERSONAL_TIME_ANOMALY = "personal_time_anomaly"
    PERSONAL_ACCURACY_ANOMALY = "personal_accuracy_anomaly"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class MonitoringLevel(str, Enum):
    NORMAL = "normal"
    INCREASED = "increased"
    INTENSIVE = "intensive"


class ZScores(BaseModel):
    score: float = 0.0
    time: float = 0.0
    accuracy: float = 0.0

    def max_abs(self) -> float:
        return max(abs(self.score), abs(self.time), abs(self.accuracy))


class HistoricalComparison(BaseModel):
    """Current sample versus the user's own history."""

    model_config = ConfigDict(use_enum_values=True)

    user_average: float = 0.0
    deviation: float = 0.0
    percentile_rank: float = 50.0
    significance_level: float = 0.0
    trend_direction: Optional[TrendDirection] = None
    consistency_score: Optional[float] = None


class BenchmarkComparison(BaseModel):
    """Percentile standing against the population (0-100)."""

    population_percentile: float = 50.0
    skill_group_percentile: float = 50.0
    time_percentile: float = 50.0
    accuracy_percentile: float = 50.0
    overall_ranking: float = 50.0


class OutlierDetection(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    is_outlier: bool = False
    outlier_type: List[OutlierType] = Field(default_factory=list)
    z_scores: ZScores = Field(default_factory=ZScores, description="Against the population")
    personal_z_scores: Optional[ZScores] = None
    confidence_level: float = 0.0
    comparison_basis: ComparisonBasis = ComparisonBasis.POPULATION


class SeasonalPattern(BaseModel):
    type: str = Field(..., description="daily, weekly or monthly")
    pattern: List[float] = Field(default_factory=list)
    confidence: float = 0.0
    description: str = ""


class PredictionResult(BaseModel):
    score: float
    confidence: float
    range: Tuple[float, float]
    timeframe: Optional[str] = "next_completion"


class TrendAnalysis(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    trend_direction: TrendDirection = TrendDirection.STABLE
    trend_strength: float = 0.0
    acceleration_rate: float = 0.0
    seasonal_patterns: List[SeasonalPattern] = Field(default_factory=list)
    volatility: float = 0.0
    predicted_next: Optional[PredictionResult] = None
    sample_size: int = 0


class AnomalyScore(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    score: float = Field(..., ge=0.0, le=1.0)
    severity: Severity
    factors: List[str] = Field(default_factory=list)
    confidence: float = 0.0


class RiskAssessment(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    level: RiskLevel
    factors: List[str] = Field(default_factory=list)
    score: float
    immediate_action: bool = False
    monitoring_level: MonitoringLevel = MonitoringLevel.NORMAL


class StatisticalAnalysisResult(BaseModel):
    """Complete report for one analysed attempt."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    puzzle_id: str
    analysis_time: datetime = Field(default_factory=utcnow)
    current_performance: PerformanceMetrics
    historical_comparison: HistoricalComparison
    population_comparison: BenchmarkComparison
    outlier_detection: OutlierDetection
    trend_analysis: TrendAnalysis
    anomaly_score: AnomalyScore
    risk_assessment: RiskAssessment
    recommendations: List[str] = Field(default_factory=list)
    low_confidence: bool = False
    metadata: Dict[str, str] = Field(default_factory=dict)
