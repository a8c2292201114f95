"""Statistical anti-cheat analysis of completed puzzle attempts."""

import logging
from typing import List, Optional, Tuple

import numpy as np
from pydantic import ValidationError as ModelValidationError

from . import stats
from ..config import settings
from ..database.analytics import AnalyticsStore
from ..database.cache import CacheManager
from ..errors import DataError
from ..models.analysis import (
    PerformanceMetrics,
    UserStatistics,
    PopulationStatistics,
    PopulationAggregate,
    ZScores,
    OutlierDetection,
    OutlierType,
    ComparisonBasis,
    TrendAnalysis,
    TrendDirection,
    SeasonalPattern,
    PredictionResult,
    HistoricalComparison,
    BenchmarkComparison,
    AnomalyScore,
    Severity,
    RiskAssessment,
    RiskLevel,
    MonitoringLevel,
    StatisticalAnalysisResult,
)
from ..models.puzzles import utcnow

logger = logging.getLogger(__name__)

# Fallback spreads when no positive standard deviation is known
POPULATION_SCORE_STD_RATIO = 0.3
POPULATION_TIME_STD_RATIO = 0.5
POPULATION_ACCURACY_STD = 0.2
PERSONAL_SCORE_STD_RATIO = 0.2
PERSONAL_TIME_STD_RATIO = 0.3
PERSONAL_ACCURACY_STD = 0.15

TREND_SLOPE_THRESHOLD = 0.1
MIN_TREND_SAMPLES = 5
MIN_SEASONAL_SAMPLES = 14
SEASONAL_CORRELATION_THRESHOLD = 0.5
PREDICTION_R_SQUARED = 0.5

RAPID_ACCELERATION = 2.0
HIGH_VOLATILITY = 1.5
LOW_CONSISTENCY = 0.3
IMPLAUSIBLE_SCORE = 1000
IMPLAUSIBLE_TIME_S = 60
HIGH_CONFIDENCE_OUTLIER = 0.8

# Client-reported metadata that disagrees with what the server observed
CLIENT_MISMATCH_WEIGHT = 0.2
CLIENT_TIME_TOLERANCE_S = 2.0
CLIENT_TIME_TOLERANCE_RATIO = 0.1

# A confident outlier raises the level one step, never past high
_ESCALATION = {
    RiskLevel.LOW: RiskLevel.MEDIUM,
    RiskLevel.MEDIUM: RiskLevel.HIGH,
    RiskLevel.HIGH: RiskLevel.HIGH,
}

_MONITORING = {
    RiskLevel.LOW: MonitoringLevel.NORMAL,
    RiskLevel.MEDIUM: MonitoringLevel.INCREASED,
    RiskLevel.HIGH: MonitoringLevel.INTENSIVE,
    RiskLevel.CRITICAL: MonitoringLevel.INTENSIVE,
}


class StatisticalAnalysisService:
    """Scores a performance sample against the user's history and the population.

    User and population statistics are cached through ``CacheManager`` and
    refreshed from the analytics store on a miss. A failing store never
    aborts an analysis; the result is flagged ``low_confidence`` instead.
    """

    def __init__(self, store: AnalyticsStore, cache: Optional[CacheManager] = None):
        self.store = store
        self.cache = cache
        self.user_stats_ttl = settings.user_stats_ttl_seconds
        self.population_stats_ttl = settings.population_stats_ttl_seconds
        self.user_history_limit = settings.user_history_limit
        self.population_window_days = settings.population_window_days
        self.trend_window = settings.trend_window
        self.population_threshold = settings.population_outlier_threshold
        self.personal_threshold = settings.personal_outlier_threshold

        # Last successfully computed baseline, served when a refresh fails
        self._last_population: Optional[PopulationStatistics] = None

    async def analyze_performance(
        self,
        user_id: str,
        puzzle_id: str,
        current: PerformanceMetrics,
    ) -> StatisticalAnalysisResult:
        """Full anomaly report for one attempt."""
        logger.debug(f"Analyzing performance for user {user_id}, puzzle {puzzle_id}")

        low_confidence = False
        history_status = "available"
        try:
            user_stats = await self.get_user_statistics(user_id)
            if user_stats is None:
                history_status = "none"
        except DataError as e:
            logger.warning(f"User history unavailable for {user_id}, comparing against population only: {e}")
            user_stats = None
            low_confidence = True
            history_status = "unavailable"

        population = await self.get_population_statistics()
        low_confidence = low_confidence or population.low_confidence

        outliers = self.detect_outliers(current, user_stats, population)
        trend = self.analyze_trends(user_stats.recent_scores if user_stats else [])
        anomaly = self.calculate_anomaly_score(current, user_stats, outliers, trend)
        risk = self.assess_risk(anomaly, outliers, trend)

        result = StatisticalAnalysisResult(
            user_id=user_id,
            puzzle_id=puzzle_id,
            current_performance=current,
            historical_comparison=self.compare_to_history(current, user_stats, trend),
            population_comparison=self.compare_to_benchmarks(outliers),
            outlier_detection=outliers,
            trend_analysis=trend,
            anomaly_score=anomaly,
            risk_assessment=risk,
            recommendations=self.generate_recommendations(anomaly, outliers, trend),
            low_confidence=low_confidence,
            metadata={
                "user_history": history_status,
                "population_size": str(population.total_completions),
            },
        )

        if user_stats is not None:
            self._update_cached_user_statistics(user_stats, current)

        return result

    # Statistics

    async def get_user_statistics(self, user_id: str) -> Optional[UserStatistics]:
        """Cached summary of a user's recent completions, or None without history.

        Raises DataError when the store cannot be read.
        """
        if self.cache is not None:
            cached = self.cache.get_cached_user_stats(user_id)
            if cached:
                try:
                    return UserStatistics(**cached)
                except ModelValidationError as e:
                    logger.warning(f"Discarding malformed cached statistics for {user_id}: {e}")

        records = await self.store.fetch_recent_completions(user_id, self.user_history_limit)
        if not records:
            return None

        scores = [r.score for r in records]
        times = [r.time_seconds for r in records]
        accuracy = [r.accuracy for r in records]

        average_score = sum(scores) / len(scores)
        average_time = sum(times) / len(times)
        accuracy_rate = sum(accuracy) / len(accuracy)

        user_stats = UserStatistics(
            user_id=user_id,
            total_solutions=len(records),
            average_time=average_time,
            time_std=float(np.std(times)),
            average_score=average_score,
            score_std=float(np.std(scores)),
            accuracy_rate=accuracy_rate,
            improvement_rate=stats.improvement_rate(scores),
            consistency_score=stats.consistency_score(scores),
            skill_level=stats.estimate_skill_level(average_score, accuracy_rate, average_time),
            recent_scores=scores,
            last_updated=utcnow(),
        )

        if self.cache is not None:
            self.cache.cache_user_stats(user_id, user_stats.model_dump(mode="json"), self.user_stats_ttl)

        return user_stats

    async def get_population_statistics(self) -> PopulationStatistics:
        """Population baseline; falls back to the last good value or an empty low-confidence one."""
        if self.cache is not None:
            cached = self.cache.get_cached_population_stats()
            if cached:
                try:
                    population = PopulationStatistics(**cached)
                    self._last_population = population
                    return population
                except ModelValidationError as e:
                    logger.warning(f"Discarding malformed cached population statistics: {e}")

        try:
            aggregate = await self.store.fetch_population_aggregate(self.population_window_days)
        except DataError as e:
            logger.error(f"Error refreshing population statistics: {e}")
            if self._last_population is not None:
                return self._last_population
            return PopulationStatistics(low_confidence=True)

        population = self._population_from_aggregate(aggregate)
        self._last_population = population
        if self.cache is not None:
            self.cache.cache_population_stats(population.model_dump(mode="json"), self.population_stats_ttl)
        return population

    def _population_from_aggregate(self, aggregate: PopulationAggregate) -> PopulationStatistics:
        return PopulationStatistics(
            total_users=aggregate.total_users,
            total_completions=aggregate.total_completions,
            average_performance=PerformanceMetrics(
                score=aggregate.mean_score,
                time=max(0.0, aggregate.mean_time),
                accuracy=min(max(aggregate.mean_accuracy, 0.0), 1.0),
            ),
            score_std=aggregate.score_std,
            time_std=aggregate.time_std,
            accuracy_std=aggregate.accuracy_std,
            performance_distribution=aggregate.score_histogram,
            time_distribution=aggregate.time_histogram,
            accuracy_distribution=aggregate.accuracy_histogram,
            last_updated=utcnow(),
        )

    def _update_cached_user_statistics(self, user_stats: UserStatistics, current: PerformanceMetrics) -> None:
        """Fold the new sample into the cached running average without extending its lifetime."""
        if self.cache is None:
            return

        remaining = self.cache.user_stats_ttl(user_stats.user_id)
        if remaining is None or remaining <= 0:
            return

        total = user_stats.total_solutions + 1
        updated = user_stats.model_copy(update={
            "total_solutions": total,
            "average_score": (user_stats.average_score * (total - 1) + current.score) / total,
            "recent_scores": ([current.score] + user_stats.recent_scores)[:self.user_history_limit],
            "last_updated": utcnow(),
        })
        self.cache.cache_user_stats(user_stats.user_id, updated.model_dump(mode="json"), remaining)

    # Outliers

    def population_z_scores(self, current: PerformanceMetrics, population: PopulationStatistics) -> ZScores:
        average = population.average_performance
        return ZScores(
            score=stats.z_score(
                current.score, average.score,
                stats.pick_std(population.score_std, average.score * POPULATION_SCORE_STD_RATIO),
            ),
            time=stats.z_score(
                current.time, average.time,
                stats.pick_std(population.time_std, average.time * POPULATION_TIME_STD_RATIO),
            ),
            accuracy=stats.z_score(
                current.accuracy, average.accuracy,
                stats.pick_std(population.accuracy_std, POPULATION_ACCURACY_STD),
            ),
        )

    def personal_z_scores(self, current: PerformanceMetrics, user_stats: UserStatistics) -> ZScores:
        return ZScores(
            score=stats.z_score(
                current.score, user_stats.average_score,
                stats.pick_std(user_stats.score_std, user_stats.average_score * PERSONAL_SCORE_STD_RATIO),
            ),
            time=stats.z_score(
                current.time, user_stats.average_time,
                stats.pick_std(user_stats.time_std, user_stats.average_time * PERSONAL_TIME_STD_RATIO),
            ),
            accuracy=stats.z_score(current.accuracy, user_stats.accuracy_rate, PERSONAL_ACCURACY_STD),
        )

    def detect_outliers(
        self,
        current: PerformanceMetrics,
        user_stats: Optional[UserStatistics],
        population: PopulationStatistics,
    ) -> OutlierDetection:
        """Flag population and personal deviations beyond their thresholds.

        An empty population baseline yields zero z-scores, so only the
        personal comparison can flag the attempt.
        """
        if population.total_completions > 0:
            z = self.population_z_scores(current, population)
        else:
            z = ZScores()
        types: List[OutlierType] = []

        if abs(z.score) > self.population_threshold:
            types.append(OutlierType.HIGH_SCORE if z.score > 0 else OutlierType.LOW_SCORE)
        if abs(z.time) > self.population_threshold:
            types.append(OutlierType.SLOW_TIME if z.time > 0 else OutlierType.FAST_TIME)
        if abs(z.accuracy) > self.population_threshold:
            types.append(OutlierType.HIGH_ACCURACY if z.accuracy > 0 else OutlierType.LOW_ACCURACY)

        personal = None
        basis = ComparisonBasis.POPULATION
        if user_stats is not None:
            personal = self.personal_z_scores(current, user_stats)
            basis = ComparisonBasis.BOTH
            if abs(personal.score) > self.personal_threshold:
                types.append(OutlierType.PERSONAL_SCORE_ANOMALY)
            if abs(personal.time) > self.personal_threshold:
                types.append(OutlierType.PERSONAL_TIME_ANOMALY)
            if abs(personal.accuracy) > self.personal_threshold:
                types.append(OutlierType.PERSONAL_ACCURACY_ANOMALY)

        return OutlierDetection(
            is_outlier=bool(types),
            outlier_type=types,
            z_scores=z,
            personal_z_scores=personal,
            confidence_level=min(z.max_abs() / 4.0, 1.0),
            comparison_basis=basis,
        )

    # Trends

    def analyze_trends(self, scores_newest_first: List[float]) -> TrendAnalysis:
        """Regression over the most recent scores, oldest first."""
        values = list(reversed(scores_newest_first[:self.trend_window]))
        if len(values) < MIN_TREND_SAMPLES:
            return TrendAnalysis(sample_size=len(values))

        trend = stats.linear_trend(values)
        if trend.slope > TREND_SLOPE_THRESHOLD:
            direction = TrendDirection.IMPROVING
        elif trend.slope < -TREND_SLOPE_THRESHOLD:
            direction = TrendDirection.DECLINING
        else:
            direction = TrendDirection.STABLE

        prediction = None
        if trend.r_squared > PREDICTION_R_SQUARED:
            predicted = trend.predict(len(values))
            margin = 2 * trend.standard_error
            prediction = PredictionResult(
                score=predicted,
                confidence=trend.r_squared,
                range=(predicted - margin, predicted + margin),
            )

        return TrendAnalysis(
            trend_direction=direction,
            trend_strength=abs(trend.slope),
            acceleration_rate=stats.acceleration(values),
            seasonal_patterns=self.detect_seasonal_patterns(values),
            volatility=stats.coefficient_of_variation(values),
            predicted_next=prediction,
            sample_size=len(values),
        )

    def detect_seasonal_patterns(self, values: List[float]) -> List[SeasonalPattern]:
        if len(values) < MIN_SEASONAL_SAMPLES:
            return []

        correlation = stats.autocorrelation(values, 7)
        if correlation <= SEASONAL_CORRELATION_THRESHOLD:
            return []

        return [SeasonalPattern(
            type="weekly",
            pattern=stats.weekly_profile(values),
            confidence=min(correlation, 1.0),
            description="Scores repeat on a seven-completion cycle",
        )]

    # Comparisons

    def compare_to_history(
        self,
        current: PerformanceMetrics,
        user_stats: Optional[UserStatistics],
        trend: TrendAnalysis,
    ) -> HistoricalComparison:
        if user_stats is None:
            return HistoricalComparison()

        average = user_stats.average_score
        deviation = (current.score - average) / average if average else 0.0
        t_value = abs(current.score - average) / (user_stats.total_solutions ** 0.5)

        return HistoricalComparison(
            user_average=average,
            deviation=deviation,
            percentile_rank=stats.percentile_rank(current.score, user_stats.recent_scores),
            significance_level=min(t_value / 3.0, 1.0),
            trend_direction=trend.trend_direction if trend.sample_size >= MIN_TREND_SAMPLES else None,
            consistency_score=user_stats.consistency_score,
        )

    def compare_to_benchmarks(self, outliers: OutlierDetection) -> BenchmarkComparison:
        """Percentiles from the normal CDF of the z-scores already computed."""
        z = outliers.z_scores
        population_percentile = stats.percentile_from_z(z.score)
        # Lower times rank higher
        time_percentile = stats.percentile_from_z(-z.time)
        accuracy_percentile = stats.percentile_from_z(z.accuracy)

        if outliers.personal_z_scores is not None:
            skill_group_percentile = stats.percentile_from_z(outliers.personal_z_scores.score)
        else:
            skill_group_percentile = population_percentile

        return BenchmarkComparison(
            population_percentile=population_percentile,
            skill_group_percentile=skill_group_percentile,
            time_percentile=time_percentile,
            accuracy_percentile=accuracy_percentile,
            overall_ranking=round((population_percentile + time_percentile + accuracy_percentile) / 3, 2),
        )

    # Scoring

    def calculate_anomaly_score(
        self,
        current: PerformanceMetrics,
        user_stats: Optional[UserStatistics],
        outliers: OutlierDetection,
        trend: TrendAnalysis,
    ) -> AnomalyScore:
        score = 0.0
        factors: List[str] = []

        if outliers.is_outlier:
            score += min(outliers.z_scores.max_abs() / 5.0, 0.4)
            factors.append("statistical_outlier")

        if trend.acceleration_rate > RAPID_ACCELERATION:
            score += 0.3
            factors.append("rapid_improvement")

        if trend.volatility > HIGH_VOLATILITY:
            score += 0.2
            factors.append("high_volatility")

        if user_stats is not None and user_stats.consistency_score < LOW_CONSISTENCY:
            score += 0.2
            factors.append("inconsistent_performance")

        if current.score > IMPLAUSIBLE_SCORE and current.time < IMPLAUSIBLE_TIME_S:
            score += 0.5
            factors.append("impossible_performance")

        reported_moves = current.reported_moves
        if reported_moves is not None and current.moves is not None and reported_moves != current.moves:
            score += CLIENT_MISMATCH_WEIGHT
            factors.append("client_move_mismatch")

        if current.reported_time is not None:
            tolerance = max(CLIENT_TIME_TOLERANCE_S, current.time * CLIENT_TIME_TOLERANCE_RATIO)
            if abs(current.reported_time - current.time) > tolerance:
                score += CLIENT_MISMATCH_WEIGHT
                factors.append("client_time_mismatch")

        score = min(max(score, 0.0), 1.0)
        if score > 0.7:
            severity = Severity.HIGH
        elif score > 0.4:
            severity = Severity.MEDIUM
        else:
            severity = Severity.LOW

        return AnomalyScore(score=score, severity=severity, factors=factors, confidence=outliers.confidence_level)

    def assess_risk(self, anomaly: AnomalyScore, outliers: OutlierDetection, trend: TrendAnalysis) -> RiskAssessment:
        level, factors = self._risk_level(anomaly, outliers, trend)
        return RiskAssessment(
            level=level,
            factors=factors,
            score=max(anomaly.score, outliers.confidence_level),
            immediate_action=level in (RiskLevel.HIGH, RiskLevel.CRITICAL),
            monitoring_level=_MONITORING[level],
        )

    def _risk_level(
        self, anomaly: AnomalyScore, outliers: OutlierDetection, trend: TrendAnalysis
    ) -> Tuple[RiskLevel, List[str]]:
        level = RiskLevel.LOW
        factors: List[str] = []

        if anomaly.score > 0.7:
            level = RiskLevel.HIGH
            factors.append("high_anomaly_score")
        elif anomaly.score > 0.4:
            level = RiskLevel.MEDIUM

        if outliers.is_outlier and outliers.confidence_level > HIGH_CONFIDENCE_OUTLIER:
            level = _ESCALATION[level]
            factors.append("statistical_outlier")

        if trend.acceleration_rate > RAPID_ACCELERATION:
            factors.append("rapid_skill_improvement")

        return level, factors

    def generate_recommendations(
        self, anomaly: AnomalyScore, outliers: OutlierDetection, trend: TrendAnalysis
    ) -> List[str]:
        recommendations = []

        if anomaly.score > 0.7:
            recommendations.append("Immediate manual review recommended")
            recommendations.append("Increase monitoring frequency")

        if outliers.is_outlier:
            recommendations.append("Compare against known bot patterns")
            recommendations.append("Verify user device and environment")

        if trend.acceleration_rate > RAPID_ACCELERATION:
            recommendations.append("Review for possible external assistance")
            recommendations.append("Check for sudden strategy changes")

        if trend.volatility > HIGH_VOLATILITY:
            recommendations.append("Monitor for account sharing")

        if not recommendations:
            recommendations.append("Performance appears normal")

        return recommendations
