"""Numeric helpers for performance analysis."""

import math
from dataclasses import dataclass
from typing import Sequence, List, Optional

import numpy as np


@dataclass
class LinearTrend:
    slope: float
    intercept: float
    r_squared: float
    standard_error: float

    def predict(self, x: float) -> float:
        return self.intercept + self.slope * x


def linear_trend(values: Sequence[float]) -> LinearTrend:
    """Ordinary least squares fit of ``values`` against their index."""
    y = np.asarray(values, dtype=float)
    n = len(y)
    if n < 2:
        return LinearTrend(slope=0.0, intercept=float(y[0]) if n else 0.0, r_squared=0.0, standard_error=0.0)

    x = np.arange(n, dtype=float)
    slope, intercept = np.polyfit(x, y, 1)
    fitted = intercept + slope * x

    ss_total = float(np.sum((y - y.mean()) ** 2))
    ss_res = float(np.sum((y - fitted) ** 2))
    # A flat series explains nothing
    r_squared = 1.0 - ss_res / ss_total if ss_total > 0 else 0.0
    standard_error = math.sqrt(ss_res / (n - 2)) if n > 2 else 0.0

    return LinearTrend(
        slope=float(slope),
        intercept=float(intercept),
        r_squared=r_squared,
        standard_error=standard_error,
    )


def acceleration(values: Sequence[float]) -> float:
    """Mean second difference."""
    if len(values) < 3:
        return 0.0
    return float(np.mean(np.diff(np.asarray(values, dtype=float), n=2)))


def coefficient_of_variation(values: Sequence[float]) -> float:
    """Population standard deviation over the mean; 0 when the mean is 0."""
    if len(values) < 2:
        return 0.0
    arr = np.asarray(values, dtype=float)
    mean = float(arr.mean())
    if mean == 0:
        return 0.0
    return float(arr.std()) / mean


def autocorrelation(values: Sequence[float], lag: int) -> float:
    """Sample autocorrelation at ``lag``; 0 for constant or too-short series."""
    arr = np.asarray(values, dtype=float)
    if lag <= 0 or len(arr) <= lag:
        return 0.0
    centred = arr - arr.mean()
    denominator = float(np.sum(centred ** 2))
    if denominator == 0:
        return 0.0
    return float(np.sum(centred[lag:] * centred[:-lag])) / denominator


def z_score(value: float, mean: float, std: float) -> float:
    if std <= 0:
        return 0.0
    return (value - mean) / std


def pick_std(observed: Optional[float], estimate: float) -> float:
    """Observed spread when it is positive, else the fallback estimate."""
    if observed is not None and observed > 0:
        return observed
    return estimate


def normal_cdf(z: float) -> float:
    return 0.5 * (1.0 + math.erf(z / math.sqrt(2.0)))


def percentile_from_z(z: float) -> float:
    return round(normal_cdf(z) * 100.0, 2)


def percentile_rank(value: float, sample: Sequence[float]) -> float:
    """Percent of ``sample`` below ``value``, counting ties as half."""
    if not sample:
        return 50.0
    below = sum(1 for v in sample if v < value)
    equal = sum(1 for v in sample if v == value)
    return 100.0 * (below + 0.5 * equal) / len(sample)


def consistency_score(scores: Sequence[float]) -> float:
    """1 minus the coefficient of variation, floored at 0. Short histories count as consistent."""
    if len(scores) < 3:
        return 1.0
    arr = np.asarray(scores, dtype=float)
    mean = float(arr.mean())
    std = float(arr.std())
    if std == 0:
        return 1.0
    if mean <= 0:
        return 0.0
    return max(0.0, 1.0 - std / mean)


def improvement_rate(scores_newest_first: Sequence[float]) -> float:
    """Relative change between the newest five and the oldest five scores."""
    if len(scores_newest_first) < 5:
        return 0.0
    recent = float(np.mean(scores_newest_first[:5]))
    older = float(np.mean(scores_newest_first[-5:]))
    return (recent - older) / older if older > 0 else 0.0


def estimate_skill_level(average_score: float, accuracy_rate: float, average_time: float) -> float:
    """Rough 1-10 skill estimate from score, accuracy and speed."""
    skill = 1.0
    skill += min(average_score / 100.0, 4.0)
    skill += accuracy_rate * 3.0
    skill += max(0.0, 2.0 - average_time / 300.0)
    return min(max(skill, 1.0), 10.0)


def weekly_profile(values: Sequence[float]) -> List[float]:
    """Mean value for each position in a seven-sample cycle."""
    buckets: List[List[float]] = [[] for _ in range(7)]
    for i, value in enumerate(values):
        buckets[i % 7].append(value)
    return [float(np.mean(b)) if b else 0.0 for b in buckets]
