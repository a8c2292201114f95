"""Analytics persistence interface and the in-process implementation."""

import threading
import logging
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Dict, List, Optional

import numpy as np

from ..models.analysis import CompletionRecord, PopulationAggregate
from ..models.puzzles import DifficultyMetrics, utcnow

logger = logging.getLogger(__name__)

HISTOGRAM_BINS = 10


class AnalyticsStore(ABC):
    """Where completion records and player metrics live.

    Implementations raise ``DataError`` when the backend is unavailable.
    """

    @abstractmethod
    async def append_completion(self, record: CompletionRecord) -> None:
        pass

    @abstractmethod
    async def update_player_metrics(self, player_id: str, metrics: DifficultyMetrics) -> None:
        pass

    @abstractmethod
    async def get_player_metrics(self, player_id: str) -> Optional[DifficultyMetrics]:
        pass

    @abstractmethod
    async def fetch_recent_completions(self, user_id: str, limit: int) -> List[CompletionRecord]:
        """Completed attempts for a user, newest first."""

    @abstractmethod
    async def fetch_population_aggregate(self, window_days: int) -> PopulationAggregate:
        """Aggregate over every completed attempt in the last ``window_days`` days."""

    def close(self) -> None:
        pass


def histogram(values: List[float], bins: int = HISTOGRAM_BINS) -> List[int]:
    if not values:
        return []
    counts, _ = np.histogram(np.asarray(values, dtype=float), bins=bins)
    return [int(c) for c in counts]


def aggregate_completions(records: List[CompletionRecord]) -> PopulationAggregate:
    """Population means, standard deviations and histograms for a set of records."""
    if not records:
        return PopulationAggregate()

    scores = [r.score for r in records]
    times = [r.time_seconds for r in records]
    accuracy = [r.accuracy for r in records]

    return PopulationAggregate(
        total_users=len({r.user_id for r in records}),
        total_completions=len(records),
        mean_score=float(np.mean(scores)),
        score_std=float(np.std(scores)),
        mean_time=float(np.mean(times)),
        time_std=float(np.std(times)),
        mean_accuracy=float(np.mean(accuracy)),
        accuracy_std=float(np.std(accuracy)),
        score_histogram=histogram(scores),
        time_histogram=histogram(times),
        accuracy_histogram=histogram(accuracy),
    )


class InMemoryAnalyticsStore(AnalyticsStore):
    """Process-local store for development and tests."""

    def __init__(self):
        self._completions: List[CompletionRecord] = []
        self._player_metrics: Dict[str, DifficultyMetrics] = {}
        self._lock = threading.Lock()

    async def append_completion(self, record: CompletionRecord) -> None:
        with self._lock:
            self._completions.append(record.model_copy())

    async def update_player_metrics(self, player_id: str, metrics: DifficultyMetrics) -> None:
        with self._lock:
            self._player_metrics[player_id] = metrics.model_copy()

    async def get_player_metrics(self, player_id: str) -> Optional[DifficultyMetrics]:
        with self._lock:
            metrics = self._player_metrics.get(player_id)
            return metrics.model_copy() if metrics else None

    async def fetch_recent_completions(self, user_id: str, limit: int) -> List[CompletionRecord]:
        with self._lock:
            records = [r for r in self._completions if r.user_id == user_id and r.is_completed]
        records.sort(key=lambda r: r.completed_at, reverse=True)
        return [r.model_copy() for r in records[:limit]]

    async def fetch_population_aggregate(self, window_days: int) -> PopulationAggregate:
        cutoff = utcnow() - timedelta(days=window_days)
        with self._lock:
            records = [r for r in self._completions if r.is_completed and r.completed_at >= cutoff]
        return aggregate_completions(records)

    def __len__(self) -> int:
        return len(self._completions)
