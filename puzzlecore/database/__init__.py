"""Database layer for the puzzle engine."""

from .analytics import AnalyticsStore, InMemoryAnalyticsStore, aggregate_completions
from .graph_store import GraphAnalyticsStore
from .cache import CacheManager
from ..config import settings


def create_analytics_store() -> AnalyticsStore:
    """Build the store selected by ``settings.analytics_backend``."""
    if settings.analytics_backend == "neo4j":
        return GraphAnalyticsStore()
    return InMemoryAnalyticsStore()


__all__ = [
    "AnalyticsStore",
    "InMemoryAnalyticsStore",
    "GraphAnalyticsStore",
    "CacheManager",
    "aggregate_completions",
    "create_analytics_store",
]
