"""Analytics store backed by Neo4j."""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import List, Optional, Dict, Any

from neo4j import GraphDatabase, basic_auth
from neo4j.exceptions import Neo4jError, ServiceUnavailable

from .analytics import AnalyticsStore
from ..config import settings
from ..errors import DataError
from ..models.analysis import CompletionRecord, PopulationAggregate
from ..models.puzzles import DifficultyMetrics, utcnow

logger = logging.getLogger(__name__)


class GraphAnalyticsStore(AnalyticsStore):
    """Stores ``Completion`` nodes linked to ``Player`` nodes.

    The driver is synchronous, so each call runs in a worker thread.
    """

    def __init__(self, driver=None, database: Optional[str] = None):
        """Initialize connection to Neo4j database."""
        self.driver = driver or GraphDatabase.driver(
            settings.neo4j_uri,
            auth=basic_auth(settings.neo4j_user, settings.neo4j_password)
        )
        self.database = database or settings.neo4j_database

    def close(self):
        """Close database connection."""
        if self.driver:
            self.driver.close()

    def _session(self):
        if self.database:
            return self.driver.session(database=self.database)
        return self.driver.session()

    def create_constraints(self):
        """Create necessary constraints and indexes."""
        with self._session() as session:
            session.run("""
                CREATE CONSTRAINT player_id_unique IF NOT EXISTS
                FOR (p:Player) REQUIRE p.player_id IS UNIQUE
            """)

            session.run("""
                CREATE INDEX completion_user_index IF NOT EXISTS
                FOR (c:Completion) ON (c.user_id)
            """)

            session.run("""
                CREATE INDEX completion_time_index IF NOT EXISTS
                FOR (c:Completion) ON (c.completed_at)
            """)

    async def _run(self, func, *args):
        try:
            return await asyncio.to_thread(func, *args)
        except (Neo4jError, ServiceUnavailable) as e:
            logger.error(f"Neo4j operation {func.__name__} failed: {e}")
            raise DataError(f"Analytics store unavailable: {e}") from e

    # Completions

    async def append_completion(self, record: CompletionRecord) -> None:
        await self._run(self._append_completion, record)

    def _append_completion(self, record: CompletionRecord) -> None:
        with self._session() as session:
            session.run("""
                MERGE (p:Player {player_id: $user_id})
                CREATE (c:Completion {
                    puzzle_id: $puzzle_id,
                    user_id: $user_id,
                    kind: $kind,
                    completion_time_ms: $completion_time_ms,
                    attempts_count: $attempts_count,
                    is_completed: $is_completed,
                    difficulty_rating: $difficulty_rating,
                    hints_used: $hints_used,
                    score: $score,
                    completed_at: $completed_at
                })
                CREATE (p)-[:COMPLETED]->(c)
            """, {
                **record.model_dump(exclude={"completed_at"}),
                "completed_at": record.completed_at.isoformat(),
            })

    async def fetch_recent_completions(self, user_id: str, limit: int) -> List[CompletionRecord]:
        return await self._run(self._fetch_recent_completions, user_id, limit)

    def _fetch_recent_completions(self, user_id: str, limit: int) -> List[CompletionRecord]:
        with self._session() as session:
            result = session.run("""
                MATCH (c:Completion {user_id: $user_id})
                WHERE c.is_completed = true
                RETURN c
                ORDER BY c.completed_at DESC
                LIMIT $limit
            """, {"user_id": user_id, "limit": limit})
            return [self._record_to_completion(dict(row["c"])) for row in result]

    async def fetch_population_aggregate(self, window_days: int) -> PopulationAggregate:
        return await self._run(self._fetch_population_aggregate, window_days)

    def _fetch_population_aggregate(self, window_days: int) -> PopulationAggregate:
        """Aggregate the window in the database; histograms are left empty."""
        cutoff = (utcnow() - timedelta(days=window_days)).isoformat()
        with self._session() as session:
            record = session.run("""
                MATCH (c:Completion)
                WHERE c.is_completed = true AND c.completed_at >= $cutoff
                WITH c, c.completion_time_ms / 1000.0 AS seconds,
                     CASE WHEN coalesce(c.hints_used, 0) = 0 THEN 1.0 ELSE 0.5 END AS accuracy
                RETURN count(DISTINCT c.user_id) AS total_users,
                       count(c) AS total_completions,
                       avg(c.score) AS mean_score,
                       stDevP(c.score) AS score_std,
                       avg(seconds) AS mean_time,
                       stDevP(seconds) AS time_std,
                       avg(accuracy) AS mean_accuracy,
                       stDevP(accuracy) AS accuracy_std
            """, {"cutoff": cutoff}).single()

        if not record or not record["total_completions"]:
            return PopulationAggregate()

        data = dict(record)
        return PopulationAggregate(**{k: v for k, v in data.items() if v is not None})

    # Player metrics

    async def update_player_metrics(self, player_id: str, metrics: DifficultyMetrics) -> None:
        await self._run(self._update_player_metrics, player_id, metrics)

    def _update_player_metrics(self, player_id: str, metrics: DifficultyMetrics) -> None:
        with self._session() as session:
            session.run("""
                MERGE (p:Player {player_id: $player_id})
                SET p.average_solve_time = $average_solve_time,
                    p.average_moves = $average_moves,
                    p.success_rate = $success_rate,
                    p.hints_usage_rate = $hints_usage_rate,
                    p.sessions_recorded = $sessions_recorded
            """, {"player_id": player_id, **metrics.model_dump()})

    async def get_player_metrics(self, player_id: str) -> Optional[DifficultyMetrics]:
        return await self._run(self._get_player_metrics, player_id)

    def _get_player_metrics(self, player_id: str) -> Optional[DifficultyMetrics]:
        with self._session() as session:
            record = session.run(
                "MATCH (p:Player {player_id: $player_id}) RETURN p",
                {"player_id": player_id},
            ).single()

            if not record:
                return None

            data = dict(record["p"])
            if data.get("sessions_recorded") is None:
                return None
            return DifficultyMetrics(**{k: v for k, v in data.items() if k in DifficultyMetrics.model_fields})

    def health_check(self) -> bool:
        """Check if database connection is healthy."""
        try:
            with self._session() as session:
                session.run("RETURN 1").single()
            return True
        except Exception as e:
            logger.error(f"Neo4j health check failed: {e}")
            return False

    def _record_to_completion(self, data: Dict[str, Any]) -> CompletionRecord:
        """Convert a Neo4j node to a CompletionRecord."""
        completed_at = data.get("completed_at")
        if isinstance(completed_at, str):
            data["completed_at"] = datetime.fromisoformat(completed_at)
        return CompletionRecord(**{k: v for k, v in data.items() if k in CompletionRecord.model_fields})
