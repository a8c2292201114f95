"""Puzzle engine orchestrating solvers, rules, history, timing and analysis."""

import logging
import time
from typing import Callable, List, Optional

from ..config import settings
from ..database.analytics import AnalyticsStore
from ..errors import DataError, ValidationError
from ..models.analysis import CompletionRecord, PerformanceMetrics, RiskLevel, StatisticalAnalysisResult
from ..models.puzzles import (
    PuzzleKind, PuzzleState, Move, Hint, PuzzleResult, SessionStatus, DifficultyMetrics
)
from ..models.requests import SolutionCheckRequest, SolutionMetadata, SolutionOutcome, HistoryResponse
from ..solvers import PuzzleSolver, SolverRegistry, default_registry
from ..analysis.service import StatisticalAnalysisService
from .difficulty import DifficultyAdjuster
from .history import PuzzleHistory
from .rules import CauseEffectEngine, reveal_forced_cells_rule
from .sessions import SessionRecord, SessionStore
from .timing import PuzzleTimer, time_bonus, moves_penalty, final_score
from .transitions import StateTransitionValidator, DEFAULT_RULES

logger = logging.getLogger(__name__)

FLAGGED_RISK_LEVELS = (RiskLevel.HIGH.value, RiskLevel.CRITICAL.value)


def _reported_seconds(client: SolutionMetadata) -> Optional[float]:
    """Client-side solve time, from the explicit duration or the two timestamps."""
    if client.solution_time_ms is not None:
        return client.solution_time_ms / 1000.0
    if client.client_started_at is not None and client.client_finished_at is not None:
        return max((client.client_finished_at - client.client_started_at).total_seconds(), 0.0)
    return None


class PuzzleEngine:
    """Owns every live session and routes each operation through the right solver.

    A move goes through ``validate_move``, ``execute_move``, the cause-effect
    rules and the transition validator before it reaches history. Any
    rejection raises ``ValidationError`` and leaves the session as it was.
    """

    def __init__(
        self,
        registry: Optional[SolverRegistry] = None,
        analysis_service: Optional[StatisticalAnalysisService] = None,
        analytics_store: Optional[AnalyticsStore] = None,
        clock: Callable[[], float] = time.monotonic,
        history_capacity: Optional[int] = None,
        auto_reveal_forced_cells: Optional[bool] = None,
    ):
        self.registry = SolverRegistry()
        self.rules = CauseEffectEngine()
        self.validator = StateTransitionValidator()
        self.adjuster = DifficultyAdjuster()
        self.sessions = SessionStore()
        self.analysis_service = analysis_service
        self.analytics_store = analytics_store
        self.clock = clock
        self.history_capacity = history_capacity or settings.history_capacity
        self.auto_reveal_forced_cells = (
            settings.auto_reveal_forced_cells if auto_reveal_forced_cells is None else auto_reveal_forced_cells
        )

        source = registry if registry is not None else default_registry()
        for kind in source.kinds():
            self.register_solver(source.get(kind))

    def register_solver(self, solver: PuzzleSolver) -> None:
        """Register a solver together with its transition predicates."""
        replacing = solver.kind in self.registry
        self.registry.register(solver)
        if replacing:
            logger.warning(f"Transition rules for {solver.kind.value} keep the previous solver's entries")
            return

        for rule in DEFAULT_RULES + solver.transition_rules():
            self.validator.add_rule(solver.kind, rule)

        if solver.kind == PuzzleKind.SUDOKU and self.auto_reveal_forced_cells:
            self.rules.add_rule(solver.kind, reveal_forced_cells_rule())

        logger.info(f"Registered solver {solver.__class__.__name__} for {solver.kind.value}")

    # Sessions

    def generate(self, kind: PuzzleKind, difficulty: int = 5, player_id: Optional[str] = None) -> PuzzleState:
        solver = self.registry.get(kind)

        if player_id is not None:
            adjusted = max(1, self.adjuster.optimal_difficulty(player_id, difficulty))
            if adjusted != difficulty:
                logger.info(f"Adjusted difficulty for {player_id}: {difficulty} -> {adjusted}")
            difficulty = adjusted

        state = solver.generate(difficulty)

        history = PuzzleHistory(self.history_capacity)
        history.add_state(state)
        timer = PuzzleTimer(self.clock)
        timer.start()

        self.sessions.add(SessionRecord(
            session_id=state.id,
            kind=solver.kind,
            state=state,
            history=history,
            timer=timer,
            player_id=player_id,
        ))
        logger.info(f"Created {solver.kind.value} session {state.id} at difficulty {difficulty}")
        return state.clone()

    def apply_move(self, session_id: str, move: Move) -> PuzzleState:
        record = self.sessions.get(session_id)
        with record.lock:
            self._require_active(record)
            solver = self.registry.get(record.kind)

            before = record.state
            if not solver.validate_move(before, move):
                raise ValidationError(f"Illegal move for session {session_id}: {move.payload}")

            after = solver.execute_move(before, move)
            after = self.rules.apply(record.kind, after)
            after.metadata.time_spent_ms = record.timer.elapsed_ms()

            if not self.validator.validate_transition(record.kind, before, after):
                failed = self.validator.failing_rule(record.kind, before, after)
                raise ValidationError(f"Transition rejected by {failed} for session {session_id}")

            record.history.add_state(after)
            record.state = after
            if record.status == SessionStatus.CREATED:
                record.status = SessionStatus.IN_PROGRESS

            return after.clone()

    def undo(self, session_id: str) -> Optional[PuzzleState]:
        """Step back one state; None when there is nothing to undo."""
        record = self.sessions.get(session_id)
        with record.lock:
            self._require_active(record)
            state = record.history.undo()
            if state is not None:
                record.state = state
            return state

    def redo(self, session_id: str) -> Optional[PuzzleState]:
        record = self.sessions.get(session_id)
        with record.lock:
            self._require_active(record)
            state = record.history.redo()
            if state is not None:
                record.state = state
            return state

    def can_undo(self, session_id: str) -> bool:
        record = self.sessions.get(session_id)
        with record.lock:
            return not record.finished and record.history.can_undo()

    def can_redo(self, session_id: str) -> bool:
        record = self.sessions.get(session_id)
        with record.lock:
            return not record.finished and record.history.can_redo()

    def get_history(self, session_id: str) -> HistoryResponse:
        record = self.sessions.get(session_id)
        with record.lock:
            return HistoryResponse(
                session_id=session_id,
                cursor=record.history.cursor,
                length=len(record.history),
                capacity=record.history.capacity,
                can_undo=not record.finished and record.history.can_undo(),
                can_redo=not record.finished and record.history.can_redo(),
            )

    def hint(self, session_id: str, level: int) -> Hint:
        record = self.sessions.get(session_id)
        with record.lock:
            self._require_active(record)
            hint = self.registry.get(record.kind).hint(record.state, level)
            record.hints_used += 1
            return hint

    def enumerate_moves(self, session_id: str) -> List[Move]:
        record = self.sessions.get(session_id)
        with record.lock:
            if record.finished:
                return []
            return self.registry.get(record.kind).enumerate_moves(record.state)

    def pause(self, session_id: str) -> None:
        record = self.sessions.get(session_id)
        with record.lock:
            record.timer.pause()

    def resume(self, session_id: str) -> None:
        record = self.sessions.get(session_id)
        with record.lock:
            self._require_active(record)
            record.timer.resume()

    def is_paused(self, session_id: str) -> bool:
        record = self.sessions.get(session_id)
        with record.lock:
            return record.timer.is_paused()

    def get_state(self, session_id: str) -> PuzzleState:
        record = self.sessions.get(session_id)
        with record.lock:
            return record.state.clone()

    def get_status(self, session_id: str) -> SessionStatus:
        return self.sessions.get(session_id).status

    def hints_used(self, session_id: str) -> int:
        return self.sessions.get(session_id).hints_used

    def abandon(self, session_id: str) -> None:
        record = self.sessions.get(session_id)
        with record.lock:
            if record.status == SessionStatus.SOLVED:
                raise ValidationError(f"Session {session_id} is already solved")
            record.timer.pause()
            record.status = SessionStatus.ABANDONED
        logger.info(f"Session {session_id} abandoned")

    # Scoring

    def check_solution(self, session_id: str) -> PuzzleResult:
        record = self.sessions.get(session_id)
        with record.lock:
            return self._score(record)

    def _score(self, record: SessionRecord) -> PuzzleResult:
        solver = self.registry.get(record.kind)
        state = record.state
        solved = solver.is_solved(state)
        elapsed = record.timer.elapsed_ms()
        base = solver.score(state)
        penalty = moves_penalty(state.metadata.move_count, settings.free_moves, settings.move_penalty)

        if solved:
            bonus = time_bonus(elapsed, settings.target_time_ms, settings.max_time_bonus)
            total = final_score(base, bonus, penalty, record.hints_used, settings.hint_penalty)
        else:
            bonus = 0
            total = 0

        return PuzzleResult(
            solved=solved,
            base_score=base,
            time_bonus=bonus,
            moves_penalty=penalty,
            hints_used=record.hints_used,
            total_score=total,
            elapsed_ms=elapsed,
        )

    async def submit_solution(
        self, session_id: str, request: Optional[SolutionCheckRequest] = None
    ) -> SolutionOutcome:
        """Accept a solved session, then analyse and persist the attempt.

        The session becomes SOLVED under its lock before the analysis runs,
        so a slow analysis never holds the lock and a high risk level only
        flags the outcome for review. Analysis and persistence failures are
        logged; they never undo the acceptance.
        """
        request = request or SolutionCheckRequest()
        record = self.sessions.get(session_id)

        with record.lock:
            self._require_active(record)
            if request.state is not None and request.state.payload.get("grid") != record.state.payload.get("grid"):
                raise ValidationError(f"Submitted state does not match session {session_id}")

            result = self._score(record)
            if not result.solved:
                return SolutionOutcome(
                    session_id=session_id,
                    status=record.status,
                    result=result,
                    message="Puzzle is not solved yet",
                )

            record.timer.pause()
            record.status = SessionStatus.SOLVED
            state = record.state.clone()
            player_id = record.player_id

        logger.info(f"Session {session_id} solved with score {result.total_score}")
        if player_id is None:
            return SolutionOutcome(session_id=session_id, status=SessionStatus.SOLVED, result=result)

        analysis = await self._analyze(player_id, state, result, request)
        await self._record_completion(player_id, state, result)

        flagged = analysis is not None and analysis.risk_assessment.level in FLAGGED_RISK_LEVELS
        if flagged:
            logger.warning(f"Session {session_id} flagged for review: {analysis.risk_assessment.factors}")

        return SolutionOutcome(
            session_id=session_id,
            status=SessionStatus.SOLVED,
            result=result,
            analysis=analysis,
            flagged_for_review=flagged,
        )

    async def _analyze(
        self, player_id: str, state: PuzzleState, result: PuzzleResult, request: SolutionCheckRequest
    ) -> Optional[StatisticalAnalysisResult]:
        if self.analysis_service is None:
            return None

        seconds = result.elapsed_ms / 1000.0
        client = request.solution_metadata or SolutionMetadata()
        try:
            metrics = PerformanceMetrics(
                score=result.total_score,
                time=seconds,
                accuracy=1.0 if result.hints_used == 0 else 0.5,
                efficiency=result.total_score / max(seconds, 1.0),
                moves=state.metadata.move_count,
                hints_used=result.hints_used,
                errors_count=client.errors_count,
                reported_moves=client.moves_submitted,
                reported_time=_reported_seconds(client),
            )
            return await self.analysis_service.analyze_performance(player_id, state.id, metrics)
        except Exception as e:
            logger.error(f"Statistical analysis failed for session {state.id}: {e}")
            return None

    async def _record_completion(self, player_id: str, state: PuzzleState, result: PuzzleResult) -> None:
        metrics = self.adjuster.record_session(
            player_id,
            solve_time_s=result.elapsed_ms / 1000.0,
            moves=state.metadata.move_count,
            solved=True,
            hints_used=result.hints_used,
        )

        if self.analytics_store is None:
            return

        record = CompletionRecord(
            puzzle_id=state.id,
            user_id=player_id,
            kind=state.kind,
            completion_time_ms=result.elapsed_ms,
            attempts_count=state.metadata.move_count,
            is_completed=True,
            difficulty_rating=state.metadata.difficulty,
            hints_used=result.hints_used,
            score=result.total_score,
        )
        try:
            await self.analytics_store.append_completion(record)
            await self.analytics_store.update_player_metrics(player_id, metrics)
        except DataError as e:
            logger.error(f"Could not persist completion for {player_id}: {e}")

    # Players

    def update_player_metrics(self, player_id: str, **partial) -> DifficultyMetrics:
        return self.adjuster.update_player_metrics(player_id, **partial)

    def get_player_metrics(self, player_id: str) -> Optional[DifficultyMetrics]:
        return self.adjuster.get_metrics(player_id)

    def optimal_difficulty(self, player_id: str, base: int) -> int:
        return self.adjuster.optimal_difficulty(player_id, base)

    async def load_player_metrics(self, player_id: str) -> Optional[DifficultyMetrics]:
        """Seed the adjuster from the store for players this process has not seen."""
        known = self.adjuster.get_metrics(player_id)
        if known is not None or self.analytics_store is None:
            return known

        try:
            stored = await self.analytics_store.get_player_metrics(player_id)
        except DataError as e:
            logger.warning(f"Could not load metrics for {player_id}: {e}")
            return None

        if stored is None:
            return None
        return self.adjuster.update_player_metrics(player_id, **stored.model_dump())

    def _require_active(self, record: SessionRecord) -> None:
        if record.finished:
            raise ValidationError(f"Session {record.session_id} is {record.status.value}")
