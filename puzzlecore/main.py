"""Main FastAPI application for the puzzle engine."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import structlog

from .config import settings
from .errors import ConfigurationError, DataError, NotFoundError, ValidationError
from .models import (
    Move, CreatePuzzleRequest, MoveRequest, HintRequest, SolutionCheckRequest,
    PlayerMetricsUpdate, PuzzleStateResponse, DifficultyResponse, SolutionOutcome, HistoryResponse
)
from .database import AnalyticsStore, CacheManager, create_analytics_store
from .analysis import StatisticalAnalysisService
from .engine import PuzzleEngine

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = structlog.get_logger(__name__)

# Global components
analytics_store: Optional[AnalyticsStore] = None
cache_manager: Optional[CacheManager] = None
puzzle_engine: Optional[PuzzleEngine] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager."""
    logger.info("Starting puzzle engine...")

    global analytics_store, cache_manager, puzzle_engine

    try:
        analytics_store = create_analytics_store()
        cache_manager = CacheManager()
        if not cache_manager.health_check():
            logger.warning("Redis unavailable, statistics will be recomputed on every analysis")

        puzzle_engine = PuzzleEngine(
            analysis_service=StatisticalAnalysisService(analytics_store, cache_manager),
            analytics_store=analytics_store,
        )

        logger.info("Puzzle engine started", backend=settings.analytics_backend, solvers=len(puzzle_engine.registry))

        yield

    except Exception as e:
        logger.error(f"Failed to start application: {e}")
        raise

    finally:
        logger.info("Shutting down puzzle engine...")

        if analytics_store:
            analytics_store.close()
        if cache_manager:
            cache_manager.close()

        logger.info("Puzzle engine shut down")


app = FastAPI(
    title="Puzzle Engine",
    description="Puzzle generation, play sessions and statistical review of completions",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Dependency injection
def get_puzzle_engine() -> PuzzleEngine:
    """Get puzzle engine dependency."""
    if puzzle_engine is None:
        raise HTTPException(status_code=503, detail="Puzzle engine not available")
    return puzzle_engine


def get_analytics_store() -> Optional[AnalyticsStore]:
    return analytics_store


def state_response(engine: PuzzleEngine, session_id: str) -> PuzzleStateResponse:
    return PuzzleStateResponse(
        state=engine.get_state(session_id),
        status=engine.get_status(session_id),
        can_undo=engine.can_undo(session_id),
        can_redo=engine.can_redo(session_id),
        hints_used=engine.hints_used(session_id),
    )


@app.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {"status": "healthy", "service": "Puzzle Engine"}


# Puzzle sessions
@app.post("/api/v1/puzzles", response_model=PuzzleStateResponse, status_code=201)
async def create_puzzle(request: CreatePuzzleRequest, engine: PuzzleEngine = Depends(get_puzzle_engine)):
    """Generate a puzzle and open a session for it."""
    if request.player_id:
        await engine.load_player_metrics(request.player_id)

    # Generation and search run in a worker thread
    state = await asyncio.to_thread(engine.generate, request.kind, request.difficulty, request.player_id)
    logger.info("Puzzle created", session_id=state.id, kind=state.kind, difficulty=state.metadata.difficulty)
    return state_response(engine, state.id)


@app.get("/api/v1/puzzles/{session_id}", response_model=PuzzleStateResponse)
async def get_puzzle(session_id: str, engine: PuzzleEngine = Depends(get_puzzle_engine)):
    return state_response(engine, session_id)


@app.post("/api/v1/puzzles/{session_id}/moves", response_model=PuzzleStateResponse)
async def apply_move(session_id: str, request: MoveRequest, engine: PuzzleEngine = Depends(get_puzzle_engine)):
    """Apply one move to a session."""
    await asyncio.to_thread(engine.apply_move, session_id, Move(payload=request.payload, actor_id=request.actor_id))
    return state_response(engine, session_id)


@app.get("/api/v1/puzzles/{session_id}/moves")
async def list_moves(session_id: str, engine: PuzzleEngine = Depends(get_puzzle_engine)):
    """Every legal move for the current state."""
    moves = await asyncio.to_thread(engine.enumerate_moves, session_id)
    return {"session_id": session_id, "moves": [m.payload for m in moves], "count": len(moves)}


@app.get("/api/v1/puzzles/{session_id}/history", response_model=HistoryResponse)
async def get_history(session_id: str, engine: PuzzleEngine = Depends(get_puzzle_engine)):
    return engine.get_history(session_id)


@app.post("/api/v1/puzzles/{session_id}/undo", response_model=PuzzleStateResponse)
async def undo_move(session_id: str, engine: PuzzleEngine = Depends(get_puzzle_engine)):
    if engine.undo(session_id) is None:
        raise ValidationError("Nothing to undo")
    return state_response(engine, session_id)


@app.post("/api/v1/puzzles/{session_id}/redo", response_model=PuzzleStateResponse)
async def redo_move(session_id: str, engine: PuzzleEngine = Depends(get_puzzle_engine)):
    if engine.redo(session_id) is None:
        raise ValidationError("Nothing to redo")
    return state_response(engine, session_id)


@app.post("/api/v1/puzzles/{session_id}/hints")
async def get_hint(session_id: str, request: HintRequest, engine: PuzzleEngine = Depends(get_puzzle_engine)):
    hint = await asyncio.to_thread(engine.hint, session_id, request.level)
    return {"hint": hint.model_dump(), "hints_used": engine.hints_used(session_id)}


@app.post("/api/v1/puzzles/{session_id}/pause")
async def pause_session(session_id: str, engine: PuzzleEngine = Depends(get_puzzle_engine)):
    engine.pause(session_id)
    return {"session_id": session_id, "paused": engine.is_paused(session_id)}


@app.post("/api/v1/puzzles/{session_id}/resume")
async def resume_session(session_id: str, engine: PuzzleEngine = Depends(get_puzzle_engine)):
    engine.resume(session_id)
    return {"session_id": session_id, "paused": engine.is_paused(session_id)}


@app.get("/api/v1/puzzles/{session_id}/result")
async def get_result(session_id: str, engine: PuzzleEngine = Depends(get_puzzle_engine)):
    """Current score breakdown without closing the session."""
    result = await asyncio.to_thread(engine.check_solution, session_id)
    return {"session_id": session_id, "result": result.model_dump()}


@app.post("/api/v1/puzzles/{session_id}/solution", response_model=SolutionOutcome)
async def submit_solution(
    session_id: str,
    request: Optional[SolutionCheckRequest] = None,
    engine: PuzzleEngine = Depends(get_puzzle_engine)
):
    """Submit a finished session for scoring and review."""
    outcome = await engine.submit_solution(session_id, request)
    if outcome.flagged_for_review:
        logger.warning("Solution flagged for review", session_id=session_id)
    return outcome


@app.delete("/api/v1/puzzles/{session_id}")
async def abandon_puzzle(session_id: str, engine: PuzzleEngine = Depends(get_puzzle_engine)):
    engine.abandon(session_id)
    return {"session_id": session_id, "status": engine.get_status(session_id).value}


# Players
@app.put("/api/v1/players/{player_id}/metrics", response_model=DifficultyResponse)
async def update_player_metrics(
    player_id: str,
    update: PlayerMetricsUpdate,
    engine: PuzzleEngine = Depends(get_puzzle_engine),
    store: Optional[AnalyticsStore] = Depends(get_analytics_store)
):
    """Merge externally reported metrics for a player."""
    await engine.load_player_metrics(player_id)
    metrics = engine.update_player_metrics(player_id, **update.model_dump(exclude_none=True))
    if store is not None:
        await store.update_player_metrics(player_id, metrics)

    return DifficultyResponse(
        player_id=player_id,
        base_difficulty=5,
        optimal_difficulty=engine.optimal_difficulty(player_id, 5),
        metrics=metrics,
    )


@app.get("/api/v1/players/{player_id}/difficulty", response_model=DifficultyResponse)
async def get_player_difficulty(player_id: str, base: int = 5, engine: PuzzleEngine = Depends(get_puzzle_engine)):
    if not 1 <= base <= 10:
        raise ValidationError(f"Base difficulty must be between 1 and 10, got {base}")

    await engine.load_player_metrics(player_id)
    return DifficultyResponse(
        player_id=player_id,
        base_difficulty=base,
        optimal_difficulty=engine.optimal_difficulty(player_id, base),
        metrics=engine.get_player_metrics(player_id),
    )


# Error handlers
def error_response(status_code: int, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": str(exc), "status_code": status_code})


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    logger.info(f"Rejected request: {exc}", path=request.url.path)
    return error_response(422, exc)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return error_response(404, exc)


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    logger.error(f"Configuration error: {exc}")
    return error_response(400, exc)


@app.exception_handler(DataError)
async def data_error_handler(request: Request, exc: DataError):
    logger.error(f"Data error: {exc}")
    return error_response(503, exc)


@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc):
    """Handle HTTP exceptions."""
    logger.error(f"HTTP exception: {exc.status_code} - {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail, "status_code": exc.status_code}
    )


@app.exception_handler(Exception)
async def general_exception_handler(request, exc):
    """Handle general exceptions."""
    logger.error(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "status_code": 500}
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "puzzlecore.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.environment == "development"
    )
