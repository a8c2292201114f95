"""Tests for the HTTP API."""

import asyncio

import pytest
from fastapi.testclient import TestClient

from puzzlecore.engine import PuzzleEngine
from puzzlecore.main import app, get_puzzle_engine, get_analytics_store
from puzzlecore.solvers import SolverRegistry


@pytest.fixture
def client(engine, store):
    app.dependency_overrides[get_puzzle_engine] = lambda: engine
    app.dependency_overrides[get_analytics_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


def create(client, kind="sliding-puzzle", difficulty=1, **extra):
    response = client.post("/api/v1/puzzles", json={"kind": kind, "difficulty": difficulty, **extra})
    assert response.status_code == 201
    return response.json()


class TestPuzzleEndpoints:
    """Tests for session endpoints."""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_create_puzzle(self, client):
        body = create(client)

        assert body["status"] == "created"
        assert body["state"]["kind"] == "sliding-puzzle"
        assert body["can_undo"] is False
        assert body["hints_used"] == 0

    @pytest.mark.parametrize("payload", [
        {"kind": "sudoku", "difficulty": 0},
        {"kind": "kakuro"},
        {"difficulty": 3},
    ])
    def test_create_rejects_bad_requests(self, client, payload):
        assert client.post("/api/v1/puzzles", json=payload).status_code == 422

    def test_unregistered_kind(self, small_sudoku_solver, clock):
        engine = PuzzleEngine(registry=SolverRegistry([small_sudoku_solver]), clock=clock)
        app.dependency_overrides[get_puzzle_engine] = lambda: engine
        try:
            response = TestClient(app).post("/api/v1/puzzles", json={"kind": "sliding-puzzle"})
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 400
        assert "sliding-puzzle" in response.json()["error"]

    def test_unknown_session(self, client):
        response = client.get("/api/v1/puzzles/missing")

        assert response.status_code == 404
        assert response.json()["status_code"] == 404

    def test_move_undo_redo(self, client):
        body = create(client)
        session_id = body["state"]["id"]
        moves = client.get(f"/api/v1/puzzles/{session_id}/moves").json()
        assert moves["count"] == len(moves["moves"]) > 0

        moved = client.post(f"/api/v1/puzzles/{session_id}/moves", json={"payload": moves["moves"][0]})
        assert moved.status_code == 200
        assert moved.json()["state"]["metadata"]["move_count"] == 1
        assert moved.json()["status"] == "in_progress"

        undone = client.post(f"/api/v1/puzzles/{session_id}/undo")
        assert undone.status_code == 200
        assert undone.json()["state"]["payload"]["grid"] == body["state"]["payload"]["grid"]
        assert undone.json()["can_redo"] is True

        redone = client.post(f"/api/v1/puzzles/{session_id}/redo")
        assert redone.json()["state"]["metadata"]["move_count"] == 1

        history = client.get(f"/api/v1/puzzles/{session_id}/history").json()
        assert history["length"] == 2
        assert history["cursor"] == 1

    def test_illegal_move(self, client):
        session_id = create(client)["state"]["id"]

        response = client.post(f"/api/v1/puzzles/{session_id}/moves", json={"payload": {"tile_index": "x"}})

        assert response.status_code == 422
        assert "tile_index" in response.json()["error"]

    def test_nothing_to_undo(self, client):
        session_id = create(client)["state"]["id"]

        assert client.post(f"/api/v1/puzzles/{session_id}/undo").status_code == 422

    def test_hints_and_pause(self, client):
        session_id = create(client)["state"]["id"]

        hint = client.post(f"/api/v1/puzzles/{session_id}/hints", json={"level": 2})
        assert hint.status_code == 200
        assert hint.json()["hint"]["level"] == 2
        assert hint.json()["hints_used"] == 1

        assert client.post(f"/api/v1/puzzles/{session_id}/hints", json={"level": 5}).status_code == 422

        assert client.post(f"/api/v1/puzzles/{session_id}/pause").json()["paused"] is True
        assert client.post(f"/api/v1/puzzles/{session_id}/resume").json()["paused"] is False

    def test_solve_and_submit(self, client, sudoku_solution_moves, engine):
        session_id = create(client, kind="sudoku", difficulty=2, player_id="player-1")["state"]["id"]
        for payload in sudoku_solution_moves(engine.get_state(session_id)):
            assert client.post(f"/api/v1/puzzles/{session_id}/moves", json={"payload": payload}).status_code == 200

        result = client.get(f"/api/v1/puzzles/{session_id}/result").json()["result"]
        assert result["solved"] is True

        outcome = client.post(f"/api/v1/puzzles/{session_id}/solution")
        assert outcome.status_code == 200
        assert outcome.json()["status"] == "solved"
        assert outcome.json()["result"]["total_score"] > 0

        late = client.post(f"/api/v1/puzzles/{session_id}/moves", json={"payload": {"row": 0, "col": 0, "value": 1}})
        assert late.status_code == 422

    def test_submit_unsolved(self, client):
        session_id = create(client)["state"]["id"]

        outcome = client.post(f"/api/v1/puzzles/{session_id}/solution").json()

        assert outcome["status"] == "created"
        assert outcome["result"]["solved"] is False

    def test_search_heavy_routes_run_in_worker_threads(self, client, engine, monkeypatch):
        seen = []

        def off_loop(method):
            def wrapper(*args, **kwargs):
                try:
                    asyncio.get_running_loop()
                    seen.append((method.__name__, "event-loop"))
                except RuntimeError:
                    seen.append((method.__name__, "worker"))
                return method(*args, **kwargs)
            return wrapper

        for name in ("generate", "apply_move", "enumerate_moves", "hint", "check_solution"):
            monkeypatch.setattr(engine, name, off_loop(getattr(engine, name)))

        session_id = create(client)["state"]["id"]
        moves = client.get(f"/api/v1/puzzles/{session_id}/moves").json()["moves"]
        client.post(f"/api/v1/puzzles/{session_id}/moves", json={"payload": moves[0]})
        client.post(f"/api/v1/puzzles/{session_id}/hints", json={"level": 3})
        client.get(f"/api/v1/puzzles/{session_id}/result")

        assert [name for name, _ in seen] == ["generate", "enumerate_moves", "apply_move", "hint", "check_solution"]
        assert all(where == "worker" for _, where in seen)

    def test_abandon(self, client):
        session_id = create(client)["state"]["id"]

        response = client.delete(f"/api/v1/puzzles/{session_id}")

        assert response.json()["status"] == "abandoned"
        assert client.post(f"/api/v1/puzzles/{session_id}/resume").status_code == 422


class TestPlayerEndpoints:
    """Tests for player difficulty endpoints."""

    def test_update_metrics(self, client, store):
        response = client.put(
            "/api/v1/players/p1/metrics",
            json={"average_solve_time": 3000, "average_moves": 400, "success_rate": 1.0},
        )

        assert response.status_code == 200
        assert response.json()["optimal_difficulty"] == 8

    def test_difficulty_cold_start(self, client):
        body = client.get("/api/v1/players/newbie/difficulty", params={"base": 4}).json()

        assert body["optimal_difficulty"] == 4
        assert body["metrics"] is None

    def test_difficulty_base_out_of_range(self, client):
        assert client.get("/api/v1/players/p1/difficulty", params={"base": 11}).status_code == 422

    def test_invalid_metrics_rejected(self, client):
        response = client.put("/api/v1/players/p1/metrics", json={"success_rate": 2.0})

        assert response.status_code == 422
