"""Tests for timers and score composition."""

import pytest

from puzzlecore.engine import PuzzleTimer, time_bonus, moves_penalty, final_score


class TestPuzzleTimer:
    """Tests for the pausable timer."""

    def test_not_started(self, clock):
        timer = PuzzleTimer(clock)
        assert timer.elapsed_ms() == 0
        assert not timer.is_paused()

    def test_elapsed_follows_clock(self, clock):
        timer = PuzzleTimer(clock)
        timer.start()
        clock.advance(12.5)

        assert timer.elapsed_ms() == 12_500

    def test_pause_freezes_and_resume_continues(self, clock):
        timer = PuzzleTimer(clock)
        timer.start()
        clock.advance(10)
        timer.pause()
        clock.advance(100)

        assert timer.is_paused()
        assert timer.elapsed_ms() == 10_000

        timer.resume()
        clock.advance(5)
        assert not timer.is_paused()
        assert timer.elapsed_ms() == 15_000

    def test_pause_and_resume_are_idempotent(self, clock):
        timer = PuzzleTimer(clock)
        timer.start()
        clock.advance(3)
        timer.pause()
        clock.advance(3)
        timer.pause()
        assert timer.elapsed_ms() == 3_000

        timer.resume()
        timer.resume()
        clock.advance(1)
        assert timer.elapsed_ms() == 4_000


class TestScoring:
    """Tests for score helpers."""

    @pytest.mark.parametrize("elapsed,expected", [
        (0, 1000),
        (150_000, 500),
        (299_999, 0),
        (300_000, 0),
        (400_000, 0),
        (100_000, 666),
    ])
    def test_time_bonus(self, elapsed, expected):
        assert time_bonus(elapsed, 300_000) == expected

    def test_time_bonus_custom_max(self):
        assert time_bonus(0, 1000, max_bonus=200) == 200

    @pytest.mark.parametrize("moves,expected", [(0, 0), (20, 0), (21, 10), (35, 150)])
    def test_moves_penalty(self, moves, expected):
        assert moves_penalty(moves) == expected

    def test_final_score(self):
        assert final_score(3500, 500, 100, 2) == 3800
        assert final_score(3500, 500, 100, 2, hint_penalty=100) == 3700

    def test_final_score_never_negative(self):
        assert final_score(100, 0, 500, 10) == 0
