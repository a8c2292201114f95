"""Puzzle generation, play sessions and statistical review of completions."""

__version__ = "1.0.0"
