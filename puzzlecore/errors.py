"""Exception hierarchy for the puzzle engine."""


class PuzzleEngineError(Exception):
    """Base class for all engine errors."""


class ConfigurationError(PuzzleEngineError):
    """Raised for unrecoverable setup problems such as an unregistered puzzle kind."""


class ValidationError(PuzzleEngineError):
    """Raised when a move, transition or request is illegal.

    The operation that raised it had no side effects, so callers may retry
    with corrected input.
    """


class NotFoundError(PuzzleEngineError):
    """Raised when a session id is unknown."""


class DataError(PuzzleEngineError):
    """Raised when the analytics store cannot be reached or returns bad data."""
