"""In-process session records."""

import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..errors import NotFoundError
from ..models.puzzles import PuzzleState, SessionStatus, PuzzleKind
from .history import PuzzleHistory
from .timing import PuzzleTimer


@dataclass
class SessionRecord:
    """Everything the engine holds for one puzzle session.

    ``lock`` guards every field; callers take it for the whole of an operation.
    """
    session_id: str
    kind: PuzzleKind
    state: PuzzleState
    history: PuzzleHistory
    timer: PuzzleTimer
    player_id: Optional[str] = None
    status: SessionStatus = SessionStatus.CREATED
    hints_used: int = 0
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    @property
    def finished(self) -> bool:
        return self.status in (SessionStatus.SOLVED, SessionStatus.ABANDONED)


class SessionStore:
    """Session registry; the registry lock only covers insert and lookup."""

    def __init__(self):
        self._sessions: Dict[str, SessionRecord] = {}
        self._lock = threading.Lock()

    def add(self, record: SessionRecord) -> None:
        with self._lock:
            self._sessions[record.session_id] = record

    def get(self, session_id: str) -> SessionRecord:
        with self._lock:
            record = self._sessions.get(session_id)
        if record is None:
            raise NotFoundError(f"Unknown puzzle session: {session_id}")
        return record

    def remove(self, session_id: str) -> Optional[SessionRecord]:
        with self._lock:
            return self._sessions.pop(session_id, None)

    def session_ids(self) -> List[str]:
        with self._lock:
            return list(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
