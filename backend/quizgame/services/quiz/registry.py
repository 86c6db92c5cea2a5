import threading
import time
import uuid
from typing import Dict, List, Optional

from .leaderboard import OpponentPool
from .types import SessionState


class Game:
    """A live session: engine state plus what the server keeps around it.

    Requests and timer tasks may run on different threads; all mutation
    happens while holding ``lock``.
    """

    def __init__(self, state: SessionState, opponents: OpponentPool, session_id: Optional[str] = None):
        self.id = session_id or uuid.uuid4().hex
        self.state = state
        self.opponents = opponents
        self.persisted = False
        self.created_at = time.time()
        self.last_active = time.monotonic()
        self.lock = threading.RLock()

    def touch(self) -> None:
        self.last_active = time.monotonic()

    @property
    def room(self) -> str:
        return f"session:{self.id}"

    def to_dict(self) -> Dict:
        payload = self.state.to_dict()
        payload['session_id'] = self.id
        payload['score_saved'] = self.persisted
        return payload


class SessionRegistry:

    def __init__(self):
        self._games: Dict[str, Game] = {}
        self._lock = threading.Lock()

    def add(self, game: Game) -> Game:
        with self._lock:
            self._games[game.id] = game
        return game

    def get(self, session_id: str) -> Optional[Game]:
        with self._lock:
            return self._games.get(session_id)

    def discard(self, session_id: str) -> Optional[Game]:
        with self._lock:
            return self._games.pop(session_id, None)

    def sweep(self, ended_ttl: float, idle_ttl: float, now: Optional[float] = None) -> List[Game]:
        """Remove games ended for ``ended_ttl`` seconds or untouched for ``idle_ttl``."""
        now = time.monotonic() if now is None else now
        evicted = []
        with self._lock:
            for session_id, game in list(self._games.items()):
                idle = now - game.last_active
                if idle >= idle_ttl or (game.state.is_ended and idle >= ended_ttl):
                    evicted.append(self._games.pop(session_id))
        return evicted

    def __len__(self) -> int:
        with self._lock:
            return len(self._games)

    def __contains__(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._games
