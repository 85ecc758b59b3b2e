from __future__ import annotations

import threading
import uuid
from typing import Dict, Optional

from ...engine.game import GameEngine


class InMemorySessionStore:
    """Thread-safe in-memory store of local engine sessions.

    Responsibilities:
    - Create new sessions with unique `game_id`s
    - Retrieve existing sessions by `game_id`
    - Delete sessions

    Each session owns one `GameEngine`; request handlers mutate it under
    `lock(game_id)` so a move and an undo never interleave.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._games: Dict[str, GameEngine] = {}
        self._game_locks: Dict[str, threading.RLock] = {}

    def create(self, engine: Optional[GameEngine] = None) -> str:
        """Create a new game session and return its `game_id`."""
        gid = str(uuid.uuid4())
        if engine is None:
            engine = GameEngine.new()
        with self._lock:
            self._games[gid] = engine
            self._game_locks[gid] = threading.RLock()
        return gid

    def get(self, game_id: str) -> Optional[GameEngine]:
        with self._lock:
            return self._games.get(game_id)

    def lock(self, game_id: str) -> threading.RLock:
        with self._lock:
            return self._game_locks.setdefault(game_id, threading.RLock())

    def delete(self, game_id: str) -> bool:
        with self._lock:
            self._game_locks.pop(game_id, None)
            return self._games.pop(game_id, None) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._games)
