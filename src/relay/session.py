from __future__ import annotations

import logging
import re
import secrets
import string
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Set, Tuple

from .config import GAME_CONFIGS, GameConfig, get_config
from .errors import (
    AlreadyInGame,
    GameFull,
    GameNotFound,
    GameNotStarted,
    InvalidGameCode,
    NoActiveGame,
    NotYourTurn,
)
from .validator import MoveValidator


logger = logging.getLogger(__name__)

GAME_CODE_ALPHABET = string.ascii_uppercase + string.digits
GAME_CODE_LENGTH = 6
GAME_CODE_RE = re.compile(r"^[A-Z0-9]{6}$")
DEFAULT_STALE_TTL_S = 3600.0


class SessionStatus(str, Enum):
    WAITING = "waiting"
    PLAYING = "playing"
    FINISHED = "finished"


@dataclass(frozen=True)
class Outgoing:
    """One event the transport must deliver to each connection in `targets`."""

    targets: Tuple[str, ...]
    event: str
    data: Any = None


@dataclass
class GameSession:
    """Relay-side record of one game room.

    Attributes:
        id (str): Six character game code.
        config (GameConfig): Game type description.
        players (Dict[str, str]): Role to connection id.
        moves (List[Dict[str, Any]]): Relayed payloads with ``player`` and
            ``timestamp`` added.
        current_turn (str): Role expected to move next.
        status (SessionStatus): Lifecycle state.
        result (Optional[Dict[str, Any]]): Final result once finished.
        rematch_requests (Set[str]): Roles that asked for a rematch.
        draw_offered_by (Optional[str]): Role with an open draw offer.
        last_activity (float): Clock reading of the latest change.
        validator (Optional[MoveValidator]): Server-side move check, if enabled.
    """

    id: str
    config: GameConfig
    players: Dict[str, str] = field(default_factory=dict)
    moves: List[Dict[str, Any]] = field(default_factory=list)
    current_turn: str = ""
    status: SessionStatus = SessionStatus.WAITING
    result: Optional[Dict[str, Any]] = None
    rematch_requests: Set[str] = field(default_factory=set)
    draw_offered_by: Optional[str] = None
    last_activity: float = 0.0
    validator: Optional[MoveValidator] = None

    @property
    def game_type(self) -> str:
        return self.config.game_type

    @property
    def connections(self) -> Tuple[str, ...]:
        return tuple(self.players.values())

    def role_of(self, conn: str) -> Optional[str]:
        for role, player in self.players.items():
            if player == conn:
                return role
        return None

    def others(self, conn: str) -> Tuple[str, ...]:
        return tuple(p for p in self.players.values() if p != conn)

    def other_roles(self, role: str) -> List[str]:
        return [r for r in self.players if r != role]

    def open_role(self) -> Optional[str]:
        for role in self.config.roles:
            if role not in self.players:
                return role
        return None


class SessionManager:
    """Thread-safe registry of relay sessions and the matchmaking queue.

    Every operation returns the list of `Outgoing` events to deliver; the
    manager never talks to sockets itself. Failures raise `RelayError`
    subclasses and leave state untouched.
    """

    def __init__(
        self,
        configs: Optional[Mapping[str, GameConfig]] = None,
        *,
        validate_moves: bool = False,
        stale_ttl_s: float = DEFAULT_STALE_TTL_S,
        clock: Callable[[], float] = time.time,
        code_factory: Optional[Callable[[], str]] = None,
    ) -> None:
        self._lock = threading.RLock()
        self._configs: Dict[str, GameConfig] = dict(configs or GAME_CONFIGS)
        self._validate_moves = validate_moves
        self._stale_ttl_s = stale_ttl_s
        self._clock = clock
        self._code_factory = code_factory or _random_code
        self._sessions: Dict[str, GameSession] = {}
        self._conn_game: Dict[str, str] = {}
        self._queues: Dict[str, List[str]] = {}

    # --- Lookups ---
    def get(self, game_id: str) -> Optional[GameSession]:
        with self._lock:
            return self._sessions.get(game_id.upper())

    def session_for(self, conn: str) -> Optional[GameSession]:
        with self._lock:
            gid = self._conn_game.get(conn)
            return self._sessions.get(gid) if gid is not None else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    # --- Rooms ---
    def create_game(self, conn: str, game_type: str = "chess") -> List[Outgoing]:
        config = self._config(game_type)
        with self._lock:
            out = self._leave_session(conn)
            session = self._new_session(config)
            role = config.roles[0]
            session.players[role] = conn
            self._conn_game[conn] = session.id
            logger.info(
                "game created",
                extra={"game_id": session.id, "game_type": config.game_type, "conn": conn},
            )
            return out + [
                Outgoing(
                    (conn,),
                    "game-created",
                    {
                        "gameId": session.id,
                        "gameType": config.game_type,
                        "role": role,
                        "message": "waiting for opponent",
                    },
                )
            ]

    def join_game(self, conn: str, code: str) -> List[Outgoing]:
        game_id = code.strip().upper() if isinstance(code, str) else ""
        if not GAME_CODE_RE.match(game_id):
            raise InvalidGameCode()
        with self._lock:
            session = self._sessions.get(game_id)
            if session is None or session.status is SessionStatus.FINISHED:
                raise GameNotFound()
            if session.role_of(conn) is not None:
                raise AlreadyInGame()
            role = session.open_role()
            if role is None or len(session.players) >= session.config.max_players:
                raise GameFull()

            out = self._leave_session(conn)
            session.players[role] = conn
            self._conn_game[conn] = session.id
            if len(session.players) >= session.config.min_players:
                session.status = SessionStatus.PLAYING
            self._touch(session)
            logger.info(
                "player joined",
                extra={"game_id": session.id, "role": role, "conn": conn},
            )
            started = session.status is SessionStatus.PLAYING
            return out + [
                Outgoing(
                    (conn,),
                    "game-joined",
                    {
                        "gameId": session.id,
                        "gameType": session.game_type,
                        "role": role,
                        "currentPlayer": session.current_turn,
                        "moves": list(session.moves),
                    },
                ),
                Outgoing(
                    session.others(conn),
                    "player-joined",
                    {
                        "role": role,
                        "gameStarted": started,
                        "currentPlayer": session.current_turn,
                    },
                ),
            ]

    # --- Moves and results ---
    def submit_move(self, conn: str, move: Mapping[str, Any]) -> List[Outgoing]:
        """Relay `move` to the other players after turn checks.

        The payload is forwarded unmodified; the stored copy also records the
        mover's role and a millisecond timestamp.

        Raises:
            NoActiveGame: `conn` is not seated in any session.
            GameNotStarted: The session is not in the playing state.
            NotYourTurn: Another role is expected to move.
            IllegalMove: A configured validator refused the move.
        """
        with self._lock:
            session = self._require_session(conn)
            if session.status is not SessionStatus.PLAYING:
                raise GameNotStarted()
            role = session.role_of(conn)
            if role != session.current_turn:
                raise NotYourTurn()
            if session.validator is not None:
                session.validator.check(role, move)

            data = dict(move)
            session.moves.append(
                {**data, "player": role, "timestamp": int(self._clock() * 1000)}
            )
            session.current_turn = session.config.next_turn(role)
            self._touch(session)
            logger.info(
                "move relayed",
                extra={"game_id": session.id, "role": role, "ply": len(session.moves)},
            )
            return [
                Outgoing(session.others(conn), "opponent-move", data),
                Outgoing((conn,), "move-confirmed", data),
            ]

    def report_game_over(self, conn: str, result: Any) -> List[Outgoing]:
        with self._lock:
            session = self._require_session(conn)
            if session.status is not SessionStatus.PLAYING:
                raise GameNotStarted()
            session.status = SessionStatus.FINISHED
            session.result = result if isinstance(result, dict) else {"result": result}
            self._touch(session)
            logger.info("game over reported", extra={"game_id": session.id})
            return [Outgoing(session.others(conn), "game-over", result)]

    def resign(self, conn: str) -> List[Outgoing]:
        with self._lock:
            session = self._require_session(conn)
            if session.status is not SessionStatus.PLAYING:
                return []
            role = self._require_role(session, conn)
            winners = session.other_roles(role)
            session.status = SessionStatus.FINISHED
            session.result = {"winners": winners, "reason": "resignation"}
            self._touch(session)
            logger.info("player resigned", extra={"game_id": session.id, "role": role})
            return [
                Outgoing(session.others(conn), "opponent-resigned", {"role": role, "winners": winners})
            ]

    # --- Draws ---
    def offer_draw(self, conn: str) -> List[Outgoing]:
        with self._lock:
            session = self._require_session(conn)
            if session.status is not SessionStatus.PLAYING:
                raise GameNotStarted()
            role = session.role_of(conn)
            session.draw_offered_by = role
            self._touch(session)
            return [Outgoing(session.others(conn), "draw-offered", {"role": role})]

    def accept_draw(self, conn: str) -> List[Outgoing]:
        with self._lock:
            session = self._require_session(conn)
            role = session.role_of(conn)
            if session.draw_offered_by is None or session.draw_offered_by == role:
                logger.warning(
                    "draw accepted without an open offer",
                    extra={"game_id": session.id, "role": role},
                )
                return []
            result = {"winners": [], "reason": "draw"}
            session.status = SessionStatus.FINISHED
            session.result = result
            session.draw_offered_by = None
            self._touch(session)
            logger.info("draw agreed", extra={"game_id": session.id})
            return [Outgoing(session.connections, "game-over", dict(result))]

    def decline_draw(self, conn: str) -> List[Outgoing]:
        with self._lock:
            session = self._require_session(conn)
            session.draw_offered_by = None
            self._touch(session)
            return [
                Outgoing(session.others(conn), "draw-declined", {"role": session.role_of(conn)})
            ]

    # --- Rematch ---
    def request_rematch(self, conn: str) -> List[Outgoing]:
        """Record a rematch request; once every seat agrees, start over with rotated roles."""
        with self._lock:
            session = self._require_session(conn)
            if session.status is SessionStatus.WAITING:
                raise GameNotStarted()
            role = self._require_role(session, conn)
            session.rematch_requests.add(role)
            self._touch(session)
            logger.info("rematch requested", extra={"game_id": session.id, "role": role})

            if session.rematch_requests < set(session.players) or len(
                session.players
            ) < session.config.min_players:
                return [
                    Outgoing((conn,), "rematch-waiting", {"message": "waiting for opponent"}),
                    Outgoing(session.others(conn), "rematch-requested", {"role": role}),
                ]

            session.players = {
                session.config.rotate(r): player for r, player in session.players.items()
            }
            session.moves = []
            session.current_turn = session.config.first_turn
            session.status = SessionStatus.PLAYING
            session.result = None
            session.draw_offered_by = None
            session.rematch_requests = set()
            if session.validator is not None:
                session.validator.reset()
            logger.info("rematch started", extra={"game_id": session.id})
            return [
                Outgoing(
                    (player,),
                    "rematch-started",
                    {"gameId": session.id, "role": r, "currentPlayer": session.current_turn},
                )
                for r, player in session.players.items()
            ]

    def decline_rematch(self, conn: str) -> List[Outgoing]:
        with self._lock:
            session = self._require_session(conn)
            session.rematch_requests = set()
            self._touch(session)
            return [
                Outgoing(
                    session.others(conn), "rematch-declined", {"role": session.role_of(conn)}
                )
            ]

    # --- Matchmaking ---
    def find_game(self, conn: str, game_type: str = "chess") -> List[Outgoing]:
        """Pair `conn` with queued searchers of the same game type, or queue it."""
        config = self._config(game_type)
        with self._lock:
            out = self._leave_session(conn)
            queue = self._queues.setdefault(config.game_type, [])
            needed = config.min_players - 1
            if len(queue) < needed:
                queue.append(conn)
                logger.info(
                    "matchmaking started",
                    extra={"game_type": config.game_type, "conn": conn, "queue": len(queue)},
                )
                return out + [
                    Outgoing(
                        (conn,),
                        "matchmaking-started",
                        {"gameType": config.game_type, "queuePosition": len(queue)},
                    )
                ]

            waiting = queue[:needed]
            del queue[:needed]
            session = self._new_session(config)
            for role, player in zip(config.roles, waiting + [conn]):
                session.players[role] = player
                self._conn_game[player] = session.id
            session.status = SessionStatus.PLAYING
            logger.info(
                "matchmaking paired",
                extra={"game_id": session.id, "game_type": config.game_type},
            )
            return out + [
                Outgoing(
                    (player,),
                    "game-found",
                    {
                        "gameId": session.id,
                        "gameType": config.game_type,
                        "role": role,
                        "currentPlayer": session.current_turn,
                    },
                )
                for role, player in session.players.items()
            ]

    def cancel_search(self, conn: str) -> List[Outgoing]:
        with self._lock:
            self._leave_queues(conn)
        return [Outgoing((conn,), "search-cancelled", {})]

    def queue_length(self, game_type: str = "chess") -> int:
        with self._lock:
            return len(self._queues.get(game_type, []))

    # --- Connection lifecycle ---
    def disconnect(self, conn: str) -> List[Outgoing]:
        """Drop `conn`; a game it was playing ends and its opponents are told."""
        with self._lock:
            return self._leave_session(conn)

    def purge_stale(self, now: Optional[float] = None) -> List[str]:
        """Delete non-playing sessions idle for longer than the TTL.

        Returns:
            List[str]: Ids of the removed sessions.
        """
        with self._lock:
            now = self._clock() if now is None else now
            stale = [
                gid
                for gid, s in self._sessions.items()
                if s.status is not SessionStatus.PLAYING
                and now - s.last_activity > self._stale_ttl_s
            ]
            for gid in stale:
                del self._sessions[gid]
            if stale:
                self._conn_game = {
                    c: g for c, g in self._conn_game.items() if g not in stale
                }
                logger.info("purged stale games", extra={"count": len(stale)})
            return stale

    # --- Internals ---
    def _leave_session(self, conn: str) -> List[Outgoing]:
        """Unseat `conn` from its current session and drop it from the queues.

        A game in progress is finished with the remaining roles as winners.
        The caller holds the lock.
        """
        self._leave_queues(conn)
        gid = self._conn_game.pop(conn, None)
        session = self._sessions.get(gid) if gid is not None else None
        if session is None:
            return []
        role = session.role_of(conn)
        others = session.others(conn)
        out: List[Outgoing] = []
        if session.status is SessionStatus.PLAYING:
            session.result = {
                "winners": session.other_roles(role) if role else [],
                "reason": "disconnect",
            }
            out.append(Outgoing(others, "player-disconnected", {"disconnectedPlayer": role}))
        if role is not None:
            del session.players[role]
            session.rematch_requests.discard(role)
        session.status = SessionStatus.FINISHED
        self._touch(session)
        logger.info(
            "player left game",
            extra={"game_id": session.id, "role": role, "conn": conn},
        )
        return out

    def _config(self, game_type: Optional[str]) -> GameConfig:
        return get_config(game_type or "chess", self._configs)

    def _new_session(self, config: GameConfig) -> GameSession:
        game_id = self._code_factory()
        while game_id in self._sessions:
            game_id = self._code_factory()
        validator = None
        if self._validate_moves and config.validator_factory is not None:
            validator = config.validator_factory()
        session = GameSession(
            id=game_id,
            config=config,
            current_turn=config.first_turn,
            last_activity=self._clock(),
            validator=validator,
        )
        self._sessions[game_id] = session
        return session

    def _require_session(self, conn: str) -> GameSession:
        session = self.session_for(conn)
        if session is None:
            raise NoActiveGame()
        return session

    def _require_role(self, session: GameSession, conn: str) -> str:
        role = session.role_of(conn)
        if role is None:
            raise NoActiveGame()
        return role

    def _leave_queues(self, conn: str) -> None:
        for queue in self._queues.values():
            if conn in queue:
                queue.remove(conn)

    def _touch(self, session: GameSession) -> None:
        session.last_activity = self._clock()


def _random_code() -> str:
    return "".join(secrets.choice(GAME_CODE_ALPHABET) for _ in range(GAME_CODE_LENGTH))
