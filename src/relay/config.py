from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Mapping, Optional, Tuple

from .errors import UnknownGameType
from .validator import ChessMoveValidator, MoveValidator


@dataclass(frozen=True)
class GameConfig:
    """Static description of a relayed game type.

    Attributes:
        game_type (str): Registry key, e.g. ``"chess"``.
        roles (Tuple[str, ...]): Seat names in join order; the first role
            opens the game.
        min_players (int): Players needed before moves are accepted.
        max_players (int): Seats available in one session.
        turn_order (Tuple[str, ...]): Cyclic order in which roles move.
        validator_factory (Optional[Callable[[], MoveValidator]]): Builds a
            per-session move validator; ``None`` keeps payloads opaque.
    """

    game_type: str
    roles: Tuple[str, ...]
    min_players: int
    max_players: int
    turn_order: Tuple[str, ...]
    validator_factory: Optional[Callable[[], MoveValidator]] = None

    @property
    def first_turn(self) -> str:
        return self.turn_order[0]

    def next_turn(self, role: str) -> str:
        idx = self.turn_order.index(role)
        return self.turn_order[(idx + 1) % len(self.turn_order)]

    def rotate(self, role: str) -> str:
        """Role a player takes in the rematch (white and black swap)."""
        idx = self.roles.index(role)
        return self.roles[(idx + 1) % len(self.roles)]


CHESS = GameConfig(
    game_type="chess",
    roles=("white", "black"),
    min_players=2,
    max_players=2,
    turn_order=("white", "black"),
    validator_factory=ChessMoveValidator,
)

TICTACTOE = GameConfig(
    game_type="tictactoe",
    roles=("X", "O"),
    min_players=2,
    max_players=2,
    turn_order=("X", "O"),
)

GAME_CONFIGS: Dict[str, GameConfig] = {cfg.game_type: cfg for cfg in (CHESS, TICTACTOE)}


def get_config(
    game_type: str, configs: Optional[Mapping[str, GameConfig]] = None
) -> GameConfig:
    try:
        return (GAME_CONFIGS if configs is None else configs)[game_type]
    except KeyError as e:
        raise UnknownGameType(f"unknown game type: {game_type!r}") from e
