from __future__ import annotations

import logging
from typing import Any, Mapping, Protocol

from pydantic import ValidationError

from ..engine.board import Color
from ..engine.game import GameEngine
from ..engine.wire import MovePayload
from .errors import IllegalMove


logger = logging.getLogger(__name__)


class MoveValidator(Protocol):
    def check(self, role: str, move: Mapping[str, Any]) -> None:
        """Accept the move (updating internal state) or raise `IllegalMove`."""
        ...

    def reset(self) -> None:
        ...


class ChessMoveValidator:
    """Server-side replay of a relayed chess game.

    Each accepted payload is applied to a private `GameEngine`, so the relay
    can refuse moves the rules do not allow. Only used when validation is
    enabled in settings; otherwise payloads stay opaque.
    """

    def __init__(self) -> None:
        self.engine = GameEngine.new()

    def check(self, role: str, move: Mapping[str, Any]) -> None:
        try:
            payload = MovePayload.model_validate(dict(move))
        except ValidationError as e:
            raise IllegalMove(f"malformed move: {e.error_count()} error(s)") from e
        if self.engine.side_to_move is not Color(role):
            raise IllegalMove("move played out of turn")

        from_sq, to_sq, candidate, promoted_to = payload.to_move()
        result = self.engine.apply_move(from_sq, to_sq, candidate, promoted_to)
        if not result.applied:
            reason = result.error.value if result.error else "illegal_move"
            logger.info(
                "relay rejected move",
                extra={"role": role, "from": from_sq.to_str(), "to": to_sq.to_str(), "reason": reason},
            )
            raise IllegalMove(f"illegal move: {reason}")

    def reset(self) -> None:
        self.engine.new_game()
