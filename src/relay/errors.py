from __future__ import annotations

from typing import Any, Dict


class RelayError(Exception):
    """Base class for relay failures reported back to the requesting client.

    Each subclass carries a stable ``code``; the transport turns the error
    into an ``error`` event and nothing is retried.
    """

    code = "relay_error"
    default_message = "relay error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def to_event_data(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message}


class InvalidGameCode(RelayError):
    code = "invalid_game_code"
    default_message = "game code must be 6 letters or digits"


class GameNotFound(RelayError):
    code = "game_not_found"
    default_message = "game does not exist"


class GameFull(RelayError):
    code = "game_full"
    default_message = "game is full"


class NoActiveGame(RelayError):
    code = "no_active_game"
    default_message = "no active game"


class GameNotStarted(RelayError):
    code = "game_not_started"
    default_message = "game has not started"


class NotYourTurn(RelayError):
    code = "not_your_turn"
    default_message = "not your turn"


class UnknownGameType(RelayError):
    code = "unknown_game_type"
    default_message = "unknown game type"


class IllegalMove(RelayError):
    code = "illegal_move"
    default_message = "illegal move"


class AlreadyInGame(RelayError):
    code = "already_in_game"
    default_message = "already seated in this game"
