from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional


_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Service configuration read from the environment.

    Attributes:
        host (str): Bind address (``CHESS_HOST``).
        port (int): Listen port (``PORT``).
        log_level (str): Root log level name (``CHESS_LOG_LEVEL``).
        stale_game_ttl_s (float): Idle seconds before a finished or waiting
            relay game is purged (``CHESS_STALE_GAME_TTL_S``).
        relay_validate_moves (bool): Check relayed chess moves against the
            rules (``CHESS_RELAY_VALIDATE_MOVES``).
    """

    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"
    stale_game_ttl_s: float = 3600.0
    relay_validate_moves: bool = False

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        defaults = cls()
        try:
            port = int(env.get("PORT", defaults.port))
            ttl = float(env.get("CHESS_STALE_GAME_TTL_S", defaults.stale_game_ttl_s))
        except ValueError as e:
            raise ValueError(f"invalid numeric setting: {e}") from e
        return cls(
            host=env.get("CHESS_HOST", defaults.host),
            port=port,
            log_level=env.get("CHESS_LOG_LEVEL", defaults.log_level).upper(),
            stale_game_ttl_s=ttl,
            relay_validate_moves=env.get("CHESS_RELAY_VALIDATE_MOVES", "").strip().lower()
            in _TRUTHY,
        )
