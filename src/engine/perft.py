from __future__ import annotations

from typing import List, Tuple

from .board import PROMOTION_KINDS
from .game import GameEngine
from .move import MoveCandidate, Square


def perft(engine: GameEngine, depth: int) -> int:
    """Compute perft node count for the engine's position at `depth`.

    Definition:
    - depth == 0 returns 1 (the current node).
    - depth > 0 returns the sum over all legal child positions' perft(depth-1).

    Promotions count once per piece choice. Children are visited with
    `apply_move`/`undo`, so a correct result also exercises the undo engine.
    """
    if depth < 0:
        raise ValueError("depth must be >= 0")
    if depth == 0:
        return 1

    nodes = 0
    for from_sq, move in _all_legal_moves(engine):
        choices = PROMOTION_KINDS if move.is_promotion else (None,)
        for promo in choices:
            if depth == 1:
                nodes += 1
                continue
            result = engine.apply_move(from_sq, move.to, move, promo)
            if not result.applied:
                raise RuntimeError(f"generated move rejected: {result.error}")
            nodes += perft(engine, depth - 1)
            undone = engine.undo()
            if not undone.ok:
                raise RuntimeError(f"undo failed: {undone.error}")
    return nodes


def _all_legal_moves(engine: GameEngine) -> List[Tuple[Square, MoveCandidate]]:
    board = engine.board
    return [
        (sq, move)
        for sq, _piece in list(board.pieces(board.side_to_move))
        for move in engine.legal_moves(sq)
    ]
