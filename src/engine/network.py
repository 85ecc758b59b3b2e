from __future__ import annotations

import logging
from collections import deque
from typing import Callable, Deque, Iterable, List, Optional, Union

from .board import Board, Color, PieceKind
from .game import EnginePhase, GameEngine, MoveResult, RejectReason, UndoResult
from .move import MoveCandidate, Square
from .wire import MovePayload


logger = logging.getLogger(__name__)

SendFn = Callable[[MovePayload], None]


class NetworkGatedEngine:
    """Networked view of a `GameEngine` for one side of a relayed game.

    Wraps the local engine at construction time: local requests are gated on
    turn ownership, applied moves are handed to `send`, opponent moves come in
    through `receive_opponent_move`. Undo is disabled since the relay log is
    authoritative.
    """

    def __init__(self, engine: GameEngine, my_color: Color, send: SendFn) -> None:
        self.engine = engine
        self.my_color = my_color
        self._send = send
        self._deferred: Deque[MovePayload] = deque()

    @property
    def board(self) -> Board:
        return self.engine.board

    @property
    def phase(self) -> EnginePhase:
        return self.engine.phase

    @property
    def is_my_turn(self) -> bool:
        return (
            self.engine.outcome is None
            and self.engine.side_to_move is self.my_color
        )

    def legal_moves(self, sq: Square) -> List[MoveCandidate]:
        if not self.is_my_turn:
            return []
        return self.engine.legal_moves(sq)

    def is_in_check(self, color: Optional[Color] = None) -> bool:
        return self.engine.is_in_check(color)

    def attempt_move(
        self, from_sq: Square, to_sq: Square, candidate: Optional[MoveCandidate] = None
    ) -> MoveResult:
        if not self.is_my_turn:
            return MoveResult.rejected(RejectReason.NOT_YOUR_TURN)
        result = self.engine.attempt_move(from_sq, to_sq, candidate)
        self._publish(result)
        if result.applied:
            self._drain_deferred()
        return result

    def resolve_promotion(self, kind: Union[PieceKind, str]) -> MoveResult:
        if not self.is_my_turn:
            return MoveResult.rejected(RejectReason.NOT_YOUR_TURN)
        result = self.engine.resolve_promotion(kind)
        self._publish(result)
        if result.applied:
            self._drain_deferred()
        return result

    def cancel_promotion(self) -> bool:
        return self.engine.cancel_promotion()

    def undo(self) -> UndoResult:
        return UndoResult(ok=False, error=RejectReason.UNDO_DISABLED)

    def receive_opponent_move(self, payload: MovePayload) -> MoveResult:
        """Apply a move relayed from the opponent.

        While a local promotion is pending the move is queued and applied
        once the local move completes.
        """
        if self.engine.pending is not None:
            logger.warning(
                "opponent move arrived during pending promotion; deferring",
                extra={"from": payload.from_sq.to_str(), "to": payload.to_sq.to_str()},
            )
            self._deferred.append(payload)
            return MoveResult.rejected(RejectReason.PROMOTION_PENDING)
        if self.is_my_turn:
            return MoveResult.rejected(RejectReason.NOT_YOUR_TURN)
        return self._apply_payload(payload)

    def replay(self, payloads: Iterable[MovePayload]) -> int:
        """Apply a relay move log in order (joining a game in progress).

        Returns:
            int: Number of moves applied before the first rejection.
        """
        applied = 0
        for payload in payloads:
            if not self._apply_payload(payload).applied:
                logger.warning("replay stopped at move %d", applied)
                break
            applied += 1
        return applied

    def _apply_payload(self, payload: MovePayload) -> MoveResult:
        from_sq, to_sq, candidate, promoted_to = payload.to_move()
        result = self.engine.apply_move(from_sq, to_sq, candidate, promoted_to)
        if not result.applied:
            logger.warning(
                "rejected relayed move",
                extra={"reason": result.error.value if result.error else None},
            )
        return result

    def _publish(self, result: MoveResult) -> None:
        if result.applied and result.entry is not None:
            self._send(MovePayload.from_entry(result.entry))

    def _drain_deferred(self) -> None:
        while self._deferred and not self.is_my_turn:
            self._apply_payload(self._deferred.popleft())
