from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List, Optional, Union

from .board import (
    PROMOTION_KINDS,
    Board,
    Color,
    PieceKind,
    home_row,
    make_piece,
    piece_color,
    piece_kind,
)
from .move import HistoryEntry, LastMove, MoveCandidate, MoveFlag, Square
from .movegen import pawn_direction
from .rules import TerminalStatus, in_check, legal_moves, terminal_status


logger = logging.getLogger(__name__)


class EnginePhase(str, Enum):
    IDLE = "idle"
    PROMOTION_PENDING = "promotion_pending"
    GAME_OVER = "game_over"


class RejectReason(str, Enum):
    ILLEGAL_MOVE = "illegal_move"
    NOT_YOUR_TURN = "not_your_turn"
    PROMOTION_PENDING = "promotion_pending"
    NO_HISTORY = "no_history"
    GAME_OVER = "game_over"
    INVALID_PIECE = "invalid_piece"
    UNDO_DISABLED = "undo_disabled"


class GameOverReason(str, Enum):
    CHECKMATE = "checkmate"
    STALEMATE = "stalemate"
    RESIGNATION = "resignation"
    DRAW_AGREEMENT = "draw_agreement"


@dataclass(frozen=True)
class GameOutcome:
    reason: GameOverReason
    winner: Optional[Color] = None


@dataclass(frozen=True)
class MoveResult:
    """Outcome of a move request. Rejections carry `error` and change nothing."""

    applied: bool
    terminal: TerminalStatus = TerminalStatus.NONE
    pending_promotion: bool = False
    error: Optional[RejectReason] = None
    entry: Optional[HistoryEntry] = None

    @classmethod
    def rejected(cls, reason: RejectReason) -> "MoveResult":
        return cls(applied=False, error=reason)


@dataclass(frozen=True)
class UndoResult:
    ok: bool
    error: Optional[RejectReason] = None
    entry: Optional[HistoryEntry] = None


@dataclass(frozen=True)
class PendingPromotion:
    from_sq: Square
    to_sq: Square
    candidate: MoveCandidate


@dataclass
class GameEngine:
    """One chess game: board state, reversible history and the promotion stall.

    Responsibility: validate move requests against the legal set, execute
    them as one atomic transition, and invert them on undo. Rule violations
    never raise; they come back as rejected results.
    """

    board: Board = field(default_factory=Board.startpos)
    history: List[HistoryEntry] = field(default_factory=list)
    pending: Optional[PendingPromotion] = None
    outcome: Optional[GameOutcome] = None

    @classmethod
    def new(cls) -> "GameEngine":
        return cls()

    @classmethod
    def from_board(cls, board: Board) -> "GameEngine":
        engine = cls(board=board)
        engine._update_terminal()
        return engine

    def new_game(self) -> Board:
        """Reset to the initial position, white to move, all rights held."""
        self.board = Board.startpos()
        self.history = []
        self.pending = None
        self.outcome = None
        return self.board

    reset = new_game

    # --- State queries ---
    @property
    def phase(self) -> EnginePhase:
        if self.pending is not None:
            return EnginePhase.PROMOTION_PENDING
        if self.outcome is not None:
            return EnginePhase.GAME_OVER
        return EnginePhase.IDLE

    @property
    def side_to_move(self) -> Color:
        return self.board.side_to_move

    def legal_moves(self, sq: Square) -> List[MoveCandidate]:
        """Legal candidates for the side-to-move piece on `sq`; empty otherwise."""
        if self.phase is not EnginePhase.IDLE:
            return []
        piece = self.board.piece_at(sq)
        if piece is None or piece_color(piece) is not self.board.side_to_move:
            return []
        return legal_moves(self.board, sq)

    def is_in_check(self, color: Optional[Color] = None) -> bool:
        return in_check(self.board, color or self.board.side_to_move)

    def terminal_status(self) -> TerminalStatus:
        return terminal_status(self.board, self.board.side_to_move)

    # --- Move requests ---
    def attempt_move(
        self, from_sq: Square, to_sq: Square, candidate: Optional[MoveCandidate] = None
    ) -> MoveResult:
        """Request a move; promotions stall until `resolve_promotion` is called."""
        blocked = self._blocked_reason()
        if blocked is not None:
            return MoveResult.rejected(blocked)
        move = self._match_legal(from_sq, to_sq, candidate)
        if move is None:
            return MoveResult.rejected(RejectReason.ILLEGAL_MOVE)
        if move.is_promotion:
            self.pending = PendingPromotion(from_sq, to_sq, move)
            return MoveResult(applied=False, pending_promotion=True)
        return self._execute(from_sq, move, None)

    def resolve_promotion(self, kind: Union[PieceKind, str]) -> MoveResult:
        """Finalize the pending promotion with `kind` (knight, bishop, rook or queen)."""
        if self.pending is None:
            return MoveResult.rejected(RejectReason.ILLEGAL_MOVE)
        promoted = _promotion_kind(kind)
        if promoted is None:
            return MoveResult.rejected(RejectReason.INVALID_PIECE)
        pending = self.pending
        self.pending = None
        return self._execute(pending.from_sq, pending.candidate, promoted)

    def cancel_promotion(self) -> bool:
        """Abandon the pending promotion; the board was never touched."""
        if self.pending is None:
            return False
        self.pending = None
        return True

    def apply_move(
        self,
        from_sq: Square,
        to_sq: Square,
        candidate: Optional[MoveCandidate] = None,
        promote_to: Union[PieceKind, str, None] = None,
    ) -> MoveResult:
        """Execute a fully specified move in one step (promotion choice included)."""
        blocked = self._blocked_reason()
        if blocked is not None:
            return MoveResult.rejected(blocked)
        move = self._match_legal(from_sq, to_sq, candidate)
        if move is None:
            return MoveResult.rejected(RejectReason.ILLEGAL_MOVE)
        promoted: Optional[PieceKind] = None
        if move.is_promotion:
            promoted = _promotion_kind(promote_to) if promote_to is not None else None
            if promoted is None:
                return MoveResult.rejected(RejectReason.INVALID_PIECE)
        return self._execute(from_sq, move, promoted)

    def undo(self) -> UndoResult:
        """Pop the latest history entry and restore the exact prior state."""
        if self.pending is not None:
            return UndoResult(ok=False, error=RejectReason.PROMOTION_PENDING)
        if self.outcome is not None and self.outcome.reason not in (
            GameOverReason.CHECKMATE,
            GameOverReason.STALEMATE,
        ):
            return UndoResult(ok=False, error=RejectReason.GAME_OVER)
        if not self.history:
            return UndoResult(ok=False, error=RejectReason.NO_HISTORY)

        entry = self.history.pop()
        board = self.board
        board.set_piece(entry.from_sq, entry.piece)
        board.set_piece(entry.to_sq, entry.captured)

        if entry.castling is not None:
            row = entry.from_sq.row
            if entry.candidate.rook_from_col is None or entry.candidate.rook_to_col is None:
                raise ValueError("castling history entry without rook columns")
            board.set_piece(Square(row, entry.candidate.rook_from_col), entry.rook)
            board.set_piece(Square(row, entry.candidate.rook_to_col), None)

        if entry.is_en_passant and entry.en_passant_pawn is not None:
            if entry.en_passant_square is None:
                raise ValueError("en passant history entry without a captured square")
            board.set_piece(entry.en_passant_square, entry.en_passant_pawn)
            board.captured[piece_color(entry.en_passant_pawn)].pop()
        elif entry.captured is not None:
            board.captured[piece_color(entry.captured)].pop()

        board.castling = dict(entry.prev_castling)
        board.en_passant = entry.prev_en_passant
        board.last_move = entry.prev_last_move
        board.side_to_move = board.side_to_move.opponent
        self.outcome = None
        logger.debug("undo %s%s", entry.from_sq.to_str(), entry.to_sq.to_str())
        return UndoResult(ok=True, entry=entry)

    # --- Game lifecycle outside the board rules ---
    def resign(self, color: Color) -> bool:
        if self.outcome is not None:
            return False
        self.pending = None
        self.outcome = GameOutcome(GameOverReason.RESIGNATION, winner=color.opponent)
        return True

    def agree_draw(self) -> bool:
        if self.outcome is not None:
            return False
        self.pending = None
        self.outcome = GameOutcome(GameOverReason.DRAW_AGREEMENT)
        return True

    # --- Internals ---
    def _blocked_reason(self) -> Optional[RejectReason]:
        if self.pending is not None:
            return RejectReason.PROMOTION_PENDING
        if self.outcome is not None:
            return RejectReason.GAME_OVER
        return None

    def _match_legal(
        self, from_sq: Square, to_sq: Square, candidate: Optional[MoveCandidate]
    ) -> Optional[MoveCandidate]:
        for move in self.legal_moves(from_sq):
            if move.to != to_sq:
                continue
            if candidate is None or candidate == move:
                return move
        return None

    def _execute(
        self, from_sq: Square, move: MoveCandidate, promoted: Optional[PieceKind]
    ) -> MoveResult:
        board = self.board
        to_sq = move.to
        piece = board.piece_at(from_sq)
        if piece is None:
            raise ValueError(f"no piece on {from_sq.to_str()}")
        color = piece_color(piece)
        captured = board.piece_at(to_sq)

        rook: Optional[str] = None
        rook_from: Optional[Square] = None
        rook_to: Optional[Square] = None
        if move.is_castling:
            if move.rook_from_col is None or move.rook_to_col is None:
                raise ValueError("castling move without rook columns")
            rook_from = Square(from_sq.row, move.rook_from_col)
            rook_to = Square(from_sq.row, move.rook_to_col)
            rook = board.piece_at(rook_from)
            board.set_piece(rook_to, rook)
            board.set_piece(rook_from, None)

        ep_pawn: Optional[str] = None
        ep_square: Optional[Square] = None
        if move.is_en_passant:
            ep_square = Square(from_sq.row, to_sq.col)
            ep_pawn = board.piece_at(ep_square)
            board.set_piece(ep_square, None)
            if ep_pawn is not None:
                board.captured[piece_color(ep_pawn)].append(ep_pawn)
        elif captured is not None:
            board.captured[piece_color(captured)].append(captured)

        promoted_piece = make_piece(promoted, color) if promoted is not None else None
        entry = HistoryEntry(
            from_sq=from_sq,
            to_sq=to_sq,
            piece=piece,
            captured=captured,
            candidate=move,
            prev_last_move=board.last_move,
            prev_castling=dict(board.castling),
            prev_en_passant=board.en_passant,
            rook=rook,
            en_passant_pawn=ep_pawn,
            en_passant_square=ep_square,
            promoted_to=promoted_piece,
        )

        board.set_piece(to_sq, promoted_piece or piece)
        board.set_piece(from_sq, None)

        self._update_castling_rights(piece, from_sq, captured, to_sq)

        if move.flag is MoveFlag.PAWN_DOUBLE_MOVE:
            board.en_passant = Square(from_sq.row + pawn_direction(color), from_sq.col)
        else:
            board.en_passant = None

        board.last_move = LastMove(
            from_sq=from_sq,
            to_sq=to_sq,
            castling=move.castling,
            rook_from=rook_from,
            rook_to=rook_to,
            en_passant=move.is_en_passant,
            captured_pawn=ep_square,
        )

        self.history.append(entry)
        board.side_to_move = color.opponent
        logger.debug(
            "move %s%s %s", from_sq.to_str(), to_sq.to_str(), move.flag.value
        )

        status = self._update_terminal()
        return MoveResult(applied=True, terminal=status, entry=entry)

    def _update_castling_rights(
        self, piece: str, from_sq: Square, captured: Optional[str], to_sq: Square
    ) -> None:
        """Revoke rights on king moves, rook moves from home, and rooks captured at home."""
        board = self.board
        color = piece_color(piece)
        kind = piece_kind(piece)
        if kind is PieceKind.KING:
            board.castling[color] = replace(board.castling[color], king_side=False, queen_side=False)
        elif kind is PieceKind.ROOK and from_sq.row == home_row(color):
            if from_sq.col == 0:
                board.castling[color] = replace(board.castling[color], queen_side=False)
            elif from_sq.col == 7:
                board.castling[color] = replace(board.castling[color], king_side=False)

        if captured is not None and piece_kind(captured) is PieceKind.ROOK:
            victim = piece_color(captured)
            if to_sq.row == home_row(victim):
                if to_sq.col == 0:
                    board.castling[victim] = replace(board.castling[victim], queen_side=False)
                elif to_sq.col == 7:
                    board.castling[victim] = replace(board.castling[victim], king_side=False)

    def _update_terminal(self) -> TerminalStatus:
        status = terminal_status(self.board, self.board.side_to_move)
        if status is TerminalStatus.CHECKMATE:
            self.outcome = GameOutcome(GameOverReason.CHECKMATE, winner=self.board.side_to_move.opponent)
        elif status is TerminalStatus.STALEMATE:
            self.outcome = GameOutcome(GameOverReason.STALEMATE)
        if self.outcome is not None:
            logger.debug("game over: %s", self.outcome.reason.value)
        return status


def _promotion_kind(kind: Union[PieceKind, str, None]) -> Optional[PieceKind]:
    """Accept a PieceKind, its name ("queen") or its letter ("q")."""
    if isinstance(kind, PieceKind):
        return kind if kind in PROMOTION_KINDS else None
    if not isinstance(kind, str):
        return None
    value = kind.lower()
    for candidate in PROMOTION_KINDS:
        if value in (candidate.value, candidate.char):
            return candidate
    return None
