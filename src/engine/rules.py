"""Legality filter and check/terminal detection."""

from __future__ import annotations

from enum import Enum
from typing import List

from .board import Board, Color, piece_color
from .move import MoveCandidate, Square
from .movegen import generate, is_square_attacked


class TerminalStatus(str, Enum):
    NONE = "none"
    CHECKMATE = "checkmate"
    STALEMATE = "stalemate"


def in_check(board: Board, color: Color) -> bool:
    """Return True if the king of `color` is attacked by the opponent."""
    king_sq = board.find_king(color)
    if king_sq is None:
        return False
    return is_square_attacked(board, king_sq, color.opponent)


def simulate(board: Board, from_sq: Square, move: MoveCandidate) -> Board:
    """Return a scratch copy of `board` with the piece moved (and an en-passant victim removed).

    Only piece placement changes; metadata is copied as-is since the result
    is used for the own-king safety test alone.
    """
    scratch = board.copy()
    piece = scratch.piece_at(from_sq)
    scratch.set_piece(move.to, piece)
    scratch.set_piece(from_sq, None)
    if move.is_en_passant and move.captured_pawn is not None:
        scratch.set_piece(move.captured_pawn, None)
    return scratch


def legal_moves(board: Board, sq: Square) -> List[MoveCandidate]:
    """Candidates for the piece on `sq` that do not leave its own king attacked.

    Castling candidates are kept as generated; their check and transit tests
    already guard them.
    """
    piece = board.piece_at(sq)
    if piece is None:
        return []
    color = piece_color(piece)
    return [
        move
        for move in generate(board, sq)
        if move.is_castling or not in_check(simulate(board, sq, move), color)
    ]


def has_legal_move(board: Board, color: Color) -> bool:
    """Existence test; stops at the first piece with a legal move."""
    for sq, _piece in board.pieces(color):
        if legal_moves(board, sq):
            return True
    return False


def terminal_status(board: Board, color: Color) -> TerminalStatus:
    if has_legal_move(board, color):
        return TerminalStatus.NONE
    return TerminalStatus.CHECKMATE if in_check(board, color) else TerminalStatus.STALEMATE
