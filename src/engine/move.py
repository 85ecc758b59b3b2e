from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Dict, NamedTuple, Optional

if TYPE_CHECKING:
    from .board import CastlingRights, Color


class Square(NamedTuple):
    """Board coordinate. Row 0 is rank 8, column 0 is the a-file."""

    row: int
    col: int

    def to_str(self) -> str:
        return square_to_str(self)


class MoveFlag(str, Enum):
    NONE = "none"
    PROMOTION = "promotion"
    PAWN_DOUBLE_MOVE = "pawnDoubleMove"
    EN_PASSANT = "enPassant"
    CASTLING = "castling"


class CastlingSide(str, Enum):
    KING_SIDE = "kingSide"
    QUEEN_SIDE = "queenSide"


@dataclass(frozen=True)
class MoveCandidate:
    """A destination produced by the generator, with its special-move data.

    Attributes:
        to (Square): Destination square.
        flag (MoveFlag): Kind of special move, if any.
        captured_pawn (Optional[Square]): Square of the pawn taken en passant.
        castling (Optional[CastlingSide]): Castling side for castling moves.
        rook_from_col (Optional[int]): Rook home column when castling.
        rook_to_col (Optional[int]): Rook destination column when castling.
    """

    to: Square
    flag: MoveFlag = MoveFlag.NONE
    captured_pawn: Optional[Square] = None
    castling: Optional[CastlingSide] = None
    rook_from_col: Optional[int] = None
    rook_to_col: Optional[int] = None

    @property
    def is_promotion(self) -> bool:
        return self.flag is MoveFlag.PROMOTION

    @property
    def is_castling(self) -> bool:
        return self.flag is MoveFlag.CASTLING

    @property
    def is_en_passant(self) -> bool:
        return self.flag is MoveFlag.EN_PASSANT


@dataclass(frozen=True)
class LastMove:
    """Most recent move, kept for highlighting only."""

    from_sq: Square
    to_sq: Square
    castling: Optional[CastlingSide] = None
    rook_from: Optional[Square] = None
    rook_to: Optional[Square] = None
    en_passant: bool = False
    captured_pawn: Optional[Square] = None


@dataclass(frozen=True)
class HistoryEntry:
    """Everything needed to invert one executed move."""

    from_sq: Square
    to_sq: Square
    piece: str
    captured: Optional[str]
    candidate: MoveCandidate
    prev_last_move: Optional[LastMove]
    prev_castling: Dict["Color", "CastlingRights"]
    prev_en_passant: Optional[Square]
    rook: Optional[str] = None
    en_passant_pawn: Optional[str] = None
    en_passant_square: Optional[Square] = None
    promoted_to: Optional[str] = None

    @property
    def castling(self) -> Optional[CastlingSide]:
        return self.candidate.castling

    @property
    def is_en_passant(self) -> bool:
        return self.candidate.is_en_passant

    @property
    def is_promotion(self) -> bool:
        return self.candidate.is_promotion


def str_to_square(s: str) -> Square:
    """Convert algebraic notation into a board square.

    Args:
        s (str): Square name such as ``"e4"``.

    Returns:
        Square: ``(row, col)`` coordinate, ``"a8"`` being ``(0, 0)``.

    Raises:
        ValueError: If ``s`` is not a valid square.
    """
    if len(s) != 2 or s[0] < "a" or s[0] > "h" or s[1] < "1" or s[1] > "8":
        raise ValueError(f"invalid square: {s!r}")
    col = ord(s[0]) - ord("a")
    row = 8 - int(s[1])
    return Square(row, col)


def square_to_str(sq: Square) -> str:
    """Convert a board square into algebraic notation.

    Raises:
        ValueError: If ``sq`` lies outside the board.
    """
    row, col = sq
    if not (0 <= row < 8 and 0 <= col < 8):
        raise ValueError(f"invalid square: {tuple(sq)}")
    return chr(ord("a") + col) + str(8 - row)
