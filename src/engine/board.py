from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from .move import LastMove, Square


BOARD_SIZE = 8

# Piece characters: uppercase is white, lowercase is black
STARTPOS_ROWS = (
    "rnbqkbnr",
    "pppppppp",
    "........",
    "........",
    "........",
    "........",
    "PPPPPPPP",
    "RNBQKBNR",
)


class Color(str, Enum):
    WHITE = "white"
    BLACK = "black"

    @property
    def opponent(self) -> "Color":
        return Color.BLACK if self is Color.WHITE else Color.WHITE


class PieceKind(str, Enum):
    PAWN = "pawn"
    KNIGHT = "knight"
    BISHOP = "bishop"
    ROOK = "rook"
    QUEEN = "queen"
    KING = "king"

    @property
    def char(self) -> str:
        return KIND_TO_CHAR[self]


KIND_TO_CHAR = {
    PieceKind.PAWN: "p",
    PieceKind.KNIGHT: "n",
    PieceKind.BISHOP: "b",
    PieceKind.ROOK: "r",
    PieceKind.QUEEN: "q",
    PieceKind.KING: "k",
}
CHAR_TO_KIND = {v: k for k, v in KIND_TO_CHAR.items()}

PROMOTION_KINDS = (PieceKind.QUEEN, PieceKind.ROOK, PieceKind.BISHOP, PieceKind.KNIGHT)


def piece_color(piece: str) -> Color:
    """Return the color encoded in a piece character (case carries color)."""
    return Color.WHITE if piece.isupper() else Color.BLACK


def piece_kind(piece: str) -> PieceKind:
    try:
        return CHAR_TO_KIND[piece.lower()]
    except KeyError as e:
        raise ValueError(f"invalid piece: {piece!r}") from e


def make_piece(kind: PieceKind, color: Color) -> str:
    ch = kind.char
    return ch.upper() if color is Color.WHITE else ch


def home_row(color: Color) -> int:
    """Back rank row of `color` (white plays from row 7)."""
    return BOARD_SIZE - 1 if color is Color.WHITE else 0


def in_bounds(row: int, col: int) -> bool:
    return 0 <= row < BOARD_SIZE and 0 <= col < BOARD_SIZE


@dataclass(frozen=True)
class CastlingRights:
    king_side: bool = True
    queen_side: bool = True

    def any(self) -> bool:
        return self.king_side or self.queen_side


def _parse_castling(castling: str) -> Dict[Color, CastlingRights]:
    for ch in castling:
        if ch not in "KQkq-":
            raise ValueError("invalid castling rights")
    return {
        Color.WHITE: CastlingRights(king_side="K" in castling, queen_side="Q" in castling),
        Color.BLACK: CastlingRights(king_side="k" in castling, queen_side="q" in castling),
    }


@dataclass
class Board:
    """Board state: piece grid plus the metadata the rules depend on.

    Notes:
    - ``grid[row][col]`` holds a piece character or ``None``.
    - Row 0 is black's back rank, row 7 white's; column 0 is the a-file.
    - Two boards compare equal only when every field matches, which is what
      the undo round-trip relies on.
    """

    grid: List[List[Optional[str]]]
    side_to_move: Color = Color.WHITE
    castling: Dict[Color, CastlingRights] = field(
        default_factory=lambda: {Color.WHITE: CastlingRights(), Color.BLACK: CastlingRights()}
    )
    en_passant: Optional[Square] = None
    last_move: Optional[LastMove] = None
    captured: Dict[Color, List[str]] = field(
        default_factory=lambda: {Color.WHITE: [], Color.BLACK: []}
    )

    @classmethod
    def startpos(cls) -> "Board":
        """Create a board in the standard initial position, white to move."""
        return cls.from_rows(STARTPOS_ROWS, castling="KQkq")

    @classmethod
    def from_rows(
        cls,
        rows: Sequence[str],
        side_to_move: Color = Color.WHITE,
        castling: str = "",
        en_passant: Optional[Square] = None,
    ) -> "Board":
        """Build a board from eight row strings, top (row 0) first.

        Args:
            rows: Eight strings of eight characters; ``.`` marks an empty
                square, letters are pieces.
            side_to_move: Color to move.
            castling: Subset of ``"KQkq"`` naming the rights still held.
            en_passant: Optional en-passant target square.

        Raises:
            ValueError: If the diagram has the wrong shape or unknown pieces.
        """
        if len(rows) != BOARD_SIZE:
            raise ValueError("board diagram must have 8 rows")
        grid: List[List[Optional[str]]] = []
        for row in rows:
            if len(row) != BOARD_SIZE:
                raise ValueError(f"board row must have 8 squares: {row!r}")
            cells: List[Optional[str]] = []
            for ch in row:
                if ch == ".":
                    cells.append(None)
                elif ch.lower() in CHAR_TO_KIND:
                    cells.append(ch)
                else:
                    raise ValueError(f"invalid piece in diagram: {ch!r}")
            grid.append(cells)
        return cls(
            grid=grid,
            side_to_move=side_to_move,
            castling=_parse_castling(castling),
            en_passant=en_passant,
        )

    def to_rows(self) -> List[str]:
        return ["".join(p or "." for p in row) for row in self.grid]

    def piece_at(self, sq: Square) -> Optional[str]:
        return self.grid[sq.row][sq.col]

    def set_piece(self, sq: Square, piece: Optional[str]) -> None:
        self.grid[sq.row][sq.col] = piece

    def copy(self) -> "Board":
        # CastlingRights, Square and LastMove are immutable; only containers need copying
        return Board(
            grid=[row[:] for row in self.grid],
            side_to_move=self.side_to_move,
            castling=dict(self.castling),
            en_passant=self.en_passant,
            last_move=self.last_move,
            captured={color: list(pieces) for color, pieces in self.captured.items()},
        )

    def pieces(self, color: Color) -> Iterator[Tuple[Square, str]]:
        """Yield ``(square, piece)`` for every piece of `color`, row-major."""
        for r, row in enumerate(self.grid):
            for c, piece in enumerate(row):
                if piece is not None and piece_color(piece) is color:
                    yield Square(r, c), piece

    def find_king(self, color: Color) -> Optional[Square]:
        king = make_piece(PieceKind.KING, color)
        for sq, piece in self.pieces(color):
            if piece == king:
                return sq
        return None
