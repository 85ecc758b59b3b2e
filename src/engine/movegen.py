"""Candidate move and attack generation.

Each piece kind maps to a movement strategy. Candidates are pseudo-legal:
the legality filter in :mod:`rules` removes those that leave the own king
attacked. Castling candidates are the exception, they are fully checked here.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Tuple

from .board import (
    Board,
    Color,
    PieceKind,
    home_row,
    in_bounds,
    make_piece,
    piece_color,
    piece_kind,
)
from .move import CastlingSide, MoveCandidate, MoveFlag, Square


Vector = Tuple[int, int]

ROOK_DIRECTIONS: Tuple[Vector, ...] = ((0, 1), (0, -1), (1, 0), (-1, 0))
BISHOP_DIRECTIONS: Tuple[Vector, ...] = ((1, 1), (1, -1), (-1, 1), (-1, -1))
QUEEN_DIRECTIONS = ROOK_DIRECTIONS + BISHOP_DIRECTIONS
KNIGHT_OFFSETS: Tuple[Vector, ...] = (
    (-2, -1),
    (-2, 1),
    (-1, -2),
    (-1, 2),
    (1, -2),
    (1, 2),
    (2, -1),
    (2, 1),
)
KING_OFFSETS = QUEEN_DIRECTIONS

KING_HOME_COL = 4
# side -> (rook from col, rook to col, king to col, columns that must be empty)
CASTLING_LAYOUT: Dict[CastlingSide, Tuple[int, int, int, Tuple[int, ...]]] = {
    CastlingSide.KING_SIDE: (7, 5, 6, (5, 6)),
    CastlingSide.QUEEN_SIDE: (0, 3, 2, (1, 2, 3)),
}


def pawn_direction(color: Color) -> int:
    """Row delta of a pawn step: white moves up the diagram (toward row 0)."""
    return -1 if color is Color.WHITE else 1


def pawn_start_row(color: Color) -> int:
    return 6 if color is Color.WHITE else 1


def promotion_row(color: Color) -> int:
    return 0 if color is Color.WHITE else 7


def _is_enemy(board: Board, sq: Square, color: Color) -> bool:
    piece = board.piece_at(sq)
    return piece is not None and piece_color(piece) is not color


def _ray_moves(
    board: Board, sq: Square, color: Color, directions: Tuple[Vector, ...]
) -> List[MoveCandidate]:
    """Walk each direction until the edge, an own piece, or an enemy piece (included)."""
    moves: List[MoveCandidate] = []
    for dr, dc in directions:
        r, c = sq.row + dr, sq.col + dc
        while in_bounds(r, c):
            target = board.grid[r][c]
            if target is None:
                moves.append(MoveCandidate(Square(r, c)))
            else:
                if piece_color(target) is not color:
                    moves.append(MoveCandidate(Square(r, c)))
                break
            r += dr
            c += dc
    return moves


def _step_moves(
    board: Board, sq: Square, color: Color, offsets: Tuple[Vector, ...]
) -> List[MoveCandidate]:
    moves: List[MoveCandidate] = []
    for dr, dc in offsets:
        r, c = sq.row + dr, sq.col + dc
        if not in_bounds(r, c):
            continue
        target = board.grid[r][c]
        if target is None or piece_color(target) is not color:
            moves.append(MoveCandidate(Square(r, c)))
    return moves


def _pawn_moves(board: Board, sq: Square, color: Color) -> List[MoveCandidate]:
    moves: List[MoveCandidate] = []
    step = pawn_direction(color)
    last_row = promotion_row(color)
    one = sq.row + step

    if in_bounds(one, sq.col) and board.grid[one][sq.col] is None:
        flag = MoveFlag.PROMOTION if one == last_row else MoveFlag.NONE
        moves.append(MoveCandidate(Square(one, sq.col), flag))
        two = sq.row + 2 * step
        if sq.row == pawn_start_row(color) and board.grid[two][sq.col] is None:
            moves.append(MoveCandidate(Square(two, sq.col), MoveFlag.PAWN_DOUBLE_MOVE))

    for dc in (-1, 1):
        col = sq.col + dc
        if not in_bounds(one, col):
            continue
        target_sq = Square(one, col)
        if _is_enemy(board, target_sq, color):
            flag = MoveFlag.PROMOTION if one == last_row else MoveFlag.NONE
            moves.append(MoveCandidate(target_sq, flag))
        elif board.en_passant == target_sq:
            victim_sq = Square(sq.row, col)
            victim = board.piece_at(victim_sq)
            if victim == make_piece(PieceKind.PAWN, color.opponent):
                moves.append(
                    MoveCandidate(target_sq, MoveFlag.EN_PASSANT, captured_pawn=victim_sq)
                )
    return moves


def _knight_moves(board: Board, sq: Square, color: Color) -> List[MoveCandidate]:
    return _step_moves(board, sq, color, KNIGHT_OFFSETS)


def _bishop_moves(board: Board, sq: Square, color: Color) -> List[MoveCandidate]:
    return _ray_moves(board, sq, color, BISHOP_DIRECTIONS)


def _rook_moves(board: Board, sq: Square, color: Color) -> List[MoveCandidate]:
    return _ray_moves(board, sq, color, ROOK_DIRECTIONS)


def _queen_moves(board: Board, sq: Square, color: Color) -> List[MoveCandidate]:
    return _ray_moves(board, sq, color, QUEEN_DIRECTIONS)


def _king_moves(board: Board, sq: Square, color: Color) -> List[MoveCandidate]:
    return _step_moves(board, sq, color, KING_OFFSETS)


def _castling_moves(board: Board, sq: Square, color: Color) -> List[MoveCandidate]:
    """Castling candidates for the king on `sq`.

    Requires the right, an empty path, the own rook on its home square, the
    king not in check and neither transit nor destination square attacked.
    """
    row = home_row(color)
    if sq != Square(row, KING_HOME_COL):
        return []
    rights = board.castling[color]
    opponent = color.opponent
    if not rights.any() or is_square_attacked(board, sq, opponent):
        return []

    own_rook = make_piece(PieceKind.ROOK, color)
    moves: List[MoveCandidate] = []
    for side, held in (
        (CastlingSide.KING_SIDE, rights.king_side),
        (CastlingSide.QUEEN_SIDE, rights.queen_side),
    ):
        if not held:
            continue
        rook_from, rook_to, king_to, between = CASTLING_LAYOUT[side]
        if any(board.grid[row][c] is not None for c in between):
            continue
        if board.grid[row][rook_from] != own_rook:
            continue
        # transit square is where the rook lands
        if is_square_attacked(board, Square(row, rook_to), opponent):
            continue
        if is_square_attacked(board, Square(row, king_to), opponent):
            continue
        moves.append(
            MoveCandidate(
                Square(row, king_to),
                MoveFlag.CASTLING,
                castling=side,
                rook_from_col=rook_from,
                rook_to_col=rook_to,
            )
        )
    return moves


MoveRuleFn = Callable[[Board, Square, Color], List[MoveCandidate]]
MOVEMENT_RULES: Dict[PieceKind, MoveRuleFn] = {
    PieceKind.PAWN: _pawn_moves,
    PieceKind.KNIGHT: _knight_moves,
    PieceKind.BISHOP: _bishop_moves,
    PieceKind.ROOK: _rook_moves,
    PieceKind.QUEEN: _queen_moves,
    PieceKind.KING: _king_moves,
}


def generate(board: Board, sq: Square) -> List[MoveCandidate]:
    """Return pseudo-legal candidates for the piece on `sq` (empty if none)."""
    piece = board.piece_at(sq)
    if piece is None:
        return []
    color = piece_color(piece)
    kind = piece_kind(piece)
    moves = MOVEMENT_RULES[kind](board, sq, color)
    if kind is PieceKind.KING:
        moves.extend(_castling_moves(board, sq, color))
    return moves


def attack_squares(board: Board, sq: Square) -> List[Square]:
    """Squares threatened by the piece on `sq`.

    Pawns threaten both forward diagonals whatever stands there and never
    their push squares. Other pieces threaten their move destinations;
    castling is not an attack.
    """
    piece = board.piece_at(sq)
    if piece is None:
        return []
    color = piece_color(piece)
    kind = piece_kind(piece)
    if kind is PieceKind.PAWN:
        row = sq.row + pawn_direction(color)
        return [Square(row, sq.col + dc) for dc in (-1, 1) if in_bounds(row, sq.col + dc)]
    return [m.to for m in MOVEMENT_RULES[kind](board, sq, color)]


def is_square_attacked(board: Board, sq: Square, by_color: Color) -> bool:
    """Return True if any piece of `by_color` threatens `sq`."""
    for origin, _piece in board.pieces(by_color):
        if sq in attack_squares(board, origin):
            return True
    return False
