"""Move payloads exchanged with the relay and the HTTP API.

The JSON shape uses camelCase keys:
``{fromRow, fromCol, toRow, toCol, promotion?, promotedTo?, castling?,
rookFromCol?, rookToCol?, enPassant?, pawnDoubleMove?}``.
"""

from __future__ import annotations

from typing import Any, Dict, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .board import PROMOTION_KINDS
from .move import CastlingSide, HistoryEntry, MoveCandidate, MoveFlag, Square


PROMOTION_LETTERS = {kind.char for kind in PROMOTION_KINDS}


class MovePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    from_row: int = Field(..., alias="fromRow", ge=0, le=7)
    from_col: int = Field(..., alias="fromCol", ge=0, le=7)
    to_row: int = Field(..., alias="toRow", ge=0, le=7)
    to_col: int = Field(..., alias="toCol", ge=0, le=7)
    promotion: Optional[bool] = None
    promoted_to: Optional[str] = Field(default=None, alias="promotedTo")
    castling: Optional[Literal["kingSide", "queenSide"]] = None
    rook_from_col: Optional[int] = Field(default=None, alias="rookFromCol", ge=0, le=7)
    rook_to_col: Optional[int] = Field(default=None, alias="rookToCol", ge=0, le=7)
    en_passant: Optional[bool] = Field(default=None, alias="enPassant")
    pawn_double_move: Optional[bool] = Field(default=None, alias="pawnDoubleMove")

    @field_validator("promoted_to")
    @classmethod
    def _validate_promoted_to(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        letter = value.lower()
        if letter not in PROMOTION_LETTERS:
            raise ValueError(f"invalid promotion piece: {value!r}")
        return letter

    @classmethod
    def from_candidate(cls, from_sq: Square, move: MoveCandidate) -> "MovePayload":
        payload: Dict[str, Any] = {
            "from_row": from_sq.row,
            "from_col": from_sq.col,
            "to_row": move.to.row,
            "to_col": move.to.col,
        }
        if move.flag is MoveFlag.PROMOTION:
            payload["promotion"] = True
        elif move.flag is MoveFlag.PAWN_DOUBLE_MOVE:
            payload["pawn_double_move"] = True
        elif move.flag is MoveFlag.EN_PASSANT:
            payload["en_passant"] = True
        elif move.flag is MoveFlag.CASTLING:
            if move.castling is None:
                raise ValueError("castling move without a side")
            payload["castling"] = move.castling.value
            payload["rook_from_col"] = move.rook_from_col
            payload["rook_to_col"] = move.rook_to_col
        return cls(**payload)

    @classmethod
    def from_entry(cls, entry: HistoryEntry) -> "MovePayload":
        """Encode an executed move, including the promotion choice."""
        payload = cls.from_candidate(entry.from_sq, entry.candidate)
        if entry.promoted_to is not None:
            payload.promoted_to = entry.promoted_to.lower()
        return payload

    @property
    def from_sq(self) -> Square:
        return Square(self.from_row, self.from_col)

    @property
    def to_sq(self) -> Square:
        return Square(self.to_row, self.to_col)

    def to_candidate(self) -> MoveCandidate:
        to = self.to_sq
        if self.castling is not None:
            return MoveCandidate(
                to,
                MoveFlag.CASTLING,
                castling=CastlingSide(self.castling),
                rook_from_col=self.rook_from_col,
                rook_to_col=self.rook_to_col,
            )
        if self.en_passant:
            return MoveCandidate(to, MoveFlag.EN_PASSANT, captured_pawn=Square(self.from_row, self.to_col))
        if self.promotion:
            return MoveCandidate(to, MoveFlag.PROMOTION)
        if self.pawn_double_move:
            return MoveCandidate(to, MoveFlag.PAWN_DOUBLE_MOVE)
        return MoveCandidate(to)

    @property
    def is_flagged(self) -> bool:
        return bool(
            self.castling is not None
            or self.en_passant
            or self.promotion
            or self.pawn_double_move
        )

    def to_move(self) -> Tuple[Square, Square, Optional[MoveCandidate], Optional[str]]:
        """Return ``(from, to, candidate, promoted piece letter)`` for the engine.

        A payload without special-move flags yields no candidate, so the engine
        matches it by destination alone.
        """
        candidate = self.to_candidate() if self.is_flagged else None
        return self.from_sq, self.to_sq, candidate, self.promoted_to

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)
