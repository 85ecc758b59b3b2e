from __future__ import annotations

from src.engine.board import Color
from src.engine.game import GameEngine
from src.engine.move import MoveFlag, str_to_square


def _play(engine: GameEngine, *moves: str) -> None:
    for mv in moves:
        res = engine.attempt_move(str_to_square(mv[:2]), str_to_square(mv[2:4]))
        assert res.applied, mv


def _dests(engine: GameEngine, name: str) -> dict[str, MoveFlag]:
    return {m.to.to_str(): m.flag for m in engine.legal_moves(str_to_square(name))}


def test_double_step_sets_target_and_next_move_clears_it() -> None:
    engine = GameEngine.new()
    _play(engine, "e2e4")
    assert engine.board.en_passant == str_to_square("e3")
    _play(engine, "g8f6")
    assert engine.board.en_passant is None


def test_en_passant_capture_removes_passed_pawn() -> None:
    engine = GameEngine.new()
    _play(engine, "e2e4", "a7a6", "e4e5", "d7d5")
    assert engine.board.en_passant == str_to_square("d6")
    assert _dests(engine, "e5") == {"e6": MoveFlag.NONE, "d6": MoveFlag.EN_PASSANT}

    _play(engine, "e5d6")
    b = engine.board
    assert b.piece_at(str_to_square("d6")) == "P"
    assert b.piece_at(str_to_square("d5")) is None
    assert b.piece_at(str_to_square("e5")) is None
    assert b.captured[Color.BLACK] == ["p"]
    assert b.last_move is not None
    assert b.last_move.en_passant
    assert b.last_move.captured_pawn == str_to_square("d5")


def test_en_passant_expires_after_one_move() -> None:
    engine = GameEngine.new()
    _play(engine, "e2e4", "a7a6", "e4e5", "d7d5", "b1c3", "h7h6")
    assert engine.board.en_passant is None
    assert _dests(engine, "e5") == {"e6": MoveFlag.NONE}


def test_black_en_passant() -> None:
    engine = GameEngine.new()
    _play(engine, "a2a3", "d7d5", "a3a4", "d5d4", "e2e4")
    assert engine.board.en_passant == str_to_square("e3")
    assert _dests(engine, "d4")["e3"] is MoveFlag.EN_PASSANT
    _play(engine, "d4e3")
    assert engine.board.piece_at(str_to_square("e4")) is None
    assert engine.board.captured[Color.WHITE] == ["P"]


def test_black_en_passant_only_immediately() -> None:
    engine = GameEngine.new()
    _play(engine, "a2a3", "d7d5", "a3a4", "d5d4", "e2e4", "h7h6", "g1f3")
    assert engine.board.en_passant is None
    assert _dests(engine, "d4") == {"d3": MoveFlag.NONE}
