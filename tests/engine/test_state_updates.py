from __future__ import annotations

from src.engine.board import Board, Color
from src.engine.game import EnginePhase, GameEngine, GameOverReason, RejectReason
from src.engine.move import MoveCandidate, str_to_square


def _play(engine: GameEngine, *moves: str) -> None:
    for mv in moves:
        assert engine.attempt_move(str_to_square(mv[:2]), str_to_square(mv[2:4])).applied, mv


def test_move_flips_turn_and_records_last_move() -> None:
    engine = GameEngine.new()
    _play(engine, "g1f3")
    b = engine.board
    assert b.side_to_move is Color.BLACK
    assert b.last_move is not None
    assert (b.last_move.from_sq, b.last_move.to_sq) == (str_to_square("g1"), str_to_square("f3"))
    assert b.last_move.castling is None and not b.last_move.en_passant
    assert len(engine.history) == 1


def test_captures_are_collected_per_color() -> None:
    engine = GameEngine.new()
    _play(engine, "e2e4", "d7d5", "e4d5", "d8d5")
    assert engine.board.captured == {Color.WHITE: ["P"], Color.BLACK: ["p"]}


def test_king_move_revokes_both_rights() -> None:
    engine = GameEngine.new()
    _play(engine, "e2e4", "e7e5", "e1e2")
    rights = engine.board.castling
    assert not rights[Color.WHITE].any()
    assert rights[Color.BLACK].king_side and rights[Color.BLACK].queen_side


def test_rejected_move_changes_nothing() -> None:
    engine = GameEngine.new()
    before = engine.board.copy()
    for frm, to in (("e2", "e5"), ("e7", "e5"), ("e4", "e5"), ("b1", "d2")):
        res = engine.attempt_move(str_to_square(frm), str_to_square(to))
        assert not res.applied
        assert res.error is RejectReason.ILLEGAL_MOVE
    assert engine.board == before
    assert engine.history == []


def test_opponent_pieces_have_no_legal_moves() -> None:
    engine = GameEngine.new()
    assert engine.legal_moves(str_to_square("e7")) == []
    assert len(engine.legal_moves(str_to_square("e2"))) == 2


def test_mismatched_candidate_is_rejected() -> None:
    engine = GameEngine.new()
    # e2e4 is generated as a double step; a plain candidate does not match it
    res = engine.attempt_move(
        str_to_square("e2"), str_to_square("e4"), MoveCandidate(str_to_square("e4"))
    )
    assert res.error is RejectReason.ILLEGAL_MOVE
    assert engine.history == []


def test_resignation_and_draw_end_the_game() -> None:
    engine = GameEngine.new()
    assert engine.resign(Color.WHITE)
    assert engine.outcome is not None
    assert engine.outcome.reason is GameOverReason.RESIGNATION
    assert engine.outcome.winner is Color.BLACK
    assert not engine.agree_draw()
    res = engine.attempt_move(str_to_square("e2"), str_to_square("e4"))
    assert res.error is RejectReason.GAME_OVER
    assert engine.legal_moves(str_to_square("e2")) == []

    other = GameEngine.new()
    assert other.agree_draw()
    assert other.outcome is not None and other.outcome.winner is None
    assert other.phase is EnginePhase.GAME_OVER


def test_new_game_resets_everything() -> None:
    engine = GameEngine.new()
    _play(engine, "e2e4", "e7e5")
    engine.resign(Color.WHITE)
    board = engine.new_game()
    assert board == Board.startpos()
    assert engine.history == [] and engine.outcome is None
    assert engine.phase is EnginePhase.IDLE
