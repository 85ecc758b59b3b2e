from __future__ import annotations

from typing import List

from src.engine.board import Board, Color
from src.engine.game import GameEngine, RejectReason
from src.engine.move import str_to_square
from src.engine.network import NetworkGatedEngine
from src.engine.wire import MovePayload


EMPTY = "........"


def _payload(data: dict) -> MovePayload:
    return MovePayload.model_validate(data)


def test_local_move_is_published_and_turn_passes() -> None:
    sent: List[MovePayload] = []
    net = NetworkGatedEngine(GameEngine.new(), Color.WHITE, sent.append)
    assert net.is_my_turn

    res = net.attempt_move(str_to_square("e2"), str_to_square("e4"))
    assert res.applied
    assert [p.to_wire() for p in sent] == [
        {"fromRow": 6, "fromCol": 4, "toRow": 4, "toCol": 4, "pawnDoubleMove": True}
    ]
    assert not net.is_my_turn
    assert net.legal_moves(str_to_square("d2")) == []

    again = net.attempt_move(str_to_square("d2"), str_to_square("d4"))
    assert again.error is RejectReason.NOT_YOUR_TURN
    assert len(sent) == 1


def test_rejected_local_move_is_not_published() -> None:
    sent: List[MovePayload] = []
    net = NetworkGatedEngine(GameEngine.new(), Color.WHITE, sent.append)
    res = net.attempt_move(str_to_square("e2"), str_to_square("e5"))
    assert res.error is RejectReason.ILLEGAL_MOVE
    assert sent == []


def test_opponent_move_is_applied_on_their_turn_only() -> None:
    net = NetworkGatedEngine(GameEngine.new(), Color.BLACK, lambda p: None)
    early = net.receive_opponent_move(_payload({"fromRow": 1, "fromCol": 4, "toRow": 3, "toCol": 4}))
    # it is white's turn and white is the opponent, so the black pawn move is illegal
    assert early.error is RejectReason.ILLEGAL_MOVE

    res = net.receive_opponent_move(_payload({"fromRow": 6, "fromCol": 4, "toRow": 4, "toCol": 4}))
    assert res.applied
    assert net.is_my_turn
    mine = net.receive_opponent_move(_payload({"fromRow": 6, "fromCol": 3, "toRow": 4, "toCol": 3}))
    assert mine.error is RejectReason.NOT_YOUR_TURN


def test_undo_is_disabled() -> None:
    net = NetworkGatedEngine(GameEngine.new(), Color.WHITE, lambda p: None)
    net.attempt_move(str_to_square("e2"), str_to_square("e4"))
    res = net.undo()
    assert res.error is RejectReason.UNDO_DISABLED
    assert len(net.engine.history) == 1


def test_opponent_move_during_pending_promotion_is_deferred() -> None:
    board = Board.from_rows(
        [".......k", "P.......", EMPTY, EMPTY, EMPTY, EMPTY, EMPTY, "....K..."]
    )
    sent: List[MovePayload] = []
    net = NetworkGatedEngine(GameEngine.from_board(board), Color.WHITE, sent.append)

    staged = net.attempt_move(str_to_square("a7"), str_to_square("a8"))
    assert staged.pending_promotion
    assert sent == []

    reply = _payload({"fromRow": 0, "fromCol": 7, "toRow": 1, "toCol": 7})
    deferred = net.receive_opponent_move(reply)
    assert deferred.error is RejectReason.PROMOTION_PENDING
    assert net.board.piece_at(str_to_square("h8")) == "k"

    res = net.resolve_promotion("queen")
    assert res.applied
    assert sent[0].to_wire() == {
        "fromRow": 1,
        "fromCol": 0,
        "toRow": 0,
        "toCol": 0,
        "promotion": True,
        "promotedTo": "q",
    }
    assert net.board.piece_at(str_to_square("h7")) == "k"
    assert net.board.side_to_move is Color.WHITE


def test_replay_stops_at_first_rejected_move() -> None:
    net = NetworkGatedEngine(GameEngine.new(), Color.BLACK, lambda p: None)
    log = [
        {"fromRow": 6, "fromCol": 4, "toRow": 4, "toCol": 4, "player": "white", "timestamp": 1},
        {"fromRow": 1, "fromCol": 4, "toRow": 3, "toCol": 4, "player": "black", "timestamp": 2},
        {"fromRow": 6, "fromCol": 4, "toRow": 4, "toCol": 4, "player": "white", "timestamp": 3},
    ]
    assert net.replay(_payload(entry) for entry in log) == 2
    assert net.board.piece_at(str_to_square("e5")) == "p"
    assert net.board.side_to_move is Color.WHITE
