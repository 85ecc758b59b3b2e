from __future__ import annotations

from typing import Any, Dict, List

import pytest

from src.relay.errors import (
    AlreadyInGame,
    GameFull,
    GameNotFound,
    GameNotStarted,
    InvalidGameCode,
    NoActiveGame,
    NotYourTurn,
    UnknownGameType,
)
from src.relay.session import Outgoing, SessionManager, SessionStatus


E2E4: Dict[str, Any] = {"fromRow": 6, "fromCol": 4, "toRow": 4, "toCol": 4, "pawnDoubleMove": True}
E7E5: Dict[str, Any] = {"fromRow": 1, "fromCol": 4, "toRow": 3, "toCol": 4, "pawnDoubleMove": True}


def _manager(**kwargs: Any) -> SessionManager:
    codes = iter(["ABC123", "XYZ789", "QWE456"])
    kwargs.setdefault("clock", lambda: 1000.0)
    return SessionManager(code_factory=lambda: next(codes), **kwargs)


def _by_event(out: List[Outgoing]) -> Dict[str, Outgoing]:
    return {o.event: o for o in out}


def _playing(manager: SessionManager) -> None:
    manager.create_game("c1")
    manager.join_game("c2", "ABC123")


def test_create_game_assigns_first_role() -> None:
    manager = _manager()
    out = manager.create_game("c1")
    assert out == [
        Outgoing(
            ("c1",),
            "game-created",
            {"gameId": "ABC123", "gameType": "chess", "role": "white", "message": "waiting for opponent"},
        )
    ]
    session = manager.get("ABC123")
    assert session is not None
    assert session.status is SessionStatus.WAITING
    assert session.current_turn == "white"


def test_join_is_case_insensitive_and_starts_game() -> None:
    manager = _manager()
    manager.create_game("c1")
    events = _by_event(manager.join_game("c2", "abc123"))

    joined = events["game-joined"]
    assert joined.targets == ("c2",)
    assert joined.data["role"] == "black"
    assert joined.data["currentPlayer"] == "white"
    assert joined.data["moves"] == []

    notice = events["player-joined"]
    assert notice.targets == ("c1",)
    assert notice.data == {"role": "black", "gameStarted": True, "currentPlayer": "white"}
    assert manager.get("ABC123").status is SessionStatus.PLAYING


def test_join_errors() -> None:
    manager = _manager()
    manager.create_game("c1")
    with pytest.raises(InvalidGameCode):
        manager.join_game("c2", "AB")
    with pytest.raises(InvalidGameCode):
        manager.join_game("c2", "ABC-12")
    with pytest.raises(GameNotFound):
        manager.join_game("c2", "ZZZ999")
    manager.join_game("c2", "ABC123")
    with pytest.raises(GameFull):
        manager.join_game("c3", "ABC123")


def test_unknown_game_type() -> None:
    with pytest.raises(UnknownGameType) as exc:
        _manager().create_game("c1", "checkers")
    assert exc.value.code == "unknown_game_type"


def test_tictactoe_roles() -> None:
    manager = _manager()
    created = manager.create_game("c1", "tictactoe")
    assert created[0].data["role"] == "X"
    joined = _by_event(manager.join_game("c2", "ABC123"))
    assert joined["game-joined"].data["role"] == "O"
    assert joined["game-joined"].data["currentPlayer"] == "X"


def test_move_is_relayed_and_logged() -> None:
    manager = _manager()
    _playing(manager)
    events = _by_event(manager.submit_move("c1", E2E4))

    assert events["opponent-move"] == Outgoing(("c2",), "opponent-move", E2E4)
    assert events["move-confirmed"] == Outgoing(("c1",), "move-confirmed", E2E4)
    session = manager.get("ABC123")
    assert session.moves == [{**E2E4, "player": "white", "timestamp": 1000000}]
    assert session.current_turn == "black"


def test_move_rejections() -> None:
    manager = _manager()
    with pytest.raises(NoActiveGame):
        manager.submit_move("nobody", E2E4)
    manager.create_game("c1")
    with pytest.raises(GameNotStarted):
        manager.submit_move("c1", E2E4)
    manager.join_game("c2", "ABC123")
    with pytest.raises(NotYourTurn):
        manager.submit_move("c2", E7E5)
    manager.submit_move("c1", E2E4)
    with pytest.raises(NotYourTurn):
        manager.submit_move("c1", E2E4)
    assert len(manager.get("ABC123").moves) == 1


def test_finished_game_cannot_be_joined() -> None:
    manager = _manager()
    _playing(manager)
    manager.submit_move("c1", E2E4)
    manager.disconnect("c2")
    with pytest.raises(GameNotFound):
        manager.join_game("c3", "ABC123")


def test_resign_finishes_game() -> None:
    manager = _manager()
    _playing(manager)
    out = manager.resign("c1")
    assert out == [Outgoing(("c2",), "opponent-resigned", {"role": "white", "winners": ["black"]})]
    session = manager.get("ABC123")
    assert session.status is SessionStatus.FINISHED
    assert session.result == {"winners": ["black"], "reason": "resignation"}
    assert manager.resign("c2") == []


def test_report_game_over_forwards_result() -> None:
    manager = _manager()
    _playing(manager)
    result = {"winner": "white", "reason": "checkmate"}
    assert manager.report_game_over("c1", result) == [Outgoing(("c2",), "game-over", result)]
    assert manager.get("ABC123").status is SessionStatus.FINISHED


def test_draw_offer_accept_and_decline() -> None:
    manager = _manager()
    _playing(manager)
    assert manager.offer_draw("c1") == [Outgoing(("c2",), "draw-offered", {"role": "white"})]
    assert manager.decline_draw("c2") == [Outgoing(("c1",), "draw-declined", {"role": "black"})]
    assert manager.accept_draw("c2") == []

    manager.offer_draw("c1")
    assert manager.accept_draw("c1") == []
    out = manager.accept_draw("c2")
    assert out == [Outgoing(("c1", "c2"), "game-over", {"winners": [], "reason": "draw"})]
    assert manager.get("ABC123").status is SessionStatus.FINISHED


def test_disconnect_notifies_opponent_and_purges_later() -> None:
    now = [1000.0]
    manager = _manager(clock=lambda: now[0], stale_ttl_s=3600)
    _playing(manager)
    out = manager.disconnect("c1")
    assert out == [Outgoing(("c2",), "player-disconnected", {"disconnectedPlayer": "white"})]
    assert manager.get("ABC123").status is SessionStatus.FINISHED
    assert manager.session_for("c1") is None

    assert manager.purge_stale(now=1000.0 + 3599) == []
    assert manager.purge_stale(now=1000.0 + 3601) == ["ABC123"]
    assert manager.get("ABC123") is None
    assert manager.session_for("c2") is None


def test_playing_games_are_never_purged() -> None:
    manager = _manager()
    _playing(manager)
    assert manager.purge_stale(now=10**9) == []
    assert len(manager) == 1


def test_disconnect_without_game_is_quiet() -> None:
    assert _manager().disconnect("ghost") == []


def test_creator_cannot_join_own_game() -> None:
    manager = _manager()
    manager.create_game("c1")
    with pytest.raises(AlreadyInGame):
        manager.join_game("c1", "ABC123")
    session = manager.get("ABC123")
    assert session.players == {"white": "c1"}
    assert session.status is SessionStatus.WAITING


def test_creating_a_new_game_leaves_the_current_one() -> None:
    manager = _manager()
    _playing(manager)
    out = manager.create_game("c1")
    assert out[0] == Outgoing(("c2",), "player-disconnected", {"disconnectedPlayer": "white"})
    assert out[1].event == "game-created"
    assert out[1].data["gameId"] == "XYZ789"

    old = manager.get("ABC123")
    assert old.status is SessionStatus.FINISHED
    assert old.players == {"black": "c2"}
    assert old.result == {"winners": ["black"], "reason": "disconnect"}
    with pytest.raises(GameNotStarted):
        manager.submit_move("c2", E7E5)

    assert manager.disconnect("c1") == []
    assert manager.purge_stale(now=10**9) == ["ABC123", "XYZ789"]


def test_joining_another_game_leaves_the_current_one() -> None:
    manager = _manager()
    _playing(manager)
    manager.create_game("c3")
    events = _by_event(manager.join_game("c1", "XYZ789"))
    assert events["player-disconnected"].targets == ("c2",)
    assert events["game-joined"].data["role"] == "black"
    assert manager.get("ABC123").status is SessionStatus.FINISHED
    assert manager.session_for("c1").id == "XYZ789"


def test_searching_leaves_the_current_game() -> None:
    manager = _manager()
    _playing(manager)
    out = manager.find_game("c2")
    assert out[0] == Outgoing(("c1",), "player-disconnected", {"disconnectedPlayer": "black"})
    assert out[1].event == "matchmaking-started"
    assert manager.session_for("c2") is None


def test_game_over_needs_a_started_game() -> None:
    manager = _manager()
    manager.create_game("c1")
    with pytest.raises(GameNotStarted):
        manager.report_game_over("c1", {"winner": "white"})
    assert manager.get("ABC123").status is SessionStatus.WAITING
