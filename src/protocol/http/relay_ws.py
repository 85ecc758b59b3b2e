from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Callable, Dict, List, Optional

from fastapi import WebSocket, WebSocketDisconnect

from ...relay.errors import RelayError
from ...relay.session import Outgoing, SessionManager


logger = logging.getLogger(__name__)

Handler = Callable[[SessionManager, str, Any], List[Outgoing]]


def _game_type(data: Any) -> str:
    if isinstance(data, dict):
        return str(data.get("gameType") or "chess")
    if isinstance(data, str) and data:
        return data
    return "chess"


def _game_code(data: Any) -> str:
    if isinstance(data, dict):
        data = data.get("gameId")
    return data if isinstance(data, str) else ""


def _move(data: Any) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise RelayError("move payload must be an object")
    return data


# Client event name -> manager call. Server events keep the two-player names,
# except that a new seat is announced as `player-joined` (formerly
# `opponent-joined`).
EVENT_HANDLERS: Dict[str, Handler] = {
    "create-game": lambda m, c, d: m.create_game(c, _game_type(d)),
    "join-game": lambda m, c, d: m.join_game(c, _game_code(d)),
    "move": lambda m, c, d: m.submit_move(c, _move(d)),
    "game-over": lambda m, c, d: m.report_game_over(c, d),
    "resign": lambda m, c, d: m.resign(c),
    "offer-draw": lambda m, c, d: m.offer_draw(c),
    "accept-draw": lambda m, c, d: m.accept_draw(c),
    "decline-draw": lambda m, c, d: m.decline_draw(c),
    "request-rematch": lambda m, c, d: m.request_rematch(c),
    "decline-rematch": lambda m, c, d: m.decline_rematch(c),
    "find-game": lambda m, c, d: m.find_game(c, _game_type(d)),
    "cancel-search": lambda m, c, d: m.cancel_search(c),
}


class ConnectionHub:
    """Bridges WebSocket connections to a `SessionManager`.

    Each socket gets a connection id. Client frames ``{"event", "data"}``
    are dispatched through `EVENT_HANDLERS`; the returned `Outgoing` events
    are delivered as frames of the same shape. Relay errors go back to the
    sender as an ``error`` event.
    """

    def __init__(self, manager: SessionManager) -> None:
        self.manager = manager
        self._sockets: Dict[str, WebSocket] = {}

    @property
    def connection_count(self) -> int:
        return len(self._sockets)

    async def serve(self, websocket: WebSocket) -> None:
        await websocket.accept()
        conn = uuid.uuid4().hex
        self._sockets[conn] = websocket
        logger.info("relay connection opened", extra={"conn": conn})
        self.manager.purge_stale()
        try:
            while True:
                text = await websocket.receive_text()
                await self.handle_frame(conn, text)
        except WebSocketDisconnect:
            pass
        finally:
            self._sockets.pop(conn, None)
            logger.info("relay connection closed", extra={"conn": conn})
            await self.deliver(self.manager.disconnect(conn))
            self.manager.purge_stale()

    async def handle_frame(self, conn: str, text: str) -> None:
        try:
            frame = json.loads(text)
        except ValueError:
            await self._send_error(conn, "bad_frame", "frame is not valid JSON")
            return
        if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
            await self._send_error(conn, "bad_frame", "frame must be an object with an event name")
            return

        event = frame["event"]
        handler = EVENT_HANDLERS.get(event)
        if handler is None:
            await self._send_error(conn, "unknown_event", f"unknown event: {event}")
            return
        try:
            outgoing = handler(self.manager, conn, frame.get("data"))
        except RelayError as e:
            logger.info(
                "relay request refused",
                extra={"conn": conn, "event": event, "code": e.code},
            )
            await self._send(conn, "error", e.to_event_data())
            return
        await self.deliver(outgoing)

    async def deliver(self, outgoing: List[Outgoing]) -> None:
        for item in outgoing:
            for target in item.targets:
                await self._send(target, item.event, item.data)

    async def _send(self, conn: str, event: str, data: Optional[Any]) -> None:
        websocket = self._sockets.get(conn)
        if websocket is None:
            return
        try:
            await websocket.send_json({"event": event, "data": data})
        except (RuntimeError, WebSocketDisconnect):
            logger.warning("relay send failed", extra={"conn": conn, "event": event})

    async def _send_error(self, conn: str, code: str, message: str) -> None:
        await self._send(conn, "error", {"code": code, "message": message})
