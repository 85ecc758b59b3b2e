from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query, WebSocket
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, Field

from .error import (
    EngineRejection,
    exception_handler,
    http_exception_handler,
    request_validation_exception_handler,
)
from .logging_middleware import RequestIDLoggingMiddleware
from .relay_ws import ConnectionHub
from .session import InMemorySessionStore
from ...engine.board import Color
from ...engine.game import GameEngine, RejectReason
from ...engine.move import str_to_square
from ...engine.wire import MovePayload
from ...relay.session import SessionManager
from ...settings import Settings


logger = logging.getLogger(__name__)


class OutcomeModel(BaseModel):
    reason: str
    winner: Optional[str] = None


class GameState(BaseModel):
    game_id: str
    board: List[str] = Field(..., description="Eight rows, rank 8 first; '.' is empty")
    turn: str
    phase: str
    in_check: bool
    terminal: str
    outcome: Optional[OutcomeModel] = None
    castling: Dict[str, Dict[str, bool]]
    en_passant: Optional[str] = None
    last_move: Optional[Dict[str, Any]] = None
    captured: Dict[str, List[str]]
    history_length: int
    pending_promotion: Optional[Dict[str, str]] = None


class CreateGameResponse(BaseModel):
    game_id: str
    state: GameState


class LegalMovesResponse(BaseModel):
    square: str
    moves: List[Dict[str, Any]]


class PromotionRequest(BaseModel):
    piece: str = Field(..., description="queen, rook, bishop, knight or their letters")


class ResignRequest(BaseModel):
    color: Optional[Color] = Field(default=None, description="Resigning side (default: side to move)")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    app = FastAPI(title="Chess Relay API", version="0.1.0")

    logging.basicConfig(level=settings.log_level)

    # Middleware & error handling
    app.add_middleware(RequestIDLoggingMiddleware)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(Exception, exception_handler)

    # Local engine sessions (REST) and relay sessions (WebSocket)
    store = InMemorySessionStore()
    relay = SessionManager(
        validate_moves=settings.relay_validate_moves,
        stale_ttl_s=settings.stale_game_ttl_s,
    )
    hub = ConnectionHub(relay)
    app.state.settings = settings
    app.state.store = store
    app.state.relay = relay
    app.state.hub = hub

    @app.get("/healthz")
    async def healthz() -> Dict[str, str]:
        return {"status": "ok"}

    @app.post("/api/games", response_model=CreateGameResponse)
    async def create_game() -> CreateGameResponse:
        game_id = store.create(GameEngine.new())
        engine = _require_game(store, game_id)
        logger.info("local game created", extra={"game_id": game_id})
        return CreateGameResponse(game_id=game_id, state=_state(game_id, engine))

    @app.get("/api/games/{game_id}/state", response_model=GameState)
    async def get_state(game_id: str) -> GameState:
        engine = _require_game(store, game_id)
        with store.lock(game_id):
            return _state(game_id, engine)

    @app.get("/api/games/{game_id}/moves", response_model=LegalMovesResponse)
    async def legal_moves(
        game_id: str, square: str = Query(..., description="Square name, e.g. e2")
    ) -> LegalMovesResponse:
        engine = _require_game(store, game_id)
        try:
            sq = str_to_square(square)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        with store.lock(game_id):
            moves = [MovePayload.from_candidate(sq, m).to_wire() for m in engine.legal_moves(sq)]
        return LegalMovesResponse(square=square, moves=moves)

    @app.post("/api/games/{game_id}/move", response_model=GameState)
    async def make_move(game_id: str, req: MovePayload) -> GameState:
        engine = _require_game(store, game_id)
        from_sq, to_sq, candidate, promoted_to = req.to_move()
        with store.lock(game_id):
            if promoted_to is not None:
                result = engine.apply_move(from_sq, to_sq, candidate, promoted_to)
            else:
                result = engine.attempt_move(from_sq, to_sq, candidate)
            if result.error is not None:
                raise EngineRejection(result.error)
            return _state(game_id, engine)

    @app.post("/api/games/{game_id}/promotion", response_model=GameState)
    async def promote(game_id: str, req: PromotionRequest) -> GameState:
        engine = _require_game(store, game_id)
        with store.lock(game_id):
            if engine.pending is None:
                raise EngineRejection(RejectReason.ILLEGAL_MOVE, "no promotion pending")
            result = engine.resolve_promotion(req.piece)
            if result.error is not None:
                raise EngineRejection(result.error)
            return _state(game_id, engine)

    @app.delete("/api/games/{game_id}/promotion", response_model=GameState)
    async def cancel_promotion(game_id: str) -> GameState:
        engine = _require_game(store, game_id)
        with store.lock(game_id):
            if not engine.cancel_promotion():
                raise EngineRejection(RejectReason.ILLEGAL_MOVE, "no promotion pending")
            return _state(game_id, engine)

    @app.post("/api/games/{game_id}/undo", response_model=GameState)
    async def undo(game_id: str) -> GameState:
        engine = _require_game(store, game_id)
        with store.lock(game_id):
            result = engine.undo()
            if result.error is not None:
                raise EngineRejection(result.error)
            return _state(game_id, engine)

    @app.post("/api/games/{game_id}/resign", response_model=GameState)
    async def resign(game_id: str, req: Optional[ResignRequest] = None) -> GameState:
        engine = _require_game(store, game_id)
        with store.lock(game_id):
            color = req.color if req is not None and req.color is not None else engine.side_to_move
            if not engine.resign(color):
                raise EngineRejection(RejectReason.GAME_OVER)
            return _state(game_id, engine)

    @app.post("/api/games/{game_id}/draw", response_model=GameState)
    async def draw(game_id: str) -> GameState:
        engine = _require_game(store, game_id)
        with store.lock(game_id):
            if not engine.agree_draw():
                raise EngineRejection(RejectReason.GAME_OVER)
            return _state(game_id, engine)

    @app.delete("/api/games/{game_id}")
    async def delete_game(game_id: str) -> Dict[str, str]:
        if not store.delete(game_id):
            raise HTTPException(status_code=404, detail="game not found")
        return {"status": "deleted"}

    @app.websocket("/ws")
    async def relay_ws(websocket: WebSocket) -> None:
        await hub.serve(websocket)

    return app


def _require_game(store: InMemorySessionStore, game_id: str) -> GameEngine:
    engine = store.get(game_id)
    if engine is None:
        raise HTTPException(status_code=404, detail="game not found")
    return engine


def _state(game_id: str, engine: GameEngine) -> GameState:
    board = engine.board
    outcome = None
    if engine.outcome is not None:
        outcome = OutcomeModel(
            reason=engine.outcome.reason.value,
            winner=engine.outcome.winner.value if engine.outcome.winner else None,
        )
    last_move = None
    if board.last_move is not None:
        lm = board.last_move
        last_move = {"from": lm.from_sq.to_str(), "to": lm.to_sq.to_str()}
        if lm.castling is not None:
            last_move["castling"] = lm.castling.value
        if lm.en_passant and lm.captured_pawn is not None:
            last_move["captured_pawn"] = lm.captured_pawn.to_str()
    pending = None
    if engine.pending is not None:
        pending = {
            "from": engine.pending.from_sq.to_str(),
            "to": engine.pending.to_sq.to_str(),
        }
    return GameState(
        game_id=game_id,
        board=board.to_rows(),
        turn=board.side_to_move.value,
        phase=engine.phase.value,
        in_check=engine.is_in_check(),
        terminal=engine.terminal_status().value,
        outcome=outcome,
        castling={
            color.value: {"king_side": rights.king_side, "queen_side": rights.queen_side}
            for color, rights in board.castling.items()
        },
        en_passant=board.en_passant.to_str() if board.en_passant else None,
        last_move=last_move,
        captured={color.value: list(pieces) for color, pieces in board.captured.items()},
        history_length=len(engine.history),
        pending_promotion=pending,
    )


# Default app for non-factory servers
app = create_app()
