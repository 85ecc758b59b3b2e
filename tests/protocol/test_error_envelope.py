from __future__ import annotations

from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient

from src.engine.game import RejectReason
from src.protocol.http.app import create_app
from src.protocol.http.error import EngineRejection
from src.settings import Settings


def test_error_envelope_for_http_exception() -> None:
    app: FastAPI = create_app(Settings())

    @app.get("/boom")
    def boom():  # type: ignore[no-redef]
        raise HTTPException(status_code=400, detail="oops")

    client = TestClient(app)
    r = client.get("/boom")
    assert r.status_code == 400
    body = r.json()
    assert "error" in body
    err = body["error"]
    assert err["code"] == "bad_request"
    assert err["message"] == "oops"
    assert err["type"] == "client_error"
    assert err["request_id"]


def test_engine_rejection_carries_reason_code() -> None:
    app: FastAPI = create_app(Settings())

    @app.get("/blocked")
    def blocked():  # type: ignore[no-redef]
        raise EngineRejection(RejectReason.PROMOTION_PENDING)

    r = TestClient(app).get("/blocked")
    assert r.status_code == 409
    err = r.json()["error"]
    assert err["code"] == "promotion_pending"
    assert err["message"] == "promotion pending"


def test_unhandled_exception_is_internal_error() -> None:
    app: FastAPI = create_app(Settings())

    @app.get("/crash")
    def crash():  # type: ignore[no-redef]
        raise RuntimeError("kaboom")

    client = TestClient(app, raise_server_exceptions=False)
    r = client.get("/crash")
    assert r.status_code == 500
    err = r.json()["error"]
    assert err["code"] == "internal_error"
    assert err["type"] == "server_error"


def test_validation_error_lists_fields() -> None:
    client = TestClient(create_app(Settings()))
    game_id = client.post("/api/games").json()["game_id"]
    r = client.post(f"/api/games/{game_id}/move", json={"fromRow": 9, "fromCol": 4})
    assert r.status_code == 422
    err = r.json()["error"]
    assert err["code"] == "unprocessable_entity"
    fields = {e["field"] for e in err["field_errors"]}
    assert any(f.endswith("fromRow") for f in fields)
    assert any(f.endswith("toRow") for f in fields)
