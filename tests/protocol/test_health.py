from __future__ import annotations

from fastapi.testclient import TestClient

from src.protocol.http.app import create_app
from src.settings import Settings


def test_healthz_ok() -> None:
    client = TestClient(create_app(Settings()))
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}
    assert "x-request-id" in r.headers


def test_client_request_id_is_echoed() -> None:
    client = TestClient(create_app(Settings()))
    r = client.get("/healthz", headers={"x-request-id": "abc-123"})
    assert r.headers["x-request-id"] == "abc-123"

    r_bad = client.get("/healthz", headers={"x-request-id": "not a valid id!"})
    assert r_bad.headers["x-request-id"] != "not a valid id!"
