"""Tests for the request ID middleware."""

from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from tutor.app.middleware.request_id import RequestIdMiddleware, get_request_id


def make_app() -> FastAPI:
    app = FastAPI()
    app.add_middleware(RequestIdMiddleware)

    @app.get("/echo")
    async def echo(request: Request):
        return {"requestId": get_request_id(request)}

    return app


def test_incoming_request_id_reused():
    client = TestClient(make_app())
    resp = client.get("/echo", headers={"X-Request-ID": "abc"})
    assert resp.headers["X-Request-ID"] == "abc"
    assert resp.json() == {"requestId": "abc"}


def test_request_id_generated_when_missing():
    client = TestClient(make_app())
    resp = client.get("/echo")
    generated = resp.headers["X-Request-ID"]
    assert len(generated) == 36
    assert resp.json()["requestId"] == generated


def test_generated_ids_are_unique():
    client = TestClient(make_app())
    ids = {client.get("/echo").headers["X-Request-ID"] for _ in range(5)}
    assert len(ids) == 5


def test_get_request_id_without_middleware():
    app = FastAPI()

    @app.get("/plain")
    async def plain(request: Request):
        return {"requestId": get_request_id(request)}

    assert TestClient(app).get("/plain").json() == {"requestId": "unknown"}
