"""Bearer-token guards for resource routes: public reads, authenticated writes."""

from __future__ import annotations

from datetime import timedelta

import pytest
from fastapi import Depends, FastAPI, Request
from fastapi.testclient import TestClient

from eventify.dependencies import get_current_address, require_write_auth
from eventify.services.tokens import TokenCodec
from eventify.utils.clock import utcnow

ADDRESS = "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"


def _build_app(codec: TokenCodec | None) -> FastAPI:
    app = FastAPI()
    if codec is not None:
        app.state.token_codec = codec

    @app.api_route("/events", methods=["GET", "HEAD", "OPTIONS", "POST", "PUT", "DELETE"])
    def events(request: Request, address: str | None = Depends(require_write_auth)):
        return {
            "address": address,
            "state": getattr(request.state, "wallet_address", None),
        }

    @app.get("/me")
    def me(address: str = Depends(get_current_address)):
        return {"address": address}

    return app


@pytest.fixture(name="guarded")
def guarded_fixture(codec: TokenCodec):
    with TestClient(_build_app(codec)) as tc:
        yield tc


def _bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


class TestRequireWriteAuth:
    @pytest.mark.parametrize("method", ["GET", "HEAD", "OPTIONS"])
    def test_reads_are_public(self, guarded: TestClient, method: str) -> None:
        resp = guarded.request(method, "/events")
        assert resp.status_code == 200

    def test_read_ignores_bad_token(self, guarded: TestClient) -> None:
        resp = guarded.get("/events", headers=_bearer("garbage"))
        assert resp.status_code == 200
        assert resp.json()["address"] is None

    @pytest.mark.parametrize("method", ["POST", "PUT", "DELETE"])
    def test_writes_need_a_token(self, guarded: TestClient, method: str) -> None:
        resp = guarded.request(method, "/events")
        assert resp.status_code == 401
        assert resp.headers["www-authenticate"] == "Bearer"

    def test_write_with_access_token(self, guarded: TestClient, codec: TokenCodec) -> None:
        resp = guarded.post("/events", headers=_bearer(codec.sign_access(ADDRESS)))
        assert resp.status_code == 200
        assert resp.json() == {"address": ADDRESS.lower(), "state": ADDRESS.lower()}

    def test_write_with_refresh_token(self, guarded: TestClient, codec: TokenCodec) -> None:
        resp = guarded.post("/events", headers=_bearer(codec.sign_refresh(ADDRESS, "fam")))
        assert resp.status_code == 401

    def test_write_with_expired_token(self, guarded: TestClient, settings) -> None:
        stale = TokenCodec(settings, clock=lambda: utcnow() - timedelta(minutes=16))
        resp = guarded.post("/events", headers=_bearer(stale.sign_access(ADDRESS)))
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Invalid or expired token"

    def test_non_bearer_scheme(self, guarded: TestClient, codec: TokenCodec) -> None:
        token = codec.sign_access(ADDRESS)
        resp = guarded.post("/events", headers={"Authorization": f"Basic {token}"})
        assert resp.status_code == 401


class TestGetCurrentAddress:
    def test_get_requires_token(self, guarded: TestClient) -> None:
        assert guarded.get("/me").status_code == 401

    def test_get_with_token(self, guarded: TestClient, codec: TokenCodec) -> None:
        resp = guarded.get("/me", headers=_bearer(codec.sign_access(ADDRESS)))
        assert resp.json() == {"address": ADDRESS.lower()}

    def test_codec_not_started(self, codec: TokenCodec) -> None:
        with TestClient(_build_app(None)) as tc:
            resp = tc.get("/me", headers=_bearer(codec.sign_access(ADDRESS)))
        assert resp.status_code == 503
