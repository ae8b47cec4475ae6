from __future__ import annotations

import os

# Set test environment BEFORE importing app modules.
# eventify.main reads get_settings() at import time (CORS origins) and
# Settings refuses to load without a JWT secret.
os.environ.setdefault("DB_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret-for-integration-tests-only")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("SIWE_DOMAIN", "")

from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import pytest
from eth_account import Account
from eth_account.messages import encode_defunct
from fastapi.testclient import TestClient
from siwe import SiweMessage
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

import eventify.models  # noqa: F401  registers SQLModel tables
from eventify.config import Settings, get_settings
from eventify.db import get_session
from eventify.main import app as fastapi_app
from eventify.main import build_auth_service
from eventify.services.auth import AuthService
from eventify.services.nonce_store import NonceStore
from eventify.services.session_store import SessionStore
from eventify.services.signature import EthereumSignatureVerifier
from eventify.services.tokens import TokenCodec
from eventify.services.users import UserDirectory


# ── Database fixtures ─────────────────────────────────────────────────


@pytest.fixture(name="engine")
def engine_fixture():
    """Create an in-memory SQLite engine for testing.

    Uses StaticPool so every connection shares the same in-memory database.
    Recreates tables per test for full isolation.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(name="session")
def session_fixture(engine):
    """Provide a fresh session per test."""
    with Session(engine) as session:
        yield session


# ── Service fixtures ──────────────────────────────────────────────────


@pytest.fixture(name="settings")
def settings_fixture() -> Settings:
    return get_settings()


@pytest.fixture(name="codec")
def codec_fixture(settings: Settings) -> TokenCodec:
    return TokenCodec(settings)


@pytest.fixture(name="nonce_store")
def nonce_store_fixture(settings: Settings) -> NonceStore:
    return NonceStore(settings)


@pytest.fixture(name="session_store")
def session_store_fixture(settings: Settings, codec: TokenCodec) -> SessionStore:
    return SessionStore(settings, codec)


@pytest.fixture(name="auth_service")
def auth_service_fixture(settings: Settings, codec: TokenCodec) -> AuthService:
    return build_auth_service(settings, codec)


@pytest.fixture(name="verifier")
def verifier_fixture() -> EthereumSignatureVerifier:
    return EthereumSignatureVerifier()


@pytest.fixture(name="users")
def users_fixture() -> UserDirectory:
    return UserDirectory()


# ── Wallet fixtures ───────────────────────────────────────────────────


@pytest.fixture(name="wallet")
def wallet_fixture():
    """Fresh throwaway Ethereum account."""
    return Account.create()


@pytest.fixture(name="other_wallet")
def other_wallet_fixture():
    return Account.create()


def build_siwe_message(address: str, nonce: str, **overrides) -> str:
    fields = {
        "domain": "localhost:3000",
        "address": address,
        "statement": "Sign in to Eventify.",
        "uri": "http://localhost:3000/login",
        "version": "1",
        "chain_id": 1,
        "nonce": nonce,
        "issued_at": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
    }
    fields.update(overrides)
    return SiweMessage(**fields).prepare_message()


def sign_message(account, message: str) -> str:
    signed = Account.sign_message(encode_defunct(text=message), private_key=account.key)
    signature = signed.signature.hex()
    if not signature.startswith("0x"):
        signature = "0x" + signature
    return signature


@pytest.fixture(name="signed_login")
def signed_login_fixture() -> Callable[..., dict]:
    """Factory: build and sign a SIWE message for ``account`` and ``nonce``."""

    def _make(account, nonce: str, **overrides) -> dict:
        message = build_siwe_message(account.address, nonce, **overrides)
        return {"message": message, "signature": sign_message(account, message)}

    return _make


# ── HTTP client fixtures ──────────────────────────────────────────────


@pytest.fixture(name="client")
def client_fixture(session):
    """FastAPI TestClient with overridden DB session."""

    def _get_session_override():
        yield session

    fastapi_app.dependency_overrides[get_session] = _get_session_override
    with TestClient(fastapi_app) as client:
        yield client
    fastapi_app.dependency_overrides.clear()


def expired_by(minutes: int = 0, days: int = 0) -> datetime:
    """A naive-UTC timestamp in the past, for backdating rows."""
    return datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(
        minutes=minutes, days=days
    )
