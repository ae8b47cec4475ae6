"""Auth models and schemas for wallet-based (SIWE) authentication.

Includes SQLModel tables for login challenges (nonces) and refresh token
tracking, plus Pydantic request/response schemas for the auth endpoints.
"""

from __future__ import annotations

from datetime import datetime
from uuid import uuid4

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlalchemy import Index
from sqlmodel import Field, SQLModel

from eventify.models.user import UserRead
from eventify.utils.clock import utcnow


class AuthNonce(SQLModel, table=True):
    """Single-use login challenge for one wallet address.

    At most one row per address: issuing a new challenge deletes the old one.
    """

    __tablename__ = "auth_nonces"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    wallet_address: str = Field(index=True, unique=True)
    nonce: str
    created_at: datetime = Field(default_factory=utcnow)
    expires_at: datetime = Field(index=True)


class RefreshSession(SQLModel, table=True):
    """One refresh token in a rotation family."""

    __tablename__ = "refresh_tokens"
    __table_args__ = (
        Index("ix_refresh_tokens_wallet_family", "wallet_address", "token_family"),
    )

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    wallet_address: str = Field(index=True)
    token_hash: str = Field(index=True, unique=True)  # SHA-256 of the refresh JWT (never store raw)
    token_family: str = Field(index=True)
    revoked: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utcnow)
    expires_at: datetime


# --- Pydantic request/response schemas ---


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class NonceResponse(_CamelModel):
    """Challenge to embed in the SIWE message."""

    nonce: str
    expires_at: datetime


class LoginRequest(_CamelModel):
    """Signed SIWE message. Missing, null or empty fields are answered with 400."""

    message: str | None = None
    signature: str | None = None


class AuthResponse(_CamelModel):
    """Login / refresh result. The refresh token travels only in the cookie."""

    user: UserRead | None = None
    access_token: str
    token_type: str = "bearer"
    expires_in: int  # access token TTL in seconds


class LogoutResponse(_CamelModel):
    success: bool = True


class AuthStatusResponse(_CamelModel):
    authenticated: bool
    address: str
