"""FastAPI dependency injection for auth verification and the auth service.

Protected resource routes use one of:

* ``get_current_address`` — every method needs ``Authorization: Bearer``
  with a valid access token.
* ``require_write_auth`` — GET/HEAD/OPTIONS are public reads and resolve to
  ``None``; other methods behave like ``get_current_address``.

The resolved wallet address is returned to the handler and also stored on
``request.state.wallet_address``.
"""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from eventify.services.auth import AuthService
from eventify.services.tokens import ACCESS, TokenCodec

PUBLIC_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})

_bearer_scheme = HTTPBearer(auto_error=False)


def get_auth_service(request: Request) -> AuthService:
    """Inject the AuthService built at startup."""
    svc = getattr(request.app.state, "auth_service", None)
    if svc is None:
        raise HTTPException(status_code=503, detail="Auth service unavailable")
    return svc


def get_token_codec(request: Request) -> TokenCodec:
    codec = getattr(request.app.state, "token_codec", None)
    if codec is None:
        raise HTTPException(status_code=503, detail="Auth service unavailable")
    return codec


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=401,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_address(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
    codec: TokenCodec = Depends(get_token_codec),
) -> str:
    """Validate the Bearer access token and return its wallet address.

    Raises HTTPException 401 if the header is missing, or the token is
    expired, forged, from another issuer, or a refresh token.
    """
    if credentials is None or not credentials.credentials:
        raise _unauthorized("Authentication required")
    claims = codec.verify(credentials.credentials, expected_type=ACCESS)
    if claims is None:
        raise _unauthorized("Invalid or expired token")
    request.state.wallet_address = claims.address
    return claims.address


def require_write_auth(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
    codec: TokenCodec = Depends(get_token_codec),
) -> str | None:
    """Like get_current_address, but safe methods pass through anonymously."""
    if request.method in PUBLIC_METHODS:
        return None
    return get_current_address(request, credentials, codec)
