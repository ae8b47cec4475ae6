"""Auth endpoints — nonce, login, refresh, logout, status.

Thin HTTP adapter over ``AuthService``: reads the refresh token from its
cookie, writes the rotated one back, and maps ``AuthResult`` outcomes onto
status codes. Handlers are sync so store round trips run in the threadpool.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from sqlmodel import Session

from eventify.config import get_settings
from eventify.db import get_session
from eventify.dependencies import get_auth_service, get_current_address
from eventify.models.auth import (
    AuthResponse,
    AuthStatusResponse,
    LoginRequest,
    LogoutResponse,
    NonceResponse,
)
from eventify.models.user import UserRead
from eventify.services.auth import AuthOutcome, AuthResult, AuthService
from eventify.utils.clock import as_aware

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

REFRESH_REJECTED = "Invalid refresh token. Please sign in again."

_LOGIN_ERRORS = {
    AuthOutcome.INVALID_INPUT: (400, "Message and signature are required"),
    AuthOutcome.AUTHENTICATION_FAILURE: (401, "Invalid signature or expired nonce"),
    AuthOutcome.TRANSIENT: (500, "Authentication failed"),
}


# --- Cookie helpers ---


def _set_refresh_cookie(response: Response, token: str) -> None:
    settings = get_settings()
    response.set_cookie(
        key=settings.refresh_cookie_name,
        value=token,
        max_age=settings.refresh_cookie_max_age,
        path=settings.refresh_cookie_path,
        secure=settings.cookie_secure,
        httponly=True,
        samesite="strict",
    )


def _clear_refresh_cookie(response: Response) -> None:
    settings = get_settings()
    response.set_cookie(
        key=settings.refresh_cookie_name,
        value="",
        max_age=0,
        path=settings.refresh_cookie_path,
        secure=settings.cookie_secure,
        httponly=True,
        samesite="strict",
    )


def _refresh_cookie(request: Request) -> str | None:
    return request.cookies.get(get_settings().refresh_cookie_name)


def _auth_response(result: AuthResult, service: AuthService) -> AuthResponse:
    return AuthResponse(
        user=UserRead.model_validate(result.user) if result.user is not None else None,
        access_token=result.access_token,
        expires_in=service.access_ttl_seconds,
    )


# --- Endpoints ---


@router.get("/nonce", response_model=NonceResponse)
def get_nonce(
    address: str = Query(default=""),
    db: Session = Depends(get_session),
    service: AuthService = Depends(get_auth_service),
) -> NonceResponse:
    """Issue a single-use challenge for ``address`` (valid for 5 minutes)."""
    result = service.request_challenge(db, address)
    if result.outcome is AuthOutcome.INVALID_INPUT:
        raise HTTPException(status_code=400, detail="Valid wallet address is required")
    if not result.ok:
        raise HTTPException(status_code=500, detail="Failed to generate nonce")
    return NonceResponse(nonce=result.nonce, expires_at=as_aware(result.expires_at))


@router.post("/login", response_model=AuthResponse)
def login(
    response: Response,
    body: LoginRequest | None = None,
    db: Session = Depends(get_session),
    service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """Verify a signed SIWE message; set the refresh cookie, return the access token."""
    body = body or LoginRequest()
    result = service.login(db, body.message, body.signature)
    if not result.ok:
        status_code, detail = _LOGIN_ERRORS.get(
            result.outcome, _LOGIN_ERRORS[AuthOutcome.AUTHENTICATION_FAILURE]
        )
        raise HTTPException(status_code=status_code, detail=detail)

    _set_refresh_cookie(response, result.refresh_token)
    return _auth_response(result, service)


@router.post("/refresh", response_model=AuthResponse)
def refresh(
    request: Request,
    response: Response,
    db: Session = Depends(get_session),
    service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """Exchange the refresh cookie for a new access token and a rotated cookie.

    Every rejection is a 401; expiry, revocation and suspected theft are
    indistinguishable to the client.
    """
    token = _refresh_cookie(request)
    if not token:
        raise HTTPException(status_code=401, detail="No refresh token")

    result = service.refresh(db, token)
    if result.outcome is AuthOutcome.TRANSIENT:
        raise HTTPException(status_code=500, detail="Token refresh failed")
    if not result.ok:
        raise HTTPException(status_code=401, detail=REFRESH_REJECTED)

    _set_refresh_cookie(response, result.refresh_token)
    return _auth_response(result, service)


@router.post("/logout", response_model=LogoutResponse)
def logout(
    request: Request,
    response: Response,
    db: Session = Depends(get_session),
    service: AuthService = Depends(get_auth_service),
) -> LogoutResponse:
    """Revoke the wallet's sessions when the cookie is valid; always clear it."""
    try:
        service.logout(db, _refresh_cookie(request))
    except Exception:
        logger.exception("Logout cleanup failed; clearing cookie anyway")
    _clear_refresh_cookie(response)
    return LogoutResponse(success=True)


@router.get("/status", response_model=AuthStatusResponse)
def status(address: str = Depends(get_current_address)) -> AuthStatusResponse:
    """Return the wallet behind the Bearer access token."""
    return AuthStatusResponse(authenticated=True, address=address)
