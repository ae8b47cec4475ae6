"""Wallet sign-in state machine.

A login attempt moves NonceIssued -> SignatureChecked -> NonceConsumed ->
SessionIssued, or stops in Rejected(reason). Every public method returns an
``AuthResult``; expected rejections are values, never exceptions, so the HTTP
adapter cannot turn a security rejection into a generic 500.

The service is framework-agnostic: tokens and strings in, tokens and strings
out. Cookies and headers belong to ``eventify.routers.auth``.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from eventify.config import Settings
from eventify.models.user import WalletUser
from eventify.services.nonce_store import NonceStatus, NonceStore
from eventify.services.session_store import RotationStatus, SessionStore
from eventify.services.signature import SignatureVerifier
from eventify.services.tokens import REFRESH, TokenCodec
from eventify.services.users import UserDirectory
from eventify.utils.crypto import hash_token, is_valid_address, normalize_address
from eventify.utils.siwe import parse_siwe_message

logger = logging.getLogger(__name__)


class AuthOutcome(str, enum.Enum):
    SUCCESS = "success"
    INVALID_INPUT = "invalid_input"
    AUTHENTICATION_FAILURE = "authentication_failure"
    TOKEN_THEFT_SUSPECTED = "token_theft_suspected"
    TRANSIENT = "transient"


class RejectReason(str, enum.Enum):
    INVALID_ADDRESS = "invalid_address"
    MISSING_FIELDS = "missing_fields"
    INVALID_MESSAGE = "invalid_message"
    INVALID_SIGNATURE = "invalid_signature"
    NONCE_INVALID = "nonce_invalid"
    INVALID_TOKEN = "invalid_token"
    SESSION_INVALID = "session_invalid"
    TOKEN_THEFT_SUSPECTED = "token_theft_suspected"
    STORE_UNAVAILABLE = "store_unavailable"


_OUTCOME_FOR_REASON = {
    RejectReason.INVALID_ADDRESS: AuthOutcome.INVALID_INPUT,
    RejectReason.MISSING_FIELDS: AuthOutcome.INVALID_INPUT,
    RejectReason.TOKEN_THEFT_SUSPECTED: AuthOutcome.TOKEN_THEFT_SUSPECTED,
    RejectReason.STORE_UNAVAILABLE: AuthOutcome.TRANSIENT,
}


@dataclass(frozen=True)
class AuthResult:
    outcome: AuthOutcome
    reason: RejectReason | None = None
    address: str | None = None
    user: WalletUser | None = None
    nonce: str | None = None
    expires_at: datetime | None = None
    access_token: str | None = None
    refresh_token: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is AuthOutcome.SUCCESS

    @classmethod
    def rejected(cls, reason: RejectReason) -> AuthResult:
        outcome = _OUTCOME_FOR_REASON.get(reason, AuthOutcome.AUTHENTICATION_FAILURE)
        return cls(outcome=outcome, reason=reason)


class AuthService:
    def __init__(
        self,
        settings: Settings,
        nonces: NonceStore,
        sessions: SessionStore,
        codec: TokenCodec,
        verifier: SignatureVerifier,
        users: UserDirectory,
    ) -> None:
        self._settings = settings
        self._nonces = nonces
        self._sessions = sessions
        self._codec = codec
        self._verifier = verifier
        self._users = users

    @property
    def access_ttl_seconds(self) -> int:
        return self._codec.access_ttl_seconds

    def request_challenge(self, db: Session, address: str) -> AuthResult:
        """Issue a fresh nonce for ``address``, superseding any earlier one."""
        address = (address or "").strip()
        if not is_valid_address(address):
            return AuthResult.rejected(RejectReason.INVALID_ADDRESS)
        try:
            issued = self._nonces.issue_nonce(db, address)
        except SQLAlchemyError:
            logger.exception("Nonce issue failed for %s", normalize_address(address))
            return AuthResult.rejected(RejectReason.STORE_UNAVAILABLE)
        return AuthResult(
            outcome=AuthOutcome.SUCCESS,
            address=normalize_address(address),
            nonce=issued.nonce,
            expires_at=issued.expires_at,
        )

    def login(
        self, db: Session, message: str | None, signature: str | None
    ) -> AuthResult:
        """Verify a signed SIWE message and open a new session family."""
        if not (message or "").strip() or not (signature or "").strip():
            return AuthResult.rejected(RejectReason.MISSING_FIELDS)

        try:
            siwe = parse_siwe_message(message)
        except ValueError as exc:
            logger.info("Rejected unparseable SIWE message: %s", exc)
            return AuthResult.rejected(RejectReason.INVALID_MESSAGE)
        if self._settings.siwe_domain and siwe.domain != self._settings.siwe_domain:
            logger.info("Rejected SIWE message for foreign domain %r", siwe.domain)
            return AuthResult.rejected(RejectReason.INVALID_MESSAGE)
        # SignatureChecked: signer plus the message's own validity window
        if not self._verifier.verify(siwe.address, message, signature):
            return AuthResult.rejected(RejectReason.INVALID_SIGNATURE)
        address = normalize_address(siwe.address)

        try:
            # NonceConsumed: freshness, after identity is proven
            status = self._nonces.consume_nonce(db, address, siwe.nonce)
            if status is not NonceStatus.OK:
                logger.info("Login for %s rejected: nonce %s", address, status.value)
                return AuthResult.rejected(RejectReason.NONCE_INVALID)

            user = self._users.upsert(db, address)
            access_token = self._codec.sign_access(address)
            refresh_token, family_id = self._sessions.create_family(db, address)
        except SQLAlchemyError:
            logger.exception("Login failed for %s", address)
            return AuthResult.rejected(RejectReason.STORE_UNAVAILABLE)

        # SessionIssued
        logger.info("Wallet %s signed in (family %s)", address, family_id)
        return AuthResult(
            outcome=AuthOutcome.SUCCESS,
            address=address,
            user=user,
            access_token=access_token,
            refresh_token=refresh_token,
        )

    def refresh(self, db: Session, refresh_token: str) -> AuthResult:
        """Rotate a refresh token into a new access + refresh pair."""
        claims = self._codec.verify(refresh_token, expected_type=REFRESH)
        if claims is None:
            # An undecodable token cannot match any stored hash
            return AuthResult.rejected(RejectReason.INVALID_TOKEN)

        address = claims.address
        try:
            # Read before rotating: once the rotation commits, nothing may fail
            user = self._users.get(db, address)
            if user is not None:
                # Detached, so the rotation commit cannot expire its attributes
                db.expunge(user)
            rotation = self._sessions.rotate(
                db, address, hash_token(refresh_token), claims.family_id
            )
            if rotation.status is RotationStatus.THEFT_DETECTED:
                revoked = self._sessions.revoke_family(db, address, claims.family_id)
                logger.warning(
                    "Refresh token reuse for %s: revoked %d session(s) in family %s",
                    address,
                    revoked,
                    claims.family_id,
                )
                return AuthResult.rejected(RejectReason.TOKEN_THEFT_SUSPECTED)
            if rotation.status is not RotationStatus.ROTATED:
                logger.info("Refresh for %s rejected: %s", address, rotation.status.value)
                return AuthResult.rejected(RejectReason.SESSION_INVALID)
        except SQLAlchemyError:
            logger.exception("Refresh failed for %s", address)
            return AuthResult.rejected(RejectReason.STORE_UNAVAILABLE)

        return AuthResult(
            outcome=AuthOutcome.SUCCESS,
            address=address,
            user=user,
            access_token=self._codec.sign_access(address),
            refresh_token=rotation.refresh_token,
        )

    def logout(self, db: Session, refresh_token: str | None) -> AuthResult:
        """Revoke every session of the token's wallet. Never fails."""
        claims = self._codec.verify(refresh_token or "", expected_type=REFRESH)
        if claims is None:
            return AuthResult(outcome=AuthOutcome.SUCCESS)
        try:
            revoked = self._sessions.revoke_family(db, claims.address)
        except SQLAlchemyError:
            logger.exception("Session revocation failed during logout for %s", claims.address)
        else:
            logger.info("Wallet %s signed out (%d session(s) revoked)", claims.address, revoked)
        return AuthResult(outcome=AuthOutcome.SUCCESS, address=claims.address)

    def purge_expired(self, db: Session) -> tuple[int, int]:
        """Delete expired nonces and sessions. Returns (nonces, sessions)."""
        return self._nonces.purge_expired(db), self._sessions.purge_expired(db)
