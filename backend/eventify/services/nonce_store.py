from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from eventify.config import Settings
from eventify.models.auth import AuthNonce
from eventify.utils.clock import Clock, utcnow
from eventify.utils.crypto import generate_nonce, normalize_address

logger = logging.getLogger(__name__)


class NonceStatus(str, enum.Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"


@dataclass(frozen=True)
class IssuedNonce:
    nonce: str
    expires_at: datetime  # naive UTC


class NonceStore:
    """Short-lived, single-use login challenges keyed by wallet address.

    Store errors (``SQLAlchemyError``) propagate to the caller after the
    session is rolled back.
    """

    def __init__(self, settings: Settings, clock: Clock | None = None) -> None:
        self._ttl = timedelta(minutes=settings.nonce_expire_minutes)
        self._clock = clock or utcnow

    def issue_nonce(self, db: Session, address: str) -> IssuedNonce:
        """Replace any outstanding challenge for ``address`` with a fresh one.

        ``wallet_address`` is unique, so of two concurrent issues for one
        address the later insert fails; it is retried once and wins.
        """
        address = normalize_address(address)
        try:
            return self._replace_nonce(db, address)
        except IntegrityError:
            logger.info("Concurrent nonce issue for %s, retrying", address)
            return self._replace_nonce(db, address)

    def _replace_nonce(self, db: Session, address: str) -> IssuedNonce:
        now = self._clock()
        issued = IssuedNonce(nonce=generate_nonce(), expires_at=now + self._ttl)
        record = AuthNonce(
            wallet_address=address,
            nonce=issued.nonce,
            created_at=now,
            expires_at=issued.expires_at,
        )
        try:
            db.execute(delete(AuthNonce).where(AuthNonce.wallet_address == address))
            db.add(record)
            db.commit()
        except Exception:
            db.rollback()
            raise
        return issued

    def consume_nonce(self, db: Session, address: str, nonce: str) -> NonceStatus:
        """Delete the (address, nonce) challenge if it is still live.

        Existence, expiry and deletion are decided by one conditional DELETE,
        so two concurrent logins can never both spend the same nonce.
        """
        address = normalize_address(address)
        now = self._clock()
        match = (AuthNonce.wallet_address == address) & (AuthNonce.nonce == nonce)
        try:
            live = db.execute(delete(AuthNonce).where(match, AuthNonce.expires_at > now))
            if live.rowcount == 1:
                db.commit()
                return NonceStatus.OK
            stale = db.execute(delete(AuthNonce).where(match))
            db.commit()
        except Exception:
            db.rollback()
            raise
        if stale.rowcount:
            logger.info("Expired nonce presented for %s", address)
            return NonceStatus.EXPIRED
        return NonceStatus.NOT_FOUND

    def purge_expired(self, db: Session) -> int:
        """Remove abandoned challenges to prevent unbounded table growth."""
        try:
            result = db.execute(delete(AuthNonce).where(AuthNonce.expires_at <= self._clock()))
            db.commit()
        except Exception:
            db.rollback()
            raise
        return result.rowcount or 0
