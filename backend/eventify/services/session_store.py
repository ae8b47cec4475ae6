"""Refresh-token sessions grouped into rotation families.

Every login starts a family; every refresh revokes the presented record and
appends its successor to the same family. Presenting a record that was
already revoked means an older token is being replayed.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy import delete, update
from sqlmodel import Session, select

from eventify.config import Settings
from eventify.models.auth import RefreshSession
from eventify.services.tokens import TokenCodec
from eventify.utils.clock import Clock, utcnow
from eventify.utils.crypto import generate_family_id, hash_token, normalize_address

logger = logging.getLogger(__name__)


class RotationStatus(str, enum.Enum):
    ROTATED = "rotated"
    THEFT_DETECTED = "theft_detected"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"


@dataclass(frozen=True)
class Rotation:
    status: RotationStatus
    refresh_token: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is RotationStatus.ROTATED


class SessionStore:
    def __init__(
        self,
        settings: Settings,
        codec: TokenCodec,
        clock: Clock | None = None,
    ) -> None:
        self._codec = codec
        self._ttl = timedelta(days=settings.jwt_refresh_token_expire_days)
        self._clock = clock or utcnow

    def _new_record(self, address: str, family_id: str) -> tuple[str, RefreshSession]:
        token = self._codec.sign_refresh(address, family_id)
        now = self._clock()
        record = RefreshSession(
            wallet_address=address,
            token_hash=hash_token(token),
            token_family=family_id,
            revoked=False,
            created_at=now,
            expires_at=now + self._ttl,
        )
        return token, record

    def create_family(self, db: Session, address: str) -> tuple[str, str]:
        """Start a new rotation chain. Returns (raw refresh token, family id)."""
        address = normalize_address(address)
        family_id = generate_family_id()
        token, record = self._new_record(address, family_id)
        try:
            db.add(record)
            db.commit()
        except Exception:
            db.rollback()
            raise
        return token, family_id

    def rotate(
        self,
        db: Session,
        address: str,
        presented_hash: str,
        family_id: str,
    ) -> Rotation:
        """Consume one refresh record and issue its successor.

        The revoke is a compare-and-swap on ``revoked`` (false -> true) and
        the successor is inserted in the same transaction, so of two
        concurrent calls with the same token exactly one succeeds; the other
        sees a revoked record. Any store error rolls back both writes.
        """
        address = normalize_address(address)
        now = self._clock()
        try:
            swapped = db.execute(
                update(RefreshSession)
                .where(
                    RefreshSession.wallet_address == address,
                    RefreshSession.token_hash == presented_hash,
                    RefreshSession.token_family == family_id,
                    RefreshSession.revoked == False,  # noqa: E712
                    RefreshSession.expires_at > now,
                )
                .values(revoked=True)
                .execution_options(synchronize_session=False)
            )
            if swapped.rowcount == 1:
                token, successor = self._new_record(address, family_id)
                db.add(successor)
                db.commit()
                return Rotation(RotationStatus.ROTATED, token)

            record = db.exec(
                select(RefreshSession).where(
                    RefreshSession.wallet_address == address,
                    RefreshSession.token_hash == presented_hash,
                )
            ).first()
            if record is None or record.token_family != family_id:
                db.rollback()
                return Rotation(RotationStatus.NOT_FOUND)
            if record.revoked:
                db.rollback()
                logger.warning(
                    "Revoked refresh token replayed for %s (family %s, hash %s…)",
                    address,
                    family_id,
                    presented_hash[:12],
                )
                return Rotation(RotationStatus.THEFT_DETECTED)
            db.delete(record)
            db.commit()
            return Rotation(RotationStatus.EXPIRED)
        except Exception:
            db.rollback()
            raise

    def revoke_family(
        self,
        db: Session,
        address: str,
        family_id: str | None = None,
    ) -> int:
        """Revoke sessions of ``address``: all of them, or one family only."""
        address = normalize_address(address)
        conditions = [
            RefreshSession.wallet_address == address,
            RefreshSession.revoked == False,  # noqa: E712
        ]
        if family_id is not None:
            conditions.append(RefreshSession.token_family == family_id)
        try:
            result = db.execute(
                update(RefreshSession)
                .where(*conditions)
                .values(revoked=True)
                .execution_options(synchronize_session=False)
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
        return result.rowcount or 0

    def purge_expired(self, db: Session) -> int:
        """Delete expired records; revoked ones are kept until they expire."""
        try:
            result = db.execute(
                delete(RefreshSession)
                .where(RefreshSession.expires_at <= self._clock())
                .execution_options(synchronize_session=False)
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
        return result.rowcount or 0
