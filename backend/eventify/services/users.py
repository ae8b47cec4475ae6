from __future__ import annotations

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from eventify.models.user import WalletUser
from eventify.utils.clock import Clock, utcnow
from eventify.utils.crypto import normalize_address


class UserDirectory:
    """Wallet-keyed identity records touched by the login flow."""

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or utcnow

    def get(self, db: Session, address: str) -> WalletUser | None:
        address = normalize_address(address)
        return db.exec(
            select(WalletUser).where(WalletUser.wallet_address == address)
        ).first()

    def upsert(self, db: Session, address: str) -> WalletUser:
        """Create the user on first login, otherwise bump its timestamps."""
        address = normalize_address(address)
        now = self._clock()
        user = self.get(db, address)
        if user is None:
            user = WalletUser(
                wallet_address=address,
                created_at=now,
                updated_at=now,
                last_login_at=now,
            )
        else:
            user.updated_at = now
            user.last_login_at = now
        db.add(user)
        try:
            db.commit()
        except IntegrityError:
            # Concurrent first login for the same wallet inserted it first
            db.rollback()
            user = self.get(db, address)
            if user is None:
                raise
            user.last_login_at = now
            db.add(user)
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(user)
        return user
