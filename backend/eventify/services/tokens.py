"""JWT access / refresh token codec.

Access tokens travel in the Authorization header, refresh tokens only in the
auth cookie. Both are HS256-signed with the same server secret; the ``type``
claim keeps one from being accepted where the other is expected.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from eventify.config import Settings
from eventify.utils.clock import Clock, utcnow
from eventify.utils.crypto import normalize_address

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"
ACCESS = "access"
REFRESH = "refresh"


@dataclass(frozen=True)
class TokenClaims:
    address: str
    token_type: str
    token_id: str
    family_id: str | None = None


class TokenCodec:
    def __init__(self, settings: Settings, clock: Clock | None = None) -> None:
        self._secret = settings.jwt_secret
        self._issuer = settings.jwt_issuer
        self._access_ttl = timedelta(minutes=settings.jwt_access_token_expire_minutes)
        self._refresh_ttl = timedelta(days=settings.jwt_refresh_token_expire_days)
        self._clock = clock or utcnow

    @property
    def access_ttl_seconds(self) -> int:
        return int(self._access_ttl.total_seconds())

    def sign_access(self, address: str) -> str:
        return self._sign(address, ACCESS, self._access_ttl)

    def sign_refresh(self, address: str, family_id: str) -> str:
        return self._sign(address, REFRESH, self._refresh_ttl, {"fam": family_id})

    def _sign(
        self,
        address: str,
        token_type: str,
        ttl: timedelta,
        extra_claims: dict | None = None,
    ) -> str:
        if not address:
            raise ValueError("address is required")
        address = normalize_address(address)
        now = self._clock()
        payload = {
            "sub": address,
            "address": address,
            "iss": self._issuer,
            "type": token_type,
            "jti": secrets.token_hex(16),
            "iat": int(_epoch(now)),
            "exp": int(_epoch(now + ttl)),
        }
        if extra_claims:
            payload.update(extra_claims)
        return jwt.encode(payload, self._secret, algorithm=JWT_ALGORITHM)

    def verify(self, token: str, expected_type: str | None = None) -> TokenClaims | None:
        """Decode ``token``; None on any failure, without saying which."""
        if not token:
            return None
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[JWT_ALGORITHM],
                issuer=self._issuer,
                options={"require_exp": True, "require_iat": True, "require_sub": True},
            )
        except JWTError:
            logger.debug("Token rejected by decoder")
            return None

        token_type = payload.get("type")
        address = payload.get("sub")
        token_id = payload.get("jti")
        if token_type not in (ACCESS, REFRESH) or not address or not token_id:
            return None
        if expected_type is not None and token_type != expected_type:
            return None
        family_id = payload.get("fam")
        if token_type == REFRESH and not family_id:
            return None

        return TokenClaims(
            address=normalize_address(address),
            token_type=token_type,
            token_id=token_id,
            family_id=family_id,
        )


def _epoch(value: datetime) -> float:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()
