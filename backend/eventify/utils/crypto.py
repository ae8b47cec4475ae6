"""Low-level helpers for wallet authentication.

Pure functions with no knowledge of sessions or requests.
"""

from __future__ import annotations

import hashlib
import re
import secrets

NONCE_NUM_BYTES = 16  # 128 bits = 32 hex characters
FAMILY_ID_NUM_BYTES = 16

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


def generate_nonce(num_bytes: int = NONCE_NUM_BYTES) -> str:
    """Generate a cryptographically secure hex challenge for a wallet."""
    if num_bytes < NONCE_NUM_BYTES:
        num_bytes = NONCE_NUM_BYTES
    return secrets.token_hex(num_bytes)


def generate_family_id() -> str:
    """Opaque identifier shared by every refresh token in one rotation chain."""
    return secrets.token_hex(FAMILY_ID_NUM_BYTES)


def is_valid_address(address: str) -> bool:
    """True for ``0x`` followed by 40 hex characters, any case."""
    return bool(_ADDRESS_RE.match(address))


def normalize_address(address: str) -> str:
    return address.strip().lower()


def sha256_hash(data: bytes) -> str:
    """Compute SHA-256 hash. Returns hex-encoded digest."""
    return hashlib.sha256(data).hexdigest()


def hash_token(token: str) -> str:
    """One-way hash of a raw refresh token, the only form ever persisted."""
    return sha256_hash(token.encode("utf-8"))
