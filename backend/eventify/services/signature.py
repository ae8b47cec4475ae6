"""Wallet signature verification.

The auth core only depends on ``SignatureVerifier.verify``; EIP-4361 checks
and elliptic-curve recovery are delegated to the ``siwe`` package.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from siwe.siwe import VerificationError

from eventify.utils.clock import Clock, as_aware, utcnow
from eventify.utils.siwe import parse_siwe_message

logger = logging.getLogger(__name__)


class SignatureVerifier(ABC):
    """Checks that ``message`` was signed by the key behind ``address``."""

    @abstractmethod
    def verify(self, address: str, message: str, signature: str) -> bool:
        """
        Args:
            address: Wallet address claiming ownership (0x-prefixed hex)
            message: Exact plaintext that was signed
            signature: 65-byte signature, hex encoded

        Returns:
            True if signature is valid, False otherwise
        """


class EthereumSignatureVerifier(SignatureVerifier):
    """EIP-191 ``personal_sign`` verification of a SIWE message for EOA wallets.

    Besides the signer, ``SiweMessage.verify`` enforces the message's own
    Expiration Time and Not Before bounds against the injected clock.
    """

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or utcnow

    def verify(self, address: str, message: str, signature: str) -> bool:
        try:
            siwe = parse_siwe_message(message)
        except ValueError:
            return False
        if siwe.address.lower() != address.strip().lower():
            return False

        signature = signature.strip()
        if not signature.startswith("0x"):
            signature = "0x" + signature
        try:
            siwe.verify(signature, timestamp=as_aware(self._clock()))
        except VerificationError as exc:
            logger.info("SIWE verification failed for %s: %s", siwe.address, type(exc).__name__)
            return False
        except Exception:
            # Malformed hex, wrong length or an unrecoverable point
            logger.debug("Signature recovery failed", exc_info=True)
            return False
        return True
