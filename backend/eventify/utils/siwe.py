"""Sign-In-With-Ethereum (EIP-4361) messages, via the ``siwe`` package.

The wallet signs the rendered plaintext with ``personal_sign``; the server
parses the same text back to recover the claimed domain, address and nonce
before the signature is checked.
"""

from __future__ import annotations

from siwe import SiweMessage


def parse_siwe_message(text: str) -> SiweMessage:
    """Parse an EIP-4361 message. Raises ValueError if it is malformed.

    Field order, EIP-55 address checksums and the nonce alphabet are enforced
    by the ABNF grammar of the ``siwe`` package.
    """
    try:
        return SiweMessage.from_message(text.replace("\r\n", "\n"))
    except Exception as exc:
        raise ValueError(f"Malformed SIWE message: {exc}") from exc
