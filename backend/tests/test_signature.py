"""Tests for SIWE wallet signature verification."""

from __future__ import annotations

from datetime import datetime

import pytest

from conftest import build_siwe_message, sign_message
from eventify.services.signature import EthereumSignatureVerifier

NONCE = "a1b2c3d4e5f60718"


@pytest.fixture(name="message")
def message_fixture(wallet) -> str:
    return build_siwe_message(wallet.address, NONCE)


class TestEthereumSignatureVerifier:
    def test_valid_signature(self, verifier, wallet, message) -> None:
        assert verifier.verify(wallet.address, message, sign_message(wallet, message))

    def test_address_case_does_not_matter(self, verifier, wallet, message) -> None:
        signature = sign_message(wallet, message)
        assert verifier.verify(wallet.address.lower(), message, signature)

    def test_signature_without_0x_prefix(self, verifier, wallet, message) -> None:
        signature = sign_message(wallet, message)[2:]
        assert verifier.verify(wallet.address, message, signature)

    def test_other_signer_rejected(self, verifier, wallet, other_wallet, message) -> None:
        signature = sign_message(other_wallet, message)
        assert not verifier.verify(wallet.address, message, signature)

    def test_claimed_address_must_match_message(
        self, verifier, wallet, other_wallet, message
    ) -> None:
        signature = sign_message(wallet, message)
        assert not verifier.verify(other_wallet.address, message, signature)

    def test_tampered_message_rejected(self, verifier, wallet, message) -> None:
        signature = sign_message(wallet, message)
        tampered = message.replace(NONCE, "ffffffffffffffff")
        assert not verifier.verify(wallet.address, tampered, signature)

    def test_plain_text_rejected(self, verifier, wallet) -> None:
        text = "please let me in"
        assert not verifier.verify(wallet.address, text, sign_message(wallet, text))

    def test_malformed_signature_rejected(self, verifier, wallet, message) -> None:
        assert not verifier.verify(wallet.address, message, "0xdeadbeef")
        assert not verifier.verify(wallet.address, message, "not-hex")
        assert not verifier.verify(wallet.address, message, "")


class TestValidityWindow:
    def test_expired_message_rejected(self, verifier, wallet) -> None:
        message = build_siwe_message(
            wallet.address, NONCE, expiration_time="2020-01-01T00:00:00Z"
        )
        assert not verifier.verify(wallet.address, message, sign_message(wallet, message))

    def test_before_not_before_rejected(self, verifier, wallet) -> None:
        message = build_siwe_message(wallet.address, NONCE, not_before="2099-01-01T00:00:00Z")
        assert not verifier.verify(wallet.address, message, sign_message(wallet, message))

    def test_window_uses_injected_clock(self, wallet) -> None:
        message = build_siwe_message(
            wallet.address, NONCE, expiration_time="2030-01-01T00:00:00Z"
        )
        signature = sign_message(wallet, message)

        before = EthereumSignatureVerifier(clock=lambda: datetime(2029, 12, 31, 23, 59))
        after = EthereumSignatureVerifier(clock=lambda: datetime(2030, 1, 1, 0, 1))
        assert before.verify(wallet.address, message, signature)
        assert not after.verify(wallet.address, message, signature)
