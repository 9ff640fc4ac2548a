# src/ballot_relay/services/signing.py
"""Integrity tags for queued votes.

The delivery core only needs ``sign(bytes) -> bytes``; the tag is stored and
transmitted without interpretation.
"""

from __future__ import annotations

import logging
from typing import Protocol

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

logger = logging.getLogger(__name__)

PRIVATE_KEY_LENGTH_BYTES = 32


class Signer(Protocol):
    """Anything able to produce an integrity tag for a byte string."""

    def sign(self, data: bytes) -> bytes: ...


def integrity_message(record_id: str, idempotency_key: str) -> bytes:
    """Return the bytes covered by a vote's integrity tag."""
    return record_id.encode("utf-8") + idempotency_key.encode("utf-8")


class Ed25519Signer:
    """Ed25519 signer backed by the ``cryptography`` package."""

    def __init__(self, private_key: Ed25519PrivateKey) -> None:
        self._private_key = private_key

    @classmethod
    def from_hex(cls, private_key_hex: str) -> Ed25519Signer:
        """Load a raw 32-byte private key from hex.

        Raises:
            ValueError: If the key is not valid hex or has the wrong length.
        """
        try:
            raw = bytes.fromhex(private_key_hex.strip())
        except ValueError as err:
            raise ValueError(f"Invalid private key hex: {err}") from err
        if len(raw) != PRIVATE_KEY_LENGTH_BYTES:
            raise ValueError("Ed25519 private keys must be 32 bytes")
        return cls(Ed25519PrivateKey.from_private_bytes(raw))

    @classmethod
    def generate(cls) -> Ed25519Signer:
        return cls(Ed25519PrivateKey.generate())

    @property
    def public_key(self) -> Ed25519PublicKey:
        return self._private_key.public_key()

    @property
    def public_key_hex(self) -> str:
        return self.public_key.public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        ).hex()

    def sign(self, data: bytes) -> bytes:
        return self._private_key.sign(data)

    def verify(self, data: bytes, tag: bytes) -> bool:
        """Return True if ``tag`` is a valid signature of ``data`` under this key."""
        try:
            self.public_key.verify(tag, data)
            return True
        except InvalidSignature:
            return False


def load_signer(private_key_hex: str | None) -> Ed25519Signer:
    """Build the configured signer, generating an ephemeral key when none is set."""
    if private_key_hex:
        return Ed25519Signer.from_hex(private_key_hex)
    logger.warning(
        "RELAY_SIGNING_PRIVATE_KEY is not set; integrity tags use an ephemeral key"
    )
    return Ed25519Signer.generate()
