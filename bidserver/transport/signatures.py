"""Ed25519 signing helpers used for identity tokens and signed object URLs."""

from __future__ import annotations

import logging
from pathlib import Path

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from .canonical_json import b64url_decode, b64url_encode

logger = logging.getLogger(__name__)


class SignatureError(ValueError):
    """Raised when a signature is invalid or malformed."""


def load_public_key(pem: str) -> Ed25519PublicKey:
    if not pem:
        raise SignatureError("public key missing")
    return serialization.load_pem_public_key(pem.encode("utf-8"))


def load_private_key(pem: str) -> Ed25519PrivateKey:
    if not pem:
        raise SignatureError("private key missing")
    return serialization.load_pem_private_key(pem.encode("utf-8"), password=None)


class SigningKeys:
    """An Ed25519 key pair; the private half is optional for verify-only use."""

    def __init__(
        self,
        public_key: Ed25519PublicKey,
        private_key: Ed25519PrivateKey | None = None,
    ) -> None:
        self._public_key = public_key
        self._private_key = private_key

    @classmethod
    def generate(cls) -> "SigningKeys":
        private_key = Ed25519PrivateKey.generate()
        return cls(private_key.public_key(), private_key)

    @classmethod
    def from_files(
        cls,
        *,
        private_key_path: str | None = None,
        public_key_path: str | None = None,
    ) -> "SigningKeys":
        private_key = None
        if private_key_path:
            private_key = load_private_key(Path(private_key_path).read_text())
        if public_key_path:
            public_key = load_public_key(Path(public_key_path).read_text())
        elif private_key is not None:
            public_key = private_key.public_key()
        else:
            logger.warning("no signing keys configured, generating an ephemeral key pair")
            return cls.generate()
        return cls(public_key, private_key)

    def sign(self, message: bytes) -> str:
        if self._private_key is None:
            raise SignatureError("private key missing")
        return b64url_encode(self._private_key.sign(message))

    def verify(self, message: bytes, signature_b64: str) -> None:
        if not signature_b64:
            raise SignatureError("signature missing")
        try:
            signature = b64url_decode(signature_b64)
        except (ValueError, TypeError) as exc:
            raise SignatureError("signature is not base64") from exc
        try:
            self._public_key.verify(signature, message)
        except InvalidSignature as exc:
            raise SignatureError("signature verification failed") from exc
