"""Scrypt password hashing."""

from __future__ import annotations

import os

from cryptography.exceptions import InvalidKey
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from ..transport.canonical_json import b64url_decode, b64url_encode

_SALT_BYTES = 16
_KEY_LENGTH = 32
_N = 2**14
_R = 8
_P = 1


def _kdf(salt: bytes) -> Scrypt:
    return Scrypt(salt=salt, length=_KEY_LENGTH, n=_N, r=_R, p=_P)


def hash_password(password: str) -> str:
    salt = os.urandom(_SALT_BYTES)
    digest = _kdf(salt).derive(password.encode("utf-8"))
    return f"{b64url_encode(salt)}${b64url_encode(digest)}"


def verify_password(password: str, password_hash: str) -> bool:
    salt_b64, _, digest_b64 = password_hash.partition("$")
    if not salt_b64 or not digest_b64:
        return False
    try:
        _kdf(b64url_decode(salt_b64)).verify(password.encode("utf-8"), b64url_decode(digest_b64))
    except (InvalidKey, ValueError):
        return False
    return True
