"""Signed bearer tokens identifying a username."""

from __future__ import annotations

import time
from typing import Any, Protocol

from ..bidding.errors import Unauthenticated
from ..transport.canonical_json import (
    b64url_decode,
    b64url_encode,
    canonical_dumps,
    canonical_loads,
)
from ..transport.signatures import SignatureError, SigningKeys


class IdentityVerifier(Protocol):
    def verify(self, token: str | None) -> str: ...


class TokenService:
    """Issues and verifies ``<claims>.<signature>`` tokens signed with Ed25519."""

    def __init__(self, keys: SigningKeys, *, ttl_seconds: int = 86400) -> None:
        self._keys = keys
        self._ttl_seconds = ttl_seconds

    def issue(self, username: str, *, now: float | None = None) -> str:
        issued_at = int(now if now is not None else time.time())
        claims: dict[str, Any] = {"sub": username, "iat": issued_at}
        if self._ttl_seconds > 0:
            claims["exp"] = issued_at + self._ttl_seconds
        body = b64url_encode(canonical_dumps(claims))
        return f"{body}.{self._keys.sign(body.encode('ascii'))}"

    def verify(self, token: str | None, *, now: float | None = None) -> str:
        if not token:
            raise Unauthenticated("No token, authorization denied")
        body, _, signature = token.partition(".")
        if not body or not signature:
            raise Unauthenticated("Token is not valid")
        try:
            self._keys.verify(body.encode("ascii"), signature)
            claims = canonical_loads(b64url_decode(body))
        except (SignatureError, ValueError, UnicodeEncodeError) as exc:
            raise Unauthenticated("Token is not valid") from exc
        username = claims.get("sub") if isinstance(claims, dict) else None
        if not isinstance(username, str) or not username:
            raise Unauthenticated("Token is not valid")
        expires_at = claims.get("exp")
        current = now if now is not None else time.time()
        if expires_at is not None and current >= expires_at:
            raise Unauthenticated("Token has expired")
        return username
