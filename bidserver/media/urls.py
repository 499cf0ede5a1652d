"""Time-limited upload/download URLs for listing images."""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import timedelta
from typing import Any
from urllib.parse import quote, urlencode

from google.cloud import storage as gcs
from google.oauth2 import service_account

from ..bidding.errors import InvalidFormat
from ..transport.signatures import SigningKeys

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "image/jpeg"


class _SignerProtocol:
    async def sign(self, key: str, method: str, content_type: str | None) -> str:  # pragma: no cover - protocol
        raise NotImplementedError


class _LocalSigner(_SignerProtocol):
    """Signs URLs under ``base_url`` with the server's own Ed25519 key."""

    def __init__(self, keys: SigningKeys, options: dict[str, Any]) -> None:
        self._keys = keys
        self._base_url = str(options.get("base_url", "http://localhost:3000/media")).rstrip("/")
        self._expires_seconds = int(options.get("expires_seconds", 900))

    def string_to_sign(self, method: str, key: str, expires: int, content_type: str | None) -> bytes:
        return "\n".join([method, key, str(expires), content_type or ""]).encode("utf-8")

    async def sign(self, key: str, method: str, content_type: str | None) -> str:
        expires = int(time.time()) + self._expires_seconds
        signature = self._keys.sign(self.string_to_sign(method, key, expires, content_type))
        query = {"method": method, "expires": expires, "signature": signature}
        if content_type:
            query["content_type"] = content_type
        return f"{self._base_url}/{quote(key)}?{urlencode(query)}"


class _GcsSigner(_SignerProtocol):
    def __init__(self, options: dict[str, Any]) -> None:
        bucket = options.get("bucket")
        if not bucket:
            raise ValueError("gcs media backend requires bucket")
        client_kwargs: dict[str, Any] = {}
        if options.get("project_id"):
            client_kwargs["project"] = options["project_id"]
        if options.get("credentials_path"):
            client_kwargs["credentials"] = service_account.Credentials.from_service_account_file(
                options["credentials_path"]
            )
        self._bucket = gcs.Client(**client_kwargs).bucket(bucket)
        self._expiration = timedelta(seconds=int(options.get("expires_seconds", 900)))

    async def sign(self, key: str, method: str, content_type: str | None) -> str:
        blob = self._bucket.blob(key)
        return await asyncio.to_thread(
            blob.generate_signed_url,
            version="v4",
            expiration=self._expiration,
            method=method,
            content_type=content_type,
        )


class ObjectUrlService:
    def __init__(
        self,
        backend: str = "local",
        options: dict[str, Any] | None = None,
        *,
        keys: SigningKeys | None = None,
    ) -> None:
        options = options or {}
        if backend == "gcs":
            self._signer: _SignerProtocol = _GcsSigner(options)
        elif backend == "local":
            self._signer = _LocalSigner(keys or SigningKeys.generate(), options)
        else:
            raise ValueError(f"unknown media backend {backend}")
        self.backend = backend
        logger.info("object urls signed by %s backend", backend)

    async def sign_upload(self, key: str, content_type: str = DEFAULT_CONTENT_TYPE) -> str:
        return await self._signer.sign(self._check_key(key), "PUT", content_type)

    async def sign_download(self, key: str) -> str:
        return await self._signer.sign(self._check_key(key), "GET", None)

    def _check_key(self, key: Any) -> str:
        if not isinstance(key, str) or not key.strip():
            raise InvalidFormat("image key is required")
        return key.strip().lstrip("/")
