"""Configuration helpers for the auction server."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping

import yaml

_DEFAULT_SERVER_CONFIG = Path(__file__).resolve().parent / "server.yaml"


@dataclass(frozen=True)
class StorageConfig:
    backend: str
    options: Mapping[str, Any]


@dataclass(frozen=True)
class AuthConfig:
    private_key_path: str | None
    public_key_path: str | None
    token_ttl_seconds: int


@dataclass(frozen=True)
class LiveConfig:
    token_param: str


@dataclass(frozen=True)
class MediaConfig:
    backend: str
    options: Mapping[str, Any]


@dataclass(frozen=True)
class ServerConfig:
    listen: Mapping[str, Any]
    storage: StorageConfig
    auth: AuthConfig
    live: LiveConfig
    media: MediaConfig


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(path)
    return yaml.safe_load(path.read_text()) or {}


def parse_server_config(data: Mapping[str, Any]) -> ServerConfig:
    storage = data.get("storage", {})
    auth = data.get("auth", {})
    live = data.get("live", {})
    media = data.get("media", {})
    return ServerConfig(
        listen=data.get("listen", {}),
        storage=StorageConfig(
            backend=str(storage.get("backend", "in_memory")),
            options=dict(storage.get("options") or {}),
        ),
        auth=AuthConfig(
            private_key_path=auth.get("private_key_path") or os.getenv("BIDSERVER_PRIVATE_KEY_PATH"),
            public_key_path=auth.get("public_key_path") or os.getenv("BIDSERVER_PUBLIC_KEY_PATH"),
            token_ttl_seconds=int(auth.get("token_ttl_seconds", 86400)),
        ),
        live=LiveConfig(token_param=str(live.get("token_param", "token"))),
        media=MediaConfig(
            backend=str(media.get("backend", "local")),
            options=dict(media.get("options") or {}),
        ),
    )


@lru_cache(maxsize=1)
def get_server_config() -> ServerConfig:
    path = Path(os.getenv("BIDSERVER_CONFIG_PATH", _DEFAULT_SERVER_CONFIG))
    return parse_server_config(_load_yaml(path))
