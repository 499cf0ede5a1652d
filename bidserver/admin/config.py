"""Expose currently loaded server config for debugging."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from ..config import ServerConfig

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_config(request: Request) -> ServerConfig:
    return request.app.state.server_config


@router.get("/config")
async def config(
    request: Request,
    config: ServerConfig = Depends(_get_config),
) -> dict:
    # Key paths and storage options may carry secrets; report backends only.
    return {
        "version": request.app.version,
        "storage_backend": config.storage.backend,
        "media_backend": config.media.backend,
        "token_ttl_seconds": config.auth.token_ttl_seconds,
        "signing_keys": "configured" if config.auth.private_key_path else "ephemeral",
        "live_token_param": config.live.token_param,
    }
