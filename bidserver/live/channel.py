"""WebSocket live channel: handshake, binding and outbid pushes."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import orjson
from fastapi import WebSocket, status

from ..auth.tokens import IdentityVerifier
from ..bidding.errors import Unauthenticated
from .directory import NotificationDirectory
from .fsm import ConnectionEvent, ConnectionState, transition

logger = logging.getLogger(__name__)


class LiveConnection:
    def __init__(self, websocket: WebSocket, *, accept_timeout: float = 5.0) -> None:
        self._websocket = websocket
        self._accept_timeout = accept_timeout
        self._ready = asyncio.Event()
        self.identity: str | None = None
        self.state = ConnectionState.CONNECTING

    def advance(self, event: ConnectionEvent) -> ConnectionState:
        self.state = transition(self.state, event)
        if self.state is not ConnectionState.CONNECTING:
            self._ready.set()
        return self.state

    async def send(self, payload: dict[str, Any]) -> None:
        # A connection is addressable before accept() returns; hold pushes until then.
        if self.state is ConnectionState.CONNECTING:
            await asyncio.wait_for(self._ready.wait(), self._accept_timeout)
        if self.state is not ConnectionState.BOUND:
            raise RuntimeError(f"connection for {self.identity} is {self.state.value}")
        await self._websocket.send_text(orjson.dumps(payload).decode())


class LiveChannelServer:
    def __init__(
        self,
        verifier: IdentityVerifier,
        directory: NotificationDirectory,
        *,
        token_param: str = "token",
    ) -> None:
        self._verifier = verifier
        self._directory = directory
        self._token_param = token_param

    @property
    def directory(self) -> NotificationDirectory:
        return self._directory

    async def handle(self, websocket: WebSocket) -> None:
        """Serve one connection from handshake until it closes."""
        connection = LiveConnection(websocket)
        token = websocket.query_params.get(self._token_param)
        try:
            identity = self._verifier.verify(token)
        except Unauthenticated as exc:
            connection.advance(ConnectionEvent.HANDSHAKE_REJECTED)
            logger.warning("Invalid WebSocket connection attempt: %s", exc)
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return

        connection.identity = identity
        previous = await self._directory.bind(identity, connection)
        if previous is not None:
            logger.info("%s reconnected, previous connection superseded", identity)
        logger.info("%s connected via WebSocket", identity)
        try:
            await websocket.accept()
            connection.advance(ConnectionEvent.HANDSHAKE_ACCEPTED)
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
        finally:
            connection.advance(ConnectionEvent.DISCONNECTED)
            await self._directory.unbind(identity, connection)
            logger.info("%s disconnected", identity)

    async def push_to(self, identity: str, payload: dict[str, Any]) -> bool:
        """Send ``payload`` to the identity's connection; never raises."""
        connection = await self._directory.lookup(identity)
        if connection is None:
            logger.debug("User %s not connected", identity)
            return False
        try:
            await connection.send(payload)
        except Exception:
            logger.warning("Notification to %s failed", identity, exc_info=True)
            return False
        logger.info("Notification sent to %s", identity)
        return True
