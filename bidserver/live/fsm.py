"""Live connection finite state machine."""

from __future__ import annotations

from enum import Enum


class ConnectionState(str, Enum):
    CONNECTING = "connecting"
    BOUND = "bound"
    CLOSED = "closed"


class ConnectionEvent(str, Enum):
    HANDSHAKE_ACCEPTED = "handshake_accepted"
    HANDSHAKE_REJECTED = "handshake_rejected"
    DISCONNECTED = "disconnected"


_TRANSITIONS = {
    (ConnectionState.CONNECTING, ConnectionEvent.HANDSHAKE_ACCEPTED): ConnectionState.BOUND,
    (ConnectionState.CONNECTING, ConnectionEvent.HANDSHAKE_REJECTED): ConnectionState.CLOSED,
    (ConnectionState.CONNECTING, ConnectionEvent.DISCONNECTED): ConnectionState.CLOSED,
    (ConnectionState.BOUND, ConnectionEvent.DISCONNECTED): ConnectionState.CLOSED,
}


def transition(current: ConnectionState, event: ConnectionEvent) -> ConnectionState:
    try:
        return _TRANSITIONS[(current, event)]
    except KeyError as exc:
        raise ValueError(f"invalid transition from {current} via {event}") from exc
