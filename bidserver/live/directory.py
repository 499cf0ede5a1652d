"""Process-wide mapping from identity to its live connection."""

from __future__ import annotations

import asyncio
from typing import Any


class NotificationDirectory:
    """At most one binding per identity; a newer bind replaces the older one.

    bind, unbind and lookup share one lock so that connects, disconnects and
    bid-triggered lookups never observe a half-applied change.
    """

    def __init__(self) -> None:
        self._bindings: dict[str, Any] = {}
        self._lock = asyncio.Lock()

    async def bind(self, identity: str, handle: Any) -> Any | None:
        """Bind ``identity`` to ``handle`` and return the superseded handle, if any."""
        async with self._lock:
            previous = self._bindings.get(identity)
            self._bindings[identity] = handle
            return previous

    async def unbind(self, identity: str, handle: Any | None = None) -> bool:
        """Remove the binding for ``identity``.

        With ``handle`` the binding is only removed while it still points at
        that handle, so a replaced connection closing late leaves its
        successor bound.
        """
        async with self._lock:
            current = self._bindings.get(identity)
            if current is None:
                return False
            if handle is not None and current is not handle:
                return False
            del self._bindings[identity]
            return True

    async def lookup(self, identity: str) -> Any | None:
        async with self._lock:
            return self._bindings.get(identity)

    def __len__(self) -> int:
        return len(self._bindings)
