"""Post-commit delivery of outbid events to the live channel."""

from __future__ import annotations

import asyncio
import contextlib
import logging

from ..bidding.models import OutbidEvent
from .channel import LiveChannelServer

logger = logging.getLogger(__name__)


class OutbidDispatcher:
    """Queues outbid events so bid responses never wait on a live connection."""

    def __init__(self, channel: LiveChannelServer) -> None:
        self._channel = channel
        self._queue: asyncio.Queue[OutbidEvent] = asyncio.Queue()
        self._worker: asyncio.Task | None = None
        self.delivered = 0
        self.dropped = 0

    def emit(self, event: OutbidEvent) -> None:
        self._queue.put_nowait(event)

    def start(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run(), name="outbid-dispatcher")

    async def stop(self, *, drain_timeout: float = 0) -> None:
        if self._worker is None:
            return
        if drain_timeout > 0 and not self._worker.done():
            try:
                await asyncio.wait_for(self.drain(), drain_timeout)
            except asyncio.TimeoutError:
                logger.warning("dispatcher stopped with %d outbid events undelivered", self.pending)
        self._worker.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._worker
        self._worker = None

    async def drain(self) -> None:
        await self._queue.join()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def _run(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self.deliver(event)
            except Exception:
                logger.exception("outbid delivery for listing %s failed", event.listing_id)
            finally:
                self._queue.task_done()

    async def deliver(self, event: OutbidEvent) -> bool:
        delivered = await self._channel.push_to(event.previous_bidder, event.to_payload())
        if delivered:
            self.delivered += 1
        else:
            self.dropped += 1
        return delivered
