"""Operational stats endpoint."""

from __future__ import annotations

from collections import Counter
from typing import Any

from fastapi import APIRouter, Depends, Request

from ..bidding.engine import BidEngine
from ..live.directory import NotificationDirectory
from ..live.dispatcher import OutbidDispatcher

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_engine(request: Request) -> BidEngine:
    return request.app.state.bid_engine


def _get_directory(request: Request) -> NotificationDirectory:
    return request.app.state.directory


def _get_dispatcher(request: Request) -> OutbidDispatcher:
    return request.app.state.dispatcher


@router.get("/stats")
async def stats(
    engine: BidEngine = Depends(_get_engine),
    directory: NotificationDirectory = Depends(_get_directory),
    dispatcher: OutbidDispatcher = Depends(_get_dispatcher),
) -> dict[str, Any]:
    listings = await engine.list_listings()
    bids_by_bidder: Counter[str] = Counter()
    leading_by_bidder: Counter[str] = Counter()
    total_bids = 0
    for listing in listings:
        history = listing.get("bid_history", [])
        # The seed entry is the creator's opening price, not a bid.
        for bid in history[1:]:
            bids_by_bidder[bid["username"]] += 1
            total_bids += 1
        if history:
            leading_by_bidder[history[-1]["username"]] += 1

    return {
        "total_listings": len(listings),
        "total_bids": total_bids,
        "bids_by_bidder": dict(bids_by_bidder),
        "leading_by_bidder": dict(leading_by_bidder),
        "live_connections": len(directory),
        "notifications": {
            "delivered": dispatcher.delivered,
            "dropped": dispatcher.dropped,
            "pending": dispatcher.pending,
        },
    }
