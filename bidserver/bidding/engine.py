"""Bid engine: listing creation, bid placement, bidder views and cancellation."""

from __future__ import annotations

import logging
from typing import Any, Protocol

from ..storage import DuplicateRecordError, ListingStorage
from ..transport.timestamps import TimestampError, isoformat_utc, parse_timestamp
from .errors import Conflict, InvalidFormat, NotFound
from .models import Bid, OutbidEvent, parse_price

logger = logging.getLogger(__name__)


class OutbidSink(Protocol):
    def emit(self, event: OutbidEvent) -> None: ...


class BidEngine:
    def __init__(self, storage: ListingStorage, outbid: OutbidSink | None = None) -> None:
        self._storage = storage
        self._outbid = outbid

    async def create_listing(self, creator: str, payload: dict[str, Any]) -> dict[str, Any]:
        price = parse_price(payload.get("bid_price"))
        end_date = payload.get("end_date")
        if end_date:
            try:
                parse_timestamp(end_date)
            except TimestampError as exc:
                raise InvalidFormat(f"end_date: {exc}") from exc
        now = isoformat_utc()
        listing = {
            "id": int(payload["id"]),
            "name": payload["name"],
            "bid_price": price.text,
            "image_src": payload["image_src"],
            "image_alt": payload["image_alt"],
            "details": payload.get("details"),
            "bid_history": [Bid(creator, price.text).to_dict()],
            "end_date": end_date,
            "created_by": creator,
            "created_at": now,
            "updated_at": now,
        }
        try:
            created = await self._storage.insert_listing(listing)
        except DuplicateRecordError as exc:
            raise Conflict("Product with this ID already exists") from exc
        logger.info("listing %s created by %s at %s", listing["id"], creator, price.text)
        return created

    async def get_listing(self, listing_id: int) -> dict[str, Any]:
        listing = await self._storage.get_listing(listing_id)
        if listing is None:
            raise NotFound("Product not found")
        return listing

    async def list_listings(self) -> list[dict[str, Any]]:
        return await self._storage.list_listings()

    async def place_bid(self, listing_id: int, bidder: str, price_text: Any) -> dict[str, Any]:
        """Apply a bid and queue an outbid notice for the previous top bidder.

        Any well-formed price replaces the current one; there is no check
        that it exceeds the previous bid.
        """
        price = parse_price(price_text)
        outbid: list[Bid] = []

        def apply(listing: dict[str, Any]) -> dict[str, Any]:
            history = listing.setdefault("bid_history", [])
            # Reset on every call; optimistic backends may retry the mutator.
            outbid[:] = [Bid.from_dict(history[-1])] if history else []
            listing["bid_price"] = price.text
            history.append(Bid(bidder, price.text).to_dict())
            listing["updated_at"] = isoformat_utc()
            return listing

        try:
            updated = await self._storage.atomic_update(listing_id, apply)
        except KeyError as exc:
            raise NotFound("Product not found") from exc
        logger.info("%s bid %s on listing %s", bidder, price.text, listing_id)

        previous = outbid[0] if outbid else None
        if previous is not None and previous.username != bidder:
            self._notify(OutbidEvent(previous.username, listing_id, price.text))
        return updated

    async def list_for_bidder(self, bidder: str) -> dict[str, list[dict[str, Any]]]:
        final_bids: list[dict[str, Any]] = []
        first_bids: list[dict[str, Any]] = []
        for listing in await self._storage.query_by_bidder(bidder):
            history = listing.get("bid_history") or []
            if not history:
                continue
            if history[-1].get("username") == bidder:
                final_bids.append(listing)
            if history[0].get("username") == bidder:
                first_bids.append(listing)
        return {"final_bids": final_bids, "first_bids": first_bids}

    async def cancel_bid(self, listing_id: int) -> None:
        """Delete the whole listing, not only its latest bid."""
        try:
            await self._storage.delete_listing(listing_id)
        except KeyError as exc:
            raise NotFound("Product not found") from exc
        logger.info("listing %s cancelled and deleted", listing_id)

    def _notify(self, event: OutbidEvent) -> None:
        if self._outbid is None:
            return
        try:
            self._outbid.emit(event)
        except Exception:
            logger.warning(
                "could not queue outbid notice for %s on listing %s",
                event.previous_bidder,
                event.listing_id,
                exc_info=True,
            )
