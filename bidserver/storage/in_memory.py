"""In-memory storage backend for listings and user accounts."""

from __future__ import annotations

import asyncio
from copy import deepcopy
from typing import Any

from .base import ListingMutator
from .errors import DuplicateRecordError


class InMemoryStorage:
    def __init__(self) -> None:
        self._listings: dict[int, dict[str, Any]] = {}
        self._users: dict[str, dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    async def get_listing(self, listing_id: int) -> dict[str, Any] | None:
        async with self._lock:
            listing = self._listings.get(listing_id)
            return deepcopy(listing) if listing else None

    async def insert_listing(self, listing: dict[str, Any]) -> dict[str, Any]:
        async with self._lock:
            if listing["id"] in self._listings:
                raise DuplicateRecordError(f"listing {listing['id']} already exists")
            self._listings[listing["id"]] = deepcopy(listing)
            return deepcopy(listing)

    async def atomic_update(
        self,
        listing_id: int,
        mutator: ListingMutator,
    ) -> dict[str, Any]:
        async with self._lock:
            if listing_id not in self._listings:
                raise KeyError(listing_id)
            updated = mutator(deepcopy(self._listings[listing_id]))
            self._listings[listing_id] = deepcopy(updated)
            return updated

    async def delete_listing(self, listing_id: int) -> None:
        async with self._lock:
            if listing_id not in self._listings:
                raise KeyError(listing_id)
            del self._listings[listing_id]

    async def query_by_bidder(self, username: str) -> list[dict[str, Any]]:
        async with self._lock:
            return [
                deepcopy(listing)
                for _, listing in sorted(self._listings.items())
                if any(bid["username"] == username for bid in listing["bid_history"])
            ]

    async def list_listings(self) -> list[dict[str, Any]]:
        async with self._lock:
            return [deepcopy(listing) for _, listing in sorted(self._listings.items())]

    # User storage methods

    async def create_user(self, user: dict[str, Any]) -> dict[str, Any]:
        async with self._lock:
            if user["username"] in self._users:
                raise DuplicateRecordError("Username or email already in use")
            if any(existing["email"] == user["email"] for existing in self._users.values()):
                raise DuplicateRecordError("Username or email already in use")
            self._users[user["username"]] = deepcopy(user)
            return deepcopy(user)

    async def get_user(self, username: str) -> dict[str, Any] | None:
        async with self._lock:
            user = self._users.get(username)
            return deepcopy(user) if user else None

    async def get_user_by_email(self, email: str) -> dict[str, Any] | None:
        async with self._lock:
            for user in self._users.values():
                if user["email"] == email:
                    return deepcopy(user)
            return None
