"""Redis storage backend using redis-py asyncio client."""

from __future__ import annotations

import logging
from typing import Any

import orjson
from redis import asyncio as aioredis
from redis.exceptions import WatchError

from .base import ListingMutator
from .errors import DuplicateRecordError

logger = logging.getLogger(__name__)


class RedisStorage:
    def __init__(self, *, url: str, prefix: str = "bidserver", max_retries: int = 50) -> None:
        if not url:
            raise ValueError("redis url missing")
        self._redis = aioredis.from_url(url)
        self._prefix = prefix.rstrip(":")
        self._max_retries = max_retries

    def _listing_key(self, listing_id: int | str) -> str:
        return f"{self._prefix}:listing:{listing_id}"

    def _user_key(self, username: str) -> str:
        return f"{self._prefix}:user:{username}"

    def _email_key(self, email: str) -> str:
        return f"{self._prefix}:user-email:{email}"

    async def get_listing(self, listing_id: int) -> dict[str, Any] | None:
        raw = await self._redis.get(self._listing_key(listing_id))
        if raw is None:
            return None
        return orjson.loads(raw)

    async def insert_listing(self, listing: dict[str, Any]) -> dict[str, Any]:
        created = await self._redis.set(
            self._listing_key(listing["id"]), orjson.dumps(listing), nx=True
        )
        if not created:
            raise DuplicateRecordError(f"listing {listing['id']} already exists")
        return listing

    async def atomic_update(
        self,
        listing_id: int,
        mutator: ListingMutator,
    ) -> dict[str, Any]:
        key = self._listing_key(listing_id)
        async with self._redis.pipeline(transaction=True) as pipe:
            for attempt in range(self._max_retries):
                try:
                    await pipe.watch(key)
                    raw = await pipe.get(key)
                    if raw is None:
                        raise KeyError(listing_id)
                    updated = mutator(orjson.loads(raw))
                    pipe.multi()
                    pipe.set(key, orjson.dumps(updated))
                    await pipe.execute()
                    return updated
                except WatchError:
                    logger.debug("listing %s changed during update, retry %d", listing_id, attempt + 1)
                    continue
        raise RuntimeError(f"listing {listing_id} update gave up after {self._max_retries} retries")

    async def delete_listing(self, listing_id: int) -> None:
        deleted = await self._redis.delete(self._listing_key(listing_id))
        if not deleted:
            raise KeyError(listing_id)

    async def query_by_bidder(self, username: str) -> list[dict[str, Any]]:
        return [
            listing
            for listing in await self.list_listings()
            if any(bid.get("username") == username for bid in listing.get("bid_history", []))
        ]

    async def list_listings(self) -> list[dict[str, Any]]:
        pattern = self._listing_key("*")
        keys: list[str] = []
        cursor = 0
        while True:
            cursor, batch = await self._redis.scan(cursor=cursor, match=pattern, count=100)
            keys.extend(batch)
            if cursor == 0:
                break
        if not keys:
            return []
        values = await self._redis.mget(keys)
        listings = [orjson.loads(value) for value in values if value]
        return sorted(listings, key=lambda listing: listing["id"])

    # User storage methods

    async def create_user(self, user: dict[str, Any]) -> dict[str, Any]:
        email_key = self._email_key(user["email"])
        if not await self._redis.set(email_key, user["username"], nx=True):
            raise DuplicateRecordError("Username or email already in use")
        created = await self._redis.set(
            self._user_key(user["username"]), orjson.dumps(user), nx=True
        )
        if not created:
            await self._redis.delete(email_key)
            raise DuplicateRecordError("Username or email already in use")
        return user

    async def get_user(self, username: str) -> dict[str, Any] | None:
        raw = await self._redis.get(self._user_key(username))
        if raw is None:
            return None
        return orjson.loads(raw)

    async def get_user_by_email(self, email: str) -> dict[str, Any] | None:
        username = await self._redis.get(self._email_key(email))
        if username is None:
            return None
        if isinstance(username, bytes):
            username = username.decode()
        return await self.get_user(username)
