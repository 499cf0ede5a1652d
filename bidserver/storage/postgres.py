"""Postgres storage backend leveraging asyncpg."""

from __future__ import annotations

from typing import Any

import asyncpg
import orjson

from .base import ListingMutator
from .errors import DuplicateRecordError


class PostgresStorage:
    def __init__(self, *, dsn: str | None = None, **connect_kwargs: Any) -> None:
        if not dsn and not connect_kwargs:
            raise ValueError("postgres connection details missing")
        self._dsn = dsn
        self._connect_kwargs = connect_kwargs
        self._pool: asyncpg.Pool | None = None

    def _encode(self, payload: dict[str, Any]) -> str:
        return orjson.dumps(payload).decode()

    def _decode(self, value: Any) -> dict[str, Any]:
        if isinstance(value, (bytes, bytearray)):
            value = value.decode()
        if isinstance(value, str):
            return orjson.loads(value)
        return value

    async def _ensure_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            self._pool = await asyncpg.create_pool(dsn=self._dsn, **self._connect_kwargs)
            async with self._pool.acquire() as conn:
                await conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS listings (
                        listing_id BIGINT PRIMARY KEY,
                        data JSONB NOT NULL
                    );
                    CREATE INDEX IF NOT EXISTS idx_listings_bid_history
                    ON listings USING GIN ((data->'bid_history') jsonb_path_ops);
                    """
                )
                await conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS users (
                        username TEXT PRIMARY KEY,
                        email TEXT NOT NULL UNIQUE,
                        data JSONB NOT NULL,
                        created_at TIMESTAMP DEFAULT NOW()
                    );
                    """
                )
        return self._pool

    async def get_listing(self, listing_id: int) -> dict[str, Any] | None:
        pool = await self._ensure_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                """SELECT data FROM listings WHERE listing_id=$1""",
                listing_id,
            )
        if not row:
            return None
        return self._decode(row["data"])

    async def insert_listing(self, listing: dict[str, Any]) -> dict[str, Any]:
        pool = await self._ensure_pool()
        async with pool.acquire() as conn:
            try:
                await conn.execute(
                    """INSERT INTO listings(listing_id, data) VALUES($1, $2)""",
                    listing["id"],
                    self._encode(listing),
                )
            except asyncpg.UniqueViolationError as exc:
                raise DuplicateRecordError(f"listing {listing['id']} already exists") from exc
        return listing

    async def atomic_update(
        self,
        listing_id: int,
        mutator: ListingMutator,
    ) -> dict[str, Any]:
        pool = await self._ensure_pool()
        async with pool.acquire() as conn:
            async with conn.transaction():
                row = await conn.fetchrow(
                    """SELECT data FROM listings WHERE listing_id=$1 FOR UPDATE""",
                    listing_id,
                )
                if not row:
                    raise KeyError(listing_id)
                updated = mutator(self._decode(row["data"]))
                await conn.execute(
                    """UPDATE listings SET data=$2 WHERE listing_id=$1""",
                    listing_id,
                    self._encode(updated),
                )
        return updated

    async def delete_listing(self, listing_id: int) -> None:
        pool = await self._ensure_pool()
        async with pool.acquire() as conn:
            status = await conn.execute(
                """DELETE FROM listings WHERE listing_id=$1""",
                listing_id,
            )
        if status.endswith(" 0"):
            raise KeyError(listing_id)

    async def query_by_bidder(self, username: str) -> list[dict[str, Any]]:
        pool = await self._ensure_pool()
        async with pool.acquire() as conn:
            rows = await conn.fetch(
                """SELECT data FROM listings
                   WHERE data->'bid_history' @> $1::jsonb
                   ORDER BY listing_id""",
                self._encode([{"username": username}]),
            )
        return [self._decode(row["data"]) for row in rows]

    async def list_listings(self) -> list[dict[str, Any]]:
        pool = await self._ensure_pool()
        async with pool.acquire() as conn:
            rows = await conn.fetch("SELECT data FROM listings ORDER BY listing_id")
        return [self._decode(row["data"]) for row in rows]

    # User storage methods

    async def create_user(self, user: dict[str, Any]) -> dict[str, Any]:
        pool = await self._ensure_pool()
        async with pool.acquire() as conn:
            try:
                await conn.execute(
                    """INSERT INTO users(username, email, data) VALUES($1, $2, $3)""",
                    user["username"],
                    user["email"],
                    self._encode(user),
                )
            except asyncpg.UniqueViolationError as exc:
                raise DuplicateRecordError("Username or email already in use") from exc
        return user

    async def get_user(self, username: str) -> dict[str, Any] | None:
        pool = await self._ensure_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow("""SELECT data FROM users WHERE username=$1""", username)
        if not row:
            return None
        return self._decode(row["data"])

    async def get_user_by_email(self, email: str) -> dict[str, Any] | None:
        pool = await self._ensure_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow("""SELECT data FROM users WHERE email=$1""", email)
        if not row:
            return None
        return self._decode(row["data"])
