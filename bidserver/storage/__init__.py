"""Storage backend factory."""

from __future__ import annotations

from typing import Protocol

from ..config import ServerConfig
from .base import ListingMutator
from .errors import DuplicateRecordError
from .firestore import FirestoreStorage
from .in_memory import InMemoryStorage
from .postgres import PostgresStorage
from .redis import RedisStorage


class ListingStorage(Protocol):
    async def get_listing(self, listing_id: int) -> dict | None: ...

    async def insert_listing(self, listing: dict) -> dict: ...

    async def atomic_update(self, listing_id: int, mutator: ListingMutator) -> dict: ...

    async def delete_listing(self, listing_id: int) -> None: ...

    async def query_by_bidder(self, username: str) -> list[dict]: ...

    async def list_listings(self) -> list[dict]: ...


class UserStorage(Protocol):
    """Storage protocol for user accounts."""

    async def create_user(self, user: dict) -> dict:
        """Insert a user; raises DuplicateRecordError on a taken username or email."""
        ...

    async def get_user(self, username: str) -> dict | None: ...

    async def get_user_by_email(self, email: str) -> dict | None: ...


def build_storage(config: ServerConfig) -> ListingStorage:
    backend = config.storage.backend
    options = dict(config.storage.options)
    if backend == "in_memory":
        return InMemoryStorage()
    if backend == "redis":
        return RedisStorage(**options)
    if backend == "postgres":
        return PostgresStorage(**options)
    if backend == "firestore":
        return FirestoreStorage(**options)
    raise ValueError(f"unknown storage backend {backend}")


__all__ = [
    "DuplicateRecordError",
    "ListingMutator",
    "ListingStorage",
    "UserStorage",
    "build_storage",
]
