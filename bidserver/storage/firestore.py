"""Firestore storage backend leveraging google-cloud-firestore."""

from __future__ import annotations

import asyncio
from typing import Any, Callable

from google.api_core import exceptions as gcp_exceptions
from google.cloud import firestore
from google.oauth2 import service_account

from .base import ListingMutator
from .errors import DuplicateRecordError


class FirestoreStorage:
    def __init__(
        self,
        *,
        project_id: str,
        collection: str = "listings",
        users_collection: str = "users",
        emails_collection: str = "user_emails",
        credentials_path: str | None = None,
    ) -> None:
        if not project_id:
            raise ValueError("project_id required for firestore backend")
        client_kwargs: dict[str, Any] = {"project": project_id}
        if credentials_path:
            client_kwargs["credentials"] = service_account.Credentials.from_service_account_file(
                credentials_path
            )
        self._client = firestore.Client(**client_kwargs)
        self._collection_name = collection
        self._users_collection_name = users_collection
        self._emails_collection_name = emails_collection

    def _listing_ref(self, listing_id: int):
        return self._client.collection(self._collection_name).document(str(listing_id))

    def _user_ref(self, username: str):
        return self._client.collection(self._users_collection_name).document(username)

    def _email_ref(self, email: str):
        return self._client.collection(self._emails_collection_name).document(email)

    async def _run(self, func: Callable, *args, **kwargs):
        return await asyncio.to_thread(func, *args, **kwargs)

    async def get_listing(self, listing_id: int) -> dict[str, Any] | None:
        doc = await self._run(self._listing_ref(listing_id).get)
        if not doc.exists:
            return None
        return doc.to_dict()

    async def insert_listing(self, listing: dict[str, Any]) -> dict[str, Any]:
        try:
            await self._run(self._listing_ref(listing["id"]).create, listing)
        except gcp_exceptions.AlreadyExists as exc:
            raise DuplicateRecordError(f"listing {listing['id']} already exists") from exc
        return listing

    async def atomic_update(
        self,
        listing_id: int,
        mutator: ListingMutator,
    ) -> dict[str, Any]:
        ref = self._listing_ref(listing_id)

        @firestore.transactional
        def _apply(transaction) -> dict[str, Any]:
            snapshot = ref.get(transaction=transaction)
            if not snapshot.exists:
                raise KeyError(listing_id)
            updated = mutator(snapshot.to_dict())
            transaction.set(ref, updated)
            return updated

        return await self._run(_apply, self._client.transaction())

    async def delete_listing(self, listing_id: int) -> None:
        option = self._client.write_option(exists=True)
        try:
            await self._run(self._listing_ref(listing_id).delete, option=option)
        except gcp_exceptions.NotFound as exc:
            raise KeyError(listing_id) from exc

    async def query_by_bidder(self, username: str) -> list[dict[str, Any]]:
        return [
            listing
            for listing in await self.list_listings()
            if any(bid.get("username") == username for bid in listing.get("bid_history", []))
        ]

    async def list_listings(self) -> list[dict[str, Any]]:
        collection = self._client.collection(self._collection_name)
        docs = await self._run(lambda: list(collection.stream()))
        return sorted((doc.to_dict() for doc in docs), key=lambda listing: listing["id"])

    # User storage methods

    async def create_user(self, user: dict[str, Any]) -> dict[str, Any]:
        user_ref = self._user_ref(user["username"])
        email_ref = self._email_ref(user["email"])

        @firestore.transactional
        def _create(transaction) -> None:
            if user_ref.get(transaction=transaction).exists:
                raise DuplicateRecordError("Username or email already in use")
            if email_ref.get(transaction=transaction).exists:
                raise DuplicateRecordError("Username or email already in use")
            transaction.set(user_ref, user)
            transaction.set(email_ref, {"username": user["username"]})

        await self._run(_create, self._client.transaction())
        return user

    async def get_user(self, username: str) -> dict[str, Any] | None:
        doc = await self._run(self._user_ref(username).get)
        if not doc.exists:
            return None
        return doc.to_dict()

    async def get_user_by_email(self, email: str) -> dict[str, Any] | None:
        doc = await self._run(self._email_ref(email).get)
        if not doc.exists:
            return None
        return await self.get_user(doc.to_dict()["username"])
