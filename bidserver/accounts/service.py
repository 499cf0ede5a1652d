"""User signup, login and profile lookup."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from ..auth.tokens import TokenService
from ..bidding.errors import Conflict, InvalidCredentials, NotFound
from ..storage import DuplicateRecordError, UserStorage
from ..transport.timestamps import isoformat_utc
from .passwords import hash_password, verify_password

logger = logging.getLogger(__name__)


@dataclass
class AccountService:
    storage: UserStorage
    tokens: TokenService

    async def signup(self, username: str, email: str, password: str) -> str:
        if await self.storage.get_user(username) or await self.storage.get_user_by_email(email):
            raise Conflict("Username or email already in use")
        # scrypt blocks for tens of milliseconds.
        password_hash = await asyncio.to_thread(hash_password, password)
        user = {
            "username": username,
            "email": email,
            "password_hash": password_hash,
            "created_at": isoformat_utc(),
        }
        try:
            await self.storage.create_user(user)
        except DuplicateRecordError as exc:
            raise Conflict(str(exc)) from exc
        logger.info("user %s signed up", username)
        return self.tokens.issue(username)

    async def login(self, email: str, password: str) -> str:
        user = await self.storage.get_user_by_email(email)
        if not user:
            raise InvalidCredentials("Invalid email or password")
        matches = await asyncio.to_thread(verify_password, password, user["password_hash"])
        if not matches:
            raise InvalidCredentials("Invalid email or password")
        return self.tokens.issue(user["username"])

    async def profile(self, username: str) -> dict[str, Any]:
        user = await self.storage.get_user(username)
        if not user:
            raise NotFound("User not found")
        return {"username": user["username"], "email": user["email"]}
