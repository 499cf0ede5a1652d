"""Token issuance/verification, password hashing, accounts and signed URLs."""

from __future__ import annotations

from urllib.parse import parse_qs, urlparse

import pytest

from bidserver.accounts.passwords import hash_password, verify_password
from bidserver.accounts.service import AccountService
from bidserver.auth.tokens import TokenService
from bidserver.bidding.errors import Conflict, InvalidCredentials, InvalidFormat, NotFound, Unauthenticated
from bidserver.media.urls import ObjectUrlService
from bidserver.storage.in_memory import InMemoryStorage
from bidserver.transport.signatures import SigningKeys


@pytest.fixture
def keys():
    return SigningKeys.generate()


@pytest.fixture
def tokens(keys):
    return TokenService(keys, ttl_seconds=60)


class TestTokenService:
    def test_round_trip_identity(self, tokens):
        token = tokens.issue("alice")
        assert tokens.verify(token) == "alice"

    @pytest.mark.parametrize("token", [None, "", "garbage", "abc.def", "only-body."])
    def test_rejects_malformed_tokens(self, tokens, token):
        with pytest.raises(Unauthenticated):
            tokens.verify(token)

    def test_rejects_tampered_claims(self, tokens):
        good = tokens.issue("alice")
        forged_body = tokens.issue("mallory").split(".")[0]
        with pytest.raises(Unauthenticated):
            tokens.verify(f"{forged_body}.{good.split('.')[1]}")

    def test_rejects_other_key(self, tokens):
        foreign = TokenService(SigningKeys.generate()).issue("alice")
        with pytest.raises(Unauthenticated):
            tokens.verify(foreign)

    def test_expiry(self, tokens):
        token = tokens.issue("alice", now=1_000)
        assert tokens.verify(token, now=1_059) == "alice"
        with pytest.raises(Unauthenticated, match="expired"):
            tokens.verify(token, now=1_060)

    def test_zero_ttl_never_expires(self, keys):
        service = TokenService(keys, ttl_seconds=0)
        token = service.issue("alice", now=0)
        assert service.verify(token, now=10**10) == "alice"


class TestPasswords:
    def test_hash_verifies_only_original_password(self):
        hashed = hash_password("s3cret")
        assert verify_password("s3cret", hashed)
        assert not verify_password("wrong", hashed)

    def test_hashes_are_salted(self):
        assert hash_password("s3cret") != hash_password("s3cret")

    def test_malformed_hash_does_not_verify(self):
        assert not verify_password("s3cret", "not-a-hash")


class TestAccountService:
    @pytest.fixture
    def accounts(self, tokens):
        return AccountService(InMemoryStorage(), tokens)

    @pytest.mark.asyncio
    async def test_signup_then_login(self, accounts, tokens):
        token = await accounts.signup("alice", "alice@example.com", "pw")
        assert tokens.verify(token) == "alice"

        login_token = await accounts.login("alice@example.com", "pw")
        assert tokens.verify(login_token) == "alice"
        assert await accounts.profile("alice") == {"username": "alice", "email": "alice@example.com"}

    @pytest.mark.asyncio
    async def test_duplicate_username_or_email(self, accounts):
        await accounts.signup("alice", "alice@example.com", "pw")
        with pytest.raises(Conflict):
            await accounts.signup("alice", "other@example.com", "pw")
        with pytest.raises(Conflict):
            await accounts.signup("alice2", "alice@example.com", "pw")

    @pytest.mark.asyncio
    async def test_bad_credentials(self, accounts):
        await accounts.signup("alice", "alice@example.com", "pw")
        with pytest.raises(InvalidCredentials):
            await accounts.login("alice@example.com", "nope")
        with pytest.raises(InvalidCredentials):
            await accounts.login("ghost@example.com", "pw")

    @pytest.mark.asyncio
    async def test_unknown_profile(self, accounts):
        with pytest.raises(NotFound):
            await accounts.profile("ghost")


class TestObjectUrlService:
    @pytest.mark.asyncio
    async def test_local_upload_url_is_signed(self, keys):
        service = ObjectUrlService(
            "local", {"base_url": "https://cdn.example.com/media/", "expires_seconds": 60}, keys=keys
        )

        url = await service.sign_upload("listings/camera.jpg")

        parsed = urlparse(url)
        query = parse_qs(parsed.query)
        assert parsed.netloc == "cdn.example.com"
        assert parsed.path == "/media/listings/camera.jpg"
        assert query["method"] == ["PUT"]
        assert query["content_type"] == ["image/jpeg"]
        message = "\n".join(["PUT", "listings/camera.jpg", query["expires"][0], "image/jpeg"])
        keys.verify(message.encode("utf-8"), query["signature"][0])

    @pytest.mark.asyncio
    async def test_local_download_url(self, keys):
        service = ObjectUrlService("local", {}, keys=keys)
        url = await service.sign_download("/camera.jpg")
        assert url.startswith("http://localhost:3000/media/camera.jpg?")
        assert "method=GET" in url

    @pytest.mark.asyncio
    async def test_empty_key_is_invalid(self, keys):
        service = ObjectUrlService("local", {}, keys=keys)
        with pytest.raises(InvalidFormat):
            await service.sign_upload("  ")

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            ObjectUrlService("s3")
