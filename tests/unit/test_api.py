"""End-to-end HTTP and WebSocket flows through the FastAPI application."""

from __future__ import annotations

import pytest
from fastapi import WebSocketDisconnect
from fastapi.testclient import TestClient

from bidserver.main import app


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def signup(client: TestClient, username: str) -> str:
    response = client.post(
        "/signup",
        json={"username": username, "email": f"{username}@example.com", "password": "pw"},
    )
    assert response.status_code == 201
    return response.json()["token"]


def create_product(client: TestClient, token: str, listing_id: int = 1, bid_price: str = "$10"):
    return client.post(
        "/products",
        json={
            "id": listing_id,
            "name": "Vintage camera",
            "bid_price": bid_price,
            "image_src": "listings/camera.jpg",
            "image_alt": "A vintage camera",
            "details": "Works fine",
        },
        headers=auth(token),
    )


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


class TestAccountsEndpoints:
    def test_signup_login_and_user_page(self, client):
        token = signup(client, "alice")

        login = client.post("/login", json={"email": "alice@example.com", "password": "pw"})
        assert login.status_code == 200

        page = client.get("/me", headers=auth(login.json()["token"]))
        assert page.status_code == 200
        assert page.json() == {
            "user": {"username": "alice", "email": "alice@example.com"},
            "final_bids": [],
            "first_bids": [],
        }
        assert token

    def test_duplicate_signup_conflicts(self, client):
        signup(client, "alice")
        response = client.post(
            "/signup",
            json={"username": "alice", "email": "alice@example.com", "password": "pw"},
        )
        assert response.status_code == 409

    def test_bad_login(self, client):
        signup(client, "alice")
        response = client.post("/login", json={"email": "alice@example.com", "password": "bad"})
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid email or password"

    def test_signup_schema_violation(self, client):
        response = client.post("/signup", json={"username": "alice"})
        assert response.status_code == 422


class TestAuthentication:
    def test_missing_token(self, client):
        response = client.get("/products")
        assert response.status_code == 401
        assert response.json()["detail"] == "No token, authorization denied"

    def test_invalid_token(self, client):
        response = client.get("/products", headers=auth("not.valid"))
        assert response.status_code == 401
        assert response.json()["detail"] == "Token is not valid"


class TestBiddingEndpoints:
    def test_create_bid_and_read_back(self, client):
        alice = signup(client, "alice")
        bob = signup(client, "bob")
        assert create_product(client, alice).status_code == 201

        response = client.post("/products/1/bids", json={"bid_price": "$15"}, headers=auth(bob))

        assert response.status_code == 200
        body = response.json()
        assert body["bid_price"] == "$15"
        assert body["bid_history"] == [
            {"username": "alice", "bid_price": "$10"},
            {"username": "bob", "bid_price": "$15"},
        ]
        assert client.get("/products/1", headers=auth(alice)).json()["bid_price"] == "$15"
        assert [p["id"] for p in client.get("/products", headers=auth(alice)).json()] == [1]

        page = client.get("/me", headers=auth(bob)).json()
        assert [p["id"] for p in page["final_bids"]] == [1]
        assert page["first_bids"] == []

    def test_error_outcomes(self, client):
        alice = signup(client, "alice")
        create_product(client, alice)

        bad_price = client.post("/products/1/bids", json={"bid_price": "15"}, headers=auth(alice))
        missing_price = client.post("/products/1/bids", json={}, headers=auth(alice))
        missing_listing = client.post("/products/9/bids", json={"bid_price": "$15"}, headers=auth(alice))
        duplicate = create_product(client, alice)

        assert bad_price.status_code == 400
        assert missing_price.status_code == 400
        assert missing_listing.status_code == 404
        assert duplicate.status_code == 409
        assert duplicate.json()["detail"] == "Product with this ID already exists"
        assert client.get("/products/1", headers=auth(alice)).json()["bid_price"] == "$10"

    def test_cancel_bid_deletes_listing(self, client):
        alice = signup(client, "alice")
        create_product(client, alice)

        response = client.delete("/products/1", headers=auth(alice))
        assert response.status_code == 200
        assert client.get("/products/1", headers=auth(alice)).status_code == 404
        assert client.delete("/products/1", headers=auth(alice)).status_code == 404


class TestLiveChannel:
    def test_previous_bidder_receives_outbid_push(self, client):
        alice = signup(client, "alice")
        bob = signup(client, "bob")
        create_product(client, alice)

        with client.websocket_connect(f"/ws?token={alice}") as websocket:
            response = client.post("/products/1/bids", json={"bid_price": "$15"}, headers=auth(bob))
            assert response.status_code == 200
            assert websocket.receive_json() == {"message": "New bid of $15 on product with ID 1"}

    def test_bid_succeeds_when_previous_bidder_offline(self, client):
        alice = signup(client, "alice")
        bob = signup(client, "bob")
        create_product(client, alice)

        response = client.post("/products/1/bids", json={"bid_price": "$15"}, headers=auth(bob))

        assert response.status_code == 200
        client.portal.call(app.state.dispatcher.drain)
        stats = client.get("/admin/stats").json()
        assert stats["notifications"]["dropped"] == 1
        assert stats["notifications"]["delivered"] == 0

    def test_invalid_token_is_refused(self, client):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect("/ws?token=bogus"):
                pass
        assert exc_info.value.code == 1008


class TestMediaAndAdmin:
    def test_signed_urls(self, client):
        alice = signup(client, "alice")

        upload = client.post("/media/upload-url", json={"image": "camera.jpg"}, headers=auth(alice))
        download = client.post("/media/download-url", json={"image": "camera.jpg"}, headers=auth(alice))

        assert upload.status_code == 200
        assert "signature=" in upload.json()["url"]
        assert "method=GET" in download.json()["url"]

    def test_admin_endpoints(self, client):
        alice = signup(client, "alice")
        bob = signup(client, "bob")
        create_product(client, alice)
        client.post("/products/1/bids", json={"bid_price": "$15"}, headers=auth(bob))

        health = client.get("/admin/health").json()
        config = client.get("/admin/config").json()
        stats = client.get("/admin/stats").json()

        assert health["status"] == "healthy"
        assert config["storage_backend"] == "in_memory"
        assert stats["total_listings"] == 1
        assert stats["total_bids"] == 1
        assert stats["bids_by_bidder"] == {"bob": 1}
        assert stats["leading_by_bidder"] == {"bob": 1}
        assert stats["live_connections"] == 0
