"""HTTP tests for the exchange routes.

Seed rows are committed through the ``session`` fixture before each request
so the app's own session sees them.
"""

from __future__ import annotations

import uuid
from datetime import timedelta

import pytest
import pytest_asyncio

from thumua_marketplace.security import create_access_token


def auth_headers(user) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest_asyncio.fixture
async def seeded(session, make_user, make_product):
    alice = await make_user("Alice")
    bob = await make_user("Bob")
    bike = await make_product(alice, title="Xe đạp")
    camera = await make_product(bob, title="Máy ảnh")
    await session.commit()
    return alice, bob, bike, camera


async def _propose(client, user, from_product, to_product, message="Đổi nhé?"):
    return await client.post(
        "/api/exchanges/propose",
        json={
            "fromProductId": str(from_product.id),
            "toProductId": str(to_product.id),
            "message": message,
        },
        headers=auth_headers(user),
    )


class TestAuth:
    @pytest.mark.asyncio
    async def test_missing_token(self, client) -> None:
        resp = await client.get("/api/exchanges/my-offers")
        assert resp.status_code == 401
        assert resp.json()["error"] == "AUTHENTICATION_FAILED"

    @pytest.mark.asyncio
    async def test_garbage_token(self, client) -> None:
        resp = await client.get(
            "/api/exchanges/my-offers", headers={"Authorization": "Bearer not-a-jwt"}
        )
        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_expired_token(self, client, seeded) -> None:
        alice = seeded[0]
        token = create_access_token(alice.id, expires_delta=timedelta(seconds=-5))
        resp = await client.get(
            "/api/exchanges/my-offers", headers={"Authorization": f"Bearer {token}"}
        )
        assert resp.status_code == 401
        assert resp.json()["message"] == "Token has expired"

    @pytest.mark.asyncio
    async def test_unknown_user(self, client) -> None:
        token = create_access_token(uuid.uuid4())
        resp = await client.get(
            "/api/exchanges/my-offers", headers={"Authorization": f"Bearer {token}"}
        )
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_inactive_user(self, client, session, make_user) -> None:
        banned = await make_user("Banned", is_active=False)
        await session.commit()
        resp = await client.get("/api/exchanges/my-offers", headers=auth_headers(banned))
        assert resp.status_code == 403
        assert resp.json()["error"] == "ACCOUNT_DISABLED"

    @pytest.mark.asyncio
    async def test_request_id_echoed(self, client) -> None:
        resp = await client.get("/api/exchanges/my-offers", headers={"X-Request-ID": "req-42"})
        assert resp.headers["X-Request-ID"] == "req-42"


class TestPropose:
    @pytest.mark.asyncio
    async def test_created_with_camel_case_body(self, client, seeded) -> None:
        alice, bob, bike, camera = seeded

        resp = await _propose(client, alice, bike, camera)

        assert resp.status_code == 201
        body = resp.json()
        assert body["status"] == "pending"
        assert body["fromProduct"]["id"] == str(bike.id)
        assert body["toProduct"]["exchangeCount"] == 0
        assert body["fromUser"]["name"] == "Alice"
        assert body["toUser"]["id"] == str(bob.id)
        assert body["responseMessage"] is None
        assert "createdAt" in body

    @pytest.mark.asyncio
    async def test_not_owner(self, client, seeded) -> None:
        alice, _, bike, camera = seeded
        resp = await _propose(client, alice, camera, bike)
        assert resp.status_code == 403
        assert resp.json()["error"] == "NOT_PRODUCT_OWNER"

    @pytest.mark.asyncio
    async def test_unknown_product(self, client, seeded) -> None:
        alice, _, bike, _ = seeded
        resp = await client.post(
            "/api/exchanges/propose",
            json={
                "fromProductId": str(bike.id),
                "toProductId": str(uuid.uuid4()),
                "message": "Hi",
            },
            headers=auth_headers(alice),
        )
        assert resp.status_code == 404
        assert resp.json()["error"] == "PRODUCT_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_self_exchange(self, client, session, seeded, make_product) -> None:
        alice, _, bike, _ = seeded
        helmet = await make_product(alice, title="Mũ")
        await session.commit()
        resp = await _propose(client, alice, bike, helmet)
        assert resp.status_code == 400
        assert resp.json()["message"] == "Cannot exchange with yourself"

    @pytest.mark.asyncio
    async def test_duplicate_is_conflict(self, client, seeded) -> None:
        alice, _, bike, camera = seeded
        assert (await _propose(client, alice, bike, camera)).status_code == 201

        resp = await _propose(client, alice, bike, camera)

        assert resp.status_code == 409
        assert resp.json()["error"] == "DUPLICATE_PROPOSAL"

    @pytest.mark.asyncio
    async def test_blank_message(self, client, seeded) -> None:
        alice, _, bike, camera = seeded
        resp = await _propose(client, alice, bike, camera, message="   ")
        assert resp.status_code == 400
        assert resp.json()["error"] == "MESSAGE_REQUIRED"

    @pytest.mark.asyncio
    async def test_missing_fields_is_validation_error(self, client, seeded) -> None:
        alice = seeded[0]
        resp = await client.post(
            "/api/exchanges/propose", json={}, headers=auth_headers(alice)
        )
        assert resp.status_code == 422


class TestRespond:
    @pytest.mark.asyncio
    async def test_accept_then_second_response(self, client, seeded) -> None:
        alice, bob, bike, camera = seeded
        exchange_id = (await _propose(client, alice, bike, camera)).json()["id"]

        resp = await client.put(
            f"/api/exchanges/{exchange_id}/respond",
            json={"response": "accepted", "message": "Chốt"},
            headers=auth_headers(bob),
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "accepted"
        assert body["responseMessage"] == "Chốt"
        assert body["respondedAt"] is not None
        assert body["fromProduct"]["exchangeCount"] == 1
        assert body["toProduct"]["exchangeCount"] == 1

        again = await client.put(
            f"/api/exchanges/{exchange_id}/respond",
            json={"response": "rejected"},
            headers=auth_headers(bob),
        )
        assert again.status_code == 400
        assert again.json()["error"] == "ALREADY_PROCESSED"

    @pytest.mark.asyncio
    async def test_proposer_cannot_accept(self, client, seeded) -> None:
        alice, _, bike, camera = seeded
        exchange_id = (await _propose(client, alice, bike, camera)).json()["id"]

        resp = await client.put(
            f"/api/exchanges/{exchange_id}/respond",
            json={"response": "accepted"},
            headers=auth_headers(alice),
        )
        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_proposer_cancels(self, client, seeded) -> None:
        alice, bob, bike, camera = seeded
        exchange_id = (await _propose(client, alice, bike, camera)).json()["id"]

        denied = await client.put(
            f"/api/exchanges/{exchange_id}/respond",
            json={"response": "cancelled"},
            headers=auth_headers(bob),
        )
        assert denied.status_code == 403

        resp = await client.put(
            f"/api/exchanges/{exchange_id}/respond",
            json={"response": "cancelled"},
            headers=auth_headers(alice),
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "cancelled"

    @pytest.mark.asyncio
    async def test_unknown_exchange(self, client, seeded) -> None:
        bob = seeded[1]
        resp = await client.put(
            f"/api/exchanges/{uuid.uuid4()}/respond",
            json={"response": "accepted"},
            headers=auth_headers(bob),
        )
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_invalid_decision_value(self, client, seeded) -> None:
        alice, bob, bike, camera = seeded
        exchange_id = (await _propose(client, alice, bike, camera)).json()["id"]
        resp = await client.put(
            f"/api/exchanges/{exchange_id}/respond",
            json={"response": "maybe"},
            headers=auth_headers(bob),
        )
        assert resp.status_code == 422


class TestListings:
    @pytest.mark.asyncio
    async def test_my_offers_for_both_parties(self, client, seeded) -> None:
        alice, bob, bike, camera = seeded
        exchange_id = (await _propose(client, alice, bike, camera)).json()["id"]

        for user in (alice, bob):
            resp = await client.get("/api/exchanges/my-offers", headers=auth_headers(user))
            assert resp.status_code == 200
            assert [e["id"] for e in resp.json()] == [exchange_id]

    @pytest.mark.asyncio
    async def test_available_products(self, client, seeded) -> None:
        alice, bob, _, camera = seeded
        resp = await client.get(
            "/api/exchanges/available-products", headers=auth_headers(alice)
        )
        assert resp.status_code == 200
        body = resp.json()
        assert [p["id"] for p in body] == [str(camera.id)]
        assert body[0]["seller"]["name"] == "Bob"
        assert body[0]["sellerId"] == str(bob.id)
