"""Tests for the challenge HTTP API."""
from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from tests.conftest import (
    FakePaymentGate,
    auth_headers,
    create_challenge,
    create_participation,
    create_user,
)


async def test_list_challenges(client: AsyncClient, db_session: AsyncSession) -> None:
    await create_challenge(db_session, name="Soon")
    await create_challenge(db_session, name="Running", starts_in=timedelta(hours=-1))

    response = await client.get("/api/challenges")
    assert response.status_code == 200
    assert {challenge["name"] for challenge in response.json()} == {"Soon", "Running"}

    response = await client.get("/api/challenges", params={"status": "active"})
    assert [challenge["name"] for challenge in response.json()] == ["Running"]


async def test_list_challenges_rejects_unknown_status(client: AsyncClient) -> None:
    response = await client.get("/api/challenges", params={"status": "archived"})

    assert response.status_code == 400
    assert response.json()["kind"] == "validation_error"


async def test_get_challenge_with_participant_count(client: AsyncClient, db_session: AsyncSession) -> None:
    challenge = await create_challenge(db_session)
    await create_participation(db_session, await create_user(db_session, "alice"), challenge)
    await create_participation(db_session, await create_user(db_session, "bob"), challenge)

    response = await client.get(f"/api/challenges/{challenge.id}")

    assert response.status_code == 200
    data = response.json()
    assert data["id"] == str(challenge.id)
    assert data["participants_count"] == 2
    assert data["entry_fee"] == 25.0
    assert data["initial_balance"] == 10000.0


async def test_get_unknown_challenge(client: AsyncClient) -> None:
    response = await client.get(f"/api/challenges/{uuid4()}")

    assert response.status_code == 404
    assert response.json() == {"detail": "Challenge not found", "kind": "not_found"}


async def test_leaderboard_endpoint(client: AsyncClient, db_session: AsyncSession) -> None:
    challenge = await create_challenge(db_session, starts_in=timedelta(hours=-1))
    await create_participation(db_session, await create_user(db_session, "bob"), challenge, balance=Decimal("9800"))
    await create_participation(db_session, await create_user(db_session, "alice"), challenge, balance=Decimal("10500"))

    response = await client.get(f"/api/challenges/{challenge.id}/leaderboard")

    assert response.status_code == 200
    data = response.json()
    assert [(entry["position"], entry["username"]) for entry in data] == [(1, "alice"), (2, "bob")]
    assert data[0]["current_balance"] == 10500.0
    assert data[0]["pnl_percentage"] == 5.0


async def test_leaderboard_unknown_challenge(client: AsyncClient) -> None:
    response = await client.get(f"/api/challenges/{uuid4()}/leaderboard")

    assert response.status_code == 404


async def test_protected_endpoints_require_token(client: AsyncClient) -> None:
    for method, path in [
        ("GET", "/api/participations"),
        ("GET", "/api/participations/active"),
        ("GET", "/api/trades"),
        ("GET", "/api/activities"),
        ("POST", f"/api/challenges/{uuid4()}/join"),
    ]:
        response = await client.request(method, path, json={"payment_intent_id": "pi_x"})
        assert response.status_code == 401, path
        assert response.json()["kind"] == "unauthorized"


async def test_invalid_token_is_rejected(client: AsyncClient) -> None:
    response = await client.get("/api/participations", headers={"Authorization": "Bearer not-a-token"})

    assert response.status_code == 401


async def test_payment_then_join_flow(
    client: AsyncClient, db_session: AsyncSession, payment_gate: FakePaymentGate
) -> None:
    user = await create_user(db_session, "alice")
    challenge = await create_challenge(db_session)
    headers = auth_headers(user)

    response = await client.post(
        "/api/create-payment-intent", json={"challenge_id": str(challenge.id)}, headers=headers
    )
    assert response.status_code == 200
    payment = response.json()
    assert payment["amount"] == 2500
    assert payment["client_secret"]

    response = await client.post(
        f"/api/challenges/{challenge.id}/join",
        json={"payment_intent_id": payment["payment_intent_id"]},
        headers=headers,
    )
    assert response.status_code == 201
    participation = response.json()
    assert participation["user_id"] == str(user.id)
    assert participation["current_balance"] == 10000.0
    assert participation["pnl"] == 0.0
    assert participation["position"] is None
    assert participation["status"] == "active"

    response = await client.post(
        f"/api/challenges/{challenge.id}/join",
        json={"payment_intent_id": payment_gate.add_intent(user.id, challenge.id, challenge.entry_fee)},
        headers=headers,
    )
    assert response.status_code == 400
    assert response.json()["kind"] == "already_joined"
    assert len(payment_gate.authorizations) == 1

    response = await client.get("/api/participations/active", headers=headers)
    assert response.status_code == 200
    active = response.json()
    assert len(active) == 1
    assert active[0]["challenge"]["id"] == str(challenge.id)


async def test_join_started_challenge(
    client: AsyncClient, db_session: AsyncSession, payment_gate: FakePaymentGate
) -> None:
    user = await create_user(db_session, "alice")
    challenge = await create_challenge(db_session, starts_in=timedelta(hours=-1))
    payment_intent_id = payment_gate.add_intent(user.id, challenge.id, challenge.entry_fee)

    response = await client.post(
        f"/api/challenges/{challenge.id}/join",
        json={"payment_intent_id": payment_intent_id},
        headers=auth_headers(user),
    )

    assert response.status_code == 400
    assert response.json()["kind"] == "challenge_already_started"


async def test_join_requires_payment_confirmation(client: AsyncClient, db_session: AsyncSession) -> None:
    user = await create_user(db_session, "alice")
    challenge = await create_challenge(db_session)

    response = await client.post(f"/api/challenges/{challenge.id}/join", json={}, headers=auth_headers(user))

    assert response.status_code == 400
    assert response.json()["kind"] == "validation_error"


async def test_join_with_invalid_payment(client: AsyncClient, db_session: AsyncSession) -> None:
    user = await create_user(db_session, "alice")
    challenge = await create_challenge(db_session)

    response = await client.post(
        f"/api/challenges/{challenge.id}/join",
        json={"payment_intent_id": "pi_forged"},
        headers=auth_headers(user),
    )

    assert response.status_code == 400
    assert response.json()["kind"] == "payment_invalid"


async def test_trade_lifecycle_over_http(client: AsyncClient, db_session: AsyncSession) -> None:
    user = await create_user(db_session, "alice")
    challenge = await create_challenge(db_session, starts_in=timedelta(hours=-1))
    participation = await create_participation(db_session, user, challenge)
    participation_id = participation.id
    headers = auth_headers(user)

    response = await client.post(
        f"/api/participations/{participation_id}/trades",
        json={"symbol": "EUR/USD", "direction": "buy", "open_price": 1.0932, "volume": 0.10},
        headers=headers,
    )
    assert response.status_code == 201
    trade = response.json()
    assert trade["status"] == "open"
    assert trade["profit"] is None

    response = await client.patch(
        f"/api/trades/{trade['id']}/close", json={"close_price": 1.0945}, headers=headers
    )
    assert response.status_code == 200
    closed = response.json()
    assert closed["status"] == "closed"
    assert closed["profit"] == 1.3

    response = await client.patch(
        f"/api/trades/{trade['id']}/close", json={"close_price": 1.0950}, headers=headers
    )
    assert response.status_code == 400
    assert response.json()["kind"] == "invalid_state"

    response = await client.get(f"/api/participations/{participation_id}/trades", headers=headers)
    assert [t["id"] for t in response.json()] == [trade["id"]]

    response = await client.get("/api/trades", headers=headers)
    assert [t["id"] for t in response.json()] == [trade["id"]]

    response = await client.get("/api/participations", headers=headers)
    assert response.json()[0]["current_balance"] == 10001.3

    response = await client.get("/api/activities", headers=headers)
    assert [activity["type"] for activity in response.json()] == ["trade"]


async def test_open_trade_rejects_malformed_body(client: AsyncClient, db_session: AsyncSession) -> None:
    user = await create_user(db_session, "alice")
    challenge = await create_challenge(db_session, starts_in=timedelta(hours=-1))
    participation = await create_participation(db_session, user, challenge)

    response = await client.post(
        f"/api/participations/{participation.id}/trades",
        json={"symbol": "EUR/USD", "direction": "long", "open_price": 1.0932, "volume": -1},
        headers=auth_headers(user),
    )

    assert response.status_code == 400
    assert response.json()["kind"] == "validation_error"


async def test_trade_values_finer_than_storage_are_rejected(client: AsyncClient, db_session: AsyncSession) -> None:
    user = await create_user(db_session, "alice")
    challenge = await create_challenge(db_session, starts_in=timedelta(hours=-1))
    participation = await create_participation(db_session, user, challenge)
    participation_id = participation.id
    headers = auth_headers(user)

    response = await client.post(
        f"/api/participations/{participation_id}/trades",
        json={"symbol": "EUR/USD", "direction": "buy", "open_price": "1.0932", "volume": "0.00004"},
        headers=headers,
    )
    assert response.status_code == 400
    assert response.json()["kind"] == "validation_error"

    response = await client.post(
        f"/api/participations/{participation_id}/trades",
        json={"symbol": "EUR/USD", "direction": "buy", "open_price": "1.093212345", "volume": "1"},
        headers=headers,
    )
    assert response.status_code == 400

    response = await client.post(
        f"/api/participations/{participation_id}/trades",
        json={"symbol": "EUR/USD", "direction": "buy", "open_price": "1.0932", "volume": "1"},
        headers=headers,
    )
    assert response.status_code == 201
    trade_id = response.json()["id"]

    response = await client.patch(
        f"/api/trades/{trade_id}/close", json={"close_price": "1.094512345"}, headers=headers
    )
    assert response.status_code == 400
    assert response.json()["kind"] == "validation_error"

    response = await client.get(f"/api/participations/{participation_id}/trades", headers=headers)
    assert [t["status"] for t in response.json()] == ["open"]


async def test_other_users_participation_is_forbidden(client: AsyncClient, db_session: AsyncSession) -> None:
    owner = await create_user(db_session, "alice")
    mallory = await create_user(db_session, "mallory")
    challenge = await create_challenge(db_session, starts_in=timedelta(hours=-1))
    participation = await create_participation(db_session, owner, challenge)
    headers = auth_headers(mallory)

    response = await client.get(f"/api/participations/{participation.id}/trades", headers=headers)
    assert response.status_code == 403
    assert response.json()["kind"] == "forbidden"

    response = await client.post(
        f"/api/participations/{participation.id}/trades",
        json={"symbol": "EUR/USD", "direction": "buy", "open_price": 1.0932, "volume": 1},
        headers=headers,
    )
    assert response.status_code == 403


async def test_close_other_users_trade_is_forbidden(client: AsyncClient, db_session: AsyncSession) -> None:
    owner = await create_user(db_session, "alice")
    mallory = await create_user(db_session, "mallory")
    challenge = await create_challenge(db_session, starts_in=timedelta(hours=-1))
    participation = await create_participation(db_session, owner, challenge)

    response = await client.post(
        f"/api/participations/{participation.id}/trades",
        json={"symbol": "EUR/USD", "direction": "buy", "open_price": 1.0932, "volume": 1},
        headers=auth_headers(owner),
    )
    trade_id = response.json()["id"]

    response = await client.patch(
        f"/api/trades/{trade_id}/close", json={"close_price": 1.1}, headers=auth_headers(mallory)
    )

    assert response.status_code == 403
    assert response.json()["kind"] == "forbidden"


async def test_close_unknown_trade(client: AsyncClient, db_session: AsyncSession) -> None:
    user = await create_user(db_session, "alice")

    response = await client.patch(
        f"/api/trades/{uuid4()}/close", json={"close_price": 1.1}, headers=auth_headers(user)
    )

    assert response.status_code == 404


async def test_participation_trades_unknown_participation(client: AsyncClient, db_session: AsyncSession) -> None:
    user = await create_user(db_session, "alice")

    response = await client.get(f"/api/participations/{uuid4()}/trades", headers=auth_headers(user))

    assert response.status_code == 404


async def test_market_quotes(client: AsyncClient) -> None:
    response = await client.get("/api/market/quotes", params={"type": "forex"})

    assert response.status_code == 200
    quotes = response.json()
    assert {quote["symbol"] for quote in quotes} >= {"EUR/USD", "GBP/USD", "USD/JPY"}
    assert all(quote["type"] == "forex" for quote in quotes)
