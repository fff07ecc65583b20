"""Tests for the forgot-password / reset-password flow."""

import hashlib
import re
from datetime import timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy import update

from app.api.v1.endpoints import auth as auth_endpoints
from app.core.clock import as_utc
from app.models.user import User

API = "/api/v1"

NEW_PASSWORD = {"password": "fresh-password", "password_confirm": "fresh-password"}


def _token_from(outbox) -> str:
    match = re.search(r"/users/reset-password/([0-9a-f]{64})", outbox.messages[-1].body)
    assert match, outbox.messages[-1].body
    return match.group(1)


async def _request_reset(async_client: AsyncClient, email: str):
    return await async_client.post(f"{API}/users/forgot-password", json={"email": email})


@pytest.mark.asyncio
async def test_forgot_password_sends_link_and_stores_hash(
    async_client: AsyncClient, make_user, db_session, outbox, clock
):
    """Only the SHA-256 of the emailed token is persisted, valid for 10 minutes."""
    user = await make_user(email="forgetful@example.com")

    resp = await _request_reset(async_client, "Forgetful@example.com")
    assert resp.status_code == 200
    assert resp.json()["message"] == "Token sent to email!"

    assert len(outbox.messages) == 1
    assert outbox.messages[0].recipient == "forgetful@example.com"
    token = _token_from(outbox)

    await db_session.refresh(user)
    assert user.password_reset_token == hashlib.sha256(token.encode()).hexdigest()
    assert user.password_reset_token != token
    assert as_utc(user.password_reset_expires) == clock() + timedelta(minutes=10)


@pytest.mark.asyncio
async def test_forgot_password_unknown_email(async_client: AsyncClient, outbox):
    resp = await _request_reset(async_client, "nobody@example.com")
    assert resp.status_code == 404
    assert resp.json()["message"] == "There is no user with that email address."
    assert outbox.messages == []


@pytest.mark.asyncio
async def test_reset_password_logs_user_in(async_client: AsyncClient, make_user, outbox, db_session):
    user = await make_user(email="reset@example.com")
    await _request_reset(async_client, user.email)
    token = _token_from(outbox)

    resp = await async_client.patch(f"{API}/users/reset-password/{token}", json=NEW_PASSWORD)
    assert resp.status_code == 200
    body = resp.json()
    assert body["token"]
    assert body["data"]["user"]["id"] == user.id
    assert "jwt=" in resp.headers["set-cookie"]

    await db_session.refresh(user)
    assert user.password_reset_token is None
    assert user.password_reset_expires is None
    assert user.password_changed_at is not None

    login = await async_client.post(
        f"{API}/users/login", json={"email": user.email, "password": "fresh-password"}
    )
    assert login.status_code == 200


@pytest.mark.asyncio
async def test_reset_token_is_single_use(async_client: AsyncClient, make_user, outbox):
    user = await make_user(email="once@example.com")
    await _request_reset(async_client, user.email)
    token = _token_from(outbox)

    first = await async_client.patch(f"{API}/users/reset-password/{token}", json=NEW_PASSWORD)
    assert first.status_code == 200

    replay = await async_client.patch(f"{API}/users/reset-password/{token}", json=NEW_PASSWORD)
    assert replay.status_code == 400
    assert replay.json()["message"] == "Token is invalid or has expired"


@pytest.mark.asyncio
async def test_reset_token_expires(async_client: AsyncClient, make_user, outbox, clock):
    user = await make_user(email="slow@example.com")
    await _request_reset(async_client, user.email)
    token = _token_from(outbox)

    clock.advance(minutes=11)
    resp = await async_client.patch(f"{API}/users/reset-password/{token}", json=NEW_PASSWORD)
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_unknown_reset_token(async_client: AsyncClient):
    resp = await async_client.patch(f"{API}/users/reset-password/{'0' * 64}", json=NEW_PASSWORD)
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_new_request_supersedes_old_token(async_client: AsyncClient, make_user, outbox):
    user = await make_user(email="twice@example.com")
    await _request_reset(async_client, user.email)
    first = _token_from(outbox)
    await _request_reset(async_client, user.email)
    second = _token_from(outbox)

    stale = await async_client.patch(f"{API}/users/reset-password/{first}", json=NEW_PASSWORD)
    assert stale.status_code == 400

    current = await async_client.patch(f"{API}/users/reset-password/{second}", json=NEW_PASSWORD)
    assert current.status_code == 200


@pytest.mark.asyncio
async def test_invalid_new_password_keeps_token_usable(
    async_client: AsyncClient, make_user, outbox
):
    user = await make_user(email="typo@example.com")
    await _request_reset(async_client, user.email)
    token = _token_from(outbox)

    mismatch = await async_client.patch(
        f"{API}/users/reset-password/{token}",
        json={"password": "fresh-password", "password_confirm": "fresh-passw0rd"},
    )
    assert mismatch.status_code == 400

    retry = await async_client.patch(f"{API}/users/reset-password/{token}", json=NEW_PASSWORD)
    assert retry.status_code == 200


@pytest.mark.asyncio
async def test_delivery_failure_clears_pending_reset(
    async_client: AsyncClient, make_user, outbox, db_session
):
    """If the email cannot be sent, no token stays redeemable."""
    user = await make_user(email="offline@example.com")
    outbox.fail = True

    resp = await _request_reset(async_client, user.email)
    assert resp.status_code == 500
    assert resp.json()["message"] == "There was an error sending the email. Try again later."

    await db_session.refresh(user)
    assert user.password_reset_token is None
    assert user.password_reset_expires is None


@pytest.mark.asyncio
async def test_reset_invalidates_existing_sessions(
    async_client: AsyncClient, make_user, outbox, auth_headers, clock
):
    user = await make_user(email="hijacked@example.com")
    old_headers = auth_headers(user)
    clock.advance(seconds=5)

    await _request_reset(async_client, user.email)
    token = _token_from(outbox)
    resp = await async_client.patch(f"{API}/users/reset-password/{token}", json=NEW_PASSWORD)
    assert resp.status_code == 200
    async_client.cookies.clear()

    stale = await async_client.get(f"{API}/users/me", headers=old_headers)
    assert stale.status_code == 401


@pytest.mark.asyncio
async def test_unexpected_sender_error_also_clears_pending_reset(
    async_client: AsyncClient, make_user, outbox, db_session
):
    """A sender bug is reported as a delivery failure and leaves nothing redeemable."""
    user = await make_user(email="buggy@example.com")
    outbox.error = RuntimeError("template exploded")

    resp = await _request_reset(async_client, user.email)
    assert resp.status_code == 500
    assert resp.json()["message"] == "There was an error sending the email. Try again later."

    await db_session.refresh(user)
    assert user.password_reset_token is None
    assert user.password_reset_expires is None


@pytest.mark.asyncio
async def test_reset_loses_race_to_concurrent_completion(
    async_client: AsyncClient, make_user, outbox, db_session, monkeypatch
):
    """If the token is consumed between lookup and write, the write matches nothing."""
    user = await make_user(email="racer@example.com")
    await _request_reset(async_client, user.email)
    token = _token_from(outbox)

    real_hash = auth_endpoints.hash_password

    async def _hash_while_other_request_wins(plain: str) -> str:
        # The competing completion clears the reset pair first.
        await db_session.execute(
            update(User)
            .where(User.id == user.id)
            .values(
                password_reset_token=None,
                password_reset_expires=None,
                version=User.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        await db_session.commit()
        return await real_hash(plain)

    monkeypatch.setattr(auth_endpoints, "hash_password", _hash_while_other_request_wins)

    resp = await async_client.patch(f"{API}/users/reset-password/{token}", json=NEW_PASSWORD)
    assert resp.status_code == 400
    assert resp.json()["message"] == "Token is invalid or has expired"

    monkeypatch.undo()
    # The losing request changed nothing: the old password still works.
    login = await async_client.post(
        f"{API}/users/login", json={"email": user.email, "password": "password123"}
    )
    assert login.status_code == 200
