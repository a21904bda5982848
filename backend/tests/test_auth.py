"""
Tests for account endpoints: sign-in, email verification, password reset,
profile and deletion.
"""

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import create_access_token, create_email_verification_token
from app.models.user import User
from app.services.auth_service import create_account
from app.services.outcomes import OutcomeKind
from app.services.retry import RetryPolicy

AUTH = "/api/v1/auth"


async def sign_in(client: AsyncClient, email: str, password: str):
    return await client.post(f"{AUTH}/sign-in", json={"email": email, "password": password})


@pytest.mark.asyncio
async def test_sign_in_success(client: AsyncClient, test_user):
    """Valid credentials return JWT token."""
    response = await sign_in(client, "test@example.com", "testpassword123")
    assert response.status_code == 200
    data = response.json()
    assert "access_token" in data
    assert data["token_type"] == "bearer"


@pytest.mark.asyncio
async def test_sign_in_is_case_insensitive_on_email(client: AsyncClient, test_user):
    response = await sign_in(client, "Test@Example.com", "testpassword123")
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_sign_in_wrong_password(client: AsyncClient, test_user):
    """Wrong password returns 401."""
    response = await sign_in(client, "test@example.com", "wrongpassword")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_sign_in_unknown_email(client: AsyncClient):
    """Unknown email gets the same 401 as a wrong password."""
    response = await sign_in(client, "ghost@example.com", "whatever123")
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid email or password"


@pytest.mark.asyncio
async def test_sign_in_requires_verified_email(client: AsyncClient, unverified_user):
    response = await sign_in(client, "pending@example.com", "testpassword123")
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_verification_flow(client: AsyncClient, outbox):
    """Sign up, follow the emailed link, then sign in."""
    await client.post(f"{AUTH}/sign-up", json={
        "name": "New User",
        "email": "new@example.com",
        "password": "password123",
    })
    assert (await sign_in(client, "new@example.com", "password123")).status_code == 403

    token = outbox.last_token("new@example.com")
    response = await client.post(f"{AUTH}/verify-email", json={"token": token})
    assert response.status_code == 200

    assert (await sign_in(client, "new@example.com", "password123")).status_code == 200

    # Following the link again is harmless
    again = await client.post(f"{AUTH}/verify-email", json={"token": token})
    assert again.status_code == 200


@pytest.mark.asyncio
async def test_verify_email_rejects_garbage_token(client: AsyncClient):
    response = await client.post(f"{AUTH}/verify-email", json={"token": "not-a-jwt"})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_verify_email_rejects_access_token(client: AsyncClient, unverified_user):
    """A token minted for another purpose is not a verification link."""
    token = create_access_token(data={"sub": str(unverified_user.id)})
    response = await client.post(f"{AUTH}/verify-email", json={"token": token})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_verify_email_rejects_stale_address(client: AsyncClient, unverified_user):
    token = create_email_verification_token(unverified_user.id, "old@example.com")
    response = await client.post(f"{AUTH}/verify-email", json={"token": token})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_resend_verification(client: AsyncClient, unverified_user, test_user, outbox):
    """Only unverified accounts get mail; the answer is the same for everyone."""
    pending = await client.post(f"{AUTH}/resend-verification", json={"email": "pending@example.com"})
    verified = await client.post(f"{AUTH}/resend-verification", json={"email": "test@example.com"})
    unknown = await client.post(f"{AUTH}/resend-verification", json={"email": "ghost@example.com"})

    assert pending.json() == verified.json() == unknown.json()
    assert len(outbox.sent_to("pending@example.com")) == 1
    assert outbox.sent_to("test@example.com") == []
    assert outbox.sent_to("ghost@example.com") == []


@pytest.mark.asyncio
async def test_password_reset_flow(client: AsyncClient, test_user, outbox):
    response = await client.post(f"{AUTH}/forgot-password", json={"email": "test@example.com"})
    assert response.status_code == 200
    token = outbox.last_token("test@example.com")
    assert "/auth/reset-password?token=" in outbox.sent_to("test@example.com")[-1].action_url

    response = await client.post(f"{AUTH}/reset-password", json={"token": token, "password": "brandnewpass1"})
    assert response.status_code == 200

    assert (await sign_in(client, "test@example.com", "brandnewpass1")).status_code == 200
    assert (await sign_in(client, "test@example.com", "testpassword123")).status_code == 401

    # The link stops working once the password has changed
    reused = await client.post(f"{AUTH}/reset-password", json={"token": token, "password": "anotherpass1"})
    assert reused.status_code == 400


@pytest.mark.asyncio
async def test_forgot_password_unknown_email(client: AsyncClient, outbox):
    response = await client.post(f"{AUTH}/forgot-password", json={"email": "ghost@example.com"})
    assert response.status_code == 200
    assert outbox.messages == []


@pytest.mark.asyncio
async def test_reset_password_rejects_verification_token(client: AsyncClient, test_user):
    token = create_email_verification_token(test_user.id, test_user.email)
    response = await client.post(f"{AUTH}/reset-password", json={"token": token, "password": "brandnewpass1"})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_me(client: AsyncClient, auth_headers):
    response = await client.get(f"{AUTH}/me", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["email"] == "test@example.com"


@pytest.mark.asyncio
async def test_me_requires_auth(client: AsyncClient):
    """Missing or bogus token returns 401."""
    assert (await client.get(f"{AUTH}/me")).status_code == 401
    bogus = {"Authorization": "Bearer not-a-jwt"}
    assert (await client.get(f"{AUTH}/me", headers=bogus)).status_code == 401


@pytest.mark.asyncio
async def test_delete_account_keeps_code_claimed(
    client: AsyncClient, auth_headers, test_user, ledger, seed_codes, fetch_code
):
    """Deleting an account never returns its code to the pool."""
    await seed_codes("INVITE-1")
    await ledger.claim_code("INVITE-1", test_user.email)

    response = await client.delete(f"{AUTH}/account", headers=auth_headers)
    assert response.status_code == 200

    assert (await client.get(f"{AUTH}/me", headers=auth_headers)).status_code == 404
    assert (await sign_in(client, "test@example.com", "testpassword123")).status_code == 401
    assert (await fetch_code("INVITE-1")).claimed_by == test_user.email


async def refresh_fails(self, *args, **kwargs):
    raise OperationalError("SELECT users", {}, Exception("database is locked"))


@pytest.mark.asyncio
async def test_create_account_reads_nothing_back_after_commit(session_factory, monkeypatch):
    """A read failing after a successful commit must not turn into a second insert."""
    monkeypatch.setattr(AsyncSession, "refresh", refresh_fails)
    policy = RetryPolicy(max_attempts=3, base_delay_ms=1)

    async with session_factory() as session:
        outcome = await create_account(session, "New User", "new@example.com", "password123", policy)

    assert outcome.kind is OutcomeKind.OK
    assert outcome.attempts == 1
    assert outcome.value.id is not None
    assert outcome.value.created_at is not None

    async with session_factory() as session:
        result = await session.execute(select(func.count()).select_from(User).where(User.email == "new@example.com"))
        assert result.scalar_one() == 1


@pytest.mark.asyncio
async def test_sign_up_is_201_even_if_reads_after_commit_would_fail(client: AsyncClient, monkeypatch):
    monkeypatch.setattr(AsyncSession, "refresh", refresh_fails)

    response = await client.post(f"{AUTH}/sign-up", json={
        "name": "New User",
        "email": "new@example.com",
        "password": "password123",
    })

    assert response.status_code == 201
    assert response.json()["created_at"]
